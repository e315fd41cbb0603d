from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging
import math

from .dataset import PartitionedDataset
from .envelope import BoundingBox
from .errors import IndexQueryError
from .handles import INTERSECTS, GeometryHandle, SpatialPredicate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Neighbor:
    handle: GeometryHandle
    distance: float

    @property
    def id(self) -> int:
        return self.handle.id


def range_query(dataset: PartitionedDataset, box: BoundingBox,
                predicate: Optional[SpatialPredicate] = None) -> List[GeometryHandle]:
    """
    Geometries matching ``predicate`` against the query box, each once.

    The predicate reads with the box polygon on the left: ``CONTAINS`` keeps
    geometries the box contains. A match is kept only in the partition owning
    the minimum corner of the geometry box clipped to the query box, which
    every replica of the geometry agrees on.
    """
    predicate = predicate or INTERSECTS
    if not box.is_finite():
        raise IndexQueryError("Query box must have finite coordinates", {"box": box.as_tuple()})
    qbox = box.expand(predicate.expansion)
    qgeom = box.to_geometry()

    out: List[GeometryHandle] = []
    visited = 0
    for pid in dataset.lookup.search(qbox):
        part = dataset.partition(int(pid))
        if not len(part):
            continue
        visited += 1
        for entry in part.index().query(qbox):
            ref = entry.box.intersection(qbox)
            if ref is None or dataset.owner(ref.min_x, ref.min_y) != part.partition_id:
                continue
            ok, _ = predicate.evaluate(qgeom, entry.handle.geometry)
            if ok:
                out.append(entry.handle)
    out.sort(key=lambda h: h.id)
    logger.debug("range %s over %s: %d partitions visited, %d matches",
                 predicate, box.as_tuple(), visited, len(out))
    return out


def knn(dataset: PartitionedDataset, x: float, y: float, k: int) -> List[Neighbor]:
    """
    The k geometries nearest to (x, y), ascending by distance then id.

    Partitions are visited by increasing distance of their boundary to the
    point; the walk stops at the first boundary farther than the current k-th
    best distance, since a geometry's nearest point lies inside some boundary
    that holds a replica of it.
    """
    if not (math.isfinite(x) and math.isfinite(y)):
        raise IndexQueryError("Query point must have finite coordinates", {"x": x, "y": y})
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise IndexQueryError("k must be a positive integer", {"k": k})

    order = sorted((p.box.min_distance(x, y), p.partition_id) for p in dataset if len(p))
    best: Dict[int, Neighbor] = {}
    kth = math.inf
    visited = 0
    for bound, pid in order:
        if bound > kth:
            break
        visited += 1
        for entry, dist in dataset.partition(pid).index().nearest(x, y, k):
            seen = best.get(entry.id)
            if seen is None or dist < seen.distance:
                best[entry.id] = Neighbor(entry.handle, dist)
        if len(best) >= k:
            kth = sorted(n.distance for n in best.values())[k - 1]

    result = sorted(best.values(), key=lambda n: (n.distance, n.id))[:k]
    logger.debug("knn (%g, %g) k=%d: %d of %d partitions visited", x, y, k, visited, len(order))
    return result
