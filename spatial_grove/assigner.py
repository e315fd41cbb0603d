from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import warnings
from time import perf_counter

import numpy as np

from .datasource import iter_source
from .envelope import BoundingBox, boxes_to_array
from .errors import InvalidConfigurationError, PartitionBuildWarning
from .handles import GeometryHandle
from .partitioning import PartitionBoundary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionEntry:
    """One occurrence of a geometry in a partition; exactly one per geometry is home."""
    handle: GeometryHandle
    is_home: bool

    @property
    def id(self) -> int:
        return self.handle.id

    @property
    def box(self) -> BoundingBox:
        return self.handle.box


@dataclass
class AssignmentResult:
    entries: List[List[PartitionEntry]]
    total: int = 0
    dropped: int = 0
    replicated: int = 0
    dropped_ids: List[int] = field(default_factory=list)


class BoundaryIndex:
    """
    Linear-scan overlap search over partition boundaries.
    Implemented with NumPy arrays; every test is inclusive of the boundary.
    """

    def __init__(self, boundaries: Sequence[PartitionBoundary]):
        self.boundaries = list(boundaries)
        for i, b in enumerate(self.boundaries):
            if b.partition_id != i:
                raise InvalidConfigurationError("Boundary ids must match their positions",
                                                {"position": i, "partition_id": b.partition_id})
        arr = boxes_to_array(b.box for b in self.boundaries)
        self.mins = arr[:, :2]  # (P, 2)
        self.maxs = arr[:, 2:]  # (P, 2)
        # ownership rank: greatest (min_x, min_y) first, then lowest id
        pids = np.arange(len(self.boundaries))
        self._rank = np.lexsort((pids, -self.mins[:, 1], -self.mins[:, 0]))

    def __len__(self) -> int:
        return len(self.boundaries)

    def search(self, box: BoundingBox) -> np.ndarray:
        """Ids of boundaries overlapping ``box``, ascending."""
        if not self.boundaries:
            return np.empty(0, dtype=np.int64)
        qmin = np.array([box.min_x, box.min_y])
        qmax = np.array([box.max_x, box.max_y])
        sep = (self.maxs < qmin) | (qmax < self.mins)    # (P, 2)
        return np.nonzero(~np.any(sep, axis=1))[0]

    def owner(self, x: float, y: float) -> Optional[int]:
        """
        Partition owning the point (x, y): among the boundaries containing it,
        the one with the greatest (min_x, min_y) corner, then the lowest id.
        On a tiling this is the half-open cell holding the point.
        """
        if not self.boundaries:
            return None
        p = np.array([x, y])
        inside = np.all((self.mins <= p) & (p <= self.maxs), axis=1)
        ranked = inside[self._rank]
        if not ranked.any():
            return None
        return int(self._rank[int(np.argmax(ranked))])


class PartitionAssigner:
    """
    Maps each geometry to every boundary its (optionally expanded) box overlaps.

    The home replica is the boundary owning the minimum corner of the
    geometry's box; when that corner lies outside every boundary the lowest
    overlapping id is home. Geometries overlapping no boundary are dropped.
    """

    def __init__(self, boundaries: Sequence[PartitionBoundary]):
        self.lookup = BoundaryIndex(boundaries)
        logger.info("PartitionAssigner ready with %d partitions", len(self.lookup))

    @property
    def boundaries(self) -> List[PartitionBoundary]:
        return self.lookup.boundaries

    def assign(self, handle: GeometryHandle, expansion: float = 0.0) -> List[Tuple[int, bool]]:
        """(partition id, is_home) pairs for one geometry; empty when it is outside all boundaries."""
        hits = self.lookup.search(handle.box.expand(expansion))
        if hits.size == 0:
            return []
        if hits.size == 1:
            return [(int(hits[0]), True)]
        owner = self.lookup.owner(*handle.box.min_corner())
        home = owner if owner is not None and owner in hits else int(hits[0])
        return [(int(pid), int(pid) == home) for pid in hits]

    def iter_assignments(self, handles: Iterable[GeometryHandle],
                         expansion: float = 0.0) -> Iterable[Tuple[int, GeometryHandle, bool]]:
        """Stream (partition id, handle, is_home) triples; dropped geometries yield nothing."""
        for h in handles:
            for pid, is_home in self.assign(h, expansion):
                yield pid, h, is_home

    def assign_all(self, source, expansion: float = 0.0) -> AssignmentResult:
        start_time = perf_counter()
        result = AssignmentResult(entries=[[] for _ in range(len(self.lookup))])
        for h in iter_source(source):
            result.total += 1
            placed = self.assign(h, expansion)
            if not placed:
                result.dropped += 1
                result.dropped_ids.append(h.id)
                continue
            if len(placed) > 1:
                result.replicated += 1
            for pid, is_home in placed:
                result.entries[pid].append(PartitionEntry(h, is_home))

        if result.dropped:
            logger.warning("%d of %d geometries fell outside all partition boundaries and were dropped",
                           result.dropped, result.total)
            warnings.warn(PartitionBuildWarning(result.dropped, result.total), stacklevel=2)

        elapsed = perf_counter() - start_time
        logger.info("assign_all: input_rows=%d, replicated=%d, dropped=%d, expansion=%g, finished in %.3f seconds",
                    result.total, result.replicated, result.dropped, expansion, elapsed)
        return result
