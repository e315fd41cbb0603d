from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
import logging
import math
from time import perf_counter

from ..envelope import BoundingBox
from ..errors import IndexQueryError
from ..options import IndexType, _parse_enum
from .node import Node, nearest_tree, query_tree
from .quadtree import build_quadtree
from .rtree import build_rtree

logger = logging.getLogger(__name__)


class GeometryIndex:
    """
    Read-only spatial index over the entries of one partition.

    ``query`` returns candidates whose box overlaps the query box (the exact
    predicate is the caller's job); ``nearest`` returns exact distances.
    R-tree and quad-tree variants share this contract.
    """

    def __init__(self, entries: Sequence, index_type: IndexType, root: Optional[Node]):
        self._entries = tuple(entries)
        self.index_type = index_type
        self._root = root

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def bounds(self) -> Optional[BoundingBox]:
        return None if self._root is None else self._root.box

    def height(self) -> int:
        return 0 if self._root is None else self._root.height()

    def query(self, box: BoundingBox) -> list:
        if not box.is_finite():
            raise IndexQueryError("Query box must have finite coordinates", {"box": box.as_tuple()})
        return query_tree(self._root, box)

    def nearest(self, x: float, y: float, k: int) -> List[Tuple[object, float]]:
        """The k nearest entries to (x, y) as (entry, distance), ascending, ties by id."""
        if not (math.isfinite(x) and math.isfinite(y)):
            raise IndexQueryError("Query point must have finite coordinates", {"x": x, "y": y})
        if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
            raise IndexQueryError("k must be a positive integer", {"k": k})
        return nearest_tree(self._root, float(x), float(y), k)


def build_index(entries: Sequence, index_type: IndexType = IndexType.RTREE,
                node_capacity: int = 16) -> GeometryIndex:
    """Bulk-build a GeometryIndex of the requested variant."""
    index_type = _parse_enum(IndexType, index_type, "index type")
    start = perf_counter()
    if index_type is IndexType.RTREE:
        root = build_rtree(entries, node_capacity)
    else:
        root = build_quadtree(entries, node_capacity)
    index = GeometryIndex(entries, index_type, root)
    logger.debug(f"Built {index_type.value} index over {len(entries)} entries "
                 f"(height={index.height()}) in {perf_counter() - start:.4f}s")
    return index


__all__ = ["GeometryIndex", "build_index"]
