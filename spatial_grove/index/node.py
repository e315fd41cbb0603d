from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
import heapq

import numpy as np
from shapely.geometry import Point

from ..envelope import BoundingBox

# heap item kinds; at equal distance nodes expand before entries resolve
_NODE = 0
_BOX = 1
_EXACT = 2


class Node:
    """Tree node: a region plus child nodes and/or entries stored at this level."""
    __slots__ = ("box", "children", "entries")

    def __init__(self, box: BoundingBox, children: Optional[List["Node"]] = None,
                 entries: Optional[list] = None):
        self.box = box
        self.children = children or []
        self.entries = entries or []

    def is_leaf(self) -> bool:
        return not self.children

    def height(self) -> int:
        h = 1
        node = self
        while node.children:
            node = node.children[0]
            h += 1
        return h


def boxes_array(entries: Sequence) -> np.ndarray:
    if not entries:
        return np.empty((0, 4), dtype=float)
    return np.asarray([e.box.as_tuple() for e in entries], dtype=float)


def bounds_of(arr: np.ndarray) -> BoundingBox:
    return BoundingBox(float(arr[:, 0].min()), float(arr[:, 1].min()),
                       float(arr[:, 2].max()), float(arr[:, 3].max()))


def query_tree(root: Optional[Node], box: BoundingBox) -> list:
    out = []
    if root is None:
        return out
    stack = [root]
    while stack:
        node = stack.pop()
        if not node.box.intersects(box):
            continue
        for e in node.entries:
            if e.box.intersects(box):
                out.append(e)
        stack.extend(node.children)
    return out


def nearest_tree(root: Optional[Node], x: float, y: float, k: int) -> List[Tuple[object, float]]:
    """
    Best-first branch-and-bound search. Nodes and entries are keyed by the
    minimum distance from the point to their box, entries are then re-keyed by
    the exact geometry distance; an exact item popped from the heap is the
    next nearest. Ties are broken by entry id.
    """
    out: List[Tuple[object, float]] = []
    if root is None:
        return out
    pt = Point(x, y)
    heap = [(root.box.min_distance(x, y), _NODE, 0, 0, root)]
    seq = 1
    while heap and len(out) < k:
        dist, kind, _, _, item = heapq.heappop(heap)
        if kind == _EXACT:
            out.append((item, dist))
            continue
        if kind == _BOX:
            d = float(item.handle.geometry.distance(pt))
            heapq.heappush(heap, (d, _EXACT, item.id, seq, item))
            seq += 1
            continue
        for e in item.entries:
            heapq.heappush(heap, (e.box.min_distance(x, y), _BOX, e.id, seq, e))
            seq += 1
        for c in item.children:
            heapq.heappush(heap, (c.box.min_distance(x, y), _NODE, 0, seq, c))
            seq += 1
    return out
