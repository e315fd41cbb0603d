from __future__ import annotations
from typing import Optional, Sequence

import numpy as np

from ..envelope import BoundingBox
from .node import Node, boxes_array, bounds_of


def _build(entries: Sequence, arr: np.ndarray, idx: np.ndarray, region: BoundingBox,
           capacity: int, depth: int, max_depth: int) -> Node:
    node = Node(region)
    if idx.size <= capacity or depth >= max_depth:
        node.entries = [entries[i] for i in idx]
        return node

    cx, cy = region.center()
    sub = arr[idx]
    west = sub[:, 2] <= cx
    east = ~west & (sub[:, 0] >= cx)
    south = sub[:, 3] <= cy
    north = ~south & (sub[:, 1] >= cy)
    # boxes crossing a center line stay at this node
    stay = ~(west | east) | ~(south | north)
    if np.all(stay):
        node.entries = [entries[i] for i in idx]
        return node

    node.entries = [entries[i] for i in idx[stay]]
    x0, y0, x1, y1 = region.as_tuple()
    quads = (
        (west & south, BoundingBox(x0, y0, cx, cy)),
        (east & south, BoundingBox(cx, y0, x1, cy)),
        (west & north, BoundingBox(x0, cy, cx, y1)),
        (east & north, BoundingBox(cx, cy, x1, y1)),
    )
    for mask, quad in quads:
        child_idx = idx[mask & ~stay]
        if child_idx.size:
            node.children.append(_build(entries, arr, child_idx, quad, capacity, depth + 1, max_depth))
    return node


def build_quadtree(entries: Sequence, capacity: int, max_depth: int = 16) -> Optional[Node]:
    """
    Region quad-tree over the entry boxes. An entry lives at the deepest node
    whose region contains its whole box, so entries straddling a center line
    stay at the parent.
    """
    if not entries:
        return None
    arr = boxes_array(entries)
    return _build(entries, arr, np.arange(arr.shape[0]), bounds_of(arr), capacity, 0, max_depth)
