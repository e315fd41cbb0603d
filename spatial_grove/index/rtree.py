from __future__ import annotations
from typing import List, Optional, Sequence
import math

import numpy as np

from .node import Node, boxes_array, bounds_of


def _str_groups(arr: np.ndarray, capacity: int) -> List[np.ndarray]:
    """Sort-Tile-Recursive grouping of the boxes in ``arr`` into runs of at most ``capacity``."""
    n = arr.shape[0]
    leaf_count = int(math.ceil(n / float(capacity)))
    slab_count = int(math.ceil(math.sqrt(leaf_count)))
    slab_size = slab_count * capacity

    cx = 0.5 * (arr[:, 0] + arr[:, 2])
    cy = 0.5 * (arr[:, 1] + arr[:, 3])
    by_x = np.argsort(cx, kind="stable")
    groups: List[np.ndarray] = []
    for s in range(0, n, slab_size):
        slab = by_x[s:s + slab_size]
        slab = slab[np.argsort(cy[slab], kind="stable")]
        for g in range(0, slab.size, capacity):
            groups.append(slab[g:g + capacity])
    return groups


def build_rtree(entries: Sequence, capacity: int) -> Optional[Node]:
    """Bulk-load an R-tree over the entry boxes with STR packing, O(n log n)."""
    if not entries:
        return None
    arr = boxes_array(entries)
    level: List[Node] = [
        Node(bounds_of(arr[g]), entries=[entries[i] for i in g])
        for g in _str_groups(arr, capacity)
    ]
    while len(level) > 1:
        arr = np.asarray([n.box.as_tuple() for n in level], dtype=float)
        level = [
            Node(bounds_of(arr[g]), children=[level[i] for i in g])
            for g in _str_groups(arr, capacity)
        ]
    return level[0]
