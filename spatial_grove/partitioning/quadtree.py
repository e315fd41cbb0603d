from __future__ import annotations
from typing import List, Optional, Tuple
import heapq
import logging
import math

import numpy as np

from ..envelope import BoundingBox
from .base import strictly_inside

logger = logging.getLogger(__name__)

_Child = Tuple[BoundingBox, np.ndarray]


def _quadrants(cell: BoundingBox, pts: np.ndarray, idx: np.ndarray,
               sx: float, sy: float) -> Optional[List[_Child]]:
    """
    Split ``cell`` at (sx, sy) into non-empty children.

    Empty quadrants are absorbed by a sibling so the children still tile the
    cell: one empty quadrant merges with its row neighbour, an empty row turns
    the split into left/right halves, anything else into bottom/top halves.
    Returns None when all points fall in a single quadrant.
    """
    east = pts[:, 0] >= sx
    north = pts[:, 1] >= sy
    sw, se, nw, ne = (~east & ~north), (east & ~north), (~east & north), (east & north)
    counts = [int(np.count_nonzero(m)) for m in (sw, se, nw, ne)]
    nonempty = sum(1 for c in counts if c > 0)
    if nonempty <= 1:
        return None

    x0, y0, x1, y1 = cell.as_tuple()
    q_sw = BoundingBox(x0, y0, sx, sy)
    q_se = BoundingBox(sx, y0, x1, sy)
    q_nw = BoundingBox(x0, sy, sx, y1)
    q_ne = BoundingBox(sx, sy, x1, y1)
    bottom = BoundingBox(x0, y0, x1, sy)
    top = BoundingBox(x0, sy, x1, y1)
    left = BoundingBox(x0, y0, sx, y1)
    right = BoundingBox(sx, y0, x1, y1)

    if nonempty == 4:
        return [(q_sw, idx[sw]), (q_se, idx[se]), (q_nw, idx[nw]), (q_ne, idx[ne])]
    if nonempty == 3:
        if counts[0] == 0 or counts[1] == 0:
            return [(bottom, idx[~north]), (q_nw, idx[nw]), (q_ne, idx[ne])]
        return [(top, idx[north]), (q_sw, idx[sw]), (q_se, idx[se])]
    # two non-empty quadrants
    if (counts[0] == 0 and counts[1] == 0) or (counts[2] == 0 and counts[3] == 0):
        return [(left, idx[~east]), (right, idx[east])]
    return [(bottom, idx[~north]), (top, idx[north])]


class QuadTreeBuilder:
    """
    Region quad-tree over the sample points.

    The leaf holding the most points is split at its center while it holds
    more than ceil(n / num_partitions) points, the tree has fewer than
    num_partitions leaves and the leaf is above max_depth. When every point
    lands in one quadrant the split moves to the leaf's sample median; a leaf
    that still cannot be separated is kept as is.
    """

    def __init__(self, max_depth: int = 16):
        self.max_depth = int(max_depth)

    def _split(self, cell: BoundingBox, pts: np.ndarray, idx: np.ndarray) -> Optional[List[_Child]]:
        sx, sy = cell.center()
        children = _quadrants(cell, pts, idx, sx, sy)
        if children is not None:
            return children
        mx, my = float(np.median(pts[:, 0])), float(np.median(pts[:, 1]))
        if strictly_inside(cell, 0, mx) and strictly_inside(cell, 1, my):
            logger.debug("Quad split at sample median (%.6g, %.6g) for cell %s", mx, my, cell.as_tuple())
            return _quadrants(cell, pts, idx, mx, my)
        return None

    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]:
        n = int(points.shape[0])
        threshold = max(1, int(math.ceil(n / float(num_partitions))))
        heap: List[Tuple[int, int, int, BoundingBox, np.ndarray]] = [(-n, 0, 0, extent, np.arange(n))]
        final: List[BoundingBox] = []
        seq = 1

        while heap and len(heap) + len(final) < num_partitions:
            neg_count, _, depth, cell, idx = heapq.heappop(heap)
            if -neg_count <= threshold:
                heapq.heappush(heap, (neg_count, seq, depth, cell, idx))
                break
            children = None
            if depth < self.max_depth:
                children = self._split(cell, points[idx], idx)
            if children is None:
                final.append(cell)
                continue
            for child_cell, child_idx in children:
                heapq.heappush(heap, (-int(child_idx.size), seq, depth + 1, child_cell, child_idx))
                seq += 1

        leaves = final + [item[3] for item in heap]
        leaves.sort(key=lambda b: (b.min_y, b.min_x))
        logger.info("Quad-tree: %d leaves for %d sample points (threshold=%d)", len(leaves), n, threshold)
        return leaves
