from __future__ import annotations
from typing import List, Tuple
import heapq
import logging

import numpy as np

from ..envelope import BoundingBox
from .base import cell_midpoint, strictly_inside

logger = logging.getLogger(__name__)


def _median_split(cell: BoundingBox, coords: np.ndarray, axis: int) -> float:
    """Split coordinate between the two middle values, moved to the cell midpoint if it is not inside."""
    n = coords.size
    if n >= 2:
        ordered = np.sort(coords)
        split = 0.5 * (float(ordered[n // 2 - 1]) + float(ordered[n // 2]))
    elif n == 1:
        split = float(coords[0])
    else:
        split = cell_midpoint(cell, axis)
    if not strictly_inside(cell, axis, split):
        split = cell_midpoint(cell, axis)
    return split


class KDBTreeBuilder:
    """
    K-D-B tree bisection: the leaf holding the most sample points is cut at the
    median along alternating axes until there are num_partitions leaves or no
    leaf holds more than min_leaf_size points.
    """

    def __init__(self, min_leaf_size: int = 1):
        self.min_leaf_size = int(min_leaf_size)

    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]:
        n = int(points.shape[0])
        # (neg count, seq, depth, cell, point indices)
        heap: List[Tuple[int, int, int, BoundingBox, np.ndarray]] = [(-n, 0, 0, extent, np.arange(n))]
        seq = 1

        while len(heap) < num_partitions:
            neg_count, _, depth, cell, idx = heapq.heappop(heap)
            if -neg_count <= self.min_leaf_size:
                heapq.heappush(heap, (neg_count, seq, depth, cell, idx))
                break

            axis = depth % 2
            pts = points[idx]
            if idx.size > 1 and np.ptp(pts[:, axis]) <= 0.0 and np.ptp(pts[:, 1 - axis]) > 0.0:
                # points do not spread along this axis; cut the other one
                axis = 1 - axis
            split = _median_split(cell, pts[:, axis], axis)
            low_mask = pts[:, axis] < split
            low, high = cell.split(axis, split)
            logger.debug("KDB split depth=%d axis=%d at %.6g: %d | %d",
                         depth, axis, split, int(np.count_nonzero(low_mask)), int(idx.size - np.count_nonzero(low_mask)))

            heapq.heappush(heap, (-int(np.count_nonzero(low_mask)), seq, depth + 1, low, idx[low_mask]))
            heapq.heappush(heap, (-int(np.count_nonzero(~low_mask)), seq + 1, depth + 1, high, idx[~low_mask]))
            seq += 2

        leaves = [item[3] for item in heap]
        leaves.sort(key=lambda b: (b.min_y, b.min_x))
        logger.info("KDB-tree: %d leaves for %d sample points", len(leaves), n)
        return leaves
