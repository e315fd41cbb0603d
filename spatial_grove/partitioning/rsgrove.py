from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from ..envelope import BoundingBox

logger = logging.getLogger(__name__)


# ----------------------------- R*-like splitter -------------------------------

def _prefix_bounds(sorted_pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Running MBRs of sorted_pts[:i+1] (left) and sorted_pts[i:] (right), each (n, 2)."""
    left_min = np.minimum.accumulate(sorted_pts, axis=0)
    left_max = np.maximum.accumulate(sorted_pts, axis=0)
    right_min = np.minimum.accumulate(sorted_pts[::-1], axis=0)[::-1]
    right_max = np.maximum.accumulate(sorted_pts[::-1], axis=0)[::-1]
    return left_min, left_max, right_min, right_max


def _choose_split(pts: np.ndarray, m: float, fraction_min_split: float) -> Optional[Tuple[int, float]]:
    """
    R*-style split selection over the points of one cell.

    - For each axis, sort by coordinate and consider split positions k
      (left = first k points) that separate distinct coordinates and leave
      at least m points on each side; when none does, every separating
      position is allowed.
    - Optionally thin candidates to a band around the middle (fraction_min_split).
    - First criterion: minimal sum of margins of the two groups
    - Tie-breaker: minimal overlap of the two MBRs
    - Tie-breaker: minimal total area
    Returns (axis, split coordinate) or None when no axis separates the points.
    """
    n = pts.shape[0]
    best = None  # (score_margin, score_overlap, score_area)
    best_split: Optional[Tuple[int, float]] = None

    for axis in range(2):
        order = np.argsort(pts[:, axis], kind="stable")
        s = pts[order]
        coords = s[:, axis]
        k = np.arange(1, n)
        separable = coords[k - 1] < coords[k]
        if not np.any(separable):
            continue
        sized = separable & (k >= m) & ((n - k) >= m)
        k_valid = k[sized] if np.any(sized) else k[separable]

        # thin candidates per fraction_min_split (0.0 = all)
        if fraction_min_split > 0.0 and k_valid.size > 1:
            lo = int((1.0 - fraction_min_split) * 0.5 * k_valid.size)
            hi = int((1.0 + fraction_min_split) * 0.5 * k_valid.size)
            if hi > lo:
                k_valid = k_valid[lo:hi]

        left_min, left_max, right_min, right_max = _prefix_bounds(s)
        lmin, lmax = left_min[k_valid - 1], left_max[k_valid - 1]
        rmin, rmax = right_min[k_valid], right_max[k_valid]
        side_l = np.maximum(0.0, lmax - lmin)
        side_r = np.maximum(0.0, rmax - rmin)
        score_margin = side_l.sum(axis=1) + side_r.sum(axis=1)
        overlap_side = np.maximum(0.0, np.minimum(lmax, rmax) - np.maximum(lmin, rmin))
        score_overlap = np.prod(overlap_side, axis=1)
        score_area = np.prod(side_l, axis=1) + np.prod(side_r, axis=1)

        i = int(np.lexsort((score_area, score_overlap, score_margin))[0])
        cand = (float(score_margin[i]), float(score_overlap[i]), float(score_area[i]))
        if best is None or cand < best:
            kk = int(k_valid[i])
            best = cand
            best_split = (axis, 0.5 * (float(coords[kk - 1]) + float(coords[kk])))

    return best_split


class RSGroveBuilder:
    """
    R*-Grove partitioning: recursive binary splits chosen with the R*-tree
    criteria until every cell holds at most ceil(n / num_partitions) sample
    points. Splits cut the space between neighbouring sample points, so the
    cells are disjoint and tile the extent.
    """

    def __init__(self, mm_ratio: float = 0.95, fraction_min_split: float = 0.0):
        self.mm_ratio = float(mm_ratio)
        self.fraction_min_split = float(fraction_min_split)

    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]:
        n = int(points.shape[0])
        max_cap = max(1, int(math.ceil(n / float(num_partitions))))
        min_cap = int(math.ceil(self.mm_ratio * max_cap))
        logger.info("RSGrove partitioning: n=%d, M=%d, m=%d", n, max_cap, min_cap)

        out: List[BoundingBox] = []
        stack: List[Tuple[BoundingBox, np.ndarray]] = [(extent, points)]
        while stack:
            cell, pts = stack.pop()
            logger.debug(f"Stack pop cell={cell.as_tuple()}, subset_size={pts.shape[0]}")
            if pts.shape[0] <= max_cap:
                out.append(cell)
                continue

            split = _choose_split(pts, min_cap, self.fraction_min_split)
            if split is None:
                logger.warning("Cell %s: points cannot be separated, keeping %d points in one cell",
                               cell.as_tuple(), pts.shape[0])
                out.append(cell)
                continue

            axis, coord = split
            low, high = cell.split(axis, coord)
            low_mask = pts[:, axis] < coord
            stack.append((high, pts[~low_mask]))
            stack.append((low, pts[low_mask]))

        out.sort(key=lambda b: (b.min_y, b.min_x))
        return out
