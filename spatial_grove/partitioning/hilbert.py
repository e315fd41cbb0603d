from __future__ import annotations
from typing import List, Tuple
import logging

import numpy as np

from ..envelope import BoundingBox
from ..errors import InvalidConfigurationError

logger = logging.getLogger(__name__)


# ----------------------------- Curve math ------------------------------------

def hilbert_index(ix: np.ndarray, iy: np.ndarray, order: int) -> np.ndarray:
    """Vectorized cell (x, y) -> position on a Hilbert curve over a 2**order grid."""
    x = np.asarray(ix, dtype=np.int64).copy()
    y = np.asarray(iy, dtype=np.int64).copy()
    n = np.int64(1) << np.int64(order)
    d = np.zeros_like(x)
    s = n >> 1
    while s > 0:
        rx = ((x & s) > 0).astype(np.int64)
        ry = ((y & s) > 0).astype(np.int64)
        d += s * s * ((3 * rx) ^ ry)

        swap = ry == 0
        reflect = swap & (rx == 1)
        x = np.where(reflect, n - 1 - x, x)
        y = np.where(reflect, n - 1 - y, y)
        x, y = np.where(swap, y, x), np.where(swap, x, y)
        s >>= 1
    return d


def hilbert_cell(d: int, order: int) -> Tuple[int, int]:
    """Position on the curve -> cell (x, y)."""
    n = 1 << order
    x = y = 0
    t = int(d)
    s = 1
    while s < n:
        rx = 1 & (t // 2)
        ry = 1 & (t ^ rx)
        if ry == 0:
            if rx == 1:
                x = s - 1 - x
                y = s - 1 - y
            x, y = y, x
        x += s * rx
        y += s * ry
        t //= 4
        s *= 2
    return x, y


def range_cell_bounds(lo: int, hi: int, order: int) -> Tuple[int, int, int, int]:
    """
    Cell bounds (x0, y0, x1, y1), exclusive at the top, of the curve positions
    [lo, hi). The range is decomposed into aligned blocks of 4**k positions,
    each of which fills an aligned 2**k square, so the cost is O(order).
    """
    if hi <= lo:
        raise ValueError("empty Hilbert range")
    x0 = y0 = 1 << order
    x1 = y1 = 0
    while lo < hi:
        level = 0
        size = 1
        while level < order and lo % (size * 4) == 0 and lo + size * 4 <= hi:
            size *= 4
            level += 1
        cx, cy = hilbert_cell(lo, order)
        bx = (cx >> level) << level
        by = (cy >> level) << level
        side = 1 << level
        x0, y0 = min(x0, bx), min(y0, by)
        x1, y1 = max(x1, bx + side), max(y1, by + side)
        lo += size
    return x0, y0, x1, y1


# ----------------------------- Builder ---------------------------------------

class HilbertBuilder:
    """
    Equal-count Hilbert binning.

    Sample points are mapped to curve positions, sorted and cut into
    num_partitions contiguous ranges that together span the whole curve.
    Each boundary is the box of its range's grid cells, so boundaries cover
    the extent but may overlap.
    """

    def __init__(self, order: int = 16):
        self.order = int(order)

    def _cells(self, points: np.ndarray, extent: BoundingBox) -> Tuple[np.ndarray, np.ndarray]:
        side = 1 << self.order
        fx = (points[:, 0] - extent.min_x) / extent.width * side
        fy = (points[:, 1] - extent.min_y) / extent.height * side
        ix = np.clip(np.floor(fx), 0, side - 1).astype(np.int64)
        iy = np.clip(np.floor(fy), 0, side - 1).astype(np.int64)
        return ix, iy

    def cuts(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[int]:
        total = 1 << (2 * self.order)
        ix, iy = self._cells(points, extent)
        h = np.sort(hilbert_index(ix, iy, self.order))
        n = int(h.size)
        cuts = [0] + [int(h[(i * n) // num_partitions]) for i in range(1, num_partitions)] + [total]
        # strictly increasing, so that no range is empty
        for i in range(1, num_partitions):
            cuts[i] = max(cuts[i], cuts[i - 1] + 1)
        for i in range(num_partitions - 1, 0, -1):
            cuts[i] = min(cuts[i], cuts[i + 1] - 1)
        return cuts

    def _to_world(self, extent: BoundingBox, cell_x: int, cell_y: int) -> Tuple[float, float]:
        side = 1 << self.order
        x = extent.max_x if cell_x >= side else extent.min_x + cell_x * (extent.width / side)
        y = extent.max_y if cell_y >= side else extent.min_y + cell_y * (extent.height / side)
        return x, y

    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]:
        if (1 << (2 * self.order)) < num_partitions:
            raise InvalidConfigurationError("Hilbert curve has fewer cells than partitions",
                                            {"order": self.order, "num_partitions": num_partitions})
        cuts = self.cuts(points, extent, num_partitions)
        boxes: List[BoundingBox] = []
        for i in range(num_partitions):
            x0, y0, x1, y1 = range_cell_bounds(cuts[i], cuts[i + 1], self.order)
            wx0, wy0 = self._to_world(extent, x0, y0)
            wx1, wy1 = self._to_world(extent, x1, y1)
            boxes.append(BoundingBox(wx0, wy0, wx1, wy1))
        logger.info("Hilbert binning: order=%d, %d ranges over %d sample points",
                    self.order, num_partitions, int(points.shape[0]))
        return boxes
