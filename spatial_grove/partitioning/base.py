from __future__ import annotations
from dataclasses import dataclass
from typing import List, Protocol, Tuple
import math

import numpy as np

from ..envelope import BoundingBox


@dataclass(frozen=True)
class PartitionBoundary:
    partition_id: int
    box: BoundingBox


class BoundaryBuilder(Protocol):
    """Turns sample points (shape (n, 2)) into cells over ``extent``."""
    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]: ...


def working_extent(extent: BoundingBox, min_extent: float) -> BoundingBox:
    """Pad every zero-length axis of ``extent`` to ``min_extent``, centered on the data."""
    cx, cy = extent.center()
    half = 0.5 * min_extent
    min_x, max_x = (cx - half, cx + half) if extent.width <= 0.0 else (extent.min_x, extent.max_x)
    min_y, max_y = (cy - half, cy + half) if extent.height <= 0.0 else (extent.min_y, extent.max_y)
    return BoundingBox(min_x, min_y, max_x, max_y)


def points_degenerate(points: np.ndarray) -> bool:
    """True when the points are all identical or all share an x or a y coordinate."""
    if points.shape[0] <= 1:
        return True
    spread = np.ptp(points, axis=0)
    return bool(np.any(spread <= 0.0))


def grid_shape(num_partitions: int, extent: BoundingBox) -> Tuple[int, int]:
    """(rows, cols) with rows * cols == num_partitions, larger factor on the longer axis."""
    small = 1
    for d in range(1, int(math.isqrt(num_partitions)) + 1):
        if num_partitions % d == 0:
            small = d
    large = num_partitions // small
    if extent.height > extent.width:
        return large, small
    return small, large


def grid_cells(extent: BoundingBox, rows: int, cols: int) -> List[BoundingBox]:
    """Equal cells in row-major order from the bottom-left; shared edges are bit-identical."""
    xs = np.linspace(extent.min_x, extent.max_x, cols + 1)
    ys = np.linspace(extent.min_y, extent.max_y, rows + 1)
    cells: List[BoundingBox] = []
    for r in range(rows):
        for c in range(cols):
            cells.append(BoundingBox(xs[c], ys[r], xs[c + 1], ys[r + 1]))
    return cells


def cell_midpoint(cell: BoundingBox, axis: int) -> float:
    lo, hi = cell.axis_range(axis)
    return 0.5 * (lo + hi)


def strictly_inside(cell: BoundingBox, axis: int, coord: float) -> bool:
    lo, hi = cell.axis_range(axis)
    return lo < coord < hi
