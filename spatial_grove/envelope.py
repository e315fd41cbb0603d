from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
import math

import numpy as np


# ------------------------------- Geometry ------------------------------------

@dataclass(frozen=True)
class BoundingBox:
    """2-D axis-aligned rectangle, always normalized (min <= max per axis).

    Degenerate boxes (a point or a segment) are valid. Every overlap test is
    inclusive of the boundary, so two boxes that only touch do intersect.
    """
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self):
        min_x, min_y = float(self.min_x), float(self.min_y)
        max_x, max_y = float(self.max_x), float(self.max_y)
        # normalize
        if min_x > max_x:
            min_x, max_x = max_x, min_x
        if min_y > max_y:
            min_y, max_y = max_y, min_y
        object.__setattr__(self, "min_x", min_x)
        object.__setattr__(self, "min_y", min_y)
        object.__setattr__(self, "max_x", max_x)
        object.__setattr__(self, "max_y", max_y)

    # ---------- constructors ----------

    @staticmethod
    def from_bounds(bounds: Iterable[float]) -> "BoundingBox":
        min_x, min_y, max_x, max_y = bounds
        return BoundingBox(min_x, min_y, max_x, max_y)

    @staticmethod
    def from_points(coords: np.ndarray) -> "BoundingBox":
        # coords: (N, 2)
        coords = np.asarray(coords, dtype=float)
        if coords.ndim != 2 or coords.shape[1] != 2 or coords.shape[0] == 0:
            raise ValueError("coords must be a non-empty (N, 2) array")
        mins = np.min(coords, axis=0)
        maxs = np.max(coords, axis=0)
        return BoundingBox(mins[0], mins[1], maxs[0], maxs[1])

    @staticmethod
    def point(x: float, y: float) -> "BoundingBox":
        return BoundingBox(x, y, x, y)

    # ---------- measures ----------

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def area(self) -> float:
        return self.width * self.height

    def margin(self) -> float:
        # R*-tree margin: sum of edge lengths
        return 2.0 * (self.width + self.height)

    def center(self) -> Tuple[float, float]:
        return (0.5 * (self.min_x + self.max_x), 0.5 * (self.min_y + self.max_y))

    def min_corner(self) -> Tuple[float, float]:
        return (self.min_x, self.min_y)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in self.as_tuple())

    def is_degenerate(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0

    # ---------- predicates ----------

    def intersects(self, other: "BoundingBox") -> bool:
        return not (other.max_x < self.min_x or other.min_x > self.max_x or
                    other.max_y < self.min_y or other.min_y > self.max_y)

    def contains_box(self, other: "BoundingBox") -> bool:
        return (other.min_x >= self.min_x and other.min_y >= self.min_y and
                other.max_x <= self.max_x and other.max_y <= self.max_y)

    def contains_point(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def min_distance(self, x: float, y: float) -> float:
        """Euclidean distance from (x, y) to the closest point of the box (0 inside)."""
        dx = max(self.min_x - x, 0.0, x - self.max_x)
        dy = max(self.min_y - y, 0.0, y - self.max_y)
        return math.hypot(dx, dy)

    # ---------- combinators ----------

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                           max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def intersection(self, other: "BoundingBox") -> Optional["BoundingBox"]:
        if not self.intersects(other):
            return None
        return BoundingBox(max(self.min_x, other.min_x), max(self.min_y, other.min_y),
                           min(self.max_x, other.max_x), min(self.max_y, other.max_y))

    def expand(self, distance: float) -> "BoundingBox":
        if distance == 0.0:
            return self
        return BoundingBox(self.min_x - distance, self.min_y - distance,
                           self.max_x + distance, self.max_y + distance)

    def split(self, axis: int, coord: float) -> Tuple["BoundingBox", "BoundingBox"]:
        """Cut the box at ``coord`` along ``axis`` (0 = x, 1 = y) into (low, high)."""
        if axis == 0:
            return (BoundingBox(self.min_x, self.min_y, coord, self.max_y),
                    BoundingBox(coord, self.min_y, self.max_x, self.max_y))
        return (BoundingBox(self.min_x, self.min_y, self.max_x, coord),
                BoundingBox(self.min_x, coord, self.max_x, self.max_y))

    def axis_range(self, axis: int) -> Tuple[float, float]:
        if axis == 0:
            return self.min_x, self.max_x
        return self.min_y, self.max_y

    def to_geometry(self):
        """Shapely geometry covering exactly this box (point, segment or polygon)."""
        from shapely.geometry import LineString, Point, box
        if self.width == 0.0 and self.height == 0.0:
            return Point(self.min_x, self.min_y)
        if self.is_degenerate():
            return LineString([(self.min_x, self.min_y), (self.max_x, self.max_y)])
        return box(self.min_x, self.min_y, self.max_x, self.max_y)


def union_all(boxes: Iterable[BoundingBox]) -> Optional[BoundingBox]:
    out: Optional[BoundingBox] = None
    for b in boxes:
        out = b if out is None else out.union(b)
    return out


def boxes_to_array(boxes: Iterable[BoundingBox]) -> np.ndarray:
    """Stack boxes into a (P, 4) float array of (min_x, min_y, max_x, max_y)."""
    rows = [b.as_tuple() for b in boxes]
    if not rows:
        return np.empty((0, 4), dtype=float)
    return np.asarray(rows, dtype=float)
