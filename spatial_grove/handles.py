from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple
import math

from .envelope import BoundingBox
from .errors import InvalidConfigurationError

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


@dataclass(frozen=True)
class GeometryHandle:
    """Immutable reference to a shapely geometry plus its precomputed box and stable id."""
    id: int
    geometry: Any
    box: BoundingBox

    def __post_init__(self):
        if isinstance(self.id, bool) or not isinstance(self.id, int):
            raise TypeError(f"geometry id must be an int, got {type(self.id).__name__}")
        if not (_INT64_MIN <= self.id <= _INT64_MAX):
            raise ValueError(f"geometry id {self.id} does not fit in 64 bits")

    @classmethod
    def from_geometry(cls, gid: int, geometry) -> "GeometryHandle":
        if geometry is None or geometry.is_empty:
            raise ValueError(f"geometry {gid} is empty")
        return cls(int(gid), geometry, BoundingBox.from_bounds(geometry.bounds))

    # hashing on the id only; geometries are not hashable in general
    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GeometryHandle):
            return NotImplemented
        return self.id == other.id


def handles_from_geometries(geoms: Iterable, start_id: int = 0) -> List[GeometryHandle]:
    """Wrap shapely geometries as handles with consecutive ids, skipping null/empty ones."""
    out: List[GeometryHandle] = []
    for i, g in enumerate(geoms):
        if g is None or g.is_empty:
            continue
        out.append(GeometryHandle.from_geometry(start_id + i, g))
    return out


# ----------------------------- Predicates ------------------------------------

class PredicateKind(str, Enum):
    INTERSECTS = "intersects"
    CONTAINS = "contains"
    WITHIN_DISTANCE = "within_distance"


@dataclass(frozen=True)
class SpatialPredicate:
    """Binary predicate between a left and a right geometry.

    ``CONTAINS`` reads as "left contains right". ``WITHIN_DISTANCE`` holds when
    the euclidean distance between the two geometries is at most ``distance``.
    """
    kind: PredicateKind
    distance: float = 0.0

    def __post_init__(self):
        kind = PredicateKind(self.kind)
        object.__setattr__(self, "kind", kind)
        d = float(self.distance)
        if kind is PredicateKind.WITHIN_DISTANCE:
            if not math.isfinite(d) or d < 0.0:
                raise InvalidConfigurationError("within-distance predicate needs a finite distance >= 0",
                                                {"distance": self.distance})
        else:
            d = 0.0
        object.__setattr__(self, "distance", d)

    @classmethod
    def intersects(cls) -> "SpatialPredicate":
        return cls(PredicateKind.INTERSECTS)

    @classmethod
    def contains(cls) -> "SpatialPredicate":
        return cls(PredicateKind.CONTAINS)

    @classmethod
    def within_distance(cls, distance: float) -> "SpatialPredicate":
        return cls(PredicateKind.WITHIN_DISTANCE, distance)

    @classmethod
    def parse(cls, text: str) -> "SpatialPredicate":
        """Parse ``intersects``, ``contains`` or ``within_distance:<d>``."""
        s = (text or "").strip().lower()
        if s == "intersects":
            return cls.intersects()
        if s == "contains":
            return cls.contains()
        if s.startswith(("within_distance", "within-distance", "dwithin")):
            _, _, raw = s.partition(":")
            try:
                d = float(raw)
            except ValueError:
                raise InvalidConfigurationError(f"Invalid predicate: {text}")
            return cls.within_distance(d)
        raise InvalidConfigurationError(f"Unsupported predicate: {text}")

    @property
    def expansion(self) -> float:
        """Distance the queried side's boxes must be grown by during assignment."""
        return self.distance if self.kind is PredicateKind.WITHIN_DISTANCE else 0.0

    def evaluate(self, left, right) -> Tuple[bool, Optional[float]]:
        """Exact test on two shapely geometries; returns (matches, distance or None)."""
        if self.kind is PredicateKind.INTERSECTS:
            return bool(left.intersects(right)), None
        if self.kind is PredicateKind.CONTAINS:
            return bool(left.contains(right)), None
        dist = float(left.distance(right))
        return dist <= self.distance, dist

    def __str__(self) -> str:
        if self.kind is PredicateKind.WITHIN_DISTANCE:
            return f"within_distance:{self.distance:g}"
        return self.kind.value


INTERSECTS = SpatialPredicate.intersects()
CONTAINS = SpatialPredicate.contains()
