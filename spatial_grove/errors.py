"""
Exceptions and warnings raised by the partitioning, indexing and join engine.

Fatal conditions raise a subclass of ``SpatialGroveError``; the only
recoverable condition (geometries dropped during assignment) is reported
with ``PartitionBuildWarning`` once per partitioning call.
"""

from typing import Any, Dict, Optional


class SpatialGroveError(Exception):
    """Base exception for all spatial_grove errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class InsufficientDataError(SpatialGroveError):
    """Raised when a partitioning is requested over an empty source."""
    pass


class InvalidConfigurationError(SpatialGroveError, ValueError):
    """
    Raised before any partition work begins when:
    - num_partitions, sample_size or a tuning value is out of range
    - a co-partitioned join is given datasets with different boundary sets
    - a distance join is given a right side assigned without enough expansion
    """
    pass


class IndexQueryError(SpatialGroveError, ValueError):
    """Raised for a malformed index query (NaN or infinite coordinates, k <= 0).

    Only the failing call is affected; the index stays usable.
    """
    pass


class PartitionBuildWarning(UserWarning):
    """Geometries fell outside every partition boundary and were dropped."""

    def __init__(self, dropped: int, total: int):
        super().__init__(f"{dropped} of {total} geometries fell outside all partition boundaries and were dropped")
        self.dropped = dropped
        self.total = total
