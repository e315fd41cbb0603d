"""Spatial partitioning, per-partition indexing, joins and range/KNN queries."""

from .assigner import PartitionAssigner, PartitionEntry
from .datasource import DataSource, GeoParquetSource, SequenceSource, handles_from_table
from .dataset import Partition, PartitionedDataset, partition, partition_with_boundaries
from .envelope import BoundingBox
from .errors import (
    IndexQueryError,
    InsufficientDataError,
    InvalidConfigurationError,
    PartitionBuildWarning,
    SpatialGroveError,
)
from .handles import GeometryHandle, PredicateKind, SpatialPredicate, handles_from_geometries
from .index import GeometryIndex, build_index
from .join import JoinPair, broadcast_join, co_partitioned_join, partition_pair, spatial_join
from .options import IndexType, JoinStrategy, PartitioningScheme, PartitionOptions, TuningOptions
from .partitioning import PartitionBoundary, build_boundaries
from .query import Neighbor, knn, range_query
from .sampler import Sample, sample, sample_sharded

__version__ = "0.1.0"

__all__ = [
    "BoundingBox",
    "DataSource",
    "GeoParquetSource",
    "GeometryHandle",
    "GeometryIndex",
    "IndexQueryError",
    "IndexType",
    "InsufficientDataError",
    "InvalidConfigurationError",
    "JoinPair",
    "JoinStrategy",
    "Neighbor",
    "Partition",
    "PartitionAssigner",
    "PartitionBoundary",
    "PartitionBuildWarning",
    "PartitionEntry",
    "PartitionOptions",
    "PartitionedDataset",
    "PartitioningScheme",
    "PredicateKind",
    "Sample",
    "SequenceSource",
    "SpatialGroveError",
    "SpatialPredicate",
    "TuningOptions",
    "broadcast_join",
    "build_boundaries",
    "build_index",
    "co_partitioned_join",
    "handles_from_geometries",
    "handles_from_table",
    "knn",
    "partition",
    "partition_pair",
    "partition_with_boundaries",
    "range_query",
    "sample",
    "sample_sharded",
    "spatial_join",
]
