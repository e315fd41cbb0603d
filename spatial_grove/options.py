from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional
import logging

from .errors import InvalidConfigurationError
from .handles import INTERSECTS, SpatialPredicate

logger = logging.getLogger(__name__)


class PartitioningScheme(str, Enum):
    GRID = "grid"
    QUADTREE = "quadtree"
    KDBTREE = "kdbtree"
    HILBERT = "hilbert"
    RSGROVE = "rsgrove"


class IndexType(str, Enum):
    RTREE = "rtree"
    QUADTREE = "quadtree"


class JoinStrategy(str, Enum):
    CO_PARTITIONED = "co_partitioned"
    BROADCAST = "broadcast"


class TuningOptions(dict):
    """String-keyed knobs for the individual builders, with typed getters."""

    # Config keys
    QUADTREE_MAX_DEPTH = "quadtree.max_depth"
    KDB_MIN_LEAF_SIZE = "kdb.min_leaf_size"
    HILBERT_ORDER = "hilbert.order"
    RSGROVE_MM_RATIO = "rsgrove.mm_ratio"
    RSGROVE_MIN_SPLIT_RATIO = "rsgrove.min_split_ratio"
    MIN_EXTENT = "min_extent"
    SAMPLE_SHARDED = "sample.sharded"

    def get_float(self, key: str, default: float) -> float:
        return float(self.get(key, default))

    def get_int(self, key: str, default: int) -> int:
        return int(self.get(key, default))

    def get_bool(self, key: str, default: bool) -> bool:
        v = self.get(key, default)
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)


def _parse_enum(enum_cls, raw, name: str):
    if isinstance(raw, enum_cls):
        return raw
    s = str(raw).strip().lower().replace("-", "_")
    for member in enum_cls:
        if s in (member.value, member.name.lower()):
            return member
    raise InvalidConfigurationError(f"Unsupported {name}: {raw}",
                                    {"choices": ",".join(m.value for m in enum_cls)})


@dataclass
class PartitionOptions:
    """Structured options for a partitioning request and the queries run on it."""
    scheme: PartitioningScheme = PartitioningScheme.KDBTREE
    num_partitions: int = 16
    sample_size: int = 10_000
    index_type: IndexType = IndexType.RTREE
    join_strategy: JoinStrategy = JoinStrategy.CO_PARTITIONED
    predicate: SpatialPredicate = INTERSECTS
    seed: Optional[int] = None
    node_capacity: int = 16
    max_workers: Optional[int] = None
    build_indexes_eagerly: bool = False
    tuning: TuningOptions = field(default_factory=TuningOptions)

    def __post_init__(self):
        self.scheme = _parse_enum(PartitioningScheme, self.scheme, "partitioning scheme")
        self.index_type = _parse_enum(IndexType, self.index_type, "index type")
        self.join_strategy = _parse_enum(JoinStrategy, self.join_strategy, "join strategy")
        if isinstance(self.predicate, str):
            self.predicate = SpatialPredicate.parse(self.predicate)
        if not isinstance(self.tuning, TuningOptions):
            self.tuning = TuningOptions(self.tuning or {})

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "PartitionOptions":
        known = {
            "scheme", "num_partitions", "sample_size", "index_type", "join_strategy",
            "predicate", "seed", "node_capacity", "max_workers", "build_indexes_eagerly",
        }
        kwargs = {k: v for k, v in conf.items() if k in known}
        tuning = TuningOptions(conf.get("tuning") or {})
        # dotted keys at the top level are builder knobs
        tuning.update({k: v for k, v in conf.items() if k not in known and k != "tuning"})
        return cls(tuning=tuning, **kwargs).validate()

    def validate(self) -> "PartitionOptions":
        def _positive_int(name: str, value) -> None:
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfigurationError(f"{name} must be a positive integer", {name: value})

        _positive_int("num_partitions", self.num_partitions)
        _positive_int("sample_size", self.sample_size)
        _positive_int("node_capacity", self.node_capacity)
        if self.node_capacity < 2:
            raise InvalidConfigurationError("node_capacity must be at least 2", {"node_capacity": self.node_capacity})
        if self.max_workers is not None:
            _positive_int("max_workers", self.max_workers)

        t = self.tuning
        try:
            order = t.get_int(TuningOptions.HILBERT_ORDER, 16)
            max_depth = t.get_int(TuningOptions.QUADTREE_MAX_DEPTH, 16)
            min_leaf = t.get_int(TuningOptions.KDB_MIN_LEAF_SIZE, 1)
            mm_ratio = t.get_float(TuningOptions.RSGROVE_MM_RATIO, 0.95)
            split_ratio = t.get_float(TuningOptions.RSGROVE_MIN_SPLIT_RATIO, 0.0)
            min_extent = t.get_float(TuningOptions.MIN_EXTENT, 1.0)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(f"Invalid tuning value: {e}")

        if not 1 <= order <= 30:
            raise InvalidConfigurationError("hilbert.order must be within [1, 30]", {"order": order})
        if self.scheme is PartitioningScheme.HILBERT and 4 ** order < self.num_partitions:
            raise InvalidConfigurationError("Hilbert curve has fewer cells than partitions",
                                            {"order": order, "num_partitions": self.num_partitions})
        if max_depth < 1:
            raise InvalidConfigurationError("quadtree.max_depth must be >= 1", {"max_depth": max_depth})
        if min_leaf < 0:
            raise InvalidConfigurationError("kdb.min_leaf_size must be >= 0", {"min_leaf_size": min_leaf})
        if not 0.0 < mm_ratio <= 1.0:
            raise InvalidConfigurationError("rsgrove.mm_ratio must be within (0, 1]", {"mm_ratio": mm_ratio})
        if not 0.0 <= split_ratio <= 1.0:
            raise InvalidConfigurationError("rsgrove.min_split_ratio must be within [0, 1]",
                                            {"min_split_ratio": split_ratio})
        if not min_extent > 0.0:
            raise InvalidConfigurationError("min_extent must be > 0", {"min_extent": min_extent})

        logger.debug("Options validated: %s", self)
        return self
