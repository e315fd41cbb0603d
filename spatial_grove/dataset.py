from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterator, List, Optional, Sequence
import logging
import threading
from time import perf_counter

import pandas as pd

from .assigner import BoundaryIndex, PartitionAssigner, PartitionEntry
from .datasource import DataSource, SequenceSource
from .envelope import BoundingBox
from .errors import InvalidConfigurationError
from .handles import GeometryHandle
from .index import GeometryIndex, build_index
from .options import IndexType, PartitionOptions, TuningOptions
from .partitioning import PartitionBoundary, build_boundaries
from .sampler import Sample, sample, sample_sharded

logger = logging.getLogger(__name__)


class Partition:
    """
    Immutable list of entries assigned to one boundary plus a lazily built
    index. Concurrent first accesses build the index once.
    """

    def __init__(self, boundary: PartitionBoundary, entries: Sequence[PartitionEntry],
                 index_type: IndexType = IndexType.RTREE, node_capacity: int = 16):
        self.boundary = boundary
        self._entries = tuple(entries)
        self._index_type = index_type
        self._node_capacity = node_capacity
        self._index: Optional[GeometryIndex] = None
        self._lock = threading.Lock()

    @property
    def partition_id(self) -> int:
        return self.boundary.partition_id

    @property
    def box(self) -> BoundingBox:
        return self.boundary.box

    @property
    def entries(self) -> Sequence[PartitionEntry]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def home_count(self) -> int:
        return sum(1 for e in self._entries if e.is_home)

    def index_built(self) -> bool:
        return self._index is not None

    def index(self) -> GeometryIndex:
        idx = self._index
        if idx is None:
            with self._lock:
                if self._index is None:
                    self._index = build_index(self._entries, self._index_type, self._node_capacity)
                idx = self._index
        return idx


class PartitionedDataset:
    """Boundaries plus one partition per boundary, addressed by partition id."""

    def __init__(self, boundaries: Sequence[PartitionBoundary], partitions: Sequence[Partition],
                 options: PartitionOptions, expansion: float = 0.0, total: int = 0, dropped: int = 0,
                 dropped_ids: Optional[Sequence[int]] = None):
        self.boundaries = list(boundaries)
        self._partitions = list(partitions)
        self.options = options
        self.expansion = float(expansion)
        self.total = total
        self.dropped = dropped
        self.dropped_ids = list(dropped_ids or [])
        self.lookup = BoundaryIndex(self.boundaries)

    def __len__(self) -> int:
        return len(self._partitions)

    def __iter__(self) -> Iterator[Partition]:
        return iter(self._partitions)

    @property
    def num_partitions(self) -> int:
        return len(self._partitions)

    @property
    def num_geometries(self) -> int:
        return self.total - self.dropped

    def partition(self, pid: int) -> Partition:
        return self._partitions[pid]

    def partition_ids(self) -> List[int]:
        return [p.partition_id for p in self._partitions if len(p)]

    def handles(self) -> List[GeometryHandle]:
        """Every kept geometry once (its home replica), ordered by id."""
        out = [e.handle for p in self._partitions for e in p.entries if e.is_home]
        out.sort(key=lambda h: h.id)
        return out

    def owner(self, x: float, y: float) -> Optional[int]:
        return self.lookup.owner(x, y)

    def same_boundaries(self, other: "PartitionedDataset") -> bool:
        if len(self.boundaries) != len(other.boundaries):
            return False
        return all(a.partition_id == b.partition_id and a.box == b.box
                   for a, b in zip(self.boundaries, other.boundaries))

    def build_indexes(self, max_workers: Optional[int] = None) -> None:
        """Build every partition index in parallel; partitions never read each other's data."""
        start = perf_counter()
        parts = [p for p in self._partitions if len(p)]
        if not parts:
            return
        with ThreadPoolExecutor(max_workers=max_workers or self.options.max_workers) as ex:
            list(ex.map(lambda p: p.index(), parts))
        logger.info("Built %d partition indexes in %.3f seconds", len(parts), perf_counter() - start)

    def boundaries_frame(self) -> pd.DataFrame:
        rows = []
        for p in self._partitions:
            b = p.box
            rows.append((p.partition_id, b.min_x, b.min_y, b.max_x, b.max_y, len(p), p.home_count()))
        return pd.DataFrame(rows, columns=["pid", "minx", "miny", "maxx", "maxy", "count", "home_count"])

    def summary(self) -> Dict:
        from .stats import summarize
        return summarize(self)


def sample_source(source, options: PartitionOptions) -> Sample:
    """Sample ``source`` in one pass, or shard by shard when ``sample.sharded`` is set."""
    if not options.tuning.get_bool(TuningOptions.SAMPLE_SHARDED, False):
        return sample(source, options.sample_size, options.seed)
    if not isinstance(source, DataSource):
        source = SequenceSource(list(source))
    workers = options.max_workers or 4
    return sample_sharded(source.shards(workers), options.sample_size, options.seed, workers)


def partition_with_boundaries(source, boundaries: Sequence[PartitionBoundary],
                              options: Optional[PartitionOptions] = None,
                              expansion: float = 0.0) -> PartitionedDataset:
    """Assign ``source`` to an existing boundary set (boxes grown by ``expansion``)."""
    options = (options or PartitionOptions()).validate()
    if expansion < 0.0:
        raise InvalidConfigurationError("expansion must be >= 0", {"expansion": expansion})
    assigner = PartitionAssigner(boundaries)
    result = assigner.assign_all(source, expansion)
    partitions = [
        Partition(b, result.entries[b.partition_id], options.index_type, options.node_capacity)
        for b in assigner.boundaries
    ]
    ds = PartitionedDataset(assigner.boundaries, partitions, options, expansion,
                            total=result.total, dropped=result.dropped, dropped_ids=result.dropped_ids)
    if options.build_indexes_eagerly:
        ds.build_indexes()
    return ds


def partition(source, options: Optional[PartitionOptions] = None,
              expansion: float = 0.0) -> PartitionedDataset:
    """Sample, derive boundaries, assign and (optionally) index ``source``."""
    options = (options or PartitionOptions()).validate()
    start = perf_counter()
    smp = sample_source(source, options).require_data()
    boundaries = build_boundaries(smp, options.num_partitions, options.scheme, options.tuning)
    ds = partition_with_boundaries(source, boundaries, options, expansion)
    logger.info("Partitioned %d geometries into %d partitions (%s) in %.3f seconds",
                ds.num_geometries, ds.num_partitions, options.scheme.value, perf_counter() - start)
    return ds
