"""
Spatial joins between partitioned datasets.

Co-partitioned joins evaluate each partition id independently and keep a
candidate pair only in the partition owning the pair's reference point: the
minimum corner of the intersection of the left box and the (expanded) right
box. Both geometries are replicated into every partition whose boundary
contains that point, and exactly one partition owns it, so each true pair is
reported once. When both geometries are home in a partition the reference
point belongs to that partition as well.

Broadcast joins ship the whole right side to every left partition and only
evaluate left home replicas.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional
import logging
from time import perf_counter

from .assigner import PartitionEntry
from .datasource import SequenceSource, iter_source
from .dataset import PartitionedDataset, partition_with_boundaries, sample_source
from .errors import InvalidConfigurationError
from .handles import INTERSECTS, SpatialPredicate
from .index import GeometryIndex, build_index
from .options import JoinStrategy, PartitionOptions, _parse_enum
from .partitioning import build_boundaries
from .sampler import envelope_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinPair:
    left_id: int
    right_id: int
    distance: Optional[float] = None


def _evaluate_partition(left: PartitionedDataset, right: PartitionedDataset, pid: int,
                        predicate: SpatialPredicate) -> List[JoinPair]:
    left_part = left.partition(pid)
    right_part = right.partition(pid)
    if not len(left_part) or not len(right_part):
        return []
    d = predicate.expansion
    index = right_part.index()
    out: List[JoinPair] = []
    for le in left_part.entries:
        qbox = le.box.expand(d)
        for re in index.query(qbox):
            ok, dist = predicate.evaluate(le.handle.geometry, re.handle.geometry)
            if not ok:
                continue
            ref = le.box.intersection(re.box.expand(d))
            if ref is None:
                continue
            if left.owner(ref.min_x, ref.min_y) != pid:
                continue
            out.append(JoinPair(le.id, re.id, dist))
    return out


def _evaluate_broadcast(entries, index: GeometryIndex, predicate: SpatialPredicate) -> List[JoinPair]:
    d = predicate.expansion
    out: List[JoinPair] = []
    for le in entries:
        if not le.is_home:
            continue
        for re in index.query(le.box.expand(d)):
            ok, dist = predicate.evaluate(le.handle.geometry, re.handle.geometry)
            if ok:
                out.append(JoinPair(le.id, re.id, dist))
    return out


def co_partitioned_join(left: PartitionedDataset, right: PartitionedDataset,
                        predicate: SpatialPredicate = INTERSECTS,
                        max_workers: Optional[int] = None) -> List[JoinPair]:
    if not left.same_boundaries(right):
        raise InvalidConfigurationError("Co-partitioned join needs both datasets on the same boundaries",
                                        {"left_partitions": left.num_partitions,
                                         "right_partitions": right.num_partitions})
    if right.expansion < predicate.expansion:
        raise InvalidConfigurationError("Right dataset was assigned with less expansion than the join distance",
                                        {"expansion": right.expansion, "distance": predicate.expansion})
    start = perf_counter()
    pids = sorted(set(left.partition_ids()) & set(right.partition_ids()))
    with ThreadPoolExecutor(max_workers=max_workers or left.options.max_workers) as ex:
        parts = list(ex.map(lambda pid: _evaluate_partition(left, right, pid, predicate), pids))
    pairs = [p for chunk in parts for p in chunk]
    pairs.sort(key=lambda p: (p.left_id, p.right_id))
    logger.info("Co-partitioned %s join: %d partitions, %d pairs in %.3f seconds",
                predicate, len(pids), len(pairs), perf_counter() - start)
    return pairs


def broadcast_join(left: PartitionedDataset, right, predicate: SpatialPredicate = INTERSECTS,
                   max_workers: Optional[int] = None) -> List[JoinPair]:
    """Join ``left`` with the whole of ``right`` (a dataset or a handle source) in every left partition."""
    start = perf_counter()
    if isinstance(right, PartitionedDataset):
        right_handles = right.handles()
        index_type, capacity = right.options.index_type, right.options.node_capacity
    else:
        right_handles = list(iter_source(right))
        index_type, capacity = left.options.index_type, left.options.node_capacity
    broadcast = build_index([PartitionEntry(h, True) for h in right_handles], index_type, capacity)

    parts_in = [p for p in left if len(p)]
    with ThreadPoolExecutor(max_workers=max_workers or left.options.max_workers) as ex:
        parts = list(ex.map(lambda p: _evaluate_broadcast(p.entries, broadcast, predicate), parts_in))
    pairs = [p for chunk in parts for p in chunk]
    pairs.sort(key=lambda p: (p.left_id, p.right_id))
    logger.info("Broadcast %s join: %d right geometries to %d partitions, %d pairs in %.3f seconds",
                predicate, len(right_handles), len(parts_in), len(pairs), perf_counter() - start)
    return pairs


def spatial_join(left: PartitionedDataset, right, predicate: Optional[SpatialPredicate] = None,
                 strategy: Optional[JoinStrategy] = None,
                 max_workers: Optional[int] = None) -> List[JoinPair]:
    """Run a join with the given (or the left dataset's configured) predicate and strategy."""
    predicate = predicate or left.options.predicate
    strategy = _parse_enum(JoinStrategy, strategy or left.options.join_strategy, "join strategy")
    if strategy is JoinStrategy.CO_PARTITIONED:
        if not isinstance(right, PartitionedDataset):
            raise InvalidConfigurationError("Co-partitioned join needs a partitioned right dataset")
        return co_partitioned_join(left, right, predicate, max_workers)
    return broadcast_join(left, right, predicate, max_workers)


def partition_pair(left_source, right_source, options: Optional[PartitionOptions] = None):
    """
    Partition two sources on one boundary set derived from a sample of the left
    side (covering the envelope of both). The right side is assigned with its
    boxes grown by the predicate's distance.
    """
    options = (options or PartitionOptions()).validate()
    if isinstance(right_source, (list, tuple)):
        right_source = SequenceSource(right_source)
    if isinstance(left_source, (list, tuple)):
        left_source = SequenceSource(left_source)
    smp = sample_source(left_source, options).require_data()
    smp = smp.with_extent(envelope_of(right_source))
    boundaries = build_boundaries(smp, options.num_partitions, options.scheme, options.tuning)
    left = partition_with_boundaries(left_source, boundaries, options)
    right = partition_with_boundaries(right_source, boundaries, options, expansion=options.predicate.expansion)
    return left, right
