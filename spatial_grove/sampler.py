from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging
from time import perf_counter

import numpy as np

from .datasource import DataSource, iter_source
from .envelope import BoundingBox, union_all
from .errors import InsufficientDataError, InvalidConfigurationError

logger = logging.getLogger(__name__)

_Box = Tuple[float, float, float, float]


@dataclass
class Sample:
    """Bounded sample of bounding boxes plus the envelope and size of the whole source."""
    boxes: np.ndarray             # shape (n, 4): min_x, min_y, max_x, max_y
    extent: Optional[BoundingBox]
    total_count: int

    def __len__(self) -> int:
        return int(self.boxes.shape[0])

    def centers(self) -> np.ndarray:
        """Sample points used by the boundary builders, shape (n, 2)."""
        if len(self) == 0:
            return np.empty((0, 2), dtype=float)
        return np.column_stack([
            0.5 * (self.boxes[:, 0] + self.boxes[:, 2]),
            0.5 * (self.boxes[:, 1] + self.boxes[:, 3]),
        ])

    def require_data(self) -> "Sample":
        if self.total_count == 0 or self.extent is None or len(self) == 0:
            raise InsufficientDataError("Cannot partition an empty source", {"total_count": self.total_count})
        return self

    def with_extent(self, extent: Optional[BoundingBox]) -> "Sample":
        if extent is None:
            return self
        merged = extent if self.extent is None else self.extent.union(extent)
        return Sample(self.boxes, merged, self.total_count)


class _Reservoir:
    """Algorithm R reservoir of box tuples with a running envelope."""

    def __init__(self, capacity: int, rng: np.random.Generator):
        self.capacity = capacity
        self.rng = rng
        self.items: List[_Box] = []
        self.n_seen = 0
        self.mins = np.array([+np.inf, +np.inf], dtype=np.float64)
        self.maxs = np.array([-np.inf, -np.inf], dtype=np.float64)

    def add(self, b: BoundingBox) -> None:
        self.n_seen += 1
        if b.min_x < self.mins[0]: self.mins[0] = b.min_x
        if b.min_y < self.mins[1]: self.mins[1] = b.min_y
        if b.max_x > self.maxs[0]: self.maxs[0] = b.max_x
        if b.max_y > self.maxs[1]: self.maxs[1] = b.max_y

        if len(self.items) < self.capacity:
            self.items.append(b.as_tuple())
        elif self.capacity > 0:
            j = self.rng.integers(0, self.n_seen)
            if j < self.capacity:
                self.items[j] = b.as_tuple()

    def extent(self) -> Optional[BoundingBox]:
        if self.n_seen == 0:
            return None
        return BoundingBox(self.mins[0], self.mins[1], self.maxs[0], self.maxs[1])


def _check_size(sample_size: int) -> None:
    if isinstance(sample_size, bool) or not isinstance(sample_size, int) or sample_size <= 0:
        raise InvalidConfigurationError("sample_size must be a positive integer", {"sample_size": sample_size})


def _to_array(items: Sequence[_Box]) -> np.ndarray:
    if not items:
        return np.empty((0, 4), dtype=float)
    return np.asarray(items, dtype=float)


def _fill(source, reservoir: _Reservoir) -> _Reservoir:
    for h in iter_source(source):
        reservoir.add(h.box)
    return reservoir


def sample(source, sample_size: int, seed: Optional[int] = None) -> Sample:
    """Stream ``source`` once, keeping a uniform sample of at most ``sample_size`` boxes."""
    _check_size(sample_size)
    start = perf_counter()
    res = _fill(source, _Reservoir(sample_size, np.random.default_rng(seed)))
    logger.info("Sampling complete: total_seen=%d, total_sampled=%d, in %.3f seconds",
                res.n_seen, len(res.items), perf_counter() - start)
    return Sample(_to_array(res.items), res.extent(), res.n_seen)


def envelope_of(source) -> Optional[BoundingBox]:
    """Envelope of every geometry in ``source`` (None when empty)."""
    res = _fill(source, _Reservoir(0, np.random.default_rng(0)))
    return res.extent()


def merge_reservoirs(parts: Sequence[Tuple[Sequence[_Box], int]], sample_size: int,
                     rng: np.random.Generator) -> List[_Box]:
    """Merge per-shard reservoirs ``(items, n_seen)`` into one uniform sample.

    Each draw picks a shard with probability proportional to its population not
    yet represented in the output, then takes a random remaining item from it.
    """
    pools = [list(items) for items, _ in parts]
    remaining = [int(n) for _, n in parts]
    out: List[_Box] = []
    while len(out) < sample_size:
        total = sum(remaining)
        if total == 0:
            break
        pick = int(rng.integers(0, total))
        i = 0
        while pick >= remaining[i]:
            pick -= remaining[i]
            i += 1
        pool = pools[i]
        j = int(rng.integers(0, len(pool)))
        pool[j], pool[-1] = pool[-1], pool[j]
        out.append(pool.pop())
        remaining[i] -= 1
    return out


def sample_sharded(shards: Sequence, sample_size: int, seed: Optional[int] = None,
                   max_workers: Optional[int] = None) -> Sample:
    """Sample disjoint shards concurrently, then merge the reservoirs in this thread."""
    _check_size(sample_size)
    if isinstance(shards, DataSource):
        shards = shards.shards(max_workers or 4)
    shards = list(shards)
    if not shards:
        return Sample(_to_array([]), None, 0)

    start = perf_counter()
    seqs = np.random.SeedSequence(seed).spawn(len(shards) + 1)
    reservoirs = [_Reservoir(sample_size, np.random.default_rng(s)) for s in seqs[:-1]]
    with ThreadPoolExecutor(max_workers=max_workers or min(8, len(shards))) as ex:
        done = list(ex.map(_fill, shards, reservoirs))

    items = merge_reservoirs([(r.items, r.n_seen) for r in done], sample_size,
                             np.random.default_rng(seqs[-1]))
    extent = union_all(e for e in (r.extent() for r in done) if e is not None)
    total = sum(r.n_seen for r in done)
    logger.info("Sharded sampling complete: shards=%d, total_seen=%d, total_sampled=%d, in %.3f seconds",
                len(shards), total, len(items), perf_counter() - start)
    return Sample(_to_array(items), extent, total)
