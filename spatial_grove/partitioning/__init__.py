from __future__ import annotations
from typing import Dict, Callable, List, Optional
import logging
from time import perf_counter

from ..errors import InvalidConfigurationError
from ..options import PartitioningScheme, TuningOptions, _parse_enum
from ..sampler import Sample
from .base import (
    BoundaryBuilder,
    PartitionBoundary,
    grid_cells,
    grid_shape,
    points_degenerate,
    working_extent,
)
from .grid import GridBuilder
from .hilbert import HilbertBuilder
from .kdbtree import KDBTreeBuilder
from .quadtree import QuadTreeBuilder
from .rsgrove import RSGroveBuilder

logger = logging.getLogger(__name__)

_BUILDERS: Dict[PartitioningScheme, Callable[[TuningOptions], BoundaryBuilder]] = {
    PartitioningScheme.GRID: lambda t: GridBuilder(),
    PartitioningScheme.QUADTREE: lambda t: QuadTreeBuilder(t.get_int(TuningOptions.QUADTREE_MAX_DEPTH, 16)),
    PartitioningScheme.KDBTREE: lambda t: KDBTreeBuilder(t.get_int(TuningOptions.KDB_MIN_LEAF_SIZE, 1)),
    PartitioningScheme.HILBERT: lambda t: HilbertBuilder(t.get_int(TuningOptions.HILBERT_ORDER, 16)),
    PartitioningScheme.RSGROVE: lambda t: RSGroveBuilder(
        t.get_float(TuningOptions.RSGROVE_MM_RATIO, 0.95),
        t.get_float(TuningOptions.RSGROVE_MIN_SPLIT_RATIO, 0.0),
    ),
}

# schemes whose cells must tile the extent without overlap
DISJOINT_SCHEMES = frozenset({
    PartitioningScheme.GRID,
    PartitioningScheme.QUADTREE,
    PartitioningScheme.KDBTREE,
    PartitioningScheme.RSGROVE,
})


def build_boundaries(
    sample: Sample,
    num_partitions: int,
    scheme: PartitioningScheme,
    tuning: Optional[TuningOptions] = None,
) -> List[PartitionBoundary]:
    """Derive ordered partition boundaries covering the sample's global extent."""
    if isinstance(num_partitions, bool) or not isinstance(num_partitions, int) or num_partitions <= 0:
        raise InvalidConfigurationError("num_partitions must be a positive integer",
                                        {"num_partitions": num_partitions})
    sample.require_data()
    tuning = tuning if tuning is not None else TuningOptions()
    scheme = _parse_enum(PartitioningScheme, scheme, "partitioning scheme")
    start = perf_counter()

    extent = working_extent(sample.extent, tuning.get_float(TuningOptions.MIN_EXTENT, 1.0))
    points = sample.centers()

    if scheme in (PartitioningScheme.QUADTREE, PartitioningScheme.KDBTREE, PartitioningScheme.RSGROVE) \
            and points_degenerate(points):
        rows, cols = grid_shape(num_partitions, extent)
        logger.warning("Degenerate sample (%d points without 2-D spread); falling back to a %dx%d grid over %s",
                       len(points), rows, cols, extent.as_tuple())
        boxes = grid_cells(extent, rows, cols)
    else:
        boxes = _BUILDERS[scheme](tuning).build(points, extent, num_partitions)

    boundaries = [PartitionBoundary(pid, b) for pid, b in enumerate(boxes)]
    logger.info("Built %d %s boundaries (requested %d) in %.3f seconds",
                len(boundaries), scheme.value, num_partitions, perf_counter() - start)
    return boundaries


__all__ = [
    "BoundaryBuilder",
    "DISJOINT_SCHEMES",
    "GridBuilder",
    "HilbertBuilder",
    "KDBTreeBuilder",
    "PartitionBoundary",
    "QuadTreeBuilder",
    "RSGroveBuilder",
    "build_boundaries",
]
