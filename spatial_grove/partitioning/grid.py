from typing import List
import logging

import numpy as np

from ..envelope import BoundingBox
from .base import grid_cells, grid_shape

logger = logging.getLogger(__name__)


class GridBuilder:
    """Fixed rows x cols grid of equal cells; ignores the sample distribution."""

    def build(self, points: np.ndarray, extent: BoundingBox, num_partitions: int) -> List[BoundingBox]:
        rows, cols = grid_shape(num_partitions, extent)
        logger.info("Equal grid: rows=%d, cols=%d over %s", rows, cols, extent.as_tuple())
        return grid_cells(extent, rows, cols)
