import itertools

import numpy as np
import pytest

from spatial_grove import (
    InsufficientDataError,
    InvalidConfigurationError,
    PartitioningScheme,
    TuningOptions,
    build_boundaries,
    sample,
)
from spatial_grove.envelope import BoundingBox
from spatial_grove.partitioning import DISJOINT_SCHEMES
from spatial_grove.partitioning.base import grid_shape, working_extent
from spatial_grove.partitioning.hilbert import HilbertBuilder, hilbert_cell, hilbert_index, range_cell_bounds
from spatial_grove.partitioning.rsgrove import _choose_split
from spatial_grove.sampler import Sample

from conftest import ALL_SCHEMES, make_points


def _points_within(extent, n=2000, seed=0):
    rng = np.random.default_rng(seed)
    xs = rng.uniform(extent.min_x, extent.max_x, n)
    ys = rng.uniform(extent.min_y, extent.max_y, n)
    corners = [(extent.min_x, extent.min_y), (extent.max_x, extent.max_y),
               (extent.min_x, extent.max_y), (extent.max_x, extent.min_y)]
    return list(zip(xs, ys)) + corners


def _interiors_overlap(a, b):
    return (min(a.max_x, b.max_x) > max(a.min_x, b.min_x) and
            min(a.max_y, b.max_y) > max(a.min_y, b.min_y))


class TestBoundaryCoverage:

    @pytest.mark.parametrize("scheme", ALL_SCHEMES)
    @pytest.mark.parametrize("num_partitions", [1, 4, 13, 64])
    def test_boundaries_cover_extent(self, scheme, num_partitions):
        smp = sample(make_points(3000, seed=2, skewed=True), 1000, seed=0)
        boundaries = build_boundaries(smp, num_partitions, scheme)
        assert [b.partition_id for b in boundaries] == list(range(len(boundaries)))
        for x, y in _points_within(smp.extent):
            assert any(b.box.contains_point(x, y) for b in boundaries), (scheme, x, y)

    @pytest.mark.parametrize("scheme", sorted(DISJOINT_SCHEMES, key=lambda s: s.value))
    def test_disjoint_schemes_tile_the_extent(self, scheme):
        smp = sample(make_points(3000, seed=4, skewed=True), 1000, seed=0)
        boundaries = build_boundaries(smp, 16, scheme)
        for a, b in itertools.combinations(boundaries, 2):
            assert not _interiors_overlap(a.box, b.box)
        total = sum(b.box.area() for b in boundaries)
        assert np.isclose(total, smp.extent.area())

    @pytest.mark.parametrize("scheme", [PartitioningScheme.GRID, PartitioningScheme.KDBTREE,
                                        PartitioningScheme.HILBERT])
    def test_exact_partition_count(self, scheme):
        smp = sample(make_points(2000, seed=5), 2000, seed=0)
        assert len(build_boundaries(smp, 12, scheme)) == 12

    def test_quadtree_balances_skew(self):
        smp = sample(make_points(4000, seed=6, skewed=True), 4000, seed=0)
        boundaries = build_boundaries(smp, 16, PartitioningScheme.QUADTREE)
        assert 4 <= len(boundaries) <= 16
        pts = smp.centers()
        counts = [int(np.sum((pts[:, 0] >= b.box.min_x) & (pts[:, 0] <= b.box.max_x) &
                             (pts[:, 1] >= b.box.min_y) & (pts[:, 1] <= b.box.max_y)))
                  for b in boundaries]
        # the dense cluster is split rather than left in one cell
        assert max(counts) < 0.5 * len(pts)

    def test_rsgrove_cells_hold_at_most_capacity(self):
        smp = sample(make_points(2000, seed=8), 2000, seed=0)
        boundaries = build_boundaries(smp, 8, PartitioningScheme.RSGROVE)
        pts = smp.centers()
        for b in boundaries:
            inside = np.sum((pts[:, 0] >= b.box.min_x) & (pts[:, 0] < b.box.max_x) &
                            (pts[:, 1] >= b.box.min_y) & (pts[:, 1] < b.box.max_y))
            assert inside <= 250


class TestDegenerateSamples:

    @staticmethod
    def _check(boundaries, scheme, n):
        assert len(boundaries) == n
        if scheme in DISJOINT_SCHEMES:
            for a, b in itertools.combinations(boundaries, 2):
                assert not _interiors_overlap(a.box, b.box)
        else:
            assert all(b.box.area() > 0.0 for b in boundaries)

    @pytest.mark.parametrize("scheme", ALL_SCHEMES)
    def test_single_point(self, scheme):
        smp = Sample(np.array([[5.0, 5.0, 5.0, 5.0]]), BoundingBox.point(5, 5), 1)
        boundaries = build_boundaries(smp, 4, scheme)
        self._check(boundaries, scheme, 4)
        assert any(b.box.contains_point(5, 5) for b in boundaries)

    @pytest.mark.parametrize("scheme", ALL_SCHEMES)
    def test_identical_points(self, scheme):
        smp = Sample(np.tile([2.0, 3.0, 2.0, 3.0], (50, 1)), BoundingBox.point(2, 3), 50)
        boundaries = build_boundaries(smp, 4, scheme)
        self._check(boundaries, scheme, 4)
        assert any(b.box.contains_point(2, 3) for b in boundaries)

    @pytest.mark.parametrize("scheme", ALL_SCHEMES)
    def test_collinear_points(self, scheme):
        boxes = np.array([[0.0, y, 0.0, y] for y in range(10)])
        smp = Sample(boxes, BoundingBox(0, 0, 0, 9), 10)
        boundaries = build_boundaries(smp, 4, scheme)
        self._check(boundaries, scheme, 4)
        for y in range(10):
            assert any(b.box.contains_point(0, y) for b in boundaries)

    def test_working_extent_pads_zero_axes(self):
        ext = working_extent(BoundingBox(0, 0, 0, 9), 1.0)
        assert ext == BoundingBox(-0.5, 0, 0.5, 9)
        assert working_extent(BoundingBox(1, 1, 2, 2), 1.0) == BoundingBox(1, 1, 2, 2)

    def test_empty_sample(self):
        with pytest.raises(InsufficientDataError):
            build_boundaries(Sample(np.empty((0, 4)), None, 0), 4, PartitioningScheme.GRID)

    @pytest.mark.parametrize("n", [0, -1])
    def test_invalid_partition_count(self, n):
        smp = Sample(np.array([[0.0, 0.0, 1.0, 1.0]]), BoundingBox(0, 0, 1, 1), 1)
        with pytest.raises(InvalidConfigurationError):
            build_boundaries(smp, n, PartitioningScheme.GRID)


class TestGrid:

    def test_grid_shape(self):
        wide = BoundingBox(0, 0, 10, 1)
        tall = BoundingBox(0, 0, 1, 10)
        assert grid_shape(4, wide) == (2, 2)
        assert grid_shape(6, wide) == (2, 3)
        assert grid_shape(6, tall) == (3, 2)
        assert grid_shape(7, wide) == (1, 7)

    def test_four_cells_split_at_midpoint(self, corner_points):
        smp = sample(corner_points, 10, seed=0)
        boundaries = build_boundaries(smp, 4, PartitioningScheme.GRID)
        assert [b.box.as_tuple() for b in boundaries] == [
            (0, 0, 5, 5), (5, 0, 10, 5), (0, 5, 5, 10), (5, 5, 10, 10),
        ]


class TestHilbert:

    @pytest.mark.parametrize("order", [1, 2, 3, 5])
    def test_curve_is_continuous_and_invertible(self, order):
        n = 1 << order
        cells = [hilbert_cell(d, order) for d in range(n * n)]
        assert len(set(cells)) == n * n
        for (x0, y0), (x1, y1) in zip(cells, cells[1:]):
            assert abs(x0 - x1) + abs(y0 - y1) == 1
        xs = np.array([c[0] for c in cells])
        ys = np.array([c[1] for c in cells])
        np.testing.assert_array_equal(hilbert_index(xs, ys, order), np.arange(n * n))

    def test_range_bounds_match_brute_force(self):
        order = 4
        rng = np.random.default_rng(0)
        for _ in range(50):
            lo, hi = sorted(rng.choice(1 << (2 * order), size=2, replace=False).tolist())
            cells = [hilbert_cell(d, order) for d in range(lo, hi)]
            expect = (min(c[0] for c in cells), min(c[1] for c in cells),
                      max(c[0] for c in cells) + 1, max(c[1] for c in cells) + 1)
            assert range_cell_bounds(lo, hi, order) == expect

    def test_cuts_strictly_increase(self):
        pts = np.zeros((100, 2))  # all on one cell
        cuts = HilbertBuilder(order=3).cuts(pts, BoundingBox(0, 0, 1, 1), 10)
        assert cuts[0] == 0 and cuts[-1] == 64
        assert all(a < b for a, b in zip(cuts, cuts[1:]))

    def test_order_from_tuning(self):
        smp = sample(make_points(500, seed=1), 500, seed=0)
        boundaries = build_boundaries(smp, 8, PartitioningScheme.HILBERT,
                                      TuningOptions({TuningOptions.HILBERT_ORDER: 3}))
        step = smp.extent.width / 8
        for b in boundaries:
            k = (b.box.min_x - smp.extent.min_x) / step
            assert np.isclose(k, round(k))


def test_rsgrove_split_prefers_gap():
    pts = np.array([[0.0, 0.0], [1.0, 0.5], [2.0, 0.2], [10.0, 0.1], [11.0, 0.4], [12.0, 0.3]])
    axis, coord = _choose_split(pts, 3, 0.0)
    assert axis == 0
    assert 2.0 < coord < 10.0
    assert _choose_split(np.ones((4, 2)), 1, 0.0) is None


class TestConfigurationErrors:

    def test_hilbert_order_too_small(self):
        smp = sample(make_points(200, seed=3), 200, seed=0)
        with pytest.raises(InvalidConfigurationError):
            build_boundaries(smp, 8, PartitioningScheme.HILBERT,
                             TuningOptions({TuningOptions.HILBERT_ORDER: 1}))

    def test_hilbert_builder_rejects_small_order(self):
        with pytest.raises(InvalidConfigurationError):
            HilbertBuilder(order=1).build(np.zeros((4, 2)), BoundingBox(0, 0, 1, 1), 5)

    def test_scheme_names_are_parsed(self):
        smp = sample(make_points(200, seed=3), 200, seed=0)
        assert len(build_boundaries(smp, 4, "KDBTREE")) == 4
        with pytest.raises(InvalidConfigurationError):
            build_boundaries(smp, 4, "voronoi")
