import itertools

import pytest
from shapely.geometry import Point

from spatial_grove import (
    GeometryHandle,
    InvalidConfigurationError,
    JoinStrategy,
    PartitioningScheme,
    PartitionOptions,
    SpatialPredicate,
    partition,
    partition_pair,
    partition_with_boundaries,
    spatial_join,
)
from spatial_grove.join import broadcast_join, co_partitioned_join

from conftest import ALL_SCHEMES


def _brute_pairs(left, right, predicate):
    out = set()
    for a, b in itertools.product(left, right):
        ok, _ = predicate.evaluate(a.geometry, b.geometry)
        if ok:
            out.add((a.id, b.id))
    return out


def _pair_keys(pairs):
    keys = [(p.left_id, p.right_id) for p in pairs]
    assert len(keys) == len(set(keys)), "duplicate pairs"
    return set(keys)


class TestJoinStrategies:

    @pytest.mark.parametrize("scheme", ALL_SCHEMES)
    def test_intersects_join_strategies_agree(self, scheme, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        left, right = partition_pair(left_src, right_src, options_factory(scheme, 9))
        expect = _brute_pairs(left_src, right_src, SpatialPredicate.intersects())
        co = spatial_join(left, right, SpatialPredicate.intersects(), JoinStrategy.CO_PARTITIONED)
        bc = spatial_join(left, right, SpatialPredicate.intersects(), JoinStrategy.BROADCAST)
        assert expect
        assert _pair_keys(co) == expect
        assert _pair_keys(bc) == expect
        assert [(p.left_id, p.right_id) for p in co] == sorted(expect)

    @pytest.mark.parametrize("scheme", [PartitioningScheme.KDBTREE, PartitioningScheme.HILBERT])
    def test_contains_join(self, scheme, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        pred = SpatialPredicate.contains()
        left, right = partition_pair(left_src, right_src, options_factory(scheme, 16, predicate=pred))
        expect = _brute_pairs(left_src, right_src, pred)
        assert _pair_keys(spatial_join(left, right)) == expect
        assert _pair_keys(spatial_join(left, right, strategy="broadcast")) == expect

    @pytest.mark.parametrize("scheme", [PartitioningScheme.GRID, PartitioningScheme.QUADTREE,
                                        PartitioningScheme.RSGROVE])
    def test_within_distance_join(self, scheme, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        pred = SpatialPredicate.within_distance(4.0)
        left, right = partition_pair(left_src, right_src, options_factory(scheme, 12, predicate=pred))
        assert right.expansion == 4.0
        expect = _brute_pairs(left_src, right_src, pred)
        co = co_partitioned_join(left, right, pred, max_workers=3)
        bc = broadcast_join(left, right_src, pred)
        assert _pair_keys(co) == expect
        assert _pair_keys(bc) == expect
        for p in co:
            assert p.distance is not None and p.distance <= 4.0

    def test_self_join_reports_each_pair_once(self, boxes_500, options_factory):
        left, right = partition_pair(boxes_500, boxes_500, options_factory(PartitioningScheme.KDBTREE, 25))
        expect = _brute_pairs(boxes_500, boxes_500, SpatialPredicate.intersects())
        assert _pair_keys(spatial_join(left, right)) == expect


class TestDistanceScenario:

    @pytest.fixture
    def two_points(self):
        return [GeometryHandle.from_geometry(0, Point(0, 0))], [GeometryHandle.from_geometry(1, Point(0, 3))]

    def _options(self, d):
        return PartitionOptions(scheme="kdbtree", num_partitions=2, seed=0,
                                predicate=SpatialPredicate.within_distance(d))

    def test_points_land_in_different_partitions(self, two_points):
        left, right = partition_pair(*two_points, self._options(5))
        left_home = [p.partition_id for p in left for e in p.entries if e.is_home]
        right_home = [p.partition_id for p in right for e in p.entries if e.is_home]
        assert len(left.boundaries) == 2
        assert left_home != right_home

    @pytest.mark.parametrize("strategy", list(JoinStrategy))
    def test_within_five_reports_once(self, two_points, strategy):
        left, right = partition_pair(*two_points, self._options(5))
        pairs = spatial_join(left, right, strategy=strategy)
        assert [(p.left_id, p.right_id) for p in pairs] == [(0, 1)]
        assert pairs[0].distance == 3.0

    @pytest.mark.parametrize("strategy", list(JoinStrategy))
    def test_within_two_reports_nothing(self, two_points, strategy):
        left, right = partition_pair(*two_points, self._options(2))
        assert spatial_join(left, right, strategy=strategy) == []


class TestJoinErrors:

    def test_mismatched_boundaries(self, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        left = partition(left_src, options_factory(PartitioningScheme.KDBTREE, 4))
        right = partition(right_src, options_factory(PartitioningScheme.GRID, 9))
        with pytest.raises(InvalidConfigurationError):
            spatial_join(left, right, strategy=JoinStrategy.CO_PARTITIONED)

    def test_distance_join_needs_expanded_right_side(self, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        left, _ = partition_pair(left_src, right_src, options_factory(PartitioningScheme.GRID, 4))
        flat_right = partition_with_boundaries(right_src, left.boundaries, left.options)
        with pytest.raises(InvalidConfigurationError):
            spatial_join(left, flat_right, SpatialPredicate.within_distance(1.0))

    def test_co_partitioned_needs_a_dataset(self, boxes_pair, options_factory):
        left_src, right_src = boxes_pair
        left = partition(left_src, options_factory(PartitioningScheme.GRID, 4))
        with pytest.raises(InvalidConfigurationError):
            spatial_join(left, right_src, strategy="co_partitioned")

    def test_strategy_names_are_parsed(self, boxes_pair, options_factory):
        left, right = partition_pair(*boxes_pair, options_factory(PartitioningScheme.GRID, 4))
        expected = _pair_keys(spatial_join(left, right, strategy=JoinStrategy.CO_PARTITIONED))
        assert _pair_keys(spatial_join(left, right, strategy="co-partitioned")) == expected
        assert _pair_keys(spatial_join(left, right, strategy="BROADCAST")) == expected

    def test_unknown_strategy(self, boxes_pair, options_factory):
        left, right = partition_pair(*boxes_pair, options_factory(PartitioningScheme.GRID, 4))
        with pytest.raises(InvalidConfigurationError):
            spatial_join(left, right, strategy="zigzag")
