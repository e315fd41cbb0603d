"""Shared fixtures for the spatial_grove test suite."""

import numpy as np
import pytest
from shapely.geometry import Point, box

from spatial_grove import GeometryHandle, PartitionOptions, PartitioningScheme

ALL_SCHEMES = list(PartitioningScheme)


def make_points(n, seed=0, start_id=0, skewed=False):
    rng = np.random.default_rng(seed)
    if skewed:
        # dense cluster plus uniform background
        dense = rng.normal(loc=(20.0, 70.0), scale=4.0, size=(n // 2, 2))
        rest = rng.uniform(0.0, 100.0, size=(n - n // 2, 2))
        xy = np.vstack([dense, rest])
    else:
        xy = rng.uniform(0.0, 100.0, size=(n, 2))
    return [GeometryHandle.from_geometry(start_id + i, Point(float(x), float(y)))
            for i, (x, y) in enumerate(xy)]


def make_boxes(n, seed=0, start_id=0, max_size=6.0):
    rng = np.random.default_rng(seed)
    xy = rng.uniform(0.0, 100.0, size=(n, 2))
    wh = rng.uniform(0.1, max_size, size=(n, 2))
    return [GeometryHandle.from_geometry(start_id + i, box(x, y, x + w, y + h))
            for i, ((x, y), (w, h)) in enumerate(zip(xy, wh))]


@pytest.fixture
def points_1k():
    return make_points(1000, seed=1)


@pytest.fixture(scope="session")
def points_10k():
    return make_points(10_000, seed=7, skewed=True)


@pytest.fixture
def boxes_500():
    return make_boxes(500, seed=3)


@pytest.fixture
def boxes_pair():
    left = make_boxes(400, seed=11)
    right = make_boxes(400, seed=12, start_id=10_000)
    return left, right


@pytest.fixture
def corner_points():
    coords = [(0, 0), (0, 10), (10, 0), (10, 10)]
    return [GeometryHandle.from_geometry(i, Point(x, y)) for i, (x, y) in enumerate(coords)]


@pytest.fixture
def options_factory():
    def _make(scheme=PartitioningScheme.KDBTREE, num_partitions=16, **kwargs):
        kwargs.setdefault("seed", 42)
        kwargs.setdefault("sample_size", 2000)
        return PartitionOptions(scheme=scheme, num_partitions=num_partitions, **kwargs)
    return _make
