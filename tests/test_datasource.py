import pyarrow as pa
import pyarrow.parquet as pq
import pytest
import shapely
from shapely.geometry import Point, box

from spatial_grove import GeoParquetSource, SequenceSource, handles_from_table
from spatial_grove.datasource import iter_source

from conftest import make_points


def _table(n, with_ids=False):
    geoms = [Point(i, 2 * i) if i % 3 else box(i, i, i + 1, i + 2) for i in range(n)]
    cols = {"geometry": pa.array(shapely.to_wkb(geoms).tolist(), type=pa.binary())}
    if with_ids:
        cols["fid"] = pa.array([1000 + i for i in range(n)], type=pa.int64())
    return pa.table(cols)


@pytest.fixture
def parquet_path(tmp_path):
    path = tmp_path / "input.parquet"
    pq.write_table(_table(100), path, row_group_size=25)
    return path


class TestHandlesFromTable:

    def test_positional_ids(self):
        hs = handles_from_table(_table(10), start_id=50)
        assert [h.id for h in hs] == list(range(50, 60))
        assert hs[0].geometry.geom_type == "Polygon"
        assert hs[1].box.as_tuple() == (1.0, 2.0, 1.0, 2.0)

    def test_id_column(self):
        hs = handles_from_table(_table(5, with_ids=True), id_col="fid")
        assert [h.id for h in hs] == [1000, 1001, 1002, 1003, 1004]

    def test_skips_null_geometries(self):
        tbl = pa.table({"geometry": pa.array([shapely.to_wkb(Point(1, 1)), None], type=pa.binary())})
        assert len(handles_from_table(tbl)) == 1

    def test_missing_columns(self):
        with pytest.raises(ValueError):
            handles_from_table(_table(3), geom_col="geom")
        with pytest.raises(ValueError):
            handles_from_table(_table(3), id_col="fid")

    def test_empty_table(self):
        assert handles_from_table(_table(0)) == []


class TestGeoParquetSource:

    def test_reads_all_row_groups(self, parquet_path):
        src = GeoParquetSource(str(parquet_path))
        ids = [h.id for h in src.iter_handles()]
        assert ids == list(range(100))
        # re-iterable
        assert len(list(src.iter_handles())) == 100

    def test_shards_are_disjoint_and_complete(self, parquet_path):
        shards = GeoParquetSource(str(parquet_path)).shards(3)
        assert len(shards) == 3
        ids = [h.id for s in shards for h in s.iter_handles()]
        assert sorted(ids) == list(range(100))

    def test_more_shards_than_row_groups(self, parquet_path):
        assert len(GeoParquetSource(str(parquet_path)).shards(10)) == 4


class TestSequenceSource:

    def test_shards(self):
        src = SequenceSource(make_points(10))
        shards = src.shards(3)
        assert [len(s) for s in shards] == [4, 3, 3]
        assert sorted(h.id for s in shards for h in s.iter_handles()) == list(range(10))

    def test_iter_source_accepts_plain_iterables(self):
        hs = make_points(3)
        assert list(iter_source(hs)) == hs
        assert list(iter_source(SequenceSource(hs))) == hs
