from typing import Iterable, Iterator, List, Optional, Sequence
import logging

import pyarrow as pa
import pyarrow.parquet as pq
from shapely import from_wkb

from .handles import GeometryHandle

logger = logging.getLogger(__name__)


class DataSource:
    """Re-iterable stream of geometry handles. Every call starts a fresh pass."""

    def iter_handles(self) -> Iterable[GeometryHandle]:
        raise NotImplementedError

    def shards(self, count: int) -> List["DataSource"]:
        """Split into disjoint sources that together yield every handle once."""
        return [self]


def iter_source(source) -> Iterator[GeometryHandle]:
    if isinstance(source, DataSource):
        return iter(source.iter_handles())
    return iter(source)


# ------------------------- In-memory source ------------------------- #
class SequenceSource(DataSource):
    def __init__(self, handles: Sequence[GeometryHandle]):
        self._handles = list(handles)

    def __len__(self) -> int:
        return len(self._handles)

    def iter_handles(self) -> Iterable[GeometryHandle]:
        return iter(self._handles)

    def shards(self, count: int) -> List["DataSource"]:
        count = max(1, min(int(count), len(self._handles) or 1))
        return [SequenceSource(self._handles[i::count]) for i in range(count)]


# ------------------------- Arrow helpers ------------------------- #
def handles_from_table(
    tbl: pa.Table,
    geom_col: str = "geometry",
    id_col: Optional[str] = None,
    start_id: int = 0,
) -> List[GeometryHandle]:
    """Decode a WKB geometry column into handles.

    Ids come from ``id_col`` when given, else from the row position offset by
    ``start_id``. Null and empty geometries are skipped.
    """
    if tbl.num_rows == 0:
        return []
    if geom_col not in tbl.column_names:
        raise ValueError(f"Missing geometry column '{geom_col}'")
    if id_col is not None and id_col not in tbl.column_names:
        raise ValueError(f"Missing id column '{id_col}'")

    t = tbl.combine_chunks()
    geoms = from_wkb(t[geom_col].to_numpy(zero_copy_only=False))
    if id_col is not None:
        ids = t[id_col].to_pylist()
    else:
        ids = range(start_id, start_id + t.num_rows)

    out: List[GeometryHandle] = []
    skipped = 0
    for gid, g in zip(ids, geoms):
        if g is None or g.is_empty or gid is None:
            skipped += 1
            continue
        out.append(GeometryHandle.from_geometry(int(gid), g))
    if skipped:
        logger.debug("Skipped %d null/empty geometries", skipped)
    return out


# ------------------------- GeoParquet source ------------------------- #
class GeoParquetSource(DataSource):
    def __init__(self, path: str, geom_col: str = "geometry", id_col: Optional[str] = None,
                 row_groups: Optional[Sequence[int]] = None):
        self.path = path
        self.geom_col = geom_col
        self.id_col = id_col
        self._pf = pq.ParquetFile(path)
        self._num_row_groups = self._pf.num_row_groups
        self._row_groups = list(row_groups) if row_groups is not None else list(range(self._num_row_groups))
        # positional ids must not depend on which shard reads the row group
        offsets = [0]
        for i in range(self._num_row_groups):
            offsets.append(offsets[-1] + self._pf.metadata.row_group(i).num_rows)
        self._offsets = offsets
        logger.info("GeoParquetSource opened %s with %d row groups", path, self._num_row_groups)

    def iter_handles(self) -> Iterable[GeometryHandle]:
        for i in self._row_groups:
            logger.debug("Reading row group %d/%d", i, self._num_row_groups)
            tbl = self._pf.read_row_group(i)
            yield from handles_from_table(tbl, self.geom_col, self.id_col, start_id=self._offsets[i])

    def shards(self, count: int) -> List["DataSource"]:
        count = max(1, min(int(count), len(self._row_groups) or 1))
        return [
            GeoParquetSource(self.path, self.geom_col, self.id_col, self._row_groups[i::count])
            for i in range(count)
        ]
