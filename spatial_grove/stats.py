import json
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable

import shapely
from datasketch import HyperLogLog

HLL_PRECISION = 12


class PartitionStats:
    """Running summary of the entries of one partition."""

    def __init__(self, partition_id: int):
        self.partition_id = partition_id
        self.count = 0
        self.home_count = 0
        self.minx = self.miny = None
        self.maxx = self.maxy = None
        self.geom_types = Counter()
        self.total_points = 0
        self.hll = HyperLogLog(p=HLL_PRECISION)

    @property
    def replica_count(self) -> int:
        return self.count - self.home_count

    def update(self, entries: Iterable):
        for e in entries:
            self.count += 1
            if e.is_home:
                self.home_count += 1

            geom = e.handle.geometry
            self.geom_types[geom.geom_type] += 1
            self.total_points += int(shapely.get_num_coordinates(geom))
            self.hll.update(str(e.id).encode("utf-8"))

            b = e.box
            if self.minx is None:
                self.minx, self.miny, self.maxx, self.maxy = b.as_tuple()
            else:
                self.minx = min(self.minx, b.min_x)
                self.miny = min(self.miny, b.min_y)
                self.maxx = max(self.maxx, b.max_x)
                self.maxy = max(self.maxy, b.max_y)
        return self

    def finalize(self) -> Dict:
        return {
            "pid": self.partition_id,
            "count": self.count,
            "home_count": self.home_count,
            "replica_count": self.replica_count,
            "mbr": [self.minx, self.miny, self.maxx, self.maxy],
            "geom_types": dict(self.geom_types),
            "total_points": self.total_points,
        }


def summarize(dataset) -> Dict:
    """Per-partition stats plus dataset-wide replication and drop figures."""
    partitions = []
    merged = HyperLogLog(p=HLL_PRECISION)
    entries = homes = 0
    for part in dataset:
        ps = PartitionStats(part.partition_id).update(part.entries)
        merged.merge(ps.hll)
        entries += ps.count
        homes += ps.home_count
        item = ps.finalize()
        item["boundary"] = list(part.box.as_tuple())
        partitions.append(item)

    return {
        "num_partitions": dataset.num_partitions,
        "scheme": dataset.options.scheme.value,
        "index_type": dataset.options.index_type.value,
        "expansion": dataset.expansion,
        "input_count": dataset.total,
        "dropped_count": dataset.dropped,
        "dropped_ids": list(dataset.dropped_ids),
        "geometry_count": homes,
        "entry_count": entries,
        "replication_factor": (entries / homes) if homes else 0.0,
        "approx_distinct_ids": int(merged.count()) if entries else 0,
        "partitions": partitions,
    }


def write_summary(path, summary: Dict) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w") as f:
        json.dump(summary, f, indent=2)
    return out_path
