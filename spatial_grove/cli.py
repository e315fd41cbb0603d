from __future__ import annotations
import argparse
import logging
from pathlib import Path
from time import perf_counter

from .datasource import GeoParquetSource
from .dataset import partition
from .envelope import BoundingBox
from .errors import SpatialGroveError
from .handles import SpatialPredicate
from .options import IndexType, PartitionOptions, PartitioningScheme, TuningOptions
from .query import knn, range_query
from .stats import write_summary

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(relativeCreated).0fms] %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _parse_box(raw: str) -> BoundingBox:
    # format: "minx,miny,maxx,maxy"
    parts = [p.strip() for p in (raw or "").split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"Invalid box (expected minx,miny,maxx,maxy): {raw}")
    try:
        return BoundingBox(*(float(p) for p in parts))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid box: {raw}")


def _parse_predicate(raw: str) -> SpatialPredicate:
    try:
        return SpatialPredicate.parse(raw)
    except SpatialGroveError as e:
        raise argparse.ArgumentTypeError(str(e))


def _add_partition_args(ap: argparse.ArgumentParser):
    ap.add_argument("--input", required=True, help="Path to input GeoParquet.")
    ap.add_argument("--geom-col", default="geometry", help="Geometry column name (default: geometry).")
    ap.add_argument("--id-col", default=None, help="Integer id column (default: row position).")
    ap.add_argument("--scheme", default=PartitioningScheme.KDBTREE.value,
                    choices=[s.value for s in PartitioningScheme], help="Partitioning scheme.")
    ap.add_argument("--num-partitions", type=int, default=16, help="Target partition count.")
    ap.add_argument("--sample-size", type=int, default=10_000, help="Reservoir sample size.")
    ap.add_argument("--seed", type=int, default=42, help="Sampling seed.")
    ap.add_argument("--index", default=IndexType.RTREE.value,
                    choices=[t.value for t in IndexType], help="Per-partition index type.")
    ap.add_argument("--max-workers", type=int, default=None, help="Thread pool size.")
    ap.add_argument("--sharded-sample", action="store_true",
                    help="Sample the input shards concurrently before building boundaries.")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="spatial-grove",
        description="Partition, index and query GeoParquet geometries.",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("partition", help="Partition a file and write boundaries + summary.")
    _add_partition_args(p)
    p.add_argument("--outdir", required=True, help="Output directory for boundaries.csv and summary.json.")

    r = sub.add_parser("range", help="Partition a file and print the ids matching a box.")
    _add_partition_args(r)
    r.add_argument("--box", type=_parse_box, required=True, help="minx,miny,maxx,maxy")
    r.add_argument("--predicate", type=_parse_predicate, default=SpatialPredicate.intersects(),
                   help="intersects | contains | within_distance:<d>")

    k = sub.add_parser("knn", help="Partition a file and print the k nearest ids to a point.")
    _add_partition_args(k)
    k.add_argument("--x", type=float, required=True)
    k.add_argument("--y", type=float, required=True)
    k.add_argument("--k", type=int, default=10)
    return ap


def _options_from_args(args) -> PartitionOptions:
    return PartitionOptions(
        scheme=args.scheme,
        num_partitions=args.num_partitions,
        sample_size=args.sample_size,
        index_type=args.index,
        seed=args.seed,
        max_workers=args.max_workers,
        tuning={TuningOptions.SAMPLE_SHARDED: args.sharded_sample},
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    start = perf_counter()
    try:
        options = _options_from_args(args).validate()
        source = GeoParquetSource(args.input, geom_col=args.geom_col, id_col=args.id_col)
        logger.info("Partitioning %s with scheme=%s num_partitions=%d sample_size=%d seed=%s",
                    args.input, options.scheme.value, options.num_partitions, options.sample_size, options.seed)
        ds = partition(source, options)

        if args.command == "partition":
            outdir = Path(args.outdir)
            outdir.mkdir(parents=True, exist_ok=True)
            ds.boundaries_frame().to_csv(outdir / "boundaries.csv", index=False)
            write_summary(outdir / "summary.json", ds.summary())
            logger.info("Wrote %s and %s", outdir / "boundaries.csv", outdir / "summary.json")
        elif args.command == "range":
            for h in range_query(ds, args.box, args.predicate):
                print(h.id)
        else:
            for n in knn(ds, args.x, args.y, args.k):
                print(f"{n.id}\t{n.distance:.6f}")
    except SpatialGroveError as e:
        logger.error("%s", e)
        return 2

    logger.info("Done in %.3f seconds", perf_counter() - start)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
