# -------------------------------------
# tabframe CLI entry point
# -------------------------------------
"""
CLI entry point for tabframe.

Usage:
    python -m tabframe recipe recipes/bus_by_zone.yml
    python -m tabframe show data/trips.csv --filter "Mode = 'bus'" --head 20
    python -m tabframe convert data/trips.csv data/trips.parquet --select Zone Trips
    python -m tabframe matrix skims.npz skims.csv --cores time dist --skip-missing
"""
import argparse
import logging

import yaml

from .config import get_value, load_config, setup_logging
from .errors import TableError
from .recipe import run_recipe
from .storage import matrix_load, read_table, write_table
from .table import print_table

log = logging.getLogger("tabframe")


def _shape_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--select", nargs="+", metavar="COLUMN", help="Keep only these columns, in order")
    p.add_argument("--filter", metavar="PREDICATE", help="Row predicate, e.g. \"Mode = 'bus'\"")


def _main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="tabframe",
        description="Column-oriented table utilities.",
    )
    p.add_argument("--config", "-c", metavar="PATH", help="YAML config file (default: $TABFRAME_CONFIG)")
    p.add_argument("--verbose", "-v", action="store_true", help="Log each operation")
    p.add_argument("--quiet", "-q", action="store_true", help="Only log errors")
    sub = p.add_subparsers(dest="command", required=True)

    pr = sub.add_parser("recipe", help="Run a YAML recipe")
    pr.add_argument("path", help="Recipe file")
    pr.add_argument("--show", action="store_true", help="Print the resulting table")

    ps = sub.add_parser("show", help="Print a table")
    ps.add_argument("path", help="Table file (.csv, .parquet, db.duckdb::table)")
    ps.add_argument("--head", type=int, metavar="N", help="Print only the first N rows")
    ps.add_argument("--types", action="store_true", help="Print column kinds instead of rows")
    _shape_args(ps)

    pc = sub.add_parser("convert", help="Copy a table between formats")
    pc.add_argument("source", help="Input table")
    pc.add_argument("destination", help="Output table")
    _shape_args(pc)

    pm = sub.add_parser("matrix", help="Flatten a matrix file into a From/To table")
    pm.add_argument("source", help=".npz or .npy matrix file")
    pm.add_argument("destination", help="Output table")
    pm.add_argument("--cores", nargs="+", metavar="CORE", help="Matrix cores to include")
    pm.add_argument("--skip-missing", action="store_true", help="Drop cells missing in every core")

    args = p.parse_args(argv)

    try:
        config = load_config(args.config)
        if args.verbose:
            setup_logging(logging.DEBUG)
        elif args.quiet:
            setup_logging(logging.ERROR)
        else:
            setup_logging(get_value(config, "log_level", "WARNING"))

        if args.command == "recipe":
            table = run_recipe(args.path, config)
            if args.show:
                print_table(table)
            return 0

        if args.command == "matrix":
            table = matrix_load(args.source, args.cores, include_all_cells=not args.skip_missing)
            write_table(table, args.destination, config)
            print(f"Wrote {table.nrows} rows to {args.destination}")
            return 0

        path = args.path if args.command == "show" else args.source
        table = read_table(path, config=config)
        if args.filter:
            table.filter(args.filter)
        if args.select:
            table.select(args.select)

        if args.command == "convert":
            write_table(table, args.destination, config)
            print(f"Wrote {table.nrows} rows to {args.destination}")
        elif args.types:
            for name, kind in table.column_types().items():
                print(f"{name}\t{kind.value}")
        else:
            print_table(table, args.head)
        return 0
    except (TableError, OSError, yaml.YAMLError) as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(_main())
