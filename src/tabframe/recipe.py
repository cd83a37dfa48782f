# -------------------------------------
# Table recipes
# -------------------------------------
"""
Run a sequence of table operations described in YAML.

    source: data/trips.csv
    columns: [Zone, Mode, Trips]
    steps:
      - filter: {Mode: bus}
      - group_by: Zone
      - summarize: {Trips: [sum, mean]}
      - left_join: {other: data/zones.csv, self_keys: Zone, other_keys: ZoneID}
      - bin_field: {in_field: sum_Trips, bins: 3}
    output: out/bus_by_zone.csv

Each step is a single-key mapping {operation: arguments}. Arguments are
keyword arguments (mapping), positional arguments (list) or a single
positional argument (scalar). For select, remove, group_by, gather and
set_column_names a list of names is the first argument itself. A
`filter` given as a mapping becomes an equality predicate. Table arguments of joins and bind_rows are paths.
Relative paths resolve against the recipe file's directory.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .config import get_value, load_config
from .errors import ArgumentError
from .predicate import equality_predicate
from .storage import read_table, write_table
from .table import Table

log = logging.getLogger(__name__)

OPERATIONS = (
    "select",
    "remove",
    "rename",
    "set_column_names",
    "mutate",
    "filter",
    "bind_rows",
    "head",
    "distinct",
    "group_by",
    "ungroup",
    "summarize",
    "left_join",
    "inner_join",
    "unite",
    "separate",
    "spread",
    "gather",
    "bin_field",
)

# operations whose first argument (or `other` keyword) is another table
_TABLE_ARGS = {"bind_rows", "left_join", "inner_join"}

# operations whose first argument is a list of column names
_NAME_LIST_ARGS = {"select", "remove", "group_by", "gather", "set_column_names"}


def load_recipe(path: str | Path) -> dict[str, Any]:
    """Read a recipe YAML file."""
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ArgumentError(f"Recipe '{path}' must hold a mapping")
    return data


def _resolve(path: Any, base_dir: Path | None) -> Any:
    if not isinstance(path, str) or base_dir is None:
        return path
    db, sep, name = path.partition("::")
    p = Path(db)
    if not p.is_absolute():
        p = base_dir / p
    return f"{p}{sep}{name}" if sep else str(p)


def _split_args(op: str, args: Any) -> tuple[list[Any], dict[str, Any]]:
    if args is None:
        return [], {}
    if isinstance(args, Mapping):
        return [], dict(args)
    if isinstance(args, list):
        # [a, b] is the name list itself for select, group_by, ...
        if op in _NAME_LIST_ARGS and all(isinstance(a, str) for a in args):
            return [list(args)], {}
        return list(args), {}
    return [args], {}


def apply_step(
    table: Table,
    step: Mapping[str, Any],
    config: dict[str, Any] | None = None,
    base_dir: Path | None = None,
) -> Table:
    """
    Apply one recipe step to `table` in place.

    Raises:
        ArgumentError: Malformed step, unknown operation or bad arguments
    """
    if not isinstance(step, Mapping) or len(step) != 1:
        raise ArgumentError(f"Recipe step must be a single-key mapping, got {step!r}")
    (op, args), = step.items()
    if op not in OPERATIONS:
        raise ArgumentError(f"Unknown recipe operation '{op}'. Supported: {list(OPERATIONS)}")
    config = config or load_config()

    if op == "filter" and isinstance(args, Mapping):
        args = equality_predicate(dict(args))
    elif op == "summarize" and isinstance(args, Mapping) and "spec" not in args:
        # the mapping is the statistics spec itself
        args = [dict(args)]

    positional, keywords = _split_args(op, args)

    if op in _TABLE_ARGS:
        if "other" in keywords:
            keywords["other"] = read_table(_resolve(keywords["other"], base_dir), config=config)
        elif positional:
            positional[0] = read_table(_resolve(positional[0], base_dir), config=config)
        else:
            raise ArgumentError(f"Recipe step '{op}' needs another table")

    if op in ("unite", "separate") and "separator" not in keywords and len(positional) < 3:
        keywords["separator"] = get_value(config, "separator", "_")

    log.info("step %s", op)
    try:
        return getattr(table, op)(*positional, **keywords)
    except TypeError as e:
        raise ArgumentError(f"Bad arguments for recipe step '{op}': {e}") from e


def run_recipe(recipe: str | Path | Mapping[str, Any], config: dict[str, Any] | None = None) -> Table:
    """
    Load the recipe's source, apply its steps and store the output.

    Args:
        recipe: YAML file path or an already-parsed mapping
        config: Config dict (default: load_config())

    Returns:
        The resulting Table
    """
    base_dir = None
    if isinstance(recipe, (str, Path)):
        base_dir = Path(recipe).resolve().parent
        recipe = load_recipe(recipe)
    if not isinstance(recipe, Mapping):
        raise ArgumentError(f"Recipe must be a mapping, got {type(recipe).__name__}")
    if "source" not in recipe:
        raise ArgumentError("Recipe is missing 'source'")
    config = config or load_config()

    table = read_table(_resolve(recipe["source"], base_dir), recipe.get("columns"), config)
    steps = recipe.get("steps") or []
    if not isinstance(steps, list):
        raise ArgumentError("Recipe 'steps' must be a list")
    for step in steps:
        apply_step(table, step, config, base_dir)

    output = recipe.get("output")
    if output:
        write_table(table, _resolve(output, base_dir), config)
    return table
