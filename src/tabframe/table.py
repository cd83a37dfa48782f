# -------------------------------------
# Table engine
# -------------------------------------
"""
In-memory, column-oriented table engine.

A Table is an ordered mapping of column name -> Column (see column.py)
plus an optional list of grouping keys. Every operation mutates the
table in place and returns the same object, so calls can be chained:

    t = Table({"Color": ["Red", "Blue"], "Count": [50, 25]})
    t.group_by("Color").summarize({"Count": ["sum"]})

Use copy() to branch off an independent table before mutating.

Operations validate their arguments first and build the new column set
aside; the table is only replaced once the new set passes validation,
so a failing call leaves the table unchanged.

This module provides:
- Construction and validation: Table, create, validate, is_empty, copy
- Schema: column_names, set_column_names, column_types, rename, select, remove
- Rows: mutate, filter, bind_rows, head, distinct
- Grouping: group_by, ungroup, summarize
- Joins: left_join, inner_join
- Reshaping: unite, separate, spread, gather
- Derived values: bin_field, unique, is_in
- Display: format_table, print_table
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import numpy as np

from .column import Column, Kind, coerce_value, format_scalar, is_missing, scalar_kind
from .errors import ArgumentError, SchemaError, ShapeError
from .predicate import Predicate, compile_predicate

log = logging.getLogger(__name__)

STATS = ("first", "sum", "max", "min", "mean", "stddev", "count")
STAT_ALIASES = {"avg": "mean", "std": "stddev"}
_NUMERIC_STATS = {"sum", "mean", "stddev"}

SPREAD_PREFIX = "v"
MISSING_KEY_NAME = "NA"


# -------------------------------------
# Helpers
# -------------------------------------

def _as_names(names: str | Iterable[str] | None, what: str = "column names") -> list[str]:
    """Normalize a single name or a sequence of names to a list."""
    if names is None:
        return []
    if isinstance(names, str):
        return [names]
    try:
        out = list(names)
    except TypeError:
        raise ArgumentError(f"Expected {what} as a string or a list of strings, got {names!r}")
    for n in out:
        if not isinstance(n, str):
            raise ArgumentError(f"Expected {what} as strings, got {n!r}")
    return out


def _is_vector(data: Any) -> bool:
    return isinstance(data, (list, tuple, range, np.ndarray, Column))


def _validated(columns: Mapping[str, Any]) -> dict[str, Column]:
    """
    Coerce raw values to Columns and check that all lengths agree.

    Raises:
        ArgumentError: If a column name is not a non-empty string
        SchemaError: If a column's length differs from the first column's
    """
    out: dict[str, Column] = {}
    first = None
    n = 0
    for name, data in columns.items():
        if not isinstance(name, str) or not name:
            raise ArgumentError(f"Column names must be non-empty strings, got {name!r}")
        col = data if isinstance(data, Column) else Column.from_values(data)
        if first is None:
            first, n = name, len(col)
        elif len(col) != n:
            raise SchemaError(
                f"Column '{name}' has {len(col)} values, expected {n} (length of '{first}')"
            )
        out[name] = col
    return out


def _row_keys(columns: Sequence[Column], n: int) -> list[tuple]:
    """One tuple of Python values per row (None for missing cells)."""
    if not columns:
        return [()] * n
    return list(zip(*(c.to_list() for c in columns)))


def _sort_key(key: tuple) -> tuple:
    # missing values sort after defined ones
    return tuple((1, 0) if v is None else (0, v) for v in key)


def _group_codes(keys: list[tuple]) -> tuple[np.ndarray, np.ndarray]:
    """
    Number each distinct key by first occurrence.

    Returns:
        (first_rows, codes): first_rows[g] is the first row of group g and
        codes[i] is the group of row i
    """
    index: dict[tuple, int] = {}
    first_rows: list[int] = []
    codes = np.empty(len(keys), dtype=np.int64)
    for i, key in enumerate(keys):
        g = index.get(key)
        if g is None:
            g = index[key] = len(first_rows)
            first_rows.append(i)
        codes[i] = g
    return np.array(first_rows, dtype=np.int64), codes


def _aggregate(col: Column, stat: str, codes: np.ndarray, first_rows: np.ndarray) -> Column:
    """Apply one statistic per group; missing cells are skipped except by 'first'."""
    ngroups = len(first_rows)
    if stat == "first":
        return col.take(first_rows)

    defined = col.defined()
    g = codes[defined]
    v = col.values[defined]
    counts = np.bincount(g, minlength=ngroups).astype(np.int64)
    if stat == "count":
        return Column(Kind.INTEGER, counts)

    empty = counts == 0
    if stat in ("min", "max") and col.kind is Kind.STRING:
        best: list[Any] = [None] * ngroups
        better = (lambda a, b: a < b) if stat == "min" else (lambda a, b: a > b)
        for grp, x in zip(g.tolist(), v.tolist()):
            if best[grp] is None or better(x, best[grp]):
                best[grp] = x
        return Column.from_values(best, kind=Kind.STRING)

    if stat in ("min", "max"):
        if col.kind is Kind.INTEGER:
            info = np.iinfo(np.int64)
            out = np.full(ngroups, info.max if stat == "min" else info.min, dtype=np.int64)
        else:
            out = np.full(ngroups, np.inf if stat == "min" else -np.inf)
        (np.minimum if stat == "min" else np.maximum).at(out, g, v)
        out[empty] = 0 if col.kind is Kind.INTEGER else np.nan
        return Column(col.kind, out, empty)

    if stat == "sum":
        out = np.zeros(ngroups, dtype=col.values.dtype)
        np.add.at(out, g, v)
        return Column(col.kind, out, empty)

    sums = np.zeros(ngroups)
    np.add.at(sums, g, v.astype(np.float64))
    with np.errstate(invalid="ignore", divide="ignore"):
        means = sums / counts
    if stat == "mean":
        means[empty] = np.nan
        return Column(Kind.REAL, means, empty)

    # sample standard deviation
    sq = np.zeros(ngroups)
    np.add.at(sq, g, (v.astype(np.float64) - means[g]) ** 2)
    few = counts < 2
    with np.errstate(invalid="ignore", divide="ignore"):
        out = np.sqrt(sq / (counts - 1))
    out[few] = np.nan
    return Column(Kind.REAL, out, few)


def _match_rows(
    left: list[tuple],
    right: list[tuple],
    keep_unmatched: bool,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Equi-join row matching.

    Returns parallel index arrays (left_rows, right_rows). A left row with
    no partner gets right index -1 when keep_unmatched is set. Keys that
    contain a missing value never match.
    """
    index: dict[tuple, list[int]] = {}
    for j, key in enumerate(right):
        if None in key:
            continue
        index.setdefault(key, []).append(j)

    left_rows: list[int] = []
    right_rows: list[int] = []
    for i, key in enumerate(left):
        matches = None if None in key else index.get(key)
        if matches:
            left_rows.extend([i] * len(matches))
            right_rows.extend(matches)
        elif keep_unmatched:
            left_rows.append(i)
            right_rows.append(-1)
    return np.array(left_rows, dtype=np.int64), np.array(right_rows, dtype=np.int64)


def _spread_name(value: Any) -> str:
    """Column name generated by spread for one key value."""
    if value is None:
        return MISSING_KEY_NAME
    if isinstance(value, str):
        return value
    return SPREAD_PREFIX + format_scalar(value)


# -------------------------------------
# Free functions
# -------------------------------------

def unique(values: Any, drop_missing: bool = True) -> list[Any]:
    """
    Sorted distinct values of a collection.

    Args:
        values: list, tuple, numpy array or Column
        drop_missing: Exclude None/NaN entries (otherwise None sorts last)

    Returns:
        Ascending list of distinct values
    """
    if isinstance(values, Column):
        items = values.to_list()
    elif isinstance(values, np.ndarray):
        items = values.tolist()
    elif isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise ArgumentError(f"unique() needs a column name or a collection, got {values!r}")
    else:
        items = list(values)
    seen = {}
    has_missing = False
    for v in items:
        if is_missing(v):
            has_missing = True
            continue
        seen.setdefault(v, v)
    # numbers before text when a literal collection mixes them
    out = sorted(seen, key=lambda v: (isinstance(v, str), v))
    if has_missing and not drop_missing:
        out.append(None)
    return out


def is_in(needle: Any, haystack: Any) -> bool:
    """Substring test when `haystack` is text, else membership in a collection."""
    if isinstance(haystack, str):
        if needle is None:
            return False
        return (needle if isinstance(needle, str) else format_scalar(needle)) in haystack
    if isinstance(haystack, Column):
        haystack = haystack.to_list()
    elif isinstance(haystack, np.ndarray):
        haystack = haystack.tolist()
    elif not isinstance(haystack, Iterable):
        raise ArgumentError(f"is_in() needs text or a collection, got {haystack!r}")
    return any(item == needle for item in haystack)


# -------------------------------------
# Table
# -------------------------------------

class Table:
    """Ordered, typed columns of equal length with optional grouping keys."""

    def __init__(self, columns: Mapping[str, Any] | None = None):
        if columns is not None and not isinstance(columns, Mapping):
            raise ArgumentError(f"Table columns must be a mapping of name -> values, got {type(columns).__name__}")
        self._columns: dict[str, Column] = _validated(columns or {})
        self._groups: list[str] | None = None

    @classmethod
    def from_rows(cls, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> Table:
        """Build a table from a header and row-oriented data."""
        names = _as_names(columns)
        data: list[list[Any]] = [[] for _ in names]
        for i, row in enumerate(rows):
            if len(row) != len(names):
                raise ShapeError(f"Row {i} has {len(row)} values, expected {len(names)} columns")
            for j, v in enumerate(row):
                data[j].append(v)
        return cls(dict(zip(names, data)))

    @classmethod
    def load(cls, store: Any, source: Any, columns: Sequence[str] | None = None) -> Table:
        """Populate a new table from a store adapter's load()."""
        data = store.load(source, columns)
        table = cls(data)
        log.info("loaded %d rows x %d columns from %s", table.nrows, table.ncols, source)
        return table

    def store(self, store: Any, destination: Any) -> Table:
        """Write the table through a store adapter."""
        store.store(self, destination)
        log.info("stored %d rows x %d columns to %s", self.nrows, self.ncols, destination)
        return self

    # -- validation / state -------------------------------------------

    def validate(self) -> Table:
        """
        Coerce raw column data to typed Columns and check that every
        column has the length of the first one.

        Raises:
            SchemaError: Naming the first column whose length differs
        """
        self._columns = _validated(self._columns)
        self._prune_groups()
        return self

    def _commit(self, columns: Mapping[str, Any], op: str) -> Table:
        self._columns = _validated(columns)
        self._prune_groups()
        log.debug("%s -> %d rows x %d columns", op, self.nrows, self.ncols)
        return self

    def _prune_groups(self) -> None:
        if self._groups:
            self._groups = [g for g in self._groups if g in self._columns] or None

    def _require(self, names: Iterable[str]) -> None:
        for name in names:
            if name not in self._columns:
                raise SchemaError(f"Column '{name}' not found in table columns: {list(self._columns)}")

    @property
    def nrows(self) -> int:
        for col in self._columns.values():
            return len(col)
        return 0

    @property
    def ncols(self) -> int:
        return len(self._columns)

    def __len__(self) -> int:
        return self.nrows

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __getitem__(self, name: str) -> list[Any]:
        return self.column(name).to_list()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return list(self._columns) == list(other._columns) and all(
            self._columns[n] == other._columns[n] for n in self._columns
        )

    def __repr__(self) -> str:
        cols = ", ".join(f"{n}:{c.kind.value}" for n, c in self._columns.items())
        return f"Table({self.nrows} rows; {cols})"

    def __str__(self) -> str:
        return format_table(self)

    def column(self, name: str) -> Column:
        """The Column stored under `name`."""
        try:
            return self._columns[name]
        except KeyError:
            raise SchemaError(f"Column '{name}' not found in table columns: {list(self._columns)}")

    def is_empty(self) -> bool:
        """True with no columns, or a single column without any defined value."""
        if not self._columns:
            return True
        if len(self._columns) == 1:
            return next(iter(self._columns.values())).count_defined() == 0
        return False

    def copy(self) -> Table:
        """Deep copy of columns and grouping state."""
        out = Table()
        out._columns = {n: c.copy() for n, c in self._columns.items()}
        out._groups = list(self._groups) if self._groups else None
        return out

    def to_dict(self) -> dict[str, list[Any]]:
        return {n: c.to_list() for n, c in self._columns.items()}

    def rows(self) -> list[list[Any]]:
        """Row-oriented values, None for missing cells."""
        return [list(r) for r in _row_keys(list(self._columns.values()), self.nrows)]

    # -- schema ---------------------------------------------------------

    def column_names(self) -> list[str]:
        return list(self._columns)

    def set_column_names(self, names: Sequence[str]) -> Table:
        """Rename every column positionally."""
        names = _as_names(names)
        if len(names) != len(self._columns):
            raise ArgumentError(f"Got {len(names)} column names for {len(self._columns)} columns")
        if len(set(names)) != len(names):
            raise ArgumentError(f"Column names must be unique: {names}")
        mapping = dict(zip(self._columns, names))
        columns = {mapping[n]: c for n, c in self._columns.items()}
        if self._groups:
            self._groups = [mapping[g] for g in self._groups]
        return self._commit(columns, "set_column_names")

    def column_types(self) -> dict[str, Kind]:
        return {n: c.kind for n, c in self._columns.items()}

    def rename(self, old_names: str | Sequence[str], new_names: str | Sequence[str]) -> Table:
        """
        Rename columns pairwise. Names not present are ignored.

        Raises:
            ArgumentError: If the lists differ in length or hold non-strings
            SchemaError: If a rename would produce a duplicate column name
        """
        if isinstance(old_names, str) != isinstance(new_names, str):
            raise ArgumentError("rename() needs old and new names of the same kind")
        old = _as_names(old_names)
        new = _as_names(new_names)
        if len(old) != len(new):
            raise ArgumentError(f"rename() got {len(old)} old names and {len(new)} new names")
        mapping = {o: n for o, n in zip(old, new) if o in self._columns}
        renamed = [mapping.get(n, n) for n in self._columns]
        if len(set(renamed)) != len(renamed):
            raise SchemaError(f"rename() would produce duplicate column names: {renamed}")
        columns = {mapping.get(n, n): c for n, c in self._columns.items()}
        if self._groups:
            self._groups = [mapping.get(g, g) for g in self._groups]
        return self._commit(columns, "rename")

    def select(self, names: str | Sequence[str]) -> Table:
        """Keep exactly `names`, in that order."""
        names = _as_names(names)
        self._require(names)
        if len(set(names)) != len(names):
            raise ArgumentError(f"select() got duplicate column names: {names}")
        return self._commit({n: self._columns[n] for n in names}, "select")

    def remove(self, names: str | Sequence[str]) -> Table:
        """Drop `names`; names not present are ignored."""
        drop = set(_as_names(names))
        return self._commit({n: c for n, c in self._columns.items() if n not in drop}, "remove")

    # -- rows -----------------------------------------------------------

    def mutate(self, name: str, data: Any) -> Table:
        """
        Add or overwrite column `name`.

        `data` is a vector of the current row count, or a scalar broadcast
        to every row: int -> integer column, float -> real, str -> string.
        A scalar assigned to an existing column is coerced to its kind.

        Raises:
            ArgumentError: Bad name, or a scalar of another type
            SchemaError: Vector length differs from the row count
        """
        if not isinstance(name, str) or not name:
            raise ArgumentError(f"mutate() needs a column name, got {name!r}")
        if _is_vector(data):
            col = Column.from_values(data)
            if isinstance(data, Column):
                col = col.copy()
            if self._columns and len(col) != self.nrows:
                raise SchemaError(f"Column '{name}' has {len(col)} values, expected {self.nrows}")
        else:
            kind = scalar_kind(data)
            if name in self._columns:
                kind = self._columns[name].kind
            n = self.nrows if self._columns else 1
            col = Column.full(data, n, kind)
        columns = dict(self._columns)
        columns[name] = col
        return self._commit(columns, "mutate")

    def filter(self, predicate: str | Predicate) -> Table:
        """
        Keep rows where `predicate` is true, in their original order.

        Example:
            t.filter("Color = 'Blue' AND Count > 20")

        Raises:
            ArgumentError: Empty predicate, SELECT statement or bad syntax
            SchemaError: Unknown column in the predicate
        """
        pred = compile_predicate(predicate)
        keep = pred.evaluate(self)
        return self._commit({n: c.mask(keep) for n, c in self._columns.items()}, "filter")

    def bind_rows(self, other: Table) -> Table:
        """
        Append `other`'s rows. Column names and order must match exactly;
        kinds are promoted where they differ. A table without columns
        takes on `other`'s columns.
        """
        if not isinstance(other, Table):
            raise ArgumentError(f"bind_rows() needs a Table, got {type(other).__name__}")
        if not self._columns:
            return self._commit({n: c.copy() for n, c in other._columns.items()}, "bind_rows")
        if list(other._columns) != list(self._columns):
            raise SchemaError(
                f"bind_rows() columns {list(other._columns)} != table columns {list(self._columns)}"
            )
        columns = {n: Column.concat([c, other._columns[n]]) for n, c in self._columns.items()}
        return self._commit(columns, "bind_rows")

    def head(self, n: int = 10) -> Table:
        """Keep the first n rows."""
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ArgumentError(f"head() needs a non-negative row count, got {n!r}")
        keep = np.arange(self.nrows) < n
        return self._commit({k: c.mask(keep) for k, c in self._columns.items()}, "head")

    def distinct(self) -> Table:
        """Drop duplicate rows, keeping the first occurrence."""
        first_rows, _ = _group_codes(_row_keys(list(self._columns.values()), self.nrows))
        return self._commit({n: c.take(first_rows) for n, c in self._columns.items()}, "distinct")

    # -- grouping -------------------------------------------------------

    def group_by(self, names: str | Sequence[str]) -> Table:
        names = _as_names(names)
        if not names:
            raise ArgumentError("group_by() needs at least one column")
        self._require(names)
        self._groups = list(dict.fromkeys(names))
        return self

    def ungroup(self) -> Table:
        self._groups = None
        return self

    def groups(self) -> list[str]:
        return list(self._groups or [])

    def summarize(self, spec: Mapping[str, str | Sequence[str]]) -> Table:
        """
        Aggregate each group of rows into one row.

        Args:
            spec: source column -> statistic(s) from
                first, sum, max, min, mean (avg), stddev, count

        The result holds the group keys, then one `<stat>_<field>` column
        per requested pair, then `Count` (rows per group) when any field
        asked for `count`. Groups appear in order of first occurrence.

        Raises:
            ArgumentError: No grouping, empty spec, unknown statistic, or a
                numeric statistic on a text column
            SchemaError: Unknown source column
        """
        if not self._groups:
            raise ArgumentError("summarize() needs grouping keys; call group_by() first")
        if not isinstance(spec, Mapping) or not spec:
            raise ArgumentError("summarize() needs a non-empty mapping of column -> statistics")

        plan: list[tuple[str, str, Column]] = []
        for field, stats in spec.items():
            col = self.column(field)
            stats = _as_names(stats, "statistic names")
            if not stats:
                raise ArgumentError(f"summarize() got no statistics for '{field}'")
            for stat in stats:
                stat = stat.lower()
                base = STAT_ALIASES.get(stat, stat)
                if base not in STATS:
                    raise ArgumentError(f"Unknown statistic '{stat}'. Supported: {list(STATS)}")
                if base in _NUMERIC_STATS and col.kind is Kind.STRING:
                    raise ArgumentError(f"Statistic '{stat}' needs a numeric column, '{field}' is text")
                plan.append((f"{stat}_{field}", base, col))

        want_count = any(base == "count" for _, base, _ in plan)
        out_names = list(self._groups) + [name for name, _, _ in plan] + (["Count"] if want_count else [])
        if len(set(out_names)) != len(out_names):
            raise SchemaError(f"summarize() output columns collide: {out_names}")

        keys = _row_keys([self._columns[g] for g in self._groups], self.nrows)
        first_rows, codes = _group_codes(keys)
        columns: dict[str, Column] = {g: self._columns[g].take(first_rows) for g in self._groups}
        for name, base, col in plan:
            columns[name] = _aggregate(col, base, codes, first_rows)
        if want_count:
            columns["Count"] = Column(Kind.INTEGER, np.bincount(codes, minlength=len(first_rows)).astype(np.int64))
        return self._commit(columns, "summarize")

    # -- joins ----------------------------------------------------------

    def left_join(
        self,
        other: Table,
        self_keys: str | Sequence[str],
        other_keys: str | Sequence[str] | None = None,
    ) -> Table:
        """
        Master-preserving multi-key equi-join.

        Every row of self is kept in order; a row matching several rows of
        `other` is repeated once per match. Unmatched rows get missing
        values in `other`'s columns.

        Key pairs with the same name merge into one column. Other names
        present in both tables get `.x` (self) and `.y` (other) suffixes.

        Args:
            other: Table to join
            self_keys: Key column(s) in self
            other_keys: Key column(s) in other (default: self_keys)

        Raises:
            ArgumentError: Key lists differ in length ("join key length mismatch")
            SchemaError: A key column is missing
        """
        return self._join(other, self_keys, other_keys, keep_unmatched=True, op="left_join")

    def inner_join(
        self,
        other: Table,
        self_keys: str | Sequence[str],
        other_keys: str | Sequence[str] | None = None,
    ) -> Table:
        """Like left_join but drops rows of self without a match."""
        return self._join(other, self_keys, other_keys, keep_unmatched=False, op="inner_join")

    def _join(self, other, self_keys, other_keys, keep_unmatched: bool, op: str) -> Table:
        if not isinstance(other, Table):
            raise ArgumentError(f"{op}() needs a Table, got {type(other).__name__}")
        skeys = _as_names(self_keys, "join keys")
        okeys = _as_names(other_keys, "join keys") if other_keys is not None else list(skeys)
        if len(skeys) != len(okeys):
            raise ArgumentError(f"join key length mismatch: {skeys} vs {okeys}")
        if not skeys:
            raise ArgumentError(f"{op}() needs at least one key column")
        self._require(skeys)
        other._require(okeys)

        merged = {o for s, o in zip(skeys, okeys) if s == o}
        other_names = [n for n in other._columns if n not in merged]
        clash = set(self._columns) & set(other_names)

        left_rows, right_rows = _match_rows(
            _row_keys([self._columns[k] for k in skeys], self.nrows),
            _row_keys([other._columns[k] for k in okeys], other.nrows),
            keep_unmatched,
        )
        columns: dict[str, Column] = {}
        for n, c in self._columns.items():
            columns[n + ".x" if n in clash else n] = c.take(left_rows)
        for n in other_names:
            columns[n + ".y" if n in clash else n] = other._columns[n].take(right_rows)
        if len(columns) != len(self._columns) + len(other_names):
            raise SchemaError(f"{op}() output columns collide: {list(columns)}")
        return self._commit(columns, op)

    # -- reshaping ------------------------------------------------------

    def unite(self, columns: Sequence[str], new_column: str, separator: str = "_") -> Table:
        """
        Join the text form of `columns` with `separator` into `new_column`.
        Source columns are kept. Missing cells contribute empty text.
        """
        names = _as_names(columns)
        if not names:
            raise ArgumentError("unite() needs at least one column")
        if not isinstance(new_column, str) or not new_column:
            raise ArgumentError(f"unite() needs a new column name, got {new_column!r}")
        if not isinstance(separator, str):
            raise ArgumentError(f"unite() separator must be a string, got {separator!r}")
        self._require(names)
        parts = [self._columns[n].as_strings() for n in names]
        joined = [separator.join("" if p is None else p for p in row) for row in zip(*parts)]
        out = dict(self._columns)
        out[new_column] = Column.from_values(joined, kind=Kind.STRING)
        return self._commit(out, "unite")

    def separate(self, column: str, new_columns: Sequence[str], separator: str = "_") -> Table:
        """
        Split a text column into `new_columns` at `separator`.

        Each new column is typed from its parts: integers, then reals,
        else text; empty parts are missing. The source column is replaced
        in place by the new columns.

        Raises:
            SchemaError: Unknown column
            ShapeError: A row does not split into len(new_columns) parts
        """
        names = _as_names(new_columns)
        if not names:
            raise ArgumentError("separate() needs at least one new column name")
        if len(set(names)) != len(names):
            raise ArgumentError(f"separate() got duplicate column names: {names}")
        if not isinstance(separator, str) or not separator:
            raise ArgumentError(f"separate() separator must be a non-empty string, got {separator!r}")
        source = self.column(column)
        k = len(names)

        parts: list[list[str | None]] = [[] for _ in names]
        for i, text in enumerate(source.as_strings()):
            if text is None:
                pieces = [None] * k
            else:
                pieces = text.split(separator)
                if len(pieces) != k:
                    raise ShapeError(
                        f"Row {i} of '{column}' splits into {len(pieces)} parts, expected {k}: {text!r}"
                    )
            for j, p in enumerate(pieces):
                parts[j].append(p)

        new = {n: Column.from_tokens(p, na_values=("",)) for n, p in zip(names, parts)}
        out: dict[str, Column] = {}
        for n, c in self._columns.items():
            if n == column:
                out.update(new)
            elif n not in new:
                out[n] = c
        return self._commit(out, "separate")

    def spread(self, key_column: str, value_column: str, fill_value: Any = None) -> Table:
        """
        Long -> wide pivot.

        Rows are identified by every column other than key/value. One
        column is created per distinct key (ascending); numeric keys are
        prefixed with "v". Cells with no source row get `fill_value`
        (None leaves them missing). Output rows follow the sorted row
        identities.

        Raises:
            SchemaError: Unknown column or a generated name clashes
            ShapeError: Two rows share the same identity and key
        """
        if key_column == value_column:
            raise ArgumentError("spread() key and value columns must differ")
        self._require([key_column, value_column])
        key_col = self._columns[key_column]
        value_col = self._columns[value_column]
        if fill_value is not None:
            try:
                fill_value = coerce_value(fill_value, value_col.kind)
            except ArgumentError:
                raise ArgumentError(
                    f"spread() fill value {fill_value!r} does not fit {value_col.kind.value} column '{value_column}'"
                )

        id_names = [n for n in self._columns if n not in (key_column, value_column)]
        n = self.nrows
        identities = _row_keys([self._columns[c] for c in id_names], n)
        first_rows, codes = _group_codes(identities)
        order = sorted(range(len(first_rows)), key=lambda g: _sort_key(identities[first_rows[g]]))
        position = np.empty(len(first_rows), dtype=np.int64)
        position[np.array(order, dtype=np.int64)] = np.arange(len(order), dtype=np.int64)
        row_pos = position[codes]

        key_values = key_col.to_list()
        distinct_keys = unique(key_values, drop_missing=False)
        new_names = [_spread_name(k) for k in distinct_keys]
        if len(set(new_names)) != len(new_names) or set(new_names) & set(id_names):
            raise SchemaError(f"spread() generated column names clash: {new_names}")

        columns: dict[str, Column] = {c: self._columns[c].take(first_rows[order]) for c in id_names}
        key_index = {k: j for j, k in enumerate(distinct_keys)}
        sources = np.full((len(distinct_keys), len(order)), -1, dtype=np.int64)
        for i, k in enumerate(key_values):
            j = key_index[k]
            if sources[j, row_pos[i]] >= 0:
                raise ShapeError(f"spread() found duplicate rows for key {k!r} in row {i}")
            sources[j, row_pos[i]] = i

        for j, name in enumerate(new_names):
            col = value_col.take(sources[j])
            if fill_value is not None:
                unfilled = sources[j] < 0
                col.values[unfilled] = fill_value
                col.missing[unfilled] = False
            columns[name] = col
        return self._commit(columns, "spread")

    def gather(self, columns: Sequence[str], key_column: str = "key", value_column: str = "value") -> Table:
        """
        Wide -> long: stack `columns` into key/value pairs.

        Each gathered column contributes one block of rows that repeats the
        remaining (seed) columns, sets `key_column` to the column's name and
        `value_column` to its values. Blocks follow the order of `columns`.
        """
        names = _as_names(columns)
        if not names:
            raise ArgumentError("gather() needs at least one column")
        if key_column == value_column:
            raise ArgumentError("gather() key and value columns must differ")
        self._require(names)
        seeds = [n for n in self._columns if n not in names]
        if key_column in seeds or value_column in seeds:
            raise SchemaError(f"gather() output columns {key_column!r}/{value_column!r} clash with {seeds}")

        n, m = self.nrows, len(names)
        rows = np.tile(np.arange(n, dtype=np.int64), m)
        out: dict[str, Column] = {s: self._columns[s].take(rows) for s in seeds}
        keys = np.empty(n * m, dtype=object)
        keys[:] = np.repeat(np.array(names, dtype=object), n)
        out[key_column] = Column(Kind.STRING, keys)
        out[value_column] = Column.concat([self._columns[c] for c in names])
        return self._commit(out, "gather")

    # -- derived values -------------------------------------------------

    def bin_field(self, in_field: str, bins: int | Sequence[float], labels: Sequence[Any] | None = None) -> Table:
        """
        Discretize a numeric column into a new `bin` column.

        Args:
            in_field: Numeric column to bin
            bins: Number of equal-width intervals over [min, max], or
                ascending interval start points (starts outside [min, max]
                are dropped, the first interval opens at min and the last
                runs to max)
            labels: One label per interval (default 1..N)

        Intervals are half-open `from <= x < to`, except the last which
        also holds max, so every defined value gets exactly one label.

        Raises:
            ArgumentError: Bad bins/labels, a text column, or no values
            SchemaError: Unknown column
        """
        if in_field is None or bins is None:
            raise ArgumentError("bin_field() needs in_field and bins")
        col = self.column(in_field)
        if col.kind is Kind.STRING:
            raise ArgumentError(f"bin_field() needs a numeric column, '{in_field}' is text")
        defined = col.defined()
        if not defined.any():
            raise ArgumentError(f"bin_field() column '{in_field}' has no values")
        x = col.values.astype(np.float64)
        lo, hi = float(x[defined].min()), float(x[defined].max())

        if isinstance(bins, (int, np.integer)) and not isinstance(bins, bool):
            if bins < 1:
                raise ArgumentError(f"bin_field() needs at least one bin, got {bins}")
            starts = np.linspace(lo, hi, int(bins) + 1)[:-1]
        elif _is_vector(bins) and not isinstance(bins, Column):
            try:
                points = np.asarray(list(bins), dtype=np.float64)
            except (TypeError, ValueError):
                raise ArgumentError(f"bin_field() breakpoints must be numbers, got {bins!r}")
            if len(points) == 0 or np.any(np.diff(points) <= 0):
                raise ArgumentError(f"bin_field() breakpoints must be strictly ascending, got {list(bins)}")
            starts = points[(points >= lo) & (points <= hi)]
            if len(starts) == 0:
                raise ArgumentError(f"bin_field() no breakpoint falls within [{lo}, {hi}]")
            # the first interval always opens at min
            starts[0] = lo
        else:
            raise ArgumentError(f"bin_field() bins must be a count or a list of breakpoints, got {bins!r}")

        nbins = len(starts)
        if labels is None:
            label_col = Column(Kind.INTEGER, np.arange(1, nbins + 1, dtype=np.int64))
        else:
            if not _is_vector(labels) or len(labels) != nbins:
                raise ArgumentError(f"bin_field() needs {nbins} labels, got {labels!r}")
            label_col = Column.from_values(labels)

        if hi == lo:
            idx = np.zeros(len(x), dtype=np.int64)
        else:
            edges = np.append(starts, hi)
            idx = np.searchsorted(edges, np.where(defined, x, lo), side="right") - 1
            idx = np.minimum(idx, nbins - 1)
        idx[~defined] = -1
        out = dict(self._columns)
        out["bin"] = label_col.take(idx)
        return self._commit(out, "bin_field")

    def unique(self, source: str | Iterable[Any], drop_missing: bool = True) -> list[Any]:
        """Sorted distinct values of a column (by name) or of a literal collection."""
        if isinstance(source, str):
            return unique(self.column(source), drop_missing)
        return unique(source, drop_missing)

    contains = staticmethod(is_in)


def create(columns: Mapping[str, Any] | None = None) -> Table:
    """Build a Table from an optional mapping of name -> values."""
    return Table(columns)


# -------------------------------------
# Display
# -------------------------------------

def _format_value(v: Any) -> str:
    """Format a value for table output; reals to 3 significant figures."""
    if v is None:
        return "NA"
    if isinstance(v, float):
        if v == 0:
            return "0"
        return f"{v:.3g}"
    return str(v)


MAX_FORMAT_ROWS = 100_000


def format_table(table: Table, max_rows: int | None = None) -> str:
    """Format a table as a tab-separated string with header.

    Raises:
        ArgumentError: If the table has more than MAX_FORMAT_ROWS rows to show
    """
    rows = table.rows()
    if max_rows is not None:
        rows = rows[:max_rows]
    if len(rows) > MAX_FORMAT_ROWS:
        raise ArgumentError(f"Table has {len(rows):,} rows, exceeds limit of {MAX_FORMAT_ROWS:,}")
    lines = ["\t".join(table.column_names())]
    for row in rows:
        lines.append("\t".join(_format_value(v) for v in row))
    return "\n".join(lines)


def print_table(table: Table, max_rows: int | None = None) -> None:
    """Print a table with header and rows to stdout."""
    print(format_table(table, max_rows))
