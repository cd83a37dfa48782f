# -------------------------------------
# CSV/Parquet/DuckDB storage adapters
# -------------------------------------
"""
Store adapters that move tables in and out of files and databases.

Every adapter has the same two calls:

    load(source, columns=None) -> {name: Column}
    store(table, destination)

- CsvStore: delimited text, header row, one data row per line
- ParquetStore: Parquet files via pyarrow
- DuckDBStore: tables (or SELECT queries) in a DuckDB database

plus matrix_load() to flatten 2-D matrices into a From/To table, and
store_for()/read_table()/write_table() to pick an adapter by path.

File writes go to a temporary file next to the destination that is
renamed into place on success and removed on any failure.
"""
from __future__ import annotations

import contextlib
import csv
import logging
import math
import os
import re
import tempfile
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator, Protocol

import duckdb
import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

from .column import Column, Kind, parse_token
from .config import get_value
from .errors import ArgumentError, SchemaError, ShapeError
from .table import Table

log = logging.getLogger(__name__)


class StoreAdapter(Protocol):
    def load(self, source: Any, columns: Sequence[str] | None = None) -> dict[str, Any]: ...

    def store(self, table: Table, destination: Any) -> None: ...


@contextlib.contextmanager
def _atomic_path(destination: Path) -> Iterator[Path]:
    """Temporary sibling of `destination`, moved into place when the block succeeds."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        yield tmp
        os.replace(tmp, destination)
    finally:
        if tmp.exists():
            tmp.unlink()


def _pick_columns(data: dict[str, Column], columns: Sequence[str] | None, source: Any) -> dict[str, Column]:
    if columns is None:
        return data
    missing = [c for c in columns if c not in data]
    if missing:
        raise SchemaError(f"Columns {missing} not found in {source}: {list(data)}")
    return {c: data[c] for c in columns}


# -------------------------------------
# Arrow conversion
# -------------------------------------

_ARROW_TYPES = {Kind.INTEGER: pa.int64(), Kind.REAL: pa.float64(), Kind.STRING: pa.string()}


def table_to_arrow(table: Table) -> pa.Table:
    """Convert a Table to a pyarrow Table (missing cells become nulls)."""
    arrays = []
    for name in table.column_names():
        col = table.column(name)
        arrays.append(pa.array(col.values, type=_ARROW_TYPES[col.kind], mask=col.missing))
    return pa.table(arrays, names=table.column_names())


def _plain(v: Any) -> Any:
    """Convert a database/arrow scalar to int, float, str or None."""
    if v is None or isinstance(v, (str, int, float)):
        return v
    if isinstance(v, Decimal):
        return float(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="replace")
    return str(v)


def _kind_of_arrow(dtype: pa.DataType) -> Kind | None:
    if pa.types.is_integer(dtype) or pa.types.is_boolean(dtype):
        return Kind.INTEGER
    if pa.types.is_floating(dtype) or pa.types.is_decimal(dtype):
        return Kind.REAL
    if pa.types.is_string(dtype) or pa.types.is_large_string(dtype):
        return Kind.STRING
    return None


def arrow_to_columns(arrow: pa.Table) -> dict[str, Column]:
    """Convert a pyarrow Table to typed Columns."""
    out = {}
    for name in arrow.column_names:
        chunked = arrow.column(name)
        values = [_plain(v) for v in chunked.to_pylist()]
        out[name] = Column.from_values(values, kind=_kind_of_arrow(chunked.type))
    return out


# -------------------------------------
# CSV
# -------------------------------------

class CsvStore:
    """
    Delimited text with a header row.

    On load each column is typed as a whole (integers, then reals, else
    text) and tokens listed in `na_values` are missing. On store, values
    are written as-is without quoting; the first `na_values` entry
    marks missing cells. store() refuses tables that would not load back
    unchanged: text equal to an NA token, text columns made only of
    numbers, and non-finite reals.
    """

    def __init__(self, delimiter: str = ",", na_values: Sequence[str] = ("",)):
        if not isinstance(delimiter, str) or len(delimiter) != 1:
            raise ArgumentError(f"CSV delimiter must be a single character, got {delimiter!r}")
        self.delimiter = delimiter
        self.na_values = tuple(na_values) or ("",)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> CsvStore:
        return cls(
            delimiter=get_value(config, "csv.delimiter", ","),
            na_values=get_value(config, "csv.na_values", [""]),
        )

    def load(self, source: str | Path, columns: Sequence[str] | None = None) -> dict[str, Column]:
        path = Path(source)
        with open(path, "r", newline="", encoding="utf-8") as f:
            reader = csv.reader(f, delimiter=self.delimiter)
            header = next(reader, None)
            if header is None:
                return _pick_columns({}, columns, path)
            if len(set(header)) != len(header):
                raise SchemaError(f"{path}: duplicate column names in header {header}")
            tokens: list[list[str]] = [[] for _ in header]
            for lineno, row in enumerate(reader, start=2):
                if not row:
                    continue
                if len(row) != len(header):
                    raise ShapeError(f"{path}:{lineno} has {len(row)} fields, expected {len(header)}")
                for j, v in enumerate(row):
                    tokens[j].append(v)
        data = {name: tokens[j] for j, name in enumerate(header)}
        wanted = header if columns is None else list(columns)
        missing = [c for c in wanted if c not in data]
        if missing:
            raise SchemaError(f"Columns {missing} not found in {path}: {header}")
        return {c: Column.from_tokens(data[c], self.na_values) for c in wanted}

    def _check_text(self, text: str, where: str) -> str:
        if self.delimiter in text or "\n" in text or "\r" in text or '"' in text:
            raise ArgumentError(f"{where} value {text!r} cannot be written unquoted")
        return text

    def _check_reload(self, name: str, col: Column) -> None:
        """Reject columns whose written text would load back as other values or kinds."""
        cells = [v for v in col.to_list() if v is not None]
        if col.kind is Kind.REAL and not all(math.isfinite(v) for v in cells):
            raise ArgumentError(f"Column '{name}' holds non-finite values that cannot be written to CSV")
        if col.kind is not Kind.STRING or not cells:
            return
        clash = [v for v in cells if v in self.na_values]
        if clash:
            raise ArgumentError(f"Column '{name}' value {clash[0]!r} would load back as missing")
        if not any(isinstance(parse_token(v), str) for v in cells):
            raise ArgumentError(f"Text column '{name}' holds only numbers and would load back as numeric")

    def store(self, table: Table, destination: str | Path) -> None:
        path = Path(destination)
        na = self.na_values[0]
        names = table.column_names()
        header = [self._check_text(n, "Column name") for n in names]
        for n in names:
            self._check_reload(n, table.column(n))
        cols = [table.column(n).as_strings() for n in names]
        with _atomic_path(path) as tmp:
            with open(tmp, "w", newline="", encoding="utf-8") as f:
                f.write(self.delimiter.join(header) + "\n")
                for row in zip(*cols):
                    cells = [na if v is None else self._check_text(v, "Cell") for v in row]
                    f.write(self.delimiter.join(cells) + "\n")


# -------------------------------------
# Parquet
# -------------------------------------

class ParquetStore:
    """Parquet files read and written with pyarrow."""

    def load(self, source: str | Path, columns: Sequence[str] | None = None) -> dict[str, Column]:
        path = Path(source)
        if columns is not None:
            names = pq.read_schema(str(path)).names
            missing = [c for c in columns if c not in names]
            if missing:
                raise SchemaError(f"Columns {missing} not found in {path}: {names}")
        arrow = pq.read_table(str(path), columns=list(columns) if columns is not None else None)
        return arrow_to_columns(arrow)

    def store(self, table: Table, destination: str | Path) -> None:
        path = Path(destination)
        arrow = table_to_arrow(table)
        with _atomic_path(path) as tmp:
            pq.write_table(arrow, str(tmp))


# -------------------------------------
# DuckDB
# -------------------------------------

_SQL_RE = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class DuckDBStore:
    """
    Tables in a DuckDB database file.

    load() takes a table name or a SELECT query; store() replaces the
    named table.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        self.db_path = str(db_path)

    def load(self, source: str, columns: Sequence[str] | None = None) -> dict[str, Column]:
        sql = source if _SQL_RE.match(source) else f"SELECT * FROM {_quote_ident(source)}"
        con = duckdb.connect(self.db_path)
        try:
            result = con.execute(sql).fetchall()
            names = [desc[0] for desc in con.description]
        finally:
            con.close()
        values: list[list[Any]] = [[] for _ in names]
        for row in result:
            for j, v in enumerate(row):
                values[j].append(_plain(v))
        data = {name: Column.from_values(values[j]) for j, name in enumerate(names)}
        return _pick_columns(data, columns, source)

    def store(self, table: Table, destination: str) -> None:
        if not table.column_names():
            raise ArgumentError("Cannot store a table without columns to DuckDB")
        arrow = table_to_arrow(table)
        target = _quote_ident(destination)
        con = duckdb.connect(self.db_path)
        try:
            con.register("_tabframe_data", arrow)
            con.execute(f"CREATE OR REPLACE TABLE {target} AS SELECT * FROM _tabframe_data")
            con.unregister("_tabframe_data")
        finally:
            con.close()


# -------------------------------------
# Matrices
# -------------------------------------

def _read_matrices(source: str | Path | Mapping[str, Any]) -> dict[str, np.ndarray]:
    if isinstance(source, Mapping):
        return {str(k): np.asarray(v, dtype=np.float64) for k, v in source.items()}
    path = Path(source)
    if path.suffix == ".npy":
        return {path.stem: np.load(path).astype(np.float64)}
    with np.load(path) as npz:
        return {k: npz[k].astype(np.float64) for k in npz.files}


def matrix_load(
    source: str | Path | Mapping[str, Any],
    cores: Sequence[str] | None = None,
    row_index: Sequence[Any] | None = None,
    col_index: Sequence[Any] | None = None,
    include_all_cells: bool = True,
) -> Table:
    """
    Flatten 2-D matrices into one row per (row, column) cell.

    Args:
        source: .npz file (one array per core), .npy file, or a mapping
            core name -> 2-D array
        cores: Cores to include (default: all, in file order)
        row_index: Row IDs (default 1..n_rows)
        col_index: Column IDs (default 1..n_cols)
        include_all_cells: When False, drop cells that are missing (NaN)
            in every selected core

    Returns:
        Table with columns From, To and one real column per core

    Raises:
        SchemaError: Unknown core
        ShapeError: Cores that are not 2-D or differ in shape
        ArgumentError: Index length does not match the matrix
    """
    matrices = _read_matrices(source)
    names = list(cores) if cores is not None else list(matrices)
    if not names:
        raise ArgumentError("matrix_load() found no matrix cores")
    missing = [c for c in names if c not in matrices]
    if missing:
        raise SchemaError(f"Matrix cores {missing} not found: {list(matrices)}")

    shape = matrices[names[0]].shape
    for name in names:
        m = matrices[name]
        if m.ndim != 2:
            raise ShapeError(f"Matrix core '{name}' is not 2-D: shape {m.shape}")
        if m.shape != shape:
            raise ShapeError(f"Matrix core '{name}' has shape {m.shape}, expected {shape}")
    nr, nc = shape

    rows = np.arange(1, nr + 1) if row_index is None else np.asarray(row_index)
    cols = np.arange(1, nc + 1) if col_index is None else np.asarray(col_index)
    if len(rows) != nr or len(cols) != nc:
        raise ArgumentError(f"Matrix index lengths ({len(rows)}, {len(cols)}) do not match shape {shape}")

    data: dict[str, Any] = {
        "From": np.repeat(rows, nc),
        "To": np.tile(cols, nr),
    }
    for name in names:
        data[name] = matrices[name].ravel()

    table = Table(data)
    if not include_all_cells:
        stacked = np.vstack([matrices[n].ravel() for n in names])
        keep = ~np.all(np.isnan(stacked), axis=0)
        table = Table({k: table.column(k).mask(keep) for k in table.column_names()})
    log.info("matrix_load: %d cells x %d cores", table.nrows, len(names))
    return table


# -------------------------------------
# Adapter selection
# -------------------------------------

def store_for(target: str | Path, config: dict[str, Any] | None = None) -> tuple[StoreAdapter, Any]:
    """
    Pick a store adapter from a path.

    - *.csv, *.txt -> CsvStore
    - *.parquet, *.pq -> ParquetStore
    - db.duckdb::table (or .db) -> DuckDBStore

    Returns:
        (adapter, location) where location is what load/store expect
    """
    text = str(target)
    if "::" in text:
        db_path, _, name = text.partition("::")
        if Path(db_path).suffix.lower() in (".duckdb", ".db") and name:
            return DuckDBStore(db_path), name
    suffix = Path(text).suffix.lower()
    if suffix in (".csv", ".txt"):
        store = CsvStore.from_config(config) if config else CsvStore()
        return store, Path(text)
    if suffix in (".parquet", ".pq"):
        return ParquetStore(), Path(text)
    raise ArgumentError(f"No store adapter for {text!r}; use .csv, .parquet or file.duckdb::table")


def read_table(target: str | Path, columns: Sequence[str] | None = None, config: dict[str, Any] | None = None) -> Table:
    """Load a Table from a path understood by store_for()."""
    store, location = store_for(target, config)
    return Table.load(store, location, columns)


def write_table(table: Table, target: str | Path, config: dict[str, Any] | None = None) -> None:
    """Store a Table to a path understood by store_for()."""
    store, location = store_for(target, config)
    table.store(store, location)
