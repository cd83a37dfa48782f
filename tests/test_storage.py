"""Tests for tabframe.storage module."""

import os
import tempfile
from pathlib import Path

import numpy as np
import pytest

from tabframe.column import Kind
from tabframe.errors import ArgumentError, SchemaError, ShapeError
from tabframe.storage import (
    CsvStore,
    DuckDBStore,
    ParquetStore,
    matrix_load,
    read_table,
    store_for,
    write_table,
)
from tabframe.table import Table


@pytest.fixture
def workdir():
    """Temporary directory for table files."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def trips():
    return Table({
        "Zone": [1, 2, 3],
        "Mode": ["bus", None, "rail"],
        "Time": [1.5, None, 3.0],
    })


def _write(path, text):
    with open(path, "w") as f:
        f.write(text)
    return path


class TestCsvStore:
    """Tests for CsvStore load/store."""

    def test_round_trip(self, workdir, trips):
        path = workdir / "trips.csv"
        trips.store(CsvStore(), path)
        assert path.read_text() == "Zone,Mode,Time\n1,bus,1.5\n2,,\n3,rail,3.0\n"
        loaded = Table.load(CsvStore(), path)
        assert loaded == trips

    def test_delimiter_and_na(self, workdir, trips):
        path = workdir / "trips.txt"
        store = CsvStore(delimiter=";", na_values=["NA", ""])
        store.store(trips, path)
        assert path.read_text().splitlines()[2] == "2;NA;NA"
        assert Table(store.load(path)) == trips

    def test_column_subset(self, workdir, trips):
        path = workdir / "trips.csv"
        CsvStore().store(trips, path)
        data = CsvStore().load(path, ["Time", "Zone"])
        assert list(data) == ["Time", "Zone"]
        with pytest.raises(SchemaError):
            CsvStore().load(path, ["Nope"])

    def test_typing(self, workdir):
        path = _write(workdir / "t.csv", "a,b,c\n1,1.5,x\n2,3,4\n")
        t = Table.load(CsvStore(), path)
        assert t.column_types() == {"a": Kind.INTEGER, "b": Kind.REAL, "c": Kind.STRING}
        assert t["c"] == ["x", "4"]

    def test_ragged_row(self, workdir):
        path = _write(workdir / "t.csv", "a,b\n1,2\n3\n")
        with pytest.raises(ShapeError, match=":3 has 1 fields, expected 2"):
            CsvStore().load(path)

    def test_duplicate_header(self, workdir):
        path = _write(workdir / "t.csv", "a,a\n1,2\n")
        with pytest.raises(SchemaError, match="duplicate"):
            CsvStore().load(path)

    def test_empty_file(self, workdir):
        path = _write(workdir / "t.csv", "")
        assert CsvStore().load(path) == {}

    def test_unwritable_value_leaves_nothing(self, workdir):
        t = Table({"a": ["x,y"]})
        with pytest.raises(ArgumentError, match="cannot be written unquoted"):
            CsvStore().store(t, workdir / "out.csv")
        assert os.listdir(workdir) == []

    def test_failed_store_keeps_old_file(self, workdir, trips):
        path = workdir / "trips.csv"
        CsvStore().store(trips, path)
        before = path.read_text()
        with pytest.raises(ArgumentError):
            CsvStore().store(Table({"a": ['say "hi"']}), path)
        assert path.read_text() == before
        assert os.listdir(workdir) == ["trips.csv"]

    def test_numeric_text_is_refused(self, workdir):
        t = Table({"Zone": ["007", "010"]})
        with pytest.raises(ArgumentError, match="would load back as numeric"):
            CsvStore().store(t, workdir / "zones.csv")
        assert os.listdir(workdir) == []

    def test_text_equal_to_na_token_is_refused(self, workdir):
        with pytest.raises(ArgumentError, match="would load back as missing"):
            CsvStore().store(Table({"Name": ["", "x"]}), workdir / "names.csv")
        with pytest.raises(ArgumentError, match="would load back as missing"):
            CsvStore(na_values=["NA"]).store(Table({"Name": ["NA", "x"]}), workdir / "names.csv")
        assert os.listdir(workdir) == []

    def test_non_finite_real_is_refused(self, workdir):
        with pytest.raises(ArgumentError, match="non-finite"):
            CsvStore().store(Table({"x": [1.0, float("inf")]}), workdir / "x.csv")

    def test_mixed_text_round_trips(self, workdir):
        t = Table({"Zone": ["007", "A1"], "Name": ["x", None]})
        path = workdir / "zones.csv"
        CsvStore(na_values=["NA"]).store(t, path)
        loaded = Table.load(CsvStore(na_values=["NA"]), path)
        assert loaded == t
        assert loaded["Zone"] == ["007", "A1"]

    def test_bad_delimiter(self):
        with pytest.raises(ArgumentError):
            CsvStore(delimiter="::")


class TestParquetStore:
    """Tests for ParquetStore load/store."""

    def test_round_trip(self, workdir, trips):
        path = workdir / "trips.parquet"
        trips.store(ParquetStore(), path)
        assert Table.load(ParquetStore(), path) == trips

    def test_column_subset(self, workdir, trips):
        path = workdir / "trips.parquet"
        ParquetStore().store(trips, path)
        t = Table.load(ParquetStore(), path, ["Time"])
        assert t.column_names() == ["Time"]
        with pytest.raises(SchemaError):
            ParquetStore().load(path, ["Nope"])


class TestDuckDBStore:
    """Tests for DuckDBStore load/store."""

    def test_round_trip(self, workdir, trips):
        store = DuckDBStore(workdir / "model.duckdb")
        trips.store(store, "trips")
        assert Table.load(store, "trips") == trips

    def test_replace_and_query(self, workdir, trips):
        store = DuckDBStore(workdir / "model.duckdb")
        store.store(trips, "trips")
        store.store(trips.copy().head(2), "trips")
        assert Table(store.load("trips")).nrows == 2
        data = store.load("SELECT Zone, Time FROM trips WHERE Zone > 1")
        assert data["Zone"].to_list() == [2]

    def test_replace_with_new_schema(self, workdir, trips):
        store = DuckDBStore(workdir / "model.duckdb")
        store.store(trips, "trips")
        store.store(Table({"Flag": [1, 0]}), "trips")
        assert Table.load(store, "trips").to_dict() == {"Flag": [1, 0]}
        data = store.load("SELECT count(*) AS n FROM duckdb_tables() WHERE table_name = 'trips'")
        assert data["n"].to_list() == [1]

    def test_store_without_columns(self):
        with pytest.raises(ArgumentError):
            DuckDBStore().store(Table(), "empty")


class TestMatrixLoad:
    """Tests for matrix_load."""

    @pytest.fixture
    def skims(self):
        return {
            "time": np.array([[1.0, 2.0], [3.0, 4.0]]),
            "dist": np.array([[np.nan, 5.0], [6.0, np.nan]]),
        }

    def test_flatten(self, skims):
        t = matrix_load(skims)
        assert t.column_names() == ["From", "To", "time", "dist"]
        assert t["From"] == [1, 1, 2, 2]
        assert t["To"] == [1, 2, 1, 2]
        assert t["time"] == [1.0, 2.0, 3.0, 4.0]
        assert t["dist"] == [None, 5.0, 6.0, None]

    def test_skip_missing_cells(self, skims):
        t = matrix_load(skims, cores=["dist"], include_all_cells=False)
        assert t.column_names() == ["From", "To", "dist"]
        assert t.rows() == [[1, 2, 5.0], [2, 1, 6.0]]

    def test_index_labels(self, skims):
        t = matrix_load(skims, cores=["time"], row_index=[101, 102], col_index=[7, 9])
        assert t["From"] == [101, 101, 102, 102]
        assert t["To"] == [7, 9, 7, 9]

    def test_npz_file(self, workdir, skims):
        path = workdir / "skims.npz"
        np.savez(path, **skims)
        t = matrix_load(path, cores=["time"])
        assert t.nrows == 4

    def test_errors(self, skims):
        with pytest.raises(SchemaError):
            matrix_load(skims, cores=["cost"])
        with pytest.raises(ShapeError):
            matrix_load({"a": np.zeros((2, 2)), "b": np.zeros((2, 3))})
        with pytest.raises(ShapeError):
            matrix_load({"a": np.zeros(3)})
        with pytest.raises(ArgumentError):
            matrix_load(skims, row_index=[1, 2, 3])


class TestStoreFor:
    """Tests for store_for, read_table and write_table."""

    def test_adapters(self):
        store, location = store_for("data/trips.csv")
        assert isinstance(store, CsvStore)
        assert location == Path("data/trips.csv")
        assert isinstance(store_for("x.PARQUET")[0], ParquetStore)
        store, location = store_for("model.duckdb::trips")
        assert isinstance(store, DuckDBStore)
        assert location == "trips"

    def test_config_delimiter(self):
        store, _ = store_for("t.csv", {"csv": {"delimiter": ";", "na_values": ["NA"]}})
        assert store.delimiter == ";"
        assert store.na_values == ("NA",)

    def test_unknown(self):
        with pytest.raises(ArgumentError, match="No store adapter"):
            store_for("trips.xlsx")
        with pytest.raises(ArgumentError):
            store_for("model.duckdb")

    def test_read_write(self, workdir, trips):
        write_table(trips, workdir / "a.csv")
        write_table(read_table(workdir / "a.csv"), f"{workdir / 'm.duckdb'}::trips")
        write_table(read_table(f"{workdir / 'm.duckdb'}::trips"), workdir / "b.parquet")
        assert read_table(workdir / "b.parquet") == trips
        assert read_table(workdir / "a.csv", ["Mode"])["Mode"] == ["bus", None, "rail"]
