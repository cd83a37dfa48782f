"""Tests for tabframe.column module."""

import numpy as np
import pytest

from tabframe.column import (
    Column,
    Kind,
    coerce_value,
    format_scalar,
    infer_kind,
    parse_token,
    promote,
    scalar_kind,
)
from tabframe.errors import ArgumentError


class TestKindInference:
    """Tests for scalar_kind, infer_kind and promote."""

    def test_scalar_kinds(self):
        assert scalar_kind(3) is Kind.INTEGER
        assert scalar_kind(True) is Kind.INTEGER
        assert scalar_kind(np.int32(3)) is Kind.INTEGER
        assert scalar_kind(2.5) is Kind.REAL
        assert scalar_kind("x") is Kind.STRING
        assert scalar_kind(None) is None
        assert scalar_kind(float("nan")) is None

    def test_unsupported_scalar(self):
        with pytest.raises(ArgumentError, match="Unsupported value type"):
            scalar_kind({"a": 1})

    def test_infer_kind(self):
        assert infer_kind([1, 2, 3]) is Kind.INTEGER
        assert infer_kind([1, 2.5]) is Kind.REAL
        assert infer_kind([1, "a"]) is Kind.STRING
        assert infer_kind([None, None]) is Kind.REAL

    def test_promote(self):
        assert promote([Kind.INTEGER, Kind.REAL]) is Kind.REAL
        assert promote([Kind.REAL, Kind.STRING]) is Kind.STRING
        assert promote([Kind.INTEGER]) is Kind.INTEGER


class TestCoercion:
    """Tests for coerce_value, format_scalar and parse_token."""

    def test_coerce_integer(self):
        assert coerce_value(2.0, Kind.INTEGER) == 2
        assert coerce_value("7", Kind.INTEGER) == 7
        with pytest.raises(ArgumentError):
            coerce_value(2.5, Kind.INTEGER)
        with pytest.raises(ArgumentError):
            coerce_value("abc", Kind.INTEGER)

    def test_coerce_real_and_string(self):
        assert coerce_value(2, Kind.REAL) == 2.0
        assert coerce_value(2, Kind.STRING) == "2"
        assert coerce_value(2.0, Kind.STRING) == "2.0"

    def test_format_scalar(self):
        assert format_scalar(True) == "1"
        assert format_scalar(np.int64(4)) == "4"
        assert format_scalar(0.5) == "0.5"
        assert format_scalar("abc") == "abc"

    def test_parse_token(self):
        assert parse_token("0") == 0
        assert isinstance(parse_token("0"), int)
        assert parse_token("12") == 12
        assert parse_token("-3") == -3
        assert parse_token("1.5") == 1.5
        assert parse_token("1e3") == 1000.0
        assert parse_token("abc") == "abc"
        assert parse_token("12a") == "12a"


class TestColumn:
    """Tests for Column construction and derivation."""

    def test_from_list_integer(self):
        col = Column.from_values([1, None, 3])
        assert col.kind is Kind.INTEGER
        assert col.to_list() == [1, None, 3]
        assert col.count_defined() == 2

    def test_from_list_mixed_text(self):
        col = Column.from_values([1, "a"])
        assert col.kind is Kind.STRING
        assert col.to_list() == ["1", "a"]

    def test_from_scalar(self):
        col = Column.from_values("x")
        assert len(col) == 1
        assert col.to_list() == ["x"]

    def test_from_numpy(self):
        col = Column.from_values(np.array([1.0, np.nan, 2.0]))
        assert col.kind is Kind.REAL
        assert col.to_list() == [1.0, None, 2.0]
        flags = Column.from_values(np.array([True, False]))
        assert flags.kind is Kind.INTEGER
        assert flags.to_list() == [1, 0]

    def test_from_numpy_2d_rejected(self):
        with pytest.raises(ArgumentError, match="1-D"):
            Column.from_values(np.zeros((2, 2)))

    def test_explicit_kind(self):
        col = Column.from_values([1, 2], kind=Kind.REAL)
        assert col.kind is Kind.REAL
        assert col.to_list() == [1.0, 2.0]

    def test_full_and_empty(self):
        assert Column.full("a", 3).to_list() == ["a", "a", "a"]
        assert Column.full(2, 2, Kind.REAL).to_list() == [2.0, 2.0]
        assert Column.full(None, 2).to_list() == [None, None]
        assert Column.empty(Kind.STRING, 2).to_list() == [None, None]

    def test_from_tokens(self):
        ints = Column.from_tokens(["1", "2", ""], na_values=("",))
        assert ints.kind is Kind.INTEGER
        assert ints.to_list() == [1, 2, None]
        reals = Column.from_tokens(["1", "2.5"])
        assert reals.kind is Kind.REAL
        assert reals.to_list() == [1.0, 2.5]
        text = Column.from_tokens(["1", "x"])
        assert text.kind is Kind.STRING
        assert text.to_list() == ["1", "x"]

    def test_take_with_missing_marker(self):
        col = Column.from_values(["a", "b"])
        assert col.take(np.array([1, -1, 0])).to_list() == ["b", None, "a"]

    def test_take_from_empty_column(self):
        col = Column.from_values([], kind=Kind.INTEGER)
        assert col.take(np.array([-1, -1])).to_list() == [None, None]

    def test_concat_promotes(self):
        col = Column.concat([Column.from_values([1, 2]), Column.from_values([0.5])])
        assert col.kind is Kind.REAL
        assert col.to_list() == [1.0, 2.0, 0.5]

    def test_cast(self):
        col = Column.from_values([1.0, None])
        assert col.cast(Kind.STRING).to_list() == ["1.0", None]
        assert col.cast(Kind.INTEGER).to_list() == [1, None]
        with pytest.raises(ArgumentError):
            Column.from_values([1.5]).cast(Kind.INTEGER)

    def test_copy_is_independent(self):
        col = Column.from_values([1, 2])
        other = col.copy()
        other.values[0] = 9
        assert col.to_list() == [1, 2]

    def test_equality(self):
        assert Column.from_values([1, None]) == Column.from_values([1, None])
        assert Column.from_values([1, 2]) != Column.from_values([1.0, 2.0])
        assert Column.from_values([1, None]) != Column.from_values([1, 0])

    def test_getitem(self):
        col = Column.from_values([4, None])
        assert col[0] == 4
        assert col[1] is None
