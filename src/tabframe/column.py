# -------------------------------------
# Typed columns
# -------------------------------------
"""
Typed column storage for the table engine.

A Column is a homogeneous numpy vector plus a boolean missing mask:

    Kind.INTEGER -> int64 values
    Kind.REAL    -> float64 values
    Kind.STRING  -> object values holding str

Missing cells are tracked in the mask and never confused with 0 or "".
The slot under a missing cell holds a filler (0, nan, "") so vectorized
code can run over the whole array and mask the result afterwards.

This module provides:
- Kind inference for scalars, Python sequences and numpy arrays
- Scalar coercion to a fixed kind (used by broadcast)
- Token parsing for text sources (separate, CSV)
- Column construction, indexing, take/concat/cast
"""
from __future__ import annotations

import enum
import math
import re
from typing import Any, Iterable, Sequence

import numpy as np

from .errors import ArgumentError


class Kind(str, enum.Enum):
    INTEGER = "integer"
    REAL = "real"
    STRING = "string"


_DTYPES = {Kind.INTEGER: np.int64, Kind.REAL: np.float64, Kind.STRING: object}
_FILL = {Kind.INTEGER: 0, Kind.REAL: np.nan, Kind.STRING: ""}

_INT_RE = re.compile(r"^[+-]?\d+$")
_REAL_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?$")


# -------------------------------------
# Scalar helpers
# -------------------------------------

def is_missing(value: Any) -> bool:
    """True for None and float NaN."""
    if value is None:
        return True
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def scalar_kind(value: Any) -> Kind | None:
    """
    Kind of a single Python/numpy scalar, or None when it is missing.

    Raises:
        ArgumentError: For values that are not integer, real or text
    """
    if is_missing(value):
        return None
    if isinstance(value, (bool, np.bool_, int, np.integer)):
        return Kind.INTEGER
    if isinstance(value, (float, np.floating)):
        return Kind.REAL
    if isinstance(value, str):
        return Kind.STRING
    raise ArgumentError(f"Unsupported value type {type(value).__name__}: {value!r}")


def promote(kinds: Iterable[Kind]) -> Kind:
    """Smallest kind able to hold every kind given (INTEGER < REAL < STRING)."""
    kinds = set(kinds)
    if Kind.STRING in kinds:
        return Kind.STRING
    if Kind.REAL in kinds:
        return Kind.REAL
    if Kind.INTEGER in kinds:
        return Kind.INTEGER
    return Kind.REAL


def infer_kind(values: Iterable[Any]) -> Kind:
    """Infer a column kind from raw values; all-missing input is REAL."""
    return promote(k for k in (scalar_kind(v) for v in values) if k is not None)


def format_scalar(value: Any) -> str:
    """String form of a scalar as written by unite and the CSV store."""
    if isinstance(value, (bool, np.bool_)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        return repr(float(value))
    if isinstance(value, np.integer):
        return str(int(value))
    return str(value)


def coerce_value(value: Any, kind: Kind) -> Any:
    """
    Coerce a non-missing scalar to the Python type of `kind`.

    Raises:
        ArgumentError: If the value cannot represent the kind losslessly
    """
    if kind is Kind.STRING:
        return format_scalar(value)
    if kind is Kind.REAL:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ArgumentError(f"Cannot coerce {value!r} to {kind.value}")
    if isinstance(value, (bool, np.bool_, int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return int(value)
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value)
    raise ArgumentError(f"Cannot coerce {value!r} to {kind.value}")


def parse_token(token: str) -> int | float | str:
    """
    Parse a text token: int when the whole token is an integer, float when
    it is a decimal number, otherwise the token itself.
    """
    t = token.strip()
    if t == "0" or _INT_RE.match(t):
        return int(t)
    if _REAL_RE.match(t):
        return float(t)
    return token


# -------------------------------------
# Column
# -------------------------------------

class Column:
    """A homogeneous typed vector with a missing mask."""

    __slots__ = ("kind", "values", "missing")

    def __init__(self, kind: Kind, values: np.ndarray, missing: np.ndarray | None = None):
        self.kind = Kind(kind)
        self.values = values
        if missing is None:
            missing = np.zeros(len(values), dtype=bool)
        self.missing = missing

    # -- construction -------------------------------------------------

    @classmethod
    def from_values(cls, data: Any, kind: Kind | None = None) -> Column:
        """
        Build a column from a scalar, list/tuple, numpy array or Column.

        A scalar becomes a one-cell column. When `kind` is given every
        value is coerced to it, otherwise the kind is inferred.
        """
        if isinstance(data, Column):
            return data if kind is None or data.kind is kind else data.cast(kind)
        if isinstance(data, np.ndarray):
            if data.ndim != 1:
                raise ArgumentError(f"Column data must be 1-D, got shape {data.shape}")
            if kind is None and data.dtype.kind in "iub":
                return cls(Kind.INTEGER, data.astype(np.int64))
            if kind is None and data.dtype.kind == "f":
                values = data.astype(np.float64)
                return cls(Kind.REAL, values, np.isnan(values))
            items = data.tolist()
        elif isinstance(data, (list, tuple, range)):
            items = list(data)
        else:
            items = [data]
        if kind is None:
            kind = infer_kind(items)
        return cls._build(Kind(kind), items)

    @classmethod
    def _build(cls, kind: Kind, items: Sequence[Any]) -> Column:
        n = len(items)
        missing = np.fromiter((is_missing(v) for v in items), dtype=bool, count=n)
        fill = _FILL[kind]
        cells = [fill if m else coerce_value(v, kind) for v, m in zip(items, missing)]
        values = np.empty(n, dtype=_DTYPES[kind])
        if n:
            values[:] = cells
        return cls(kind, values, missing)

    @classmethod
    def full(cls, value: Any, n: int, kind: Kind | None = None) -> Column:
        """Broadcast a scalar to `n` cells."""
        if kind is None:
            kind = scalar_kind(value) or Kind.REAL
        if is_missing(value):
            return cls.empty(kind, n)
        cell = coerce_value(value, kind)
        values = np.empty(n, dtype=_DTYPES[kind])
        values[:] = cell
        return cls(kind, values)

    @classmethod
    def empty(cls, kind: Kind, n: int = 0) -> Column:
        """A column of `n` missing cells."""
        values = np.empty(n, dtype=_DTYPES[kind])
        values[:] = _FILL[kind]
        return cls(kind, values, np.ones(n, dtype=bool))

    @classmethod
    def from_tokens(cls, tokens: Sequence[str | None], na_values: Iterable[str] = ()) -> Column:
        """
        Build a column from text tokens, typing the whole column at once:
        all integers -> INTEGER, all numeric -> REAL, else STRING (raw text).
        """
        na = set(na_values)
        parsed = [None if t is None or t in na else parse_token(t) for t in tokens]
        kinds = {type(p) for p in parsed if p is not None}
        if str in kinds:
            raw = [None if p is None else t for p, t in zip(parsed, tokens)]
            return cls._build(Kind.STRING, raw)
        if float in kinds:
            return cls._build(Kind.REAL, parsed)
        if int in kinds:
            return cls._build(Kind.INTEGER, parsed)
        return cls.empty(Kind.REAL, len(parsed))

    @staticmethod
    def concat(columns: Sequence[Column]) -> Column:
        """Stack columns end to end, promoting to a common kind."""
        kind = promote(c.kind for c in columns)
        parts = [c.cast(kind) for c in columns]
        values = np.concatenate([p.values for p in parts]) if parts else np.empty(0, dtype=_DTYPES[kind])
        missing = np.concatenate([p.missing for p in parts]) if parts else np.empty(0, dtype=bool)
        return Column(kind, values.astype(_DTYPES[kind], copy=False), missing)

    # -- access -------------------------------------------------------

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, i: int) -> Any:
        if self.missing[i]:
            return None
        return self.values[i].item() if self.kind is not Kind.STRING else self.values[i]

    def __iter__(self):
        return iter(self.to_list())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        if self.kind is not other.kind or len(self) != len(other):
            return False
        if not np.array_equal(self.missing, other.missing):
            return False
        defined = ~self.missing
        return bool(np.all(self.values[defined] == other.values[defined]))

    def __repr__(self) -> str:
        return f"Column({self.kind.value}, {self.to_list()!r})"

    def to_list(self) -> list[Any]:
        """Python values with None for missing cells."""
        out = self.values.tolist()
        if self.missing.any():
            for i in np.flatnonzero(self.missing):
                out[i] = None
        return out

    def defined(self) -> np.ndarray:
        """Boolean mask of cells holding a value."""
        return ~self.missing

    def count_defined(self) -> int:
        return int(len(self.missing) - self.missing.sum())

    # -- derivation ---------------------------------------------------

    def copy(self) -> Column:
        return Column(self.kind, self.values.copy(), self.missing.copy())

    def take(self, indices: np.ndarray) -> Column:
        """
        Gather cells by position. A negative index yields a missing cell,
        which is how joins mark unmatched rows.
        """
        indices = np.asarray(indices, dtype=np.int64)
        absent = indices < 0
        safe = np.where(absent, 0, indices)
        if len(self.values) == 0:
            values = np.empty(len(indices), dtype=_DTYPES[self.kind])
            values[:] = _FILL[self.kind]
            return Column(self.kind, values, np.ones(len(indices), dtype=bool))
        values = self.values[safe]
        missing = self.missing[safe] | absent
        if absent.any():
            values[absent] = _FILL[self.kind]
        return Column(self.kind, values, missing)

    def mask(self, keep: np.ndarray) -> Column:
        """Cells where `keep` is True, in order."""
        return Column(self.kind, self.values[keep], self.missing[keep])

    def cast(self, kind: Kind) -> Column:
        """
        Convert to another kind.

        Raises:
            ArgumentError: If the conversion would lose values
        """
        kind = Kind(kind)
        if kind is self.kind:
            return self.copy()
        if kind is Kind.STRING:
            cells = [None if m else format_scalar(v) for v, m in zip(self.values.tolist(), self.missing)]
            return Column._build(Kind.STRING, cells)
        if self.kind is Kind.STRING:
            cells = [None if m else v for v, m in zip(self.values.tolist(), self.missing)]
            return Column._build(kind, cells)
        if kind is Kind.REAL:
            values = self.values.astype(np.float64)
            values[self.missing] = np.nan
            return Column(Kind.REAL, values, self.missing.copy())
        defined = self.values[~self.missing]
        if not np.all(np.mod(defined, 1) == 0):
            raise ArgumentError("Cannot cast non-integral real values to integer")
        values = np.where(self.missing, 0, self.values).astype(np.int64)
        return Column(Kind.INTEGER, values, self.missing.copy())

    def as_strings(self) -> list[str | None]:
        """Cell values formatted as text, None for missing."""
        if self.kind is Kind.STRING:
            return self.to_list()
        return [None if m else format_scalar(v) for v, m in zip(self.values.tolist(), self.missing)]
