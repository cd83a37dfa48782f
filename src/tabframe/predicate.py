# -------------------------------------
# Row predicates
# -------------------------------------
"""
Minimal row-predicate language used by Table.filter.

    Color = 'Blue' AND Count >= 50
    NOT ([Length] < 2.5 OR Zone IS NULL)
    Mode IN ('bus', 'rail') AND Name LIKE 'Main%'

Keywords are case-insensitive. String literals use single quotes ('' for
a literal quote). Column names that are keywords or not plain
identifiers are written as [name] or "name"; quote_name() produces
that form.

Evaluation is vectorized over the column arrays and follows SQL
three-valued logic: a comparison with a missing cell is unknown, and
only rows whose predicate is true are kept.
"""
from __future__ import annotations

import re
from typing import Any, TYPE_CHECKING

import numpy as np

from .column import Kind
from .errors import ArgumentError

if TYPE_CHECKING:
    from .table import Table


KEYWORDS = {"and", "or", "not", "in", "is", "null", "like", "select"}

# names that also collide with table accessors
RESERVED = KEYWORDS | {"length", "nrows"}

# integer literals outside this range are compared as reals
_INT64_MIN, _INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
      | '(?P<string>(?:[^']|'')*)'
      | "(?P<dquoted>(?:[^"]|"")*)"
      | \[(?P<bracketed>[^\]]*)\]
      | (?P<op><=|>=|<>|!=|==|=|<|>)
      | (?P<punct>[(),])
      | (?P<ident>[A-Za-z_][A-Za-z0-9_.]*)
    )
    """,
    re.VERBOSE,
)

_CMP_OPS = {
    "=": np.equal,
    "==": np.equal,
    "<>": np.not_equal,
    "!=": np.not_equal,
    "<": np.less,
    "<=": np.less_equal,
    ">": np.greater,
    ">=": np.greater_equal,
}


def quote_name(name: str) -> str:
    """Column reference for `name`, bracketed when it is reserved or not an identifier."""
    if _IDENT_RE.match(name) and name.lower() not in RESERVED:
        return name
    if "]" in name:
        return '"' + name.replace('"', '""') + '"'
    return f"[{name}]"


def quote_literal(value: Any) -> str:
    """Literal form of a scalar for use in a predicate."""
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, bool):
        return str(int(value))
    return repr(value)


# -------------------------------------
# Tokenizer / parser
# -------------------------------------

def tokenize(text: str) -> list[tuple[str, Any]]:
    """Split predicate text into (type, value) tokens."""
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ArgumentError(f"Invalid predicate syntax at position {pos}: {text[pos:pos + 20]!r}")
        pos = m.end()
        kind = m.lastgroup
        value = m.group(kind)
        if kind == "number":
            num = float(value)
            if re.match(r"^[+-]?\d+$", value) and _INT64_MIN <= int(value) <= _INT64_MAX:
                num = int(value)
            tokens.append(("literal", num))
        elif kind == "string":
            tokens.append(("literal", value.replace("''", "'")))
        elif kind == "dquoted":
            tokens.append(("name", value.replace('""', '"')))
        elif kind == "bracketed":
            tokens.append(("name", value))
        elif kind == "ident":
            if value.lower() in KEYWORDS:
                tokens.append(("keyword", value.lower()))
            else:
                tokens.append(("name", value))
        else:
            tokens.append((kind, value))
    return tokens


class _Parser:
    def __init__(self, tokens: list[tuple[str, Any]]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> tuple[str, Any] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self) -> tuple[str, Any]:
        tok = self.peek()
        if tok is None:
            raise ArgumentError("Unexpected end of predicate")
        self.pos += 1
        return tok

    def accept(self, kind: str, value: Any = None) -> bool:
        tok = self.peek()
        if tok is not None and tok[0] == kind and (value is None or tok[1] == value):
            self.pos += 1
            return True
        return False

    def expect(self, kind: str, value: Any = None) -> None:
        if not self.accept(kind, value):
            found = self.peek()
            raise ArgumentError(f"Expected {value or kind}, found {found[1] if found else 'end of predicate'!r}")

    def parse(self) -> tuple:
        node = self.or_expr()
        if self.peek() is not None:
            raise ArgumentError(f"Unexpected token {self.peek()[1]!r} in predicate")
        return node

    def or_expr(self) -> tuple:
        node = self.and_expr()
        while self.accept("keyword", "or"):
            node = ("or", node, self.and_expr())
        return node

    def and_expr(self) -> tuple:
        node = self.not_expr()
        while self.accept("keyword", "and"):
            node = ("and", node, self.not_expr())
        return node

    def not_expr(self) -> tuple:
        if self.accept("keyword", "not"):
            return ("not", self.not_expr())
        return self.comparison()

    def comparison(self) -> tuple:
        left = self.operand()
        tok = self.peek()
        if tok is None:
            return ("truth", left)
        if tok[0] == "op":
            self.pos += 1
            return ("cmp", tok[1], left, self.operand())
        if self.accept("keyword", "is"):
            negate = self.accept("keyword", "not")
            self.expect("keyword", "null")
            return ("null", left, negate)
        negate = self.accept("keyword", "not")
        if self.accept("keyword", "in"):
            self.expect("punct", "(")
            items = [self.literal()]
            while self.accept("punct", ","):
                items.append(self.literal())
            self.expect("punct", ")")
            return ("in", left, items, negate)
        if self.accept("keyword", "like"):
            pattern = self.literal()
            if not isinstance(pattern, str):
                raise ArgumentError("LIKE pattern must be a string literal")
            return ("like", left, pattern, negate)
        if negate:
            raise ArgumentError("Expected IN or LIKE after NOT")
        return ("truth", left)

    def operand(self) -> tuple:
        if self.accept("punct", "("):
            node = self.or_expr()
            self.expect("punct", ")")
            return node
        kind, value = self.next()
        if kind == "name":
            return ("col", value)
        if kind == "literal":
            return ("lit", value)
        raise ArgumentError(f"Unexpected token {value!r} in predicate")

    def literal(self) -> Any:
        kind, value = self.next()
        if kind != "literal":
            raise ArgumentError(f"Expected a literal, found {value!r}")
        return value


# -------------------------------------
# Evaluation
# -------------------------------------

class Predicate:
    """A parsed row predicate."""

    def __init__(self, text: str):
        if not isinstance(text, str) or not text.strip():
            raise ArgumentError("Predicate text is empty")
        if re.match(r"^\s*select\b", text, re.IGNORECASE):
            raise ArgumentError(f"Predicate must be a condition, not a SELECT statement: {text!r}")
        self.text = text
        self.tree = _Parser(tokenize(text)).parse()

    def __repr__(self) -> str:
        return f"Predicate({self.text!r})"

    def columns(self) -> list[str]:
        """Column names referenced by the predicate, in order of appearance."""
        out: list[str] = []

        def walk(node):
            if node[0] == "col":
                if node[1] not in out:
                    out.append(node[1])
                return
            for child in node[1:]:
                if isinstance(child, tuple):
                    walk(child)

        walk(self.tree)
        return out

    def evaluate(self, table: Table) -> np.ndarray:
        """Boolean mask of rows where the predicate is true."""
        n = table.nrows
        true, _ = self._eval(self.tree, table, n)
        return true

    # each boolean node yields (true, unknown) masks
    def _eval(self, node: tuple, table: Table, n: int) -> tuple[np.ndarray, np.ndarray]:
        op = node[0]
        if op in ("and", "or"):
            t1, u1 = self._eval(node[1], table, n)
            t2, u2 = self._eval(node[2], table, n)
            f1, f2 = ~t1 & ~u1, ~t2 & ~u2
            if op == "and":
                true, false = t1 & t2, f1 | f2
            else:
                true, false = t1 | t2, f1 & f2
            return true, ~true & ~false
        if op == "not":
            t, u = self._eval(node[1], table, n)
            return ~t & ~u, u
        if op in ("col", "lit"):
            return self._eval(("truth", node), table, n)
        if op == "truth":
            if node[1][0] not in ("col", "lit"):
                return self._eval(node[1], table, n)
            values, missing, kind = self._operand(node[1], table, n)
            if kind is Kind.STRING:
                raise ArgumentError(f"Text operand cannot be used as a condition in {self.text!r}")
            return (values != 0) & ~missing, missing
        if op == "cmp":
            lv, lm, lk = self._operand(node[2], table, n)
            rv, rm, rk = self._operand(node[3], table, n)
            _check_comparable(lk, rk, self.text)
            result = np.asarray(_CMP_OPS[node[1]](lv, rv), dtype=bool)
            unknown = lm | rm
            return result & ~unknown, unknown
        if op == "null":
            _, missing, _ = self._operand(node[1], table, n)
            hit = ~missing if node[2] else missing.copy()
            return hit, np.zeros(n, dtype=bool)
        if op == "in":
            values, missing, kind = self._operand(node[1], table, n)
            for item in node[2]:
                _check_comparable(kind, _literal_kind(item), self.text)
            wanted = set(node[2])
            hit = np.fromiter((v in wanted for v in values.tolist()), dtype=bool, count=n)
            if node[3]:
                hit = ~hit
            return hit & ~missing, missing.copy()
        if op == "like":
            values, missing, kind = self._operand(node[1], table, n)
            if kind is not Kind.STRING:
                raise ArgumentError(f"LIKE requires a text operand in {self.text!r}")
            regex = _like_regex(node[2])
            hit = np.fromiter((regex.fullmatch(v) is not None for v in values.tolist()), dtype=bool, count=n)
            if node[3]:
                hit = ~hit
            return hit & ~missing, missing.copy()
        raise ArgumentError(f"Unsupported predicate node {op!r}")

    def _operand(self, node: tuple, table: Table, n: int) -> tuple[np.ndarray, np.ndarray, Kind]:
        if node[0] == "col":
            col = table.column(node[1])
            return col.values, col.missing, col.kind
        if node[0] == "lit":
            kind = _literal_kind(node[1])
            values = np.empty(n, dtype=object if kind is Kind.STRING else type(node[1]))
            values[:] = node[1]
            return values, np.zeros(n, dtype=bool), kind
        raise ArgumentError(f"Expected a column or literal operand in {self.text!r}")


def _literal_kind(value: Any) -> Kind:
    if isinstance(value, str):
        return Kind.STRING
    return Kind.INTEGER if isinstance(value, int) else Kind.REAL


def _check_comparable(a: Kind, b: Kind, text: str) -> None:
    if (a is Kind.STRING) != (b is Kind.STRING):
        raise ArgumentError(f"Cannot compare {a.value} with {b.value} in {text!r}")


def _like_regex(pattern: str) -> re.Pattern:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def compile_predicate(text: str | Predicate) -> Predicate:
    """Parse `text` unless it is already a Predicate."""
    return text if isinstance(text, Predicate) else Predicate(text)


def equality_predicate(values: dict[str, Any]) -> str:
    """Predicate text matching rows where every column equals its value."""
    if not values:
        raise ArgumentError("Equality filter needs at least one column")
    return " AND ".join(
        f"{quote_name(name)} IS NULL" if value is None else f"{quote_name(name)} = {quote_literal(value)}"
        for name, value in values.items()
    )
