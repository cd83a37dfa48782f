# -------------------------------------
# Table errors
# -------------------------------------
"""
Error kinds raised by the table engine and its store adapters.

All of them derive from ValueError so callers that already guard
table calls with ``except ValueError`` keep working.
"""


class TableError(ValueError):
    pass


class ArgumentError(TableError):
    """A call received a missing, wrong-kind, or inconsistent argument."""


class SchemaError(TableError):
    """A referenced column is absent or columns disagree in length."""


class ShapeError(SchemaError):
    """A reshape found rows with inconsistent structure."""
