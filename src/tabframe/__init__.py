# -------------------------------------
# tabframe - column-oriented tables
# -------------------------------------
"""
In-memory, column-oriented table engine with typed columns.

This package provides:
- The Table engine and its display helpers (table)
- Typed column storage (column)
- The row-predicate language used by filter (predicate)
- CSV, Parquet, DuckDB and matrix store adapters (storage)
- YAML configuration and recipes (config, recipe)

Imports are lazy so the storage backends are only loaded when used.
Use: from tabframe import Table, read_table, etc.
"""

__all__ = [
    # errors
    "TableError",
    "ArgumentError",
    "SchemaError",
    "ShapeError",
    # columns
    "Kind",
    "Column",
    # table
    "Table",
    "create",
    "unique",
    "is_in",
    "format_table",
    "print_table",
    # predicates
    "Predicate",
    "quote_name",
    # storage
    "CsvStore",
    "ParquetStore",
    "DuckDBStore",
    "matrix_load",
    "store_for",
    "read_table",
    "write_table",
    # config / recipes
    "load_config",
    "run_recipe",
]

# Lazy import mapping: attribute -> (module, name)
_LAZY_IMPORTS = {
    # errors
    "TableError": (".errors", "TableError"),
    "ArgumentError": (".errors", "ArgumentError"),
    "SchemaError": (".errors", "SchemaError"),
    "ShapeError": (".errors", "ShapeError"),
    # columns
    "Kind": (".column", "Kind"),
    "Column": (".column", "Column"),
    # table
    "Table": (".table", "Table"),
    "create": (".table", "create"),
    "unique": (".table", "unique"),
    "is_in": (".table", "is_in"),
    "format_table": (".table", "format_table"),
    "print_table": (".table", "print_table"),
    # predicates
    "Predicate": (".predicate", "Predicate"),
    "quote_name": (".predicate", "quote_name"),
    # storage
    "CsvStore": (".storage", "CsvStore"),
    "ParquetStore": (".storage", "ParquetStore"),
    "DuckDBStore": (".storage", "DuckDBStore"),
    "matrix_load": (".storage", "matrix_load"),
    "store_for": (".storage", "store_for"),
    "read_table": (".storage", "read_table"),
    "write_table": (".storage", "write_table"),
    # config / recipes
    "load_config": (".config", "load_config"),
    "run_recipe": (".recipe", "run_recipe"),
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        from importlib import import_module
        module = import_module(module_name, __package__)
        return getattr(module, attr_name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
