"""
Quarry query layer — dialects, conditions, the clause accumulator and Query.
"""

from .dialects import Dialect, SQLiteDialect, MySQLDialect, PostgreSQLDialect, get_dialect, register_dialect
from .conditions import UNBOUND, Condition, Column, Raw, condition, bind_params
from .builder import Clause, QueryBuilder
from .query import Query

__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "PostgreSQLDialect",
    "get_dialect",
    "register_dialect",
    "UNBOUND",
    "Condition",
    "Column",
    "Raw",
    "condition",
    "bind_params",
    "Clause",
    "QueryBuilder",
    "Query",
]
