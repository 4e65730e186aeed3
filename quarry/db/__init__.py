"""
Quarry DB — connection wrapper, statements, drivers and the instance registry.
"""

from .engine import (
    Database,
    QueryRecord,
    get_database,
    configure_database,
    configure_from,
    set_database,
    get_all_databases,
    reset_databases,
)
from .statement import Statement
from .drivers import ColumnInfo, DatabaseDriver, DriverResult, PreparedSQL

__all__ = [
    "Database",
    "QueryRecord",
    "Statement",
    "ColumnInfo",
    "DatabaseDriver",
    "DriverResult",
    "PreparedSQL",
    "get_database",
    "configure_database",
    "configure_from",
    "set_database",
    "get_all_databases",
    "reset_databases",
]
