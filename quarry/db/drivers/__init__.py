"""
Quarry DB drivers — one module per server, chosen from the URL scheme.
"""

from typing import Dict, Type

from .base import ColumnInfo, DatabaseDriver, DriverResult, PreparedSQL
from .sqlite import SQLiteDriver
from .mysql import MySQLDriver
from .postgres import PostgreSQLDriver

DRIVERS: Dict[str, Type[DatabaseDriver]] = {
    "sqlite": SQLiteDriver,
    "mysql": MySQLDriver,
    "mariadb": MySQLDriver,
    "postgresql": PostgreSQLDriver,
}

__all__ = [
    "ColumnInfo",
    "DatabaseDriver",
    "DriverResult",
    "PreparedSQL",
    "SQLiteDriver",
    "MySQLDriver",
    "PostgreSQLDriver",
    "DRIVERS",
]
