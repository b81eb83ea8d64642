"""
DB connections and access for stored-procedure calls.

psycopg, pymysql, pymssql and trino are installed via pip; a DataSource
(product_type, host, ...) is enough to connect.
"""

from .connect import (
    bind_named,
    connect,
    cursor_to_dicts,
    execute,
    to_driver_paramstyle,
)
from .manager import (
    Connection,
    DatabaseManager,
    get_database_manager,
    reset_database_manager,
)

__all__ = [
    "connect",
    "execute",
    "cursor_to_dicts",
    "to_driver_paramstyle",
    "bind_named",
    "Connection",
    "DatabaseManager",
    "get_database_manager",
    "reset_database_manager",
]
