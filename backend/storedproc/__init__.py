"""
storedproc: fluent stored procedure calls across MySQL (CALL), SQL Server (EXEC)
and other drivers.
"""

from storedproc.core.db import DatabaseManager, get_database_manager
from storedproc.models import DataSource, DialectCommandEnum, ProductTypeEnum
from storedproc.procedure import (
    NamedFieldsSource,
    RawTokenSource,
    StoredProcedure,
    StoredProcedureError,
)

__all__ = [
    "StoredProcedure",
    "StoredProcedureError",
    "NamedFieldsSource",
    "RawTokenSource",
    "DatabaseManager",
    "get_database_manager",
    "DataSource",
    "DialectCommandEnum",
    "ProductTypeEnum",
]
