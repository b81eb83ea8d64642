"""
storedproc models.

Enums for driver identifiers and stored-procedure dialect commands, and the
DataSource describing one named database connection.
"""

from enum import Enum

from sqlmodel import Field, SQLModel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProductTypeEnum(str, Enum):
    """Supported database drivers (mysql, postgres, sqlsrv, trino)."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLSRV = "sqlsrv"
    TRINO = "trino"


class DialectCommandEnum(str, Enum):
    """Keyword used to invoke a stored procedure."""

    CALL = "CALL"
    EXEC = "EXEC"


# Drivers not listed here fall back to CALL.
DIALECT_COMMANDS: dict[str, DialectCommandEnum] = {
    ProductTypeEnum.MYSQL.value: DialectCommandEnum.CALL,
    ProductTypeEnum.SQLSRV.value: DialectCommandEnum.EXEC,
}

DEFAULT_PORTS: dict[ProductTypeEnum, int] = {
    ProductTypeEnum.MYSQL: 3306,
    ProductTypeEnum.POSTGRES: 5432,
    ProductTypeEnum.SQLSRV: 1433,
    ProductTypeEnum.TRINO: 8080,
}


def dialect_command_for(driver: str | None) -> DialectCommandEnum:
    """Map a driver identifier to its dialect command (CALL for unknown drivers)."""
    key = driver.value if isinstance(driver, Enum) else (driver or "")
    return DIALECT_COMMANDS.get(key, DialectCommandEnum.CALL)


# ---------------------------------------------------------------------------
# DataSource - one named connection
# ---------------------------------------------------------------------------


class DataSource(SQLModel):
    name: str = Field(max_length=255)
    product_type: ProductTypeEnum
    host: str = Field(max_length=255)
    port: int | None = Field(default=None)
    database: str = Field(max_length=255)
    username: str = Field(max_length=255)
    password: str = Field(default="", max_length=512)
    use_ssl: bool = Field(
        default=False,
        description="Trino: use HTTPS (http_scheme='https'). When True, password is required.",
    )
    is_active: bool = Field(default=True)
