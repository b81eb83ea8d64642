"""
DB connection helpers for DataSources.

Uses pymysql (MySQL), psycopg (PostgreSQL), pymssql (SQL Server) or trino (Trino)
based on product_type.
"""

import re
from collections.abc import Mapping
from typing import Any

import psycopg
import pymssql
import pymysql
from trino.auth import BasicAuthentication
from trino.dbapi import connect as trino_connect

from storedproc.core.config import settings
from storedproc.models import DEFAULT_PORTS, DataSource, ProductTypeEnum

# Drivers whose DB-API paramstyle is "format" (%s) rather than "qmark" (?).
_FORMAT_PARAMSTYLE = (
    ProductTypeEnum.MYSQL,
    ProductTypeEnum.POSTGRES,
    ProductTypeEnum.SQLSRV,
)
_NAMED_PLACEHOLDER = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")


def _get(datasource: Any, key: str) -> Any:
    """Get attribute or dict key from DataSource or dict."""
    if isinstance(datasource, dict):
        return datasource.get(key)
    return getattr(datasource, key, None)


def _resolve_product_type(
    datasource: Any, product_type: ProductTypeEnum | None
) -> ProductTypeEnum:
    pt = product_type or _get(datasource, "product_type")
    if pt is None:
        raise ValueError("product_type is required (from datasource or argument)")
    if isinstance(pt, str) and not isinstance(pt, ProductTypeEnum):
        try:
            return ProductTypeEnum(pt)
        except ValueError:
            raise ValueError(f"Unsupported product_type: {pt}") from None
    return pt


def connect(
    datasource: DataSource | dict[str, Any],
    *,
    product_type: ProductTypeEnum | None = None,
) -> Any:
    """
    Open a connection from a DataSource or connection dict.

    - datasource: DataSource model or dict with host, port, database, username,
      password and product_type (or pass product_type=).
    """
    pt = _resolve_product_type(datasource, product_type)
    host = _get(datasource, "host")
    database = _get(datasource, "database")
    username = _get(datasource, "username")
    password = _get(datasource, "password")
    use_ssl = _get(datasource, "use_ssl") in (True, "true", "1")

    for name, val in [
        ("host", host),
        ("database", database),
        ("username", username),
    ]:
        if val is None:
            raise ValueError(f"datasource must provide {name}")
    password = password if password is not None else ""
    port = _get(datasource, "port") or DEFAULT_PORTS[pt]

    timeout = settings.EXTERNAL_DB_CONNECT_TIMEOUT

    if pt == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=host,
            port=int(port),
            database=database,
            user=username,
            password=password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=host,
            port=int(port),
            dbname=database,
            user=username,
            password=password,
            connect_timeout=timeout,
        )
    if pt == ProductTypeEnum.SQLSRV:
        # pymssql applies the statement timeout per query
        statement_timeout = settings.EXTERNAL_DB_STATEMENT_TIMEOUT
        return pymssql.connect(
            server=host,
            port=str(int(port)),
            user=username,
            password=password,
            database=database,
            login_timeout=timeout,
            timeout=int(statement_timeout) if statement_timeout else 0,
        )
    if pt == ProductTypeEnum.TRINO:
        if use_ssl and not (password and password.strip()):
            raise ValueError("Password is required for Trino when using SSL/HTTPS.")
        return trino_connect(
            host=host,
            port=int(port),
            user=username,
            auth=BasicAuthentication(username, password or ""),
            catalog=database,
            schema="default",
            source="storedproc",
            http_scheme="https" if use_ssl else "http",
            request_timeout=timeout,
        )
    raise ValueError(f"Unsupported product_type: {pt}")


def _split_literals(sql: str) -> list[tuple[bool, str]]:
    """Split SQL into ``(is_quoted_literal, text)`` parts; '' and "" escapes stay inside literals."""
    parts: list[tuple[bool, str]] = []
    start = 0
    i = 0
    length = len(sql)
    while i < length:
        quote = sql[i]
        if quote not in ("'", '"'):
            i += 1
            continue
        if start < i:
            parts.append((False, sql[start:i]))
        end = i + 1
        while end < length:
            if sql[end] == "\\":
                end += 2
            elif sql[end] == quote and sql[end + 1 : end + 2] == quote:
                end += 2
            elif sql[end] == quote:
                break
            else:
                end += 1
        parts.append((True, sql[i : end + 1]))
        start = i = end + 1
    if start < length:
        parts.append((False, sql[start:]))
    return parts


def to_driver_paramstyle(sql: str, product_type: ProductTypeEnum) -> str:
    """
    Rewrite ``?`` markers to ``%s`` for format-paramstyle drivers (pymysql, psycopg, pymssql).

    Markers inside single- or double-quoted literals are left alone. Trino uses ``?``
    natively and gets the SQL unchanged.
    """
    if product_type not in _FORMAT_PARAMSTYLE or "?" not in sql:
        return sql
    return "".join(
        text if quoted else text.replace("?", "%s")
        for quoted, text in _split_literals(sql)
    )


def bind_named(
    sql: str, bindings: Mapping[str, Any], product_type: ProductTypeEnum
) -> tuple[str, dict[str, Any] | list[Any]]:
    """
    Resolve ``:name`` placeholders against *bindings* for the driver.

    pymysql, psycopg and pymssql get ``%(name)s`` and a dict of the referenced
    names; Trino gets ``?`` and the values in placeholder order. ``::`` casts and
    quoted literals are not placeholders. A name missing from *bindings* raises
    ValueError.
    """
    names: list[str] = []

    def _marker(m: re.Match[str]) -> str:
        name = m.group(1)
        if name not in bindings:
            raise ValueError(f"No value bound for named parameter :{name}")
        names.append(name)
        return f"%({name})s" if product_type in _FORMAT_PARAMSTYLE else "?"

    sql = "".join(
        text if quoted else _NAMED_PLACEHOLDER.sub(_marker, text)
        for quoted, text in _split_literals(sql)
    )
    if product_type in _FORMAT_PARAMSTYLE:
        return sql, {name: bindings[name] for name in names}
    return sql, [bindings[name] for name in names]


def _session_timeout(
    product_type: ProductTypeEnum, timeout_sec: float
) -> tuple[tuple[Any, ...], str] | None:
    """(cursor.execute args that set the timeout, statement that clears it) per driver."""
    timeout_ms = int(timeout_sec * 1000)
    if product_type == ProductTypeEnum.POSTGRES:
        return ("SET statement_timeout = %s", (str(timeout_ms),)), "SET statement_timeout = 0"
    if product_type == ProductTypeEnum.MYSQL:
        return (
            ("SET SESSION max_execution_time = %s", (timeout_ms,)),
            "SET SESSION max_execution_time = 0",
        )
    if product_type == ProductTypeEnum.TRINO:
        return (
            (f"SET SESSION query_max_execution_time = '{timeout_sec:g}s'",),
            "SET SESSION query_max_execution_time = '0s'",
        )
    return None


def _run_on_new_cursor(conn: Any, *args: Any) -> None:
    cur = conn.cursor()
    try:
        cur.execute(*args)
    finally:
        try:
            cur.close()
        except Exception:
            pass



def execute(
    conn: Any,
    sql: str,
    params: list | tuple | dict | None = None,
    *,
    product_type: ProductTypeEnum | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor).

    - product_type: used for EXTERNAL_DB_STATEMENT_TIMEOUT (Postgres: statement_timeout,
      MySQL: max_execution_time, Trino: query_max_execution_time; SQL Server gets it
      at connect time). When set, applies the timeout before the query and resets it after.
    """
    timeout_sec = settings.EXTERNAL_DB_STATEMENT_TIMEOUT
    session = None
    if timeout_sec is not None and timeout_sec > 0 and product_type is not None:
        session = _session_timeout(product_type, timeout_sec)

    if session is not None:
        _run_on_new_cursor(conn, *session[0])

    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    finally:
        if session is not None:
            try:
                _run_on_new_cursor(conn, session[1])
            except Exception:
                pass

    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts. Works for every supported driver."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
