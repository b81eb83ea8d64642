"""
Database access for stored-procedure calls.

DatabaseManager holds the named connection configs (default + DB_CONNECTIONS)
and exposes select() on the default connection or, via connection(name), on a
named one. Each select opens a connection, runs one statement and closes it.
"""

import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from storedproc.core.config import Settings, settings
from storedproc.models import DataSource, ProductTypeEnum

from .connect import bind_named, connect, cursor_to_dicts, execute, to_driver_paramstyle

_log = logging.getLogger(__name__)


class Connection:
    """One named DataSource: driver identifier + select()."""

    def __init__(self, datasource: DataSource) -> None:
        self.datasource = datasource

    @property
    def name(self) -> str:
        return self.datasource.name

    def get_driver_identifier(self) -> str:
        return self.datasource.product_type.value

    def select(
        self, sql: str, bindings: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Run *sql* and return its rows as dicts.

        - Sequence bindings: ``?`` markers are rewritten to the driver's paramstyle and
          the values are passed in order.
        - Mapping bindings: ``:name`` placeholders are bound by name (see bind_named).

        Driver errors propagate unchanged.
        """
        ds = self.datasource
        if not ds.is_active:
            raise ValueError(f"Connection '{ds.name}' is inactive and cannot be used")

        params: list[Any] | dict[str, Any] | None = None
        if bindings and isinstance(bindings, Mapping):
            sql, params = bind_named(sql, bindings, ds.product_type)
        elif bindings:
            params = list(bindings)
            sql = to_driver_paramstyle(sql, ds.product_type)

        conn: Any = None
        try:
            conn = connect(ds)
            _log.debug("[%s] %s", ds.name, sql)
            cur = execute(conn, sql, params, product_type=ds.product_type)
            rows = cursor_to_dicts(cur)
            conn.commit()
            return rows
        except Exception:
            _log.error("Statement failed on connection '%s': %s", ds.name, sql, exc_info=True)
            if conn is not None:
                try:
                    conn.rollback()
                except Exception:
                    pass
            raise
        finally:
            if conn is not None:
                try:
                    conn.close()
                except Exception:
                    pass


class DatabaseManager:
    """Default connection plus named connections, resolved lazily by name."""

    def __init__(self, config: Settings | None = None) -> None:
        cfg = config or settings
        self.default_name: str = cfg.DB_CONNECTION
        self._configs: dict[str, dict[str, Any]] = {
            self.default_name: dict(cfg.default_datasource)
        }
        for name, conf in cfg.DB_CONNECTIONS.items():
            self._configs[name] = dict(conf)
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def add_connection(self, name: str, datasource: DataSource | dict[str, Any]) -> None:
        """Register (or replace) the connection *name*."""
        conf = (
            datasource.model_dump()
            if isinstance(datasource, DataSource)
            else dict(datasource)
        )
        with self._lock:
            self._configs[name] = conf
            self._connections.pop(name, None)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._configs)

    def get_driver_identifier(self, name: str | None = None) -> str:
        """Configured driver of the default (or named) connection, as given in config."""
        conf = self._config(name or self.default_name)
        pt = conf.get("product_type")
        return str(getattr(pt, "value", pt) or "")

    def connection(self, name: str | None = None) -> Connection:
        """Connection for *name*; empty/None = default connection."""
        key = name or self.default_name
        with self._lock:
            conn = self._connections.get(key)
        if conn is not None:
            return conn
        conf = self._config(key)
        pt = getattr(conf.get("product_type"), "value", conf.get("product_type"))
        if pt not in {e.value for e in ProductTypeEnum}:
            raise ValueError(f"Unsupported product_type: {pt}")
        ds = DataSource.model_validate({**conf, "name": key})
        conn = Connection(ds)
        with self._lock:
            self._connections[key] = conn
        return conn

    def select(
        self, sql: str, bindings: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """select() on the default connection."""
        return self.connection().select(sql, bindings)

    def _config(self, name: str) -> dict[str, Any]:
        with self._lock:
            conf = self._configs.get(name)
        if conf is None:
            raise ValueError(f"Database connection [{name}] not configured")
        return conf


_database_manager: DatabaseManager | None = None
_manager_lock = threading.Lock()


def get_database_manager() -> DatabaseManager:
    """Return the singleton DatabaseManager (thread-safe double-checked locking)."""
    global _database_manager
    if _database_manager is None:
        with _manager_lock:
            if _database_manager is None:
                _database_manager = DatabaseManager()
    return _database_manager


def reset_database_manager() -> None:
    """Drop the singleton so the next get_database_manager() rereads settings."""
    global _database_manager
    with _manager_lock:
        _database_manager = None
