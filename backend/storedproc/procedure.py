"""
Stored procedure call builder.

    rows = (
        StoredProcedure()
        .set_procedure("get_user")
        .set_connection("reporting")
        .set_parameters(RawTokenSource(["?"]))
        .set_values([42])
        .execute()
        .get_result()
    )

The dialect command is picked once from the driver of the default connection:
mysql → CALL, sqlsrv → EXEC, anything else → CALL.

- CALL: ``CALL get_user (:id);``
- EXEC: ``EXEC get_user @id``
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from storedproc.models import DialectCommandEnum, dialect_command_for

_log = logging.getLogger(__name__)

ANTI_FORGERY_FIELD = "_token"
POSITIONAL_MARKERS = frozenset({"?", "%s"})


class StoredProcedureError(ValueError):
    """Raised when a stored procedure call is not fully configured before execute()."""

    pass


class SelectsRows(Protocol):
    def select(
        self, sql: str, bindings: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> Any: ...


class DatabaseAccess(SelectsRows, Protocol):
    """What StoredProcedure needs from the database layer (DatabaseManager satisfies it)."""

    def get_driver_identifier(self) -> str: ...

    def connection(self, name: str) -> SelectsRows: ...


# ---------------------------------------------------------------------------
# Parameter sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamedFieldsSource:
    """Request payload fields; each field ``k`` becomes the named placeholder ``:k``."""

    fields: Mapping[str, Any]
    exclude: frozenset[str] = frozenset({ANTI_FORGERY_FIELD})

    def field_names(self) -> list[str]:
        return [str(k) for k in self.fields if k not in self.exclude]

    def placeholders(self) -> list[str]:
        return [f":{name}" for name in self.field_names()]

    def bindings(self) -> dict[str, Any]:
        """Field values keyed by placeholder name."""
        return {str(k): v for k, v in self.fields.items() if k not in self.exclude}


@dataclass(frozen=True)
class RawTokenSource:
    """Placeholder tokens used verbatim (``?`` markers, ``@name`` or literals)."""

    tokens: Sequence[Any] = field(default_factory=tuple)

    def placeholders(self) -> list[str]:
        return [str(t) for t in self.tokens]

    def positional_count(self) -> int:
        return sum(1 for t in self.placeholders() if t.strip() in POSITIONAL_MARKERS)


ParameterSource = NamedFieldsSource | RawTokenSource


def as_parameter_source(
    source: ParameterSource | Mapping[str, Any] | Iterable[Any] | None,
) -> ParameterSource:
    """
    Normalize plain containers: Mapping → NamedFieldsSource, list/tuple → RawTokenSource,
    None → empty RawTokenSource.
    """
    if isinstance(source, NamedFieldsSource | RawTokenSource):
        return source
    if source is None:
        return RawTokenSource()
    if isinstance(source, Mapping):
        return NamedFieldsSource(source)
    if isinstance(source, str | bytes):
        raise TypeError("parameters must be a mapping or a sequence of tokens, not a string")
    if isinstance(source, Iterable):
        return RawTokenSource(tuple(source))
    raise TypeError(f"Unsupported parameter source: {type(source).__name__}")


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class StoredProcedure:
    """
    Fluent builder for one stored procedure call: configure, execute() once, get_result().

    db: database access (driver identifier, select, connection(name)); defaults to
    the process DatabaseManager.
    """

    def __init__(self, db: DatabaseAccess | None = None) -> None:
        if db is None:
            from storedproc.core.db import get_database_manager

            db = get_database_manager()
        self._db = db
        self._driver: str = db.get_driver_identifier()
        self._command: DialectCommandEnum = dialect_command_for(self._driver)
        self._procedure: str = ""
        self._statement: str = ""
        self._source: ParameterSource | None = None
        self._placeholders: str | None = None
        self._values: list[Any] | dict[str, Any] = []
        self._connection: str = ""
        self._result: Any = None
        self._executed = False

    @property
    def command(self) -> DialectCommandEnum:
        return self._command

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def statement(self) -> str:
        return self._statement

    @property
    def placeholders(self) -> str | None:
        return self._placeholders

    @property
    def values(self) -> list[Any] | dict[str, Any]:
        return self._values.copy()

    @property
    def connection_name(self) -> str:
        return self._connection

    def set_procedure(self, name: str = "") -> StoredProcedure:
        """Statement becomes ``"<command> <name>"``; the clause is added by execute()."""
        self._procedure = name
        self._statement = f"{self._command.value} {name}"
        return self

    def set_connection(self, name: str = "") -> StoredProcedure:
        """Named connection to run on; ``""`` means the default connection."""
        self._connection = name or ""
        return self

    def set_parameters(
        self,
        source: ParameterSource | Mapping[str, Any] | Iterable[Any] | None = None,
    ) -> StoredProcedure:
        """
        Placeholders from a NamedFieldsSource (``:field``, anti-forgery field dropped)
        or a RawTokenSource (verbatim), joined with ``", "``.
        """
        self._source = as_parameter_source(source)
        self._placeholders = ", ".join(self._source.placeholders())
        return self

    def set_values(
        self, values: Mapping[str, Any] | Iterable[Any] | None = None
    ) -> StoredProcedure:
        """Bind values: a sequence binds ``?`` markers in order, a mapping binds ``:name``."""
        if values is None:
            self._values = []
        elif isinstance(values, Mapping):
            self._values = dict(values)
        else:
            self._values = list(values)
        return self

    def execute(self) -> StoredProcedure:
        """Append the dialect clause and run the statement on the selected connection."""
        self._check_ready()

        if self._command == DialectCommandEnum.CALL:
            clause = f" ({self._placeholders});"
        else:
            clause = f" {self._placeholders}"
        self._statement = self._statement + clause
        self._executed = True

        target: SelectsRows = (
            self._db.connection(self._connection) if self._connection else self._db
        )
        _log.debug(
            "Executing stored procedure on %s: %s",
            self._connection or "default connection",
            self._statement,
        )
        bindings = self._bindings()
        if bindings:
            self._result = target.select(self._statement, bindings)
        else:
            self._result = target.select(self._statement)
        return self

    def get_result(self) -> list[Any]:
        """Rows in driver order; ``[]`` when there are none (or nothing was executed)."""
        if not self._result:
            return []
        try:
            return list(self._result)
        except TypeError:
            return []

    def _bindings(self) -> list[Any] | dict[str, Any]:
        # Explicit values win; a named source otherwise binds its own field values.
        if self._values:
            return self._values.copy()
        if isinstance(self._source, NamedFieldsSource):
            return self._source.bindings()
        return []

    def _check_ready(self) -> None:
        if self._executed:
            raise StoredProcedureError(
                "StoredProcedure was already executed; build a new one per call"
            )
        if not self._procedure or not self._procedure.strip():
            raise StoredProcedureError(
                "Stored procedure name is required: call set_procedure() before execute()"
            )
        if self._placeholders is None:
            raise StoredProcedureError(
                "Stored procedure parameters are not set: call set_parameters() before execute()"
            )
        if isinstance(self._values, list) and self._values and isinstance(
            self._source, RawTokenSource
        ):
            expected = self._source.positional_count()
            if expected != len(self._values):
                raise StoredProcedureError(
                    f"Stored procedure {self._procedure} has {expected} positional "
                    f"placeholder(s) but {len(self._values)} value(s)"
                )
