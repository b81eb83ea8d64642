"""
Request fields for stored-procedure parameters.

fields_from_request merges query and body (query > body) the way a form post
or JSON call arrives; named_fields_from_request wraps the result as a
NamedFieldsSource for StoredProcedure.set_parameters.
"""

import re
from collections.abc import Iterable
from typing import Any

from starlette.requests import Request

from storedproc.core.config import settings
from storedproc.procedure import NamedFieldsSource

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_FORM_TYPES = frozenset({"application/x-www-form-urlencoded", "multipart/form-data"})


def field_name_to_snake(name: str) -> str:
    """userId → user_id; names already in snake_case are unchanged."""
    return _CAMEL_BOUNDARY.sub(r"\1_\2", str(name)).lower()


def keys_to_snake(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Convert top-level field names to snake_case; values are bound as-is.

    Later fields win when two names collapse to the same snake_case name.
    """
    return {field_name_to_snake(k): v for k, v in fields.items()}


def _media_type(request: Request) -> str:
    return (request.headers.get("content-type") or "").partition(";")[0].strip().lower()


async def _read_body(request: Request) -> dict[str, Any]:
    """Body fields from a JSON object or a form post; {} for anything else."""
    media_type = _media_type(request)
    if media_type in _FORM_TYPES:
        form = await request.form()
        return {k: form.get(k) for k in form.keys()}
    if media_type != "application/json":
        return {}
    if not await request.body():
        return {}
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


async def fields_from_request(request: Request) -> dict[str, Any]:
    """
    Body fields followed by query fields, in arrival order (query wins on conflict).

    ?naming=camel converts body and query keys from camelCase to snake_case;
    the ``naming`` switch itself is not a field.
    """
    query = dict(request.query_params)
    naming = (query.pop("naming", None) or "snake").strip().lower()

    body = await _read_body(request)
    if naming == "camel":
        body = keys_to_snake(body)
        query = keys_to_snake(query)

    out: dict[str, Any] = dict(body)
    out.update(query)
    return out


async def named_fields_from_request(
    request: Request,
    exclude: Iterable[str] | None = None,
) -> NamedFieldsSource:
    """NamedFieldsSource over the request fields; excludes STORED_PROC_EXCLUDED_FIELDS by default."""
    fields = await fields_from_request(request)
    excluded = settings.STORED_PROC_EXCLUDED_FIELDS if exclude is None else exclude
    return NamedFieldsSource(fields, exclude=frozenset(excluded))
