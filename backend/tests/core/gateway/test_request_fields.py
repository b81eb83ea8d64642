"""Unit tests for gateway request fields: fields_from_request, named_fields_from_request, keys_to_snake."""

import asyncio
from unittest.mock import patch

from starlette.requests import Request

from storedproc.core.gateway import (
    fields_from_request,
    keys_to_snake,
    named_fields_from_request,
)
from storedproc.core.gateway.request_fields import field_name_to_snake
from storedproc.procedure import NamedFieldsSource, StoredProcedure


def _make_request(
    *,
    method: str = "GET",
    query_string: bytes = b"",
    headers: list[tuple[bytes, bytes]] | None = None,
    body: bytes = b"",
) -> Request:
    scope: dict = {
        "type": "http",
        "method": method,
        "path": "/",
        "query_string": query_string,
        "headers": headers or [],
        "server": ("localhost", 80),
        "client": ("127.0.0.1", 0),
        "scheme": "http",
        "root_path": "",
    }

    async def receive() -> dict:
        return {"type": "http.request", "body": body, "more_body": False}

    async def send(_: object) -> None:
        pass

    return Request(scope, receive, send)


def _run(coro) -> object:
    return asyncio.run(coro)


# --- keys_to_snake ---


def test_field_name_to_snake() -> None:
    assert field_name_to_snake("userId") == "user_id"
    assert field_name_to_snake("pageSize2Go") == "page_size2_go"
    assert field_name_to_snake("user_id") == "user_id"
    assert field_name_to_snake("_token") == "_token"


def test_keys_to_snake_top_level_only() -> None:
    out = keys_to_snake({"userName": {"lastName": "b"}, "itemIds": [1, 2]})
    assert out == {"user_name": {"lastName": "b"}, "item_ids": [1, 2]}


# --- fields_from_request ---


def test_fields_from_query() -> None:
    out = _run(fields_from_request(_make_request(query_string=b"a=1&b=2")))
    assert out == {"a": "1", "b": "2"}


def test_fields_form_body_keeps_order() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/x-www-form-urlencoded")],
        body=b"_token=abc&user_id=7&status=open",
    )
    out = _run(fields_from_request(req))
    assert list(out) == ["_token", "user_id", "status"]


def test_fields_query_wins_over_body() -> None:
    req = _make_request(
        method="POST",
        query_string=b"b=q",
        headers=[(b"content-type", b"application/json")],
        body=b'{"a": "b", "b": "b"}',
    )
    out = _run(fields_from_request(req))
    assert out == {"a": "b", "b": "q"}


def test_fields_camel_naming() -> None:
    req = _make_request(
        method="POST",
        query_string=b"naming=camel&pageSize=10",
        headers=[(b"content-type", b"application/json")],
        body=b'{"userId": 1}',
    )
    out = _run(fields_from_request(req))
    assert out == {"user_id": 1, "page_size": "10"}


def test_fields_empty_json_body() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/json")],
    )
    assert _run(fields_from_request(req)) == {}


def test_fields_json_array_body_ignored() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/json; charset=utf-8")],
        body=b"[1, 2]",
    )
    assert _run(fields_from_request(req)) == {}


def test_fields_unknown_content_type_ignored() -> None:
    req = _make_request(
        method="POST",
        query_string=b"a=1",
        headers=[(b"content-type", b"text/plain")],
        body=b"b=2",
    )
    assert _run(fields_from_request(req)) == {"a": "1"}


def test_fields_invalid_json_body_ignored() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/json")],
        body=b"{not json",
    )
    assert _run(fields_from_request(req)) == {}


# --- named_fields_from_request ---


def test_named_fields_strip_token() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/x-www-form-urlencoded")],
        body=b"_token=x&a=1&b=2",
    )
    source = _run(named_fields_from_request(req))
    assert isinstance(source, NamedFieldsSource)
    assert source.placeholders() == [":a", ":b"]


def test_named_fields_excluded_from_settings() -> None:
    req = _make_request(query_string=b"csrfmiddlewaretoken=x&id=1")
    with patch("storedproc.core.gateway.request_fields.settings") as mock_settings:
        mock_settings.STORED_PROC_EXCLUDED_FIELDS = ["csrfmiddlewaretoken"]
        source = _run(named_fields_from_request(req))
    assert source.field_names() == ["id"]


def test_named_fields_explicit_exclude() -> None:
    req = _make_request(query_string=b"_token=x&id=1")
    source = _run(named_fields_from_request(req, exclude=[]))
    assert source.field_names() == ["_token", "id"]


def test_request_fields_feed_builder() -> None:
    req = _make_request(
        method="POST",
        headers=[(b"content-type", b"application/x-www-form-urlencoded")],
        body=b"_token=x&id=42",
    )

    class _Db:
        def get_driver_identifier(self) -> str:
            return "mysql"

        def select(self, sql, bindings=None):
            return [{"sql": sql, "bindings": bindings}]

        def connection(self, name):
            return self

    source = _run(named_fields_from_request(req))
    rows = StoredProcedure(_Db()).set_procedure("get_user").set_parameters(source).execute().get_result()
    assert rows == [{"sql": "CALL get_user (:id);", "bindings": {"id": "42"}}]
