from __future__ import annotations

import json

import httpx
import pytest

from sheetpush.client.write_client import WriteClient, run_diagnostics
from sheetpush.errors import AuthorizationError, WriteError
from sheetpush.models.config_models import EffectiveConfig
from sheetpush.session import AppSecret


def _client(handler, secret: str = "s3cret") -> WriteClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return WriteClient("https://example.test/write", "products", AppSecret(secret), http_client=http)


def test_write_document_request_shape():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "id": "p-001", "path": "products/p-001", "merge": True})

    body = _client(handler).write_document({"name": "Pencils", "qty": 12}, "p-001")

    assert body["path"] == "products/p-001"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://example.test/write"
    assert request.headers["x-app-secret"] == "s3cret"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {
        "collection": "products",
        "doc": {"name": "Pencils", "qty": 12},
        "docId": "p-001",
    }


def test_write_document_blank_identifier_and_flags():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    client = _client(handler)
    client.write_document({"a": 1}, "", merge=False, dry_run=True)
    assert seen[0]["docId"] == ""
    assert seen[0]["merge"] is False
    assert seen[0]["dryRun"] is True


@pytest.mark.parametrize("status", [300, 400, 401, 403, 500])
def test_status_300_and_above_raises(status):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope")

    with pytest.raises(WriteError) as e:
        _client(handler).write_document({"a": 1}, "x")
    assert e.value.status_code == status
    assert e.value.body == "nope"
    assert str(status) in str(e.value)
    assert "nope" in str(e.value)


def test_no_retry_on_failure():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="down")

    with pytest.raises(WriteError):
        _client(handler).write_document({}, "x")
    assert len(calls) == 1


def test_transport_error_propagates():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(httpx.HTTPError):
        _client(handler).write_document({}, "x")


def test_empty_secret_rejected_before_sending():
    with pytest.raises(AuthorizationError):
        WriteClient("https://example.test", "c", AppSecret("  "))


def test_client_is_callable_as_write_fn():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content)["docId"])
        return httpx.Response(200, text="")

    client = _client(handler)
    client({"a": 1}, "id-1")
    assert seen == ["id-1"]


CFG = EffectiveConfig(endpoint="https://example.test/write", collection="products")


def _http(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_diagnostics_healthy_dry_run():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "dryRun": True, "wouldWriteTo": "products/abc"})

    result = run_diagnostics(CFG, AppSecret("s"), http_client=_http(handler))
    assert result.ok
    assert result.message == "Healthy (dryRun ok: products/abc)"
    assert bodies[0]["dryRun"] is True
    assert bodies[0]["docId"] == ""
    assert bodies[0]["doc"]["_diagnostic"] is True


def test_diagnostics_non_json_success():
    result = run_diagnostics(CFG, AppSecret("s"), http_client=_http(lambda r: httpx.Response(204)))
    assert result.ok
    assert result.message == "Healthy (HTTP 204)"


def test_diagnostics_failure_truncates_body():
    handler = lambda r: httpx.Response(401, text="U" * 500)  # noqa: E731
    result = run_diagnostics(CFG, AppSecret("s"), http_client=_http(handler))
    assert not result.ok
    assert result.message == "HTTP 401: " + "U" * 200


def test_diagnostics_missing_settings():
    assert run_diagnostics(EffectiveConfig("", "c"), AppSecret("s")).message == "CF_ENDPOINT is empty"
    assert run_diagnostics(EffectiveConfig("e", ""), AppSecret("s")).message == "COLLECTION is empty"
    assert run_diagnostics(CFG, None).message == "APP_SECRET not provided"
    assert not run_diagnostics(CFG, AppSecret("")).ok


def test_diagnostics_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = run_diagnostics(CFG, AppSecret("s"), http_client=_http(handler))
    assert not result.ok
    assert "refused" in result.message
