from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx

from ..errors import AuthorizationError, WriteError
from ..models.config_models import EffectiveConfig
from ..models.wire import WriteRequest
from ..session import AppSecret

"""HTTP client for the write endpoint.

One synchronous POST per document, no retry, and no timeout beyond the httpx
default. Any status >= 300 raises WriteError carrying the status code and the
response body; that exception is the only per-row error channel the batch
processor looks at. Transport failures surface as httpx.HTTPError.
"""

__all__ = [
    "WriteClient",
    "DiagnosticResult",
    "run_diagnostics",
]

logger = logging.getLogger(__name__)


class WriteClient:
    """Sends documents for one collection with one shared secret.

    Pass http_client to reuse a connection pool or to inject a transport in
    tests; otherwise a client is created and owned by this instance.
    """

    def __init__(
        self,
        endpoint: str,
        collection: str,
        secret: AppSecret,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not secret:
            raise AuthorizationError("APP_SECRET is required to push.")
        self.endpoint = endpoint
        self.collection = collection
        self._secret = secret
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.Client()

    @classmethod
    def from_config(
        cls, config: EffectiveConfig, secret: AppSecret, http_client: httpx.Client | None = None
    ) -> WriteClient:
        return cls(config.endpoint, config.collection, secret, http_client=http_client)

    def post(self, request: WriteRequest) -> httpx.Response:
        response = self._http.post(
            self.endpoint,
            content=json.dumps(request.to_payload(), ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json", **self._secret.header()},
        )
        logger.debug(f"POST {self.endpoint} docId={request.doc_id!r} -> {response.status_code}")
        return response

    def write_document(
        self,
        document: dict[str, Any],
        identifier: str,
        *,
        merge: bool | None = None,
        dry_run: bool = False,
    ) -> dict[str, Any]:
        """Write one document; identifier "" asks the endpoint for a fresh id.

        Returns the decoded success body (empty dict if it is not JSON).

        Raises:
            WriteError: endpoint answered with status >= 300
            httpx.HTTPError: transport failure
        """
        request = WriteRequest(
            collection=self.collection,
            doc=document,
            doc_id=identifier,
            merge=merge,
            dry_run=dry_run,
        )
        response = self.post(request)
        if response.status_code >= 300:
            raise WriteError(response.status_code, response.text)
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def __call__(self, document: dict[str, Any], identifier: str) -> None:
        self.write_document(document, identifier)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> WriteClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


@dataclass(frozen=True)
class DiagnosticResult:
    ok: bool
    message: str


def run_diagnostics(
    config: EffectiveConfig,
    secret: AppSecret | None,
    http_client: httpx.Client | None = None,
) -> DiagnosticResult:
    """Non-destructive endpoint check: a dry-run write of a marker document."""
    if not config.endpoint:
        return DiagnosticResult(False, "CF_ENDPOINT is empty")
    if not config.collection:
        return DiagnosticResult(False, "COLLECTION is empty")
    if secret is None or not secret:
        return DiagnosticResult(False, "APP_SECRET not provided")

    doc = {"_diagnostic": True, "_ts": datetime.now(UTC).isoformat().replace("+00:00", "Z")}
    request = WriteRequest(collection=config.collection, doc=doc, doc_id="", dry_run=True)
    try:
        with WriteClient.from_config(config, secret, http_client=http_client) as client:
            response = client.post(request)
    except httpx.HTTPError as e:
        return DiagnosticResult(False, str(e) or e.__class__.__name__)

    code = response.status_code
    body = response.text or ""
    if 200 <= code < 300:
        try:
            parsed = json.loads(body)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and parsed.get("ok"):
            target = parsed.get("path") or parsed.get("wouldWriteTo") or "ok"
            return DiagnosticResult(True, f"Healthy (dryRun ok: {target})")
        return DiagnosticResult(True, f"Healthy (HTTP {code})")
    return DiagnosticResult(False, f"HTTP {code}: {body[:200]}")
