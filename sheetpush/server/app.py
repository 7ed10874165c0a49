from __future__ import annotations

import hmac
import json
import logging
import os
import re
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from ..errors import ConfigError, PermissionDeniedError
from ..models.wire import (
    DryRunResult,
    ErrorResponse,
    RequestValidationError,
    WriteRequest,
    WriteResponse,
    WriteResult,
)
from ..session import SECRET_HEADER
from .store import DocumentStore, InMemoryDocumentStore, PostgresDocumentStore

"""Write endpoint (FastAPI).

Request flow, in this order:

    method check -> shared-secret check -> body validation -> dry run | persist

The secret is checked before the body is even decoded, so an unauthenticated
caller learns nothing about validation rules. Errors are plain text with
400 / 401 / 403 / 405 / 500; successes are JSON.
"""

__all__ = [
    "CORS_HEADERS",
    "PERMISSION_DENIED_MESSAGE",
    "create_app",
    "create_app_from_env",
    "handle_write",
]

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, x-app-secret",
}

PERMISSION_DENIED_MESSAGE = "Permission denied (check Cloud Run Invoker and project/region)"
_PERMISSION_DENIED_RE = re.compile(r"PERMISSION_DENIED", re.IGNORECASE)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def handle_write(store: DocumentStore, request: WriteRequest) -> WriteResult | DryRunResult:
    """Resolve the target, stamp server timestamps, then persist or describe.

    createdAt / updatedAt are always set here; values sent by the caller
    under those names are overwritten.
    """
    doc_id = request.doc_id or store.new_id()
    path = f"{request.collection}/{doc_id}"
    merge = True if request.merge is None else request.merge

    now = _now_iso()
    payload: dict[str, Any] = {**request.doc, "createdAt": now, "updatedAt": now}

    if request.dry_run:
        return DryRunResult(would_write_to=path, merge=merge, payload=payload)

    write_time = store.set(request.collection, doc_id, payload, merge)
    return WriteResult(
        id=doc_id,
        path=path,
        merge=merge,
        write_time=write_time.astimezone(UTC).isoformat().replace("+00:00", "Z") if write_time else None,
    )


def _render(result: WriteResponse) -> Response:
    if isinstance(result, ErrorResponse):
        return PlainTextResponse(result.message, status_code=result.status_code)
    return JSONResponse(result.to_payload(), status_code=200)


def _authorized(request: Request, app_secret: str) -> bool:
    supplied = request.headers.get(SECRET_HEADER)
    if not supplied or not app_secret:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), app_secret.encode("utf-8"))


def create_app(store: DocumentStore, app_secret: str) -> FastAPI:
    app = FastAPI(title="sheetpush write endpoint", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.store = store

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next: Any) -> Response:
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.api_route("/", methods=ALL_METHODS)
    async def add_document(request: Request) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204)
        if request.method != "POST":
            return _render(ErrorResponse(405, "POST only"))

        if not _authorized(request, app_secret):
            return _render(ErrorResponse(401, "Unauthorized"))

        raw = await request.body()
        try:
            body = json.loads(raw) if raw else {}
        except ValueError:
            return _render(ErrorResponse(400, "Bad payload: body must be valid JSON"))

        try:
            write_request = WriteRequest.from_payload(body)
        except RequestValidationError as e:
            return _render(ErrorResponse(400, str(e)))

        try:
            result = await run_in_threadpool(handle_write, app.state.store, write_request)
        except Exception as e:
            logger.exception(f"write to {write_request.collection} failed")
            message = str(e) or "Unknown error"
            if isinstance(e, PermissionDeniedError) or _PERMISSION_DENIED_RE.search(message):
                return _render(ErrorResponse(403, PERMISSION_DENIED_MESSAGE))
            return _render(ErrorResponse(500, message))

        return _render(result)

    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: APP_SECRET required, DATABASE_URL selects PostgreSQL.

    SHEETPUSH_STORE=memory forces the in-memory store.
    """
    app_secret = os.getenv("APP_SECRET", "").strip()
    if not app_secret:
        raise ConfigError("APP_SECRET is not set for the write endpoint")

    store: DocumentStore
    dsn = os.getenv("DATABASE_URL")
    if os.getenv("SHEETPUSH_STORE", "").lower() == "memory" or not dsn:
        logger.info("write endpoint using in-memory store")
        store = InMemoryDocumentStore()
    else:
        pg = PostgresDocumentStore(dsn)
        pg.ensure_schema()
        store = pg
    return create_app(store, app_secret)
