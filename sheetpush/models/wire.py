from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

"""Wire models for the write endpoint protocol (JSON over HTTP POST).

Request body:   {collection, doc, docId?, merge? (default true), dryRun? (default false)}
Success (200):  {ok, id, path, merge, writeTime?}
Dry run (200):  {ok, dryRun, wouldWriteTo, merge, payload}
Error:          plain-text body with 400 / 401 / 403 / 405 / 500

Bodies are parsed into these dataclasses at the boundary; nothing past the
boundary handles loose dicts.
"""

__all__ = [
    "COLLECTION_RE",
    "RequestValidationError",
    "WriteRequest",
    "WriteResult",
    "DryRunResult",
    "ErrorResponse",
    "WriteResponse",
]

COLLECTION_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

BAD_COLLECTION = "Bad collection: must be [A-Za-z0-9_-], 1–128 chars"
BAD_DOC = 'Bad payload: "doc" must be an object'
BAD_DOC_ID = 'Bad payload: "docId" must be a string when provided'


class RequestValidationError(ValueError):
    """Request body rejected before any persistence (HTTP 400)."""


def _optional_bool(body: dict[str, Any], key: str, default: bool) -> bool:
    value = body.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise RequestValidationError(f'Bad payload: "{key}" must be a boolean when provided')
    return value


@dataclass(frozen=True)
class WriteRequest:
    collection: str
    doc: dict[str, Any]
    doc_id: str = ""  # "" -> endpoint assigns a fresh identifier
    merge: bool | None = None  # None -> not sent, endpoint default (True)
    dry_run: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "collection": self.collection,
            "doc": self.doc,
            "docId": self.doc_id,
        }
        if self.merge is not None:
            payload["merge"] = self.merge
        if self.dry_run:
            payload["dryRun"] = True
        return payload

    @classmethod
    def from_payload(cls, body: Any) -> WriteRequest:
        """Validate a decoded JSON body in endpoint order: collection, doc, docId.

        Raises RequestValidationError with the client-facing message.
        """
        if not isinstance(body, dict):
            body = {}

        collection = body.get("collection")
        if not isinstance(collection, str) or not COLLECTION_RE.match(collection):
            raise RequestValidationError(BAD_COLLECTION)

        doc = body.get("doc")
        if not isinstance(doc, dict):
            raise RequestValidationError(BAD_DOC)

        doc_id = body.get("docId")
        if doc_id is not None and not isinstance(doc_id, str):
            raise RequestValidationError(BAD_DOC_ID)

        return cls(
            collection=collection,
            doc=doc,
            doc_id=doc_id or "",
            merge=_optional_bool(body, "merge", True),
            dry_run=_optional_bool(body, "dryRun", False),
        )


@dataclass(frozen=True)
class WriteResult:
    id: str
    path: str
    merge: bool
    write_time: str | None = None  # ISO8601

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": True, "id": self.id, "path": self.path, "merge": self.merge}
        if self.write_time is not None:
            payload["writeTime"] = self.write_time
        return payload


@dataclass(frozen=True)
class DryRunResult:
    would_write_to: str
    merge: bool
    payload: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "ok": True,
            "dryRun": True,
            "wouldWriteTo": self.would_write_to,
            "merge": self.merge,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class ErrorResponse:
    status_code: int
    message: str


WriteResponse = Union[WriteResult, DryRunResult, ErrorResponse]
