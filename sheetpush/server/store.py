from __future__ import annotations

import copy
import secrets
import string
import threading
from datetime import UTC, datetime
from typing import Any, Protocol

import psycopg2
import psycopg2.errors
import psycopg2.pool
from psycopg2.extras import Json

from ..errors import PermissionDeniedError, StoreError

"""Document stores behind the write endpoint.

Both implementations share the endpoint-facing contract:

- set(collection, doc_id, payload, merge): merge=True upserts only the given
  fields (field-level), merge=False replaces the whole document
- new_id(): a fresh 20-character alphanumeric identifier
- get(collection, doc_id): stored document or None (tests, inspection)
"""

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "new_document_id",
]

_ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 20

DOCUMENTS_TABLE = "sheetpush_documents"


def new_document_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(ID_LENGTH))


class DocumentStore(Protocol):
    def new_id(self) -> str: ...

    def set(self, collection: str, doc_id: str, payload: dict[str, Any], merge: bool) -> datetime | None: ...

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...


class InMemoryDocumentStore:
    """Process-local store; used for `serve --store memory` and tests."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def new_id(self) -> str:
        return new_document_id()

    def set(self, collection: str, doc_id: str, payload: dict[str, Any], merge: bool) -> datetime:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if merge and doc_id in docs:
                docs[doc_id].update(copy.deepcopy(payload))
            else:
                docs[doc_id] = copy.deepcopy(payload)
        return datetime.now(UTC)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))


_CREATE_SQL = f"""
CREATE TABLE IF NOT EXISTS {DOCUMENTS_TABLE} (
    collection text NOT NULL,
    doc_id text NOT NULL,
    data jsonb NOT NULL,
    updated_at timestamptz NOT NULL DEFAULT now(),
    PRIMARY KEY (collection, doc_id)
)
"""

_UPSERT_MERGE_SQL = f"""
INSERT INTO {DOCUMENTS_TABLE} (collection, doc_id, data)
VALUES (%s, %s, %s)
ON CONFLICT (collection, doc_id)
DO UPDATE SET data = {DOCUMENTS_TABLE}.data || EXCLUDED.data, updated_at = now()
RETURNING updated_at
"""

_UPSERT_REPLACE_SQL = f"""
INSERT INTO {DOCUMENTS_TABLE} (collection, doc_id, data)
VALUES (%s, %s, %s)
ON CONFLICT (collection, doc_id)
DO UPDATE SET data = EXCLUDED.data, updated_at = now()
RETURNING updated_at
"""

_SELECT_SQL = f"SELECT data FROM {DOCUMENTS_TABLE} WHERE collection = %s AND doc_id = %s"


class PostgresDocumentStore:
    """Documents as jsonb rows keyed by (collection, doc_id).

    merge=True relies on jsonb `||`, i.e. top-level field upsert. The endpoint
    calls set() from threadpool workers, so every statement checks out its own
    connection from a ThreadedConnectionPool and runs in its own transaction.
    """

    def __init__(self, dsn: str, *, min_connections: int = 1, max_connections: int = 10) -> None:
        self.dsn = dsn
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool: psycopg2.pool.ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()

    def _connection_pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None or self._pool.closed:
                try:
                    self._pool = psycopg2.pool.ThreadedConnectionPool(
                        self.min_connections, self.max_connections, self.dsn
                    )
                except psycopg2.Error as e:
                    raise StoreError(f"database connection failed: {e}") from e
            return self._pool

    def _execute(self, sql: str, params: tuple[Any, ...] | None = None, fetch: bool = False) -> Any:
        pool = self._connection_pool()
        try:
            conn = pool.getconn()
        except psycopg2.Error as e:
            raise StoreError(f"database connection failed: {e}") from e
        try:
            # with conn: commit on success / rollback on error (connection stays open)
            with conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    return cur.fetchone() if fetch else None
        except psycopg2.errors.InsufficientPrivilege as e:
            raise PermissionDeniedError(f"PERMISSION_DENIED: {e}") from e
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e
        finally:
            # 切断済みの接続はプールに戻さない
            pool.putconn(conn, close=bool(conn.closed))

    def ensure_schema(self) -> None:
        self._execute(_CREATE_SQL)

    def new_id(self) -> str:
        return new_document_id()

    def set(self, collection: str, doc_id: str, payload: dict[str, Any], merge: bool) -> datetime | None:
        sql = _UPSERT_MERGE_SQL if merge else _UPSERT_REPLACE_SQL
        row = self._execute(sql, (collection, doc_id, Json(payload)), fetch=True)
        return row[0] if row else None

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        row = self._execute(_SELECT_SQL, (collection, doc_id), fetch=True)
        return row[0] if row else None

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None and not self._pool.closed:
                self._pool.closeall()
            self._pool = None
