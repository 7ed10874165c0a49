from __future__ import annotations

import threading
from types import SimpleNamespace

import psycopg2
import psycopg2.extensions
import psycopg2.errors
import pytest

import sheetpush.server.store as store_module
from sheetpush.errors import PermissionDeniedError, StoreError
from sheetpush.server.store import InMemoryDocumentStore, PostgresDocumentStore, new_document_id


def test_new_document_id_shape():
    ids = {new_document_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 20 and i.isalnum() for i in ids)


def test_in_memory_merge_and_replace():
    store = InMemoryDocumentStore()
    store.set("c", "d", {"a": 1, "b": 2}, merge=True)
    store.set("c", "d", {"b": 5}, merge=True)
    assert store.get("c", "d") == {"a": 1, "b": 5}
    store.set("c", "d", {"z": 0}, merge=False)
    assert store.get("c", "d") == {"z": 0}
    assert store.get("c", "missing") is None
    assert store.count("other") == 0


def test_in_memory_returns_copies():
    store = InMemoryDocumentStore()
    payload = {"a": {"nested": 1}}
    store.set("c", "d", payload, merge=True)
    payload["a"]["nested"] = 2
    got = store.get("c", "d")
    got["a"]["nested"] = 3
    assert store.get("c", "d") == {"a": {"nested": 1}}


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn

    def execute(self, sql, params=None):
        self.conn.executed.append((" ".join(sql.split()), params))
        if self.conn.barrier is not None:
            self.conn.barrier.wait()
        if self.conn.raise_on_execute is not None:
            raise self.conn.raise_on_execute

    def fetchone(self):
        return self.conn.fetch_result

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeConnection:
    def __init__(self, barrier: threading.Barrier | None = None) -> None:
        self.executed: list[tuple[str, object]] = []
        self.closed = 0
        self.raise_on_execute: Exception | None = None
        self.fetch_result: object = None
        self.commits = 0
        self.rollbacks = 0
        self.barrier = barrier
        self.open_transactions = 0
        self.max_open_transactions = 0
        self.info = SimpleNamespace(transaction_status=psycopg2.extensions.TRANSACTION_STATUS_IDLE)
        self._lock = threading.Lock()

    def cursor(self):
        return FakeCursor(self)

    def __enter__(self):
        with self._lock:
            self.open_transactions += 1
            self.max_open_transactions = max(self.max_open_transactions, self.open_transactions)
        return self

    def __exit__(self, exc_type, exc, tb):
        with self._lock:
            self.open_transactions -= 1
            if exc_type is None:
                self.commits += 1
            else:
                self.rollbacks += 1
        return False

    def close(self):
        self.closed = 1


@pytest.fixture()
def fake_conn(monkeypatch) -> FakeConnection:
    conn = FakeConnection()
    monkeypatch.setattr(store_module.psycopg2, "connect", lambda dsn: conn)
    return conn


def test_postgres_merge_upsert_sql(fake_conn):
    fake_conn.fetch_result = ("2024-01-01T00:00:00Z",)
    store = PostgresDocumentStore("postgresql://example")
    result = store.set("c", "d", {"a": 1}, merge=True)
    sql, params = fake_conn.executed[-1]
    assert "ON CONFLICT (collection, doc_id)" in sql
    assert "sheetpush_documents.data || EXCLUDED.data" in sql
    assert params[0] == "c" and params[1] == "d"
    assert params[2].adapted == {"a": 1}
    assert result == "2024-01-01T00:00:00Z"
    assert fake_conn.commits == 1


def test_postgres_replace_sql(fake_conn):
    store = PostgresDocumentStore("postgresql://example")
    store.set("c", "d", {"a": 1}, merge=False)
    sql, _ = fake_conn.executed[-1]
    assert "DO UPDATE SET data = EXCLUDED.data" in sql


def test_postgres_insufficient_privilege_maps_to_permission_denied(fake_conn):
    fake_conn.raise_on_execute = psycopg2.errors.InsufficientPrivilege("permission denied for table")
    store = PostgresDocumentStore("postgresql://example")
    with pytest.raises(PermissionDeniedError) as e:
        store.set("c", "d", {}, merge=True)
    assert "PERMISSION_DENIED" in str(e.value)
    assert fake_conn.rollbacks == 1


def test_postgres_other_errors_are_store_errors(fake_conn):
    fake_conn.raise_on_execute = psycopg2.OperationalError("server closed the connection")
    store = PostgresDocumentStore("postgresql://example")
    with pytest.raises(StoreError) as e:
        store.get("c", "d")
    assert not isinstance(e.value, PermissionDeniedError)
    assert "server closed" in str(e.value)


def test_postgres_connect_failure(monkeypatch):
    def refuse(dsn):
        raise psycopg2.OperationalError("could not connect")

    monkeypatch.setattr(store_module.psycopg2, "connect", refuse)
    with pytest.raises(StoreError):
        PostgresDocumentStore("postgresql://example").ensure_schema()


def test_postgres_concurrent_writes_use_separate_transactions(monkeypatch):
    workers = 4
    barrier = threading.Barrier(workers, timeout=5)
    opened: list[FakeConnection] = []
    opened_lock = threading.Lock()

    def connect(dsn):
        conn = FakeConnection(barrier)
        conn.fetch_result = ("2024-01-01T00:00:00Z",)
        with opened_lock:
            opened.append(conn)
        return conn

    monkeypatch.setattr(store_module.psycopg2, "connect", connect)
    store = PostgresDocumentStore("postgresql://example")
    failures: list[BaseException] = []

    def write(i: int) -> None:
        try:
            store.set("c", f"d{i}", {"n": i}, merge=True)
        except BaseException as e:  # collected and asserted below
            failures.append(e)

    threads = [threading.Thread(target=write, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert failures == []
    # all four writes were inside a transaction at the same time, each on its own connection
    assert len(opened) == workers
    assert all(conn.max_open_transactions == 1 for conn in opened)
    assert sum(conn.commits for conn in opened) == workers
    store.close()
    assert sum(conn.closed for conn in opened) == workers


def test_postgres_reuses_pooled_connection(fake_conn, monkeypatch):
    calls = []
    monkeypatch.setattr(store_module.psycopg2, "connect", lambda dsn: calls.append(dsn) or fake_conn)
    store = PostgresDocumentStore("postgresql://example")
    store.get("c", "a")
    store.get("c", "b")
    assert calls == ["postgresql://example"]
    assert fake_conn.commits == 2
