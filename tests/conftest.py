# Shared pytest fixtures
from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from sheetpush.models.config_models import EffectiveConfig
from sheetpush.server.app import create_app
from sheetpush.server.store import InMemoryDocumentStore

APP_SECRET = "s3cret"
ENDPOINT = "http://testserver/"


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHEETPUSH_APP_SECRET", raising=False)
    return tmp_path


@pytest.fixture()
def config() -> EffectiveConfig:
    return EffectiveConfig(endpoint=ENDPOINT, collection="products")


@pytest.fixture()
def product_headers() -> list[str]:
    return ["docId", "name", "qty", "active"]


@pytest.fixture()
def product_rows() -> list[list[Any]]:
    return [
        ["p-001", "Pencils", 12, True],
        ["p-002", "Notebooks", 5, True],
        ["p-003", "Markers", 0, False],
    ]


class RecordingWriter:
    """write_fn double: records calls, raises for identifiers listed in fail_ids."""

    def __init__(self, fail_ids: set[str] | None = None) -> None:
        self.calls: list[tuple[dict[str, Any], str]] = []
        self.fail_ids = fail_ids or set()

    def __call__(self, document: dict[str, Any], identifier: str) -> None:
        self.calls.append((document, identifier))
        if identifier in self.fail_ids:
            raise RuntimeError(f"rejected {identifier}")

    @property
    def identifiers(self) -> list[str]:
        return [ident for _, ident in self.calls]


@pytest.fixture()
def recorder() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def app(store: InMemoryDocumentStore):
    return create_app(store, APP_SECRET)


@pytest.fixture()
def api(app) -> TestClient:
    return TestClient(app)


def _make_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def make_workbook():
    """Factory: make_workbook(path, {sheet: rows}) writes a real .xlsx file."""
    return _make_workbook


@pytest.fixture()
def writer_factory():
    """Factory for RecordingWriter instances with a set of failing identifiers."""
    return RecordingWriter


@pytest.fixture()
def app_secret() -> str:
    return APP_SECRET
