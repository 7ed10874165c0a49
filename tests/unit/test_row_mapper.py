from __future__ import annotations

import pytest

from sheetpush.mapping.row_mapper import build_document, find_id_column_index
from sheetpush.models.config_models import EffectiveConfig


def test_find_id_column_index_exact_and_case_sensitive():
    headers = ["Name", "docid", " docId ", "docId"]
    assert find_id_column_index(headers, "docId") == 3  # trimmed, first match wins
    assert find_id_column_index(headers, "DOCID") == 0
    assert find_id_column_index([], "docId") == 0


def test_build_document_fields_right_of_identifier(config, product_headers, product_rows):
    doc, ident = build_document(product_headers, product_rows[0], 1, config)
    assert ident == "p-001"
    assert doc == {"name": "Pencils", "qty": 12, "active": True}


def test_build_document_ignores_columns_left_of_identifier(config):
    headers = ["left", "other", "docId", "name"]
    row = ["L", "O", "id-9", "Nine"]
    doc, ident = build_document(headers, row, 3, config)
    assert ident == "id-9"
    assert set(doc) == {"name"}


def test_build_document_never_includes_left_columns_for_any_index(config):
    headers = ["a", "b", "c", "d", "e"]
    row = ["1", "2", "3", "4", "5"]
    for idx in range(1, len(headers) + 1):
        doc, _ = build_document(headers, row, idx, config)
        assert set(doc) <= set(headers[idx:])


def test_build_document_skips_blank_headers_and_trailing_cells(config):
    headers = ["docId", "", "qty", None]
    row = ["x", "ignored", "3", "ignored too", "beyond header"]
    doc, ident = build_document(headers, row, 1, config)
    assert doc == {"qty": 3}


def test_build_document_removes_repeated_identifier_header(config):
    headers = ["docId", "name", "docId"]
    doc, ident = build_document(headers, ["a", "n", "b"], 1, config)
    assert ident == "a"
    assert doc == {"name": "n"}


def test_build_document_include_id_field(config):
    cfg = EffectiveConfig(endpoint=config.endpoint, collection="c", include_id_field=True)
    doc, ident = build_document(["docId", "name"], [" id-1 ", "x"], 1, cfg)
    assert ident == "id-1"
    assert doc == {"name": "x", "docId": "id-1"}


def test_build_document_include_id_field_blank_identifier(config):
    cfg = EffectiveConfig(endpoint=config.endpoint, collection="c", include_id_field=True)
    doc, ident = build_document(["docId", "name"], ["   ", "x"], 1, cfg)
    assert ident == ""
    assert "docId" not in doc


def test_build_document_identifier_in_last_column(config):
    doc, ident = build_document(["name", "docId"], ["x", "id"], 2, config)
    assert doc == {}
    assert ident == "id"


def test_build_document_numeric_identifier(config):
    _, ident = build_document(["docId", "n"], [20240305.0, 1], 1, config)
    assert ident == "20240305"
    _, ident = build_document(["docId", "n"], [7, 1], 1, config)
    assert ident == "7"


def test_build_document_short_row_reads_missing_as_none(config):
    doc, ident = build_document(["docId", "a", "b"], ["id"], 1, config)
    assert doc == {"a": None, "b": None}


def test_build_document_custom_identifier_field():
    cfg = EffectiveConfig(endpoint="e", collection="c", id_field_name="sku")
    doc, ident = build_document(["sku", "docId"], ["S1", "keep"], 1, cfg)
    assert ident == "S1"
    assert doc == {"docId": "keep"}


def test_build_document_rejects_bad_index(config):
    with pytest.raises(ValueError):
        build_document(["docId"], ["x"], 0, config)
    with pytest.raises(ValueError):
        build_document(["docId"], ["x"], 2, config)


def test_build_document_keeps_header_text_as_field_key(config):
    headers = [" docId", "qty", " qty", "  ", 2024.0]
    doc, ident = build_document(headers, ["id-9", "1", "2", "whitespace header", "y"], 1, config)
    # the identifier column is still found by its trimmed name
    assert find_id_column_index(headers, "docId") == 1
    assert ident == "id-9"
    # the identifier column's own header is kept verbatim, only the exact name is dropped
    assert doc == {" docId": "id-9", "qty": 1, " qty": 2, "  ": "whitespace header", "2024": "y"}
