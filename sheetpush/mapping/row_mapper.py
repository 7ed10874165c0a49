from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..models.config_models import EffectiveConfig
from .coerce import TypedScalar, coerce, is_missing

"""Row mapper: header row + one data row -> (document, identifier).

Only the identifier column and the columns strictly to its right take part.
Everything to the left of the identifier column is ignored, whatever the
caller selected in the sheet.
"""

__all__ = [
    "Document",
    "find_id_column_index",
    "build_document",
]

Document = dict[str, TypedScalar]


def _header_name(header: Any) -> str:
    if is_missing(header):
        return ""
    return str(header).strip()


def _field_key(header: Any) -> str:
    # 見出しはトリムしない: " qty" と "qty" は別フィールド
    if is_missing(header):
        return ""
    if isinstance(header, float) and header.is_integer():
        return str(int(header))
    return str(header)


def _identifier_text(raw: Any) -> str:
    if is_missing(raw):
        return ""
    if isinstance(raw, float) and raw.is_integer():
        # 20240101.0 (numeric cell) -> "20240101"
        return str(int(raw))
    return str(raw).strip()


def find_id_column_index(headers: Sequence[Any], id_field_name: str) -> int:
    """Return the 1-based index of the identifier column, or 0 when absent.

    Case-sensitive exact match on the trimmed header; the first match wins
    when the name is duplicated.
    """
    for i, header in enumerate(headers):
        if _header_name(header) == id_field_name:
            return i + 1
    return 0


def build_document(
    headers: Sequence[Any],
    row_values: Sequence[Any],
    id_column_index: int,
    config: EffectiveConfig,
) -> tuple[Document, str]:
    """Build the document for one row.

    Args:
        headers: header row, 1-based positions define column identity
        row_values: raw cells aligned with headers (may be wider or shorter)
        id_column_index: 1-based identifier column, 1 <= index <= len(headers)
        config: supplies the identifier field name and the inclusion flag

    Returns:
        (document, identifier); identifier is "" when the cell is blank
    """
    if not 1 <= id_column_index <= len(headers):
        raise ValueError(
            f"identifier column index {id_column_index} outside 1..{len(headers)}"
        )

    def cell(index1: int) -> Any:
        return row_values[index1 - 1] if index1 <= len(row_values) else None

    identifier = _identifier_text(cell(id_column_index))

    document: Document = {}
    for col in range(id_column_index, len(headers) + 1):
        header = _field_key(headers[col - 1])
        if not header:
            continue
        document[header] = coerce(cell(col))

    # 右側に同名ヘッダがあっても識別子列名は常に除外 (最後に削除)
    document.pop(config.id_field_name, None)

    if config.include_id_field and identifier:
        document[config.id_field_name] = identifier

    return document, identifier
