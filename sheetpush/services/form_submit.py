from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any

import pandas as pd

from ..errors import GridError
from ..grid.reader import HEADER_ROW, Grid
from ..mapping.coerce import coerce, is_missing
from ..mapping.row_mapper import Document, find_id_column_index
from ..models.config_models import EffectiveConfig
from ..models.run_summary import RunSummary
from .batch import WriteFn, locate_id_column, process_rows

"""Form submission triggers.

Two flavours, both operating on the row a form response was appended to:

- stamp_and_push_row: writes a yyyymmdd identifier into the identifier column
  (creating the header if needed) and pushes exactly that row through the
  normal batch pipeline.
- push_submission_auto_id: pushes every named column except the identifier
  and the Forms "Timestamp" column, letting the endpoint assign the id.
"""

__all__ = [
    "TIMESTAMP_HEADERS",
    "submission_time",
    "stamp_and_push_row",
    "push_submission_auto_id",
]

logger = logging.getLogger(__name__)

TIMESTAMP_HEADERS = ("Timestamp", "Submitted at", "Submission Time")
FORMS_TIMESTAMP_HEADER = "Timestamp"


def _header_names(grid: Grid, header_row: int) -> list[str]:
    return ["" if is_missing(h) else str(h).strip() for h in grid.header(header_row)]


def submission_time(
    grid: Grid,
    row: int,
    header_row: int = HEADER_ROW,
    now: datetime | None = None,
) -> datetime:
    """Timestamp of a response: first known timestamp column, else now."""
    headers = _header_names(grid, header_row)
    for name in TIMESTAMP_HEADERS:
        if name in headers:
            raw = grid.get_value(row, headers.index(name) + 1)
            if is_missing(raw):
                break
            try:
                return pd.Timestamp(raw).to_pydatetime()
            except (TypeError, ValueError) as e:
                raise GridError(f"row {row}: unreadable {name} value {raw!r}") from e
    return now if now is not None else datetime.now()


def stamp_and_push_row(
    grid: Grid,
    row: int,
    config: EffectiveConfig,
    write_fn: WriteFn,
    *,
    submitted_at: datetime | None = None,
    tz: tzinfo | None = None,
    header_row: int = HEADER_ROW,
) -> RunSummary:
    """Stamp the yyyymmdd identifier for one response row, then push it.

    The grid is modified in place; persisting it is the caller's job.
    """
    if row <= header_row:
        raise GridError(f"form response row must be below the header row, got {row}")

    headers = grid.header(header_row)
    id_col = find_id_column_index(headers, config.id_field_name)
    if not id_col:
        id_col = grid.last_column + 1
        grid.set_value(header_row, id_col, config.id_field_name)
        logger.info(f'added "{config.id_field_name}" header in column {id_col}')

    ts = submitted_at if submitted_at is not None else submission_time(grid, row, header_row)
    if tz is not None:
        ts = ts.astimezone(tz) if ts.tzinfo is not None else ts.replace(tzinfo=tz)
    grid.set_value(row, id_col, int(ts.strftime("%Y%m%d")))

    headers = grid.header(header_row)
    id_column_index = locate_id_column(headers, config, header_row)
    summary = process_rows(
        headers,
        id_column_index,
        row,
        grid.read_rows(row, 1),
        write_fn,
        config,
        source=grid.source,
        sheet=grid.sheet,
    )
    logger.info(
        f"form push: sent {summary.sent}, skippedNoId {summary.skipped_no_id}, "
        f"errors {summary.skipped_errors}"
    )
    return summary


def push_submission_auto_id(
    grid: Grid,
    row: int,
    config: EffectiveConfig,
    write_fn: WriteFn,
    header_row: int = HEADER_ROW,
) -> Document:
    """Push one response row under a fresh endpoint-assigned id.

    Unlike the batch pipeline this takes every named column (left of the
    identifier column too). Write failures propagate to the caller.
    """
    headers = _header_names(grid, header_row)
    values: list[Any] = grid.read_rows(row, 1)[0]
    doc: Document = {}
    for i, key in enumerate(headers):
        if not key or key == config.id_field_name or key == FORMS_TIMESTAMP_HEADER:
            continue
        doc[key] = coerce(values[i] if i < len(values) else None)
    write_fn(doc, "")
    return doc
