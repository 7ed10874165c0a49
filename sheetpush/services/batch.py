from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from ..errors import IdColumnNotFoundError, WriteError
from ..grid.reader import HEADER_ROW, Grid
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..mapping.row_mapper import Document, build_document, find_id_column_index
from ..models.config_models import EffectiveConfig
from ..models.run_summary import RunSummary
from .progress import RowProgress

"""Batch processor: a contiguous block of rows -> one write per row.

Rows are handled strictly in ascending order, one blocking write at a time.
A failing row is counted, logged and tagged with its sheet row number; it
never stops the rows after it. Blank identifiers are skipped without a write
and without counting as errors.
"""

__all__ = [
    "WriteFn",
    "locate_id_column",
    "process_rows",
    "process_grid_rows",
]

logger = logging.getLogger(__name__)

WriteFn = Callable[[Document, str], Any]


def locate_id_column(headers: Sequence[Any], config: EffectiveConfig, header_row: int = HEADER_ROW) -> int:
    """1-based identifier column index.

    Raises:
        IdColumnNotFoundError: the configured identifier header is missing;
            the whole operation must abort before any write
    """
    index = find_id_column_index(headers, config.id_field_name)
    if not index:
        raise IdColumnNotFoundError(config.id_field_name, header_row)
    return index


def _error_type(exc: Exception) -> str:
    if isinstance(exc, WriteError):
        return f"HTTP_{exc.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return "TRANSPORT_ERROR"
    return "ROW_ERROR"


def process_rows(
    headers: Sequence[Any],
    id_column_index: int,
    start_row: int,
    rows: Sequence[Sequence[Any]],
    write_fn: WriteFn,
    config: EffectiveConfig,
    *,
    error_log: ErrorLogBuffer | None = None,
    source: str = "",
    sheet: str = "",
) -> RunSummary:
    """Push already-fetched full-width rows; rows[0] is sheet row start_row.

    Returns a fresh RunSummary; attempted_rows always equals len(rows).
    """
    summary = RunSummary(attempted_rows=len(rows))

    with RowProgress(len(rows)) as progress:
        for offset, row_values in enumerate(rows):
            row_number = start_row + offset
            try:
                document, identifier = build_document(headers, row_values, id_column_index, config)
                if not identifier:
                    summary.record_no_id()
                    logger.debug(f"row {row_number}: blank {config.id_field_name}, skipped")
                    continue
                write_fn(document, identifier)
                summary.record_sent()
                logger.debug(f"row {row_number}: sent {identifier}")
            except Exception as e:
                message = str(e) or e.__class__.__name__
                summary.record_error(row_number, message)
                logger.warning(f"row {row_number}: {message}")
                if error_log is not None:
                    error_log.append(
                        ErrorRecord.create(
                            source=source,
                            sheet=sheet,
                            row=row_number,
                            error_type=_error_type(e),
                            message=message,
                        )
                    )
            finally:
                progress.advance(sent=summary.sent, errors=summary.skipped_errors)

    return summary


def process_grid_rows(
    grid: Grid,
    config: EffectiveConfig,
    start_row: int,
    row_count: int,
    write_fn: WriteFn,
    *,
    error_log: ErrorLogBuffer | None = None,
    header_row: int = HEADER_ROW,
) -> RunSummary:
    """Locate the identifier column, fetch full-width rows, push them.

    The full sheet width is read regardless of which columns a caller had
    selected, so the identifier and every field to its right are available.
    """
    headers = grid.header(header_row)
    id_column_index = locate_id_column(headers, config, header_row)
    rows = grid.read_rows(start_row, row_count)
    return process_rows(
        headers,
        id_column_index,
        start_row,
        rows,
        write_fn,
        config,
        error_log=error_log,
        source=grid.source,
        sheet=grid.sheet,
    )
