from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import GridError
from ..grid.reader import HEADER_ROW, Grid
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import EffectiveConfig
from ..models.run_summary import RunSummary
from .batch import WriteFn, locate_id_column, process_rows

"""Push commands: every row below the header, or an explicit block of rows.

Planning and execution are split so that a caller can validate the sheet
(identifier header present, rows available) before asking anyone for the
secret, and abort without a prompt when the sheet is unusable.
"""

__all__ = [
    "PushPlan",
    "plan_push_all",
    "plan_push_rows",
    "execute_push",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushPlan:
    grid: Grid
    config: EffectiveConfig
    headers: list[Any]
    id_column_index: int
    start_row: int
    row_count: int


def plan_push_all(grid: Grid, config: EffectiveConfig, header_row: int = HEADER_ROW) -> PushPlan:
    """All rows below the header.

    Raises:
        GridError: nothing below the header
        IdColumnNotFoundError: identifier header missing
    """
    last_row = grid.last_row
    if last_row <= header_row:
        raise GridError("No data below the header.")
    headers = grid.header(header_row)
    index = locate_id_column(headers, config, header_row)
    return PushPlan(
        grid=grid,
        config=config,
        headers=headers,
        id_column_index=index,
        start_row=header_row + 1,
        row_count=last_row - header_row,
    )


def plan_push_rows(
    grid: Grid,
    config: EffectiveConfig,
    start_row: int,
    row_count: int,
    header_row: int = HEADER_ROW,
) -> PushPlan:
    """An explicit block of sheet rows (a selection)."""
    if start_row <= header_row:
        raise GridError(f"start row must be below the header row ({header_row}), got {start_row}")
    if row_count < 1:
        raise GridError(f"row count must be >= 1, got {row_count}")
    headers = grid.header(header_row)
    index = locate_id_column(headers, config, header_row)
    return PushPlan(
        grid=grid,
        config=config,
        headers=headers,
        id_column_index=index,
        start_row=start_row,
        row_count=row_count,
    )


def execute_push(plan: PushPlan, write_fn: WriteFn, error_log: ErrorLogBuffer | None = None) -> RunSummary:
    rows = plan.grid.read_rows(plan.start_row, plan.row_count)
    logger.info(
        f"pushing rows {plan.start_row}..{plan.start_row + plan.row_count - 1} "
        f"of {plan.grid.source or '<grid>'} to {plan.config.collection}"
    )
    return process_rows(
        plan.headers,
        plan.id_column_index,
        plan.start_row,
        rows,
        write_fn,
        plan.config,
        error_log=error_log,
        source=plan.grid.source,
        sheet=plan.grid.sheet,
    )
