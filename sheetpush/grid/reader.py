from __future__ import annotations

import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd

from ..errors import GridError
from ..mapping.coerce import is_missing

"""Grid access over workbooks (.xlsx) and CSV exports, via pandas.

Row 1 is the header row, data starts at row 2. Row and column numbers are
1-based sheet coordinates throughout, so error messages and the run summary
point at the row a user sees in the spreadsheet.

Cells are read raw (dtype=object, no NA-string conversion): "NA" or "N/A" in a
cell stays a string, and only truly empty cells read as missing. Typing is the
job of sheetpush.mapping.coerce, not of the reader.
"""

__all__ = [
    "HEADER_ROW",
    "Grid",
    "read_grid",
    "write_grid",
]

HEADER_ROW = 1
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


class Grid:
    """In-memory rectangular block of cells for one sheet."""

    def __init__(self, values: Sequence[Sequence[Any]], *, source: str = "", sheet: str = "") -> None:
        self.source = source
        self.sheet = sheet
        self._rows: list[list[Any]] = [list(r) for r in values]
        self._trim_trailing_rows()

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, source: str = "", sheet: str = "") -> Grid:
        return cls(df.astype(object).values.tolist(), source=source, sheet=sheet)

    def _trim_trailing_rows(self) -> None:
        while self._rows and all(is_missing(v) for v in self._rows[-1]):
            self._rows.pop()

    @property
    def last_row(self) -> int:
        """Last row holding any content (0 for an empty sheet)."""
        return len(self._rows)

    @property
    def last_column(self) -> int:
        width = 0
        for row in self._rows:
            for idx in range(len(row), 0, -1):
                if not is_missing(row[idx - 1]):
                    width = max(width, idx)
                    break
        return width

    def header(self, header_row: int = HEADER_ROW) -> list[Any]:
        if self.last_row < header_row:
            return []
        return self.read_rows(header_row, 1)[0]

    def read_rows(self, start_row: int, row_count: int) -> list[list[Any]]:
        """Full-width block of row_count rows starting at start_row.

        Every returned row is exactly last_column wide; rows past the end of
        the sheet read as empty cells.
        """
        if start_row < 1:
            raise GridError(f"start row must be >= 1, got {start_row}")
        if row_count < 0:
            raise GridError(f"row count must be >= 0, got {row_count}")
        width = self.last_column
        block: list[list[Any]] = []
        for r in range(start_row, start_row + row_count):
            src = self._rows[r - 1] if r <= len(self._rows) else []
            row = list(src[:width])
            row.extend([None] * (width - len(row)))
            block.append(row)
        return block

    def get_value(self, row: int, column: int) -> Any:
        if row > len(self._rows) or column > len(self._rows[row - 1]):
            return None
        return self._rows[row - 1][column - 1]

    def set_value(self, row: int, column: int, value: Any) -> None:
        if row < 1 or column < 1:
            raise GridError(f"invalid cell ({row}, {column})")
        while len(self._rows) < row:
            self._rows.append([])
        target = self._rows[row - 1]
        if len(target) < column:
            target.extend([None] * (column - len(target)))
        target[column - 1] = value

    def to_dataframe(self) -> pd.DataFrame:
        width = self.last_column
        return pd.DataFrame(self.read_rows(1, self.last_row) if width else [], dtype=object)


def read_grid(path: Path, sheet: str | None = None) -> Grid:
    """Read one sheet (first sheet by default) of a workbook, or a CSV file.

    Raises:
        GridError: file missing, unsupported suffix, or sheet not in workbook
    """
    path = Path(path)
    if not path.exists():
        raise GridError(f"file not found: {path}")
    suffix = path.suffix.lower()
    try:
        if suffix in EXCEL_SUFFIXES:
            xls = pd.ExcelFile(path)
            names = [str(n) for n in xls.sheet_names]
            sheet_name = sheet if sheet is not None else names[0]
            if sheet_name not in names:
                raise GridError(f"sheet '{sheet_name}' not found in {path.name} (sheets: {names})")
            # ヘッダなしで生読み: 1 行目をヘッダとして後段で扱う
            df = xls.parse(sheet_name, header=None, dtype=object, keep_default_na=False, na_values=[])
            return Grid.from_dataframe(df, source=path.name, sheet=sheet_name)
        if suffix == ".csv":
            df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
            return Grid.from_dataframe(df, source=path.name, sheet=sheet or "")
    except GridError:
        raise
    except pd.errors.EmptyDataError:
        return Grid([], source=path.name, sheet=sheet or "")
    except (ValueError, OSError, zipfile.BadZipFile) as e:
        raise GridError(f"failed reading {path.name}: {e}") from e
    raise GridError(f"unsupported grid file type: {path.suffix}")


def write_grid(grid: Grid, path: Path) -> None:
    """Write the grid back to its sheet, leaving other workbook sheets untouched."""
    path = Path(path)
    df = grid.to_dataframe()
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df.to_csv(path, header=False, index=False)
        return
    if suffix not in EXCEL_SUFFIXES:
        raise GridError(f"unsupported grid file type: {path.suffix}")
    sheet_name = grid.sheet or "Sheet1"
    if path.exists():
        with pd.ExcelWriter(path, engine="openpyxl", mode="a", if_sheet_exists="replace") as writer:
            df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    else:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
