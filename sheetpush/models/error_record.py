from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the per-run JSON Lines error log.

One record per row that failed during a push. row=-1 marks failures that are
not tied to a single row (e.g. the sheet could not be read).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: workbook / CSV file name being pushed
        sheet: sheet name within the workbook ("" for CSV)
        row: absolute sheet row number (1-based), -1 when unknown
        error_type: classification in UPPER_SNAKE_CASE
        message: error text as reported by the endpoint or transport
    """
    timestamp: str
    source: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(source: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            source=source,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # dataclass -> dict で固定スキーマを保証 (追加キー禁止)
        return json.dumps(asdict(self), ensure_ascii=False)
