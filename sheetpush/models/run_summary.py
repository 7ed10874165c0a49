from __future__ import annotations

from dataclasses import dataclass, field

"""RunSummary model: aggregate result of one batch push.

Created fresh by the batch processor for every invocation and handed back to
the caller. Never persisted.
"""

__all__ = [
    "RunSummary",
]


@dataclass
class RunSummary:
    attempted_rows: int = 0
    sent: int = 0
    skipped_no_id: int = 0
    skipped_errors: int = 0
    errors: list[str] = field(default_factory=list)  # "Row <n>: <message>", row order

    def record_sent(self) -> None:
        self.sent += 1

    def record_no_id(self) -> None:
        self.skipped_no_id += 1

    def record_error(self, row_number: int, message: str) -> None:
        self.skipped_errors += 1
        self.errors.append(f"Row {row_number}: {message}")

    @property
    def has_errors(self) -> bool:
        return self.skipped_errors > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "attemptedRows": self.attempted_rows,
            "sent": self.sent,
            "skippedNoId": self.skipped_no_id,
            "skippedErrors": self.skipped_errors,
            "errors": list(self.errors),
        }
