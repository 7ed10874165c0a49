from __future__ import annotations

"""Exception hierarchy shared by the pipeline, the client and the endpoint.

Configuration and authorization errors abort an operation before any write.
WriteError is the per-row channel: the batch processor collects it into the
run summary and moves on to the next row.
"""

__all__ = [
    "SheetPushError",
    "ConfigurationError",
    "ConfigError",
    "IdColumnNotFoundError",
    "AuthorizationError",
    "GridError",
    "WriteError",
    "StoreError",
    "PermissionDeniedError",
]


class SheetPushError(Exception):
    """Base exception for sheetpush."""


class ConfigurationError(SheetPushError):
    """Settings prevent the operation from starting (batch aborts before writes)."""


class ConfigError(ConfigurationError):
    """Settings file missing keys, malformed, or failing schema validation."""


class IdColumnNotFoundError(ConfigurationError):
    def __init__(self, id_field_name: str, header_row: int = 1) -> None:
        self.id_field_name = id_field_name
        self.header_row = header_row
        super().__init__(f'Header "{id_field_name}" not found in row {header_row}.')


class AuthorizationError(SheetPushError):
    """No usable shared secret for this operation."""


class GridError(SheetPushError):
    """The workbook or sheet could not be read, or has no data below the header."""


class WriteError(SheetPushError):
    """The write endpoint answered with a status >= 300."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Write endpoint error {status_code}: {body}")


class StoreError(SheetPushError):
    """Persistence failure inside the document store."""


class PermissionDeniedError(StoreError):
    """The store refused the write for lack of privileges."""
