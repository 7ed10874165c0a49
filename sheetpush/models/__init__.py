"""Domain models for the sheet -> document store pipeline.

Configuration snapshots, the run summary, the error log record and the wire
protocol types used between the write client and the write endpoint.
"""

from .config_models import ConfigSnapshot, DEFAULTS, EffectiveConfig
from .error_record import ErrorRecord
from .run_summary import RunSummary
from .wire import DryRunResult, ErrorResponse, WriteRequest, WriteResult

__all__ = [
    # Configuration models
    "ConfigSnapshot",
    "DEFAULTS",
    "EffectiveConfig",
    # Processing models
    "ErrorRecord",
    "RunSummary",
    # Wire models
    "DryRunResult",
    "ErrorResponse",
    "WriteRequest",
    "WriteResult",
]
