from .write_client import DiagnosticResult, WriteClient, run_diagnostics

__all__ = ["DiagnosticResult", "WriteClient", "run_diagnostics"]
