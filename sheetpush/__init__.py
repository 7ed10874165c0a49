"""Push spreadsheet rows into a document store through a secret-gated write endpoint."""

__version__ = "0.3.0"
