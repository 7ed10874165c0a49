from .app import create_app, create_app_from_env, handle_write
from .store import DocumentStore, InMemoryDocumentStore, PostgresDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "create_app",
    "create_app_from_env",
    "handle_write",
]
