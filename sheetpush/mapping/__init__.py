from .coerce import TypedScalar, coerce
from .row_mapper import Document, build_document, find_id_column_index

__all__ = [
    "Document",
    "TypedScalar",
    "build_document",
    "coerce",
    "find_id_column_index",
]
