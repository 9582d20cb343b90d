"""SQLAlchemy-backed repository implementations."""

from .document_store import SqlDocumentStore
from .snippet_repository import SqlSnippetRepository
from .template_repository import SqlTemplateRepository

__all__ = [
    "SqlDocumentStore",
    "SqlSnippetRepository",
    "SqlTemplateRepository",
]
