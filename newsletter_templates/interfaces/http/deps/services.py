"""Service providers for the template, snippet and quota routes."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_templates.domain.quotas import QuotaManager
from newsletter_templates.domain.templates.repository import BlobStore
from newsletter_templates.domain.templates.service import SnippetService, TemplateService
from newsletter_templates.domain.templates.transfer import TemplateTransferService
from newsletter_templates.infrastructure.database.repositories import SqlDocumentStore
from newsletter_templates.infrastructure.storage import FileSystemBlobStore

from .database import get_db_session


def get_blob_store() -> BlobStore:
    return FileSystemBlobStore.from_settings()


def get_template_service(
    db: AsyncSession = Depends(get_db_session),
    blob_store: BlobStore = Depends(get_blob_store),
) -> TemplateService:
    return TemplateService.with_session(db, blob_store)


def get_snippet_service(
    db: AsyncSession = Depends(get_db_session),
    blob_store: BlobStore = Depends(get_blob_store),
) -> SnippetService:
    return SnippetService.with_session(db, blob_store)


def get_transfer_service(
    db: AsyncSession = Depends(get_db_session),
    blob_store: BlobStore = Depends(get_blob_store),
) -> TemplateTransferService:
    return TemplateTransferService.with_session(db, blob_store)


def get_quota_manager(db: AsyncSession = Depends(get_db_session)) -> QuotaManager:
    return QuotaManager(SqlDocumentStore(db))


__all__ = [
    "get_blob_store",
    "get_quota_manager",
    "get_snippet_service",
    "get_template_service",
    "get_transfer_service",
]
