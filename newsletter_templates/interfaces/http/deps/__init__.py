"""Reusable FastAPI dependencies."""

from .database import get_db_session
from .services import (
    get_blob_store,
    get_quota_manager,
    get_snippet_service,
    get_template_service,
    get_transfer_service,
)
from .tenant import TenantContext, get_tenant_context

__all__ = [
    "TenantContext",
    "get_blob_store",
    "get_db_session",
    "get_quota_manager",
    "get_snippet_service",
    "get_template_service",
    "get_tenant_context",
    "get_transfer_service",
]
