"""Repository and storage protocols for template persistence."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from .models import DocumentKind, Snippet, Template


class DocumentStore(Protocol):
    """Tenant-scoped key-value view over template and snippet documents."""

    async def get_document(self, tenant_id: str, kind: DocumentKind, document_id: str) -> Optional[dict[str, Any]]:
        ...

    async def count_documents(self, tenant_id: str, kind: DocumentKind) -> int:
        ...

    async def query_document_by_name(
        self, tenant_id: str, kind: DocumentKind, name: str
    ) -> Optional[dict[str, Any]]:
        ...


class BlobStore(Protocol):
    async def get_blob(self, key: str) -> str:
        ...

    async def put_blob(self, key: str, content: str) -> None:
        ...

    async def delete_blob(self, key: str) -> None:
        ...


class TemplateRepository(Protocol):
    async def create(
        self,
        *,
        tenant_id: str,
        name: str,
        description: str | None,
        category: str | None,
        tags: Sequence[str],
        snippets: Sequence[str],
        is_visual_mode: bool,
        storage_key: str,
        created_by: str | None,
        template_id: str | None = None,
    ) -> Template:
        ...

    async def list_by_tenant(
        self,
        tenant_id: str,
        *,
        category: str | None = None,
        search: str | None = None,
        limit: int | None = 50,
    ) -> list[Template]:
        ...

    async def get_by_id(self, tenant_id: str, template_id: str) -> Template | None:
        ...

    async def get_by_name(self, tenant_id: str, name: str) -> Template | None:
        ...

    async def update(self, tenant_id: str, template_id: str, **values: Any) -> Template | None:
        ...

    async def id_exists(self, template_id: str) -> bool:
        ...

    async def delete(self, tenant_id: str, template_id: str) -> None:
        ...


class SnippetRepository(Protocol):
    async def create(
        self,
        *,
        tenant_id: str,
        name: str,
        description: str | None,
        parameters: Sequence[dict[str, Any]],
        storage_key: str,
        created_by: str | None,
        snippet_id: str | None = None,
    ) -> Snippet:
        ...

    async def list_by_tenant(self, tenant_id: str, *, search: str | None = None, limit: int | None = 50) -> list[Snippet]:
        ...

    async def get_by_id(self, tenant_id: str, snippet_id: str) -> Snippet | None:
        ...

    async def get_by_name(self, tenant_id: str, name: str) -> Snippet | None:
        ...

    async def update(self, tenant_id: str, snippet_id: str, **values: Any) -> Snippet | None:
        ...

    async def id_exists(self, snippet_id: str) -> bool:
        ...

    async def delete(self, tenant_id: str, snippet_id: str) -> None:
        ...
