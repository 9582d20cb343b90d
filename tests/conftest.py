"""Shared fixtures: in-memory stores, an in-memory database and an HTTP client."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from newsletter_templates.db import models  # noqa: F401
from newsletter_templates.domain.templates.models import DocumentKind
from newsletter_templates.infrastructure.database.base import Base
from newsletter_templates.infrastructure.storage import FileSystemBlobStore

TEST_TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"


class FakeDocumentStore:
    """Dictionary-backed document store keyed by tenant and kind."""

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.failing_names: set[str] = set()
        self.lookups: list[str] = []

    def add(self, tenant_id: str, kind: DocumentKind, **document: Any) -> dict[str, Any]:
        document.setdefault("id", f"{kind.value}-{len(self.documents.get((tenant_id, kind.value), [])) + 1}")
        document.setdefault("storage_key", f"{kind.value}s/{tenant_id}/{document['id']}.hbs")
        self.documents.setdefault((tenant_id, kind.value), []).append(document)
        return document

    async def get_document(self, tenant_id: str, kind: DocumentKind, document_id: str) -> Optional[dict[str, Any]]:
        for document in self.documents.get((tenant_id, DocumentKind(kind).value), []):
            if document["id"] == document_id:
                return document
        return None

    async def count_documents(self, tenant_id: str, kind: DocumentKind) -> int:
        return len(self.documents.get((tenant_id, DocumentKind(kind).value), []))

    async def query_document_by_name(
        self, tenant_id: str, kind: DocumentKind, name: str
    ) -> Optional[dict[str, Any]]:
        self.lookups.append(name)
        if name in self.failing_names:
            raise ConnectionError(f"store unavailable for {name}")
        for document in self.documents.get((tenant_id, DocumentKind(kind).value), []):
            if document["name"] == name:
                return document
        return None


class FakeBlobStore:
    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}
        self.failing_keys: set[str] = set()

    async def get_blob(self, key: str) -> str:
        if key in self.failing_keys:
            raise OSError(f"blob fetch failed for {key}")
        try:
            return self.blobs[key]
        except KeyError:
            raise FileNotFoundError(key) from None

    async def put_blob(self, key: str, content: str) -> None:
        self.blobs[key] = content

    async def delete_blob(self, key: str) -> None:
        self.blobs.pop(key, None)


@pytest.fixture
def document_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def add_snippet(document_store: FakeDocumentStore, blob_store: FakeBlobStore):
    """Register a snippet body for ``TEST_TENANT_ID`` in the fake stores."""

    def _add(name: str, content: str, tenant_id: str = TEST_TENANT_ID) -> dict[str, Any]:
        document = document_store.add(tenant_id, DocumentKind.SNIPPET, name=name)
        blob_store.blobs[document["storage_key"]] = content
        return document

    return _add


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def file_blob_store(tmp_path) -> FileSystemBlobStore:
    return FileSystemBlobStore(tmp_path / "blobs")


@pytest.fixture
async def client(session_factory, file_blob_store) -> AsyncGenerator[AsyncClient, None]:
    from newsletter_templates.interfaces.http.deps import get_blob_store, get_db_session
    from newsletter_templates.main import create_app

    app = create_app()

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_blob_store] = lambda: file_blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


def tenant_headers(tenant_id: str = TEST_TENANT_ID, tier: Optional[str] = None) -> dict[str, str]:
    headers = {"X-Tenant-Id": tenant_id, "X-User-Id": "user-1"}
    if tier:
        headers["X-User-Tier"] = tier
    return headers
