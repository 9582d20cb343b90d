"""SQL repositories and the document store over an in-memory database."""

import pytest

from newsletter_templates.domain.templates.models import DocumentKind
from newsletter_templates.infrastructure.database.repositories import (
    SqlDocumentStore,
    SqlSnippetRepository,
    SqlTemplateRepository,
)
from newsletter_templates.infrastructure.storage import FileSystemBlobStore, template_storage_key

from tests.conftest import OTHER_TENANT_ID, TEST_TENANT_ID


async def _create_template(repository, name, tenant_id=TEST_TENANT_ID, **overrides):
    values = {
        "tenant_id": tenant_id,
        "name": name,
        "description": None,
        "category": None,
        "tags": [],
        "snippets": [],
        "is_visual_mode": False,
        "storage_key": f"templates/{tenant_id}/{name}.hbs",
        "created_by": "user-1",
    }
    values.update(overrides)
    return await repository.create(**values)


class TestTemplateRepository:
    async def test_create_and_get(self, db_session):
        repository = SqlTemplateRepository(db_session)

        created = await _create_template(
            repository, "Digest", tags=["weekly"], snippets=["header"], category="news", template_id="tpl-1"
        )
        fetched = await repository.get_by_id(TEST_TENANT_ID, "tpl-1")

        assert created.id == "tpl-1"
        assert fetched.tags == ["weekly"]
        assert fetched.snippets == ["header"]
        assert fetched.version == 1
        assert fetched.is_active is True
        assert fetched.created_at is not None

    async def test_get_is_tenant_scoped(self, db_session):
        repository = SqlTemplateRepository(db_session)
        template = await _create_template(repository, "Digest")

        assert await repository.get_by_id(OTHER_TENANT_ID, template.id) is None

    async def test_list_filters(self, db_session):
        repository = SqlTemplateRepository(db_session)
        await _create_template(repository, "Weekly Digest", category="news")
        await _create_template(repository, "Promo", category="sales", description="Spring digest offer")
        await _create_template(repository, "Other tenant", tenant_id=OTHER_TENANT_ID)

        everything = await repository.list_by_tenant(TEST_TENANT_ID)
        news = await repository.list_by_tenant(TEST_TENANT_ID, category="news")
        searched = await repository.list_by_tenant(TEST_TENANT_ID, search="digest")
        limited = await repository.list_by_tenant(TEST_TENANT_ID, limit=1)

        assert {template.name for template in everything} == {"Weekly Digest", "Promo"}
        assert [template.name for template in news] == ["Weekly Digest"]
        assert {template.name for template in searched} == {"Weekly Digest", "Promo"}
        assert len(limited) == 1

    async def test_update_bumps_version(self, db_session):
        repository = SqlTemplateRepository(db_session)
        template = await _create_template(repository, "Digest")

        updated = await repository.update(TEST_TENANT_ID, template.id, name="Renamed", tags=["a", "b"], category=None)

        assert updated.name == "Renamed"
        assert updated.tags == ["a", "b"]
        assert updated.version == 2

    async def test_soft_delete(self, db_session):
        repository = SqlTemplateRepository(db_session)
        template = await _create_template(repository, "Digest")

        await repository.delete(TEST_TENANT_ID, template.id)

        assert await repository.get_by_id(TEST_TENANT_ID, template.id) is None
        assert await repository.get_by_name(TEST_TENANT_ID, "Digest") is None
        assert await repository.list_by_tenant(TEST_TENANT_ID) == []


class TestSnippetRepository:
    async def test_parameters_round_trip(self, db_session):
        repository = SqlSnippetRepository(db_session)

        snippet = await repository.create(
            tenant_id=TEST_TENANT_ID,
            name="card",
            description="A card",
            parameters=[{"name": "title", "type": "string", "required": True, "description": "Heading"}],
            storage_key="snippets/tenant-1/card.hbs",
            created_by=None,
        )
        fetched = await repository.get_by_name(TEST_TENANT_ID, "card")

        assert fetched.id == snippet.id
        assert fetched.parameters[0].name == "title"
        assert fetched.parameters[0].required is True


class TestSqlDocumentStore:
    async def test_counts_only_active_documents(self, db_session):
        repository = SqlTemplateRepository(db_session)
        store = SqlDocumentStore(db_session)
        kept = await _create_template(repository, "Kept")
        removed = await _create_template(repository, "Removed")
        await _create_template(repository, "Elsewhere", tenant_id=OTHER_TENANT_ID)

        await repository.delete(TEST_TENANT_ID, removed.id)

        assert await store.count_documents(TEST_TENANT_ID, DocumentKind.TEMPLATE) == 1
        assert await store.count_documents(TEST_TENANT_ID, DocumentKind.SNIPPET) == 0
        document = await store.get_document(TEST_TENANT_ID, DocumentKind.TEMPLATE, kept.id)
        assert document["storage_key"] == kept.storage_key

    async def test_query_by_name(self, db_session):
        repository = SqlSnippetRepository(db_session)
        store = SqlDocumentStore(db_session)
        await repository.create(
            tenant_id=TEST_TENANT_ID,
            name="header",
            description=None,
            parameters=[],
            storage_key="snippets/tenant-1/header.hbs",
            created_by=None,
        )

        found = await store.query_document_by_name(TEST_TENANT_ID, DocumentKind.SNIPPET, "header")
        missing = await store.query_document_by_name(OTHER_TENANT_ID, DocumentKind.SNIPPET, "header")

        assert found["storage_key"] == "snippets/tenant-1/header.hbs"
        assert found["parameters"] == []
        assert missing is None


class TestFileSystemBlobStore:
    async def test_put_get_delete(self, tmp_path):
        store = FileSystemBlobStore(tmp_path)
        key = template_storage_key(TEST_TENANT_ID, "tpl-1")

        await store.put_blob(key, "<p>héllo</p>")

        assert (tmp_path / "templates" / TEST_TENANT_ID / "tpl-1.hbs").exists()
        assert await store.get_blob(key) == "<p>héllo</p>"

        await store.delete_blob(key)
        await store.delete_blob(key)
        with pytest.raises(FileNotFoundError):
            await store.get_blob(key)

    @pytest.mark.parametrize("key", ["../outside.hbs", "/etc/passwd", "templates/../../x", ""])
    async def test_rejects_escaping_keys(self, tmp_path, key):
        store = FileSystemBlobStore(tmp_path / "root")

        with pytest.raises(ValueError):
            await store.put_blob(key, "x")
