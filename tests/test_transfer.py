"""Template export packages and their import."""

import base64
import io
import json
import zipfile

import pytest

from newsletter_templates.core.config import TemplateSettings
from newsletter_templates.domain.quotas import QuotaManager
from newsletter_templates.domain.templates import TemplateNotFoundError, TransferError
from newsletter_templates.domain.templates.service import SnippetService, TemplateService
from newsletter_templates.domain.templates.transfer import TemplateTransferService, read_zip_package
from newsletter_templates.infrastructure.database.repositories import (
    SqlDocumentStore,
    SqlSnippetRepository,
    SqlTemplateRepository,
)

from tests.conftest import OTHER_TENANT_ID, TEST_TENANT_ID

PRO = "pro-tier"
FREE = "free-tier"


@pytest.fixture
def transfer_service(db_session, blob_store) -> TemplateTransferService:
    document_store = SqlDocumentStore(db_session)
    quota_manager = QuotaManager(document_store)
    templates = TemplateService(
        repository=SqlTemplateRepository(db_session),
        document_store=document_store,
        blob_store=blob_store,
        quota_manager=quota_manager,
        limits=TemplateSettings(),
    )
    snippets = SnippetService(
        repository=SqlSnippetRepository(db_session),
        template_repository=SqlTemplateRepository(db_session),
        blob_store=blob_store,
        quota_manager=quota_manager,
        limits=TemplateSettings(),
    )
    return TemplateTransferService(templates=templates, snippets=snippets)


async def _seed(service: TemplateTransferService, tenant_id: str = TEST_TENANT_ID):
    await service.snippets.create_snippet(
        tenant_id,
        tier=PRO,
        name="header",
        content="<h1>{{title}}</h1>",
        parameters=[{"name": "title", "type": "string", "required": True}],
    )
    return await service.templates.create_template(
        tenant_id,
        tier=PRO,
        name="Weekly Digest",
        content="{{> header}}<p>{{body}}</p>",
        category="news",
        tags=["weekly"],
    )


def _package(templates, snippets=()):
    return {"exportedAt": "2026-01-01T00:00:00+00:00", "templates": list(templates), "snippets": list(snippets)}


class TestExport:
    async def test_json_export_bundles_used_snippets(self, transfer_service):
        template = await _seed(transfer_service)

        export = await transfer_service.export_templates(TEST_TENANT_ID, [template.id, "missing"], format="json")

        assert export["format"] == "json"
        assert export["filename"].startswith("templates-export-") and export["filename"].endswith(".json")
        assert (export["templateCount"], export["snippetCount"]) == (1, 1)
        record = export["data"]["templates"][0]
        assert record["content"] == "{{> header}}<p>{{body}}</p>"
        assert record["snippets"] == ["header"]
        assert "storage_key" not in record and "storageKey" not in record
        assert export["data"]["snippets"][0]["name"] == "header"
        assert export["data"]["snippets"][0]["parameters"][0]["required"] is True

    async def test_snippets_can_be_left_out(self, transfer_service):
        template = await _seed(transfer_service)

        export = await transfer_service.export_templates(
            TEST_TENANT_ID, [template.id], include_snippets=False, format="json"
        )

        assert export["data"]["snippets"] == []

    async def test_zip_export_layout(self, transfer_service):
        template = await _seed(transfer_service)

        export = await transfer_service.export_templates(TEST_TENANT_ID, [template.id])

        raw = base64.b64decode(export["data"])
        assert export["size"] == len(raw)
        with zipfile.ZipFile(io.BytesIO(raw)) as archive:
            names = set(archive.namelist())
            metadata = json.loads(archive.read("export-metadata.json"))
            body = archive.read(f"templates/{template.id}.hbs").decode("utf-8")
            described = json.loads(archive.read(f"templates/{template.id}.json"))
        assert metadata["templateCount"] == 1 and metadata["snippetCount"] == 1
        assert metadata["version"] == "1.0"
        assert body == "{{> header}}<p>{{body}}</p>"
        assert "content" not in described
        assert any(name.startswith("snippets/") and name.endswith(".hbs") for name in names)

    async def test_unreadable_content_is_flagged(self, transfer_service, blob_store):
        template = await _seed(transfer_service)
        blob_store.failing_keys.add(template.storage_key)

        export = await transfer_service.export_templates(TEST_TENANT_ID, [template.id], format="json")

        record = export["data"]["templates"][0]
        assert record["content"] == ""
        assert record["error"] == "Failed to load content"

    async def test_other_tenants_templates_are_not_found(self, transfer_service):
        template = await _seed(transfer_service, OTHER_TENANT_ID)

        with pytest.raises(TemplateNotFoundError):
            await transfer_service.export_templates(TEST_TENANT_ID, [template.id])

    @pytest.mark.parametrize(
        ("ids", "message"),
        [
            ([], "Template IDs are required"),
            ([f"t{index}" for index in range(51)], "Maximum 50 templates"),
        ],
    )
    async def test_id_list_limits(self, transfer_service, ids, message):
        with pytest.raises(TransferError, match=message):
            await transfer_service.export_templates(TEST_TENANT_ID, ids)

    async def test_unknown_format(self, transfer_service):
        with pytest.raises(TransferError, match="Unsupported export format"):
            await transfer_service.export_templates(TEST_TENANT_ID, ["a"], format="tar")


class TestImport:
    async def test_zip_export_imports_into_another_tenant(self, transfer_service):
        template = await _seed(transfer_service)
        export = await transfer_service.export_templates(TEST_TENANT_ID, [template.id])

        results = await transfer_service.import_templates(OTHER_TENANT_ID, export["data"], tier=PRO, format="zip")

        summary = results.to_dict()["summary"]
        assert (summary["templatesImported"], summary["snippetsImported"], summary["errors"]) == (1, 1, 0)
        imported = await transfer_service.templates.get_template(OTHER_TENANT_ID, results.templates[0]["id"])
        assert imported.content == "{{> header}}<p>{{body}}</p>"
        assert imported.category == "news"
        assert results.templates[0]["originalId"] == template.id
        assert results.templates[0]["id"] != template.id

    async def test_json_string_is_accepted(self, transfer_service):
        data = json.dumps(_package([{"name": "Plain", "content": "<p>{{x}}</p>"}]))

        results = await transfer_service.import_templates(TEST_TENANT_ID, data, tier=PRO)

        imported = await transfer_service.templates.get_template(TEST_TENANT_ID, results.templates[0]["id"])
        assert imported.category == "imported"
        assert imported.tags == ["imported"]

    async def test_skip_on_name_conflict(self, transfer_service):
        await _seed(transfer_service)
        package = _package([{"id": "x1", "name": "Weekly Digest", "content": "<p>new</p>"}])

        results = await transfer_service.import_templates(TEST_TENANT_ID, package, tier=PRO)

        assert results.templates == []
        assert results.skipped_templates == [{"id": "x1", "name": "Weekly Digest", "reason": "Template already exists"}]

    async def test_rename_on_name_conflict(self, transfer_service):
        await _seed(transfer_service)
        package = _package(
            [{"name": "Weekly Digest", "content": "<p>new</p>"}],
            [{"name": "header", "content": "<h2>other</h2>"}],
        )

        results = await transfer_service.import_templates(
            TEST_TENANT_ID, package, tier=PRO, conflict_resolution="rename"
        )

        assert results.templates[0]["name"] == "Weekly Digest (1)"
        assert results.templates[0]["action"] == "renamed"
        assert results.snippets[0]["name"] == "header-1"

    async def test_overwrite_updates_in_place(self, transfer_service):
        existing = await _seed(transfer_service)
        package = _package([{"name": "Weekly Digest", "content": "<p>replaced</p>", "tags": ["fresh"]}])

        results = await transfer_service.import_templates(
            TEST_TENANT_ID, package, tier=PRO, conflict_resolution="overwrite"
        )

        assert results.templates[0] == {
            "id": existing.id,
            "name": "Weekly Digest",
            "originalId": None,
            "action": "overwritten",
        }
        updated = await transfer_service.templates.get_template(TEST_TENANT_ID, existing.id)
        assert updated.content == "<p>replaced</p>"
        assert updated.tags == ["fresh"]
        assert updated.version == existing.version + 1

    async def test_preserve_ids(self, transfer_service):
        package = _package([{"id": "keep-me", "name": "Kept", "content": "<p>k</p>"}])

        results = await transfer_service.import_templates(TEST_TENANT_ID, package, tier=PRO, preserve_ids=True)

        assert results.templates[0]["id"] == "keep-me"

    async def test_preserved_id_taken_elsewhere_gets_a_fresh_id(self, transfer_service):
        other = await _seed(transfer_service, OTHER_TENANT_ID)
        package = _package([{"id": other.id, "name": "Fresh", "content": "<p>f</p>"}])

        results = await transfer_service.import_templates(TEST_TENANT_ID, package, tier=PRO, preserve_ids=True)

        assert results.templates[0]["id"] != other.id
        assert (await transfer_service.templates.get_template(OTHER_TENANT_ID, other.id)).name == "Weekly Digest"

    async def test_invalid_records_are_reported_not_fatal(self, transfer_service):
        package = _package(
            [
                {"id": "broken", "name": "Broken", "content": "<p>{{#if a}}</p>"},
                {"id": "nameless", "content": "<p>x</p>"},
                {"id": "bad-name", "name": "bad/name", "content": "<p>x</p>"},
                {"id": "ok", "name": "Fine", "content": "<p>ok</p>"},
            ]
        )

        results = await transfer_service.import_templates(TEST_TENANT_ID, package, tier=PRO)

        assert [entry["id"] for entry in results.errors] == ["broken", "nameless", "bad-name"]
        assert results.errors[0]["error"] == "Template validation failed"
        assert "SYNTAX_ERROR" in [detail["code"] for detail in results.errors[0]["details"]]
        assert [entry["name"] for entry in results.templates] == ["Fine"]

    async def test_quota_is_enforced_per_document(self, transfer_service):
        package = _package([{"name": "One", "content": "<p>1</p>"}, {"name": "Two", "content": "<p>2</p>"}])

        results = await transfer_service.import_templates(TEST_TENANT_ID, package, tier=FREE)

        assert [entry["name"] for entry in results.templates] == ["One"]
        assert results.errors[0]["name"] == "Two"
        assert "Template limit exceeded" in results.errors[0]["error"]

    @pytest.mark.parametrize(
        ("data", "format", "message"),
        [
            (None, "json", "Import data is required"),
            ("{not json", "json", "Invalid JSON data"),
            ({"snippets": []}, "json", "templates array is required"),
            ({"templates": [{}] * 101}, "json", "Maximum 100 templates"),
            ("not-base64!", "zip", "Invalid ZIP file format"),
            ({"templates": []}, "zip", "must be base64 encoded"),
        ],
    )
    async def test_unusable_packages(self, transfer_service, data, format, message):
        with pytest.raises(TransferError, match=message):
            await transfer_service.import_templates(TEST_TENANT_ID, data, tier=PRO, format=format)

    async def test_unknown_conflict_resolution(self, transfer_service):
        with pytest.raises(TransferError, match="Unsupported conflict resolution"):
            await transfer_service.import_templates(TEST_TENANT_ID, _package([]), tier=PRO, conflict_resolution="merge")


def test_zip_without_metadata_is_rejected():
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("templates/a.json", "{}")

    with pytest.raises(TransferError, match="missing metadata"):
        read_zip_package(base64.b64encode(buffer.getvalue()).decode("utf-8"))
