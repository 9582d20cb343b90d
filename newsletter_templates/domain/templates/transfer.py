"""Template export packages and their import into a tenant.

An export bundles templates (with their content) and, optionally, the
snippets they reference by name. Packages travel either as a JSON document or
as a base64 encoded ZIP archive holding one ``.json`` metadata file and one
``.hbs`` body per document.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_templates.domain.quotas import QuotaError
from newsletter_templates.infrastructure.storage import FileSystemBlobStore

from .exceptions import ContentValidationError, TemplateError, TemplateNotFoundError, TransferError
from .models import DocumentKind, Snippet, Template
from .repository import BlobStore, SnippetRepository, TemplateRepository
from .request_validation import CONFLICT_RESOLUTIONS, EXPORT_FORMATS, ValidationSchema, validate_request_body
from .service import SnippetService, TemplateService

logger = logging.getLogger(__name__)

MAX_EXPORT_TEMPLATES = 50
MAX_IMPORT_TEMPLATES = 100
PACKAGE_VERSION = "1.0"
METADATA_FILE = "export-metadata.json"
PACKAGE_FOLDERS = ("templates", "snippets")

_IMPORT_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _template_record(template: Template) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "tags": list(template.tags),
        "snippets": list(template.snippets),
        "isVisualMode": template.is_visual_mode,
        "version": template.version,
        "createdAt": _timestamp(template.created_at),
        "updatedAt": _timestamp(template.updated_at),
        "content": template.content,
    }


def _snippet_record(snippet: Snippet) -> dict[str, Any]:
    return {
        "id": snippet.id,
        "name": snippet.name,
        "description": snippet.description,
        "parameters": [parameter.to_dict() for parameter in snippet.parameters],
        "version": snippet.version,
        "createdAt": _timestamp(snippet.created_at),
        "updatedAt": _timestamp(snippet.updated_at),
        "content": snippet.content,
    }


def build_zip_package(export: Mapping[str, Any]) -> bytes:
    """Write ``export`` as a ZIP archive and return its bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        metadata = {
            "exportedAt": export["exportedAt"],
            "templateCount": len(export["templates"]),
            "snippetCount": len(export["snippets"]),
            "version": PACKAGE_VERSION,
        }
        archive.writestr(METADATA_FILE, json.dumps(metadata, indent=2))
        for folder in PACKAGE_FOLDERS:
            for record in export[folder]:
                described = {key: value for key, value in record.items() if key != "content"}
                archive.writestr(f"{folder}/{record['id']}.json", json.dumps(described, indent=2, ensure_ascii=False))
                archive.writestr(f"{folder}/{record['id']}.hbs", record.get("content") or "")
    return buffer.getvalue()


def read_zip_package(encoded: str) -> dict[str, Any]:
    """Decode a base64 ZIP archive produced by :func:`build_zip_package`."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(base64.b64decode(encoded, validate=True)))
    except (ValueError, zipfile.BadZipFile) as exc:
        raise TransferError("Invalid ZIP file format") from exc

    with archive:
        names = set(archive.namelist())
        if METADATA_FILE not in names:
            raise TransferError("Invalid export file: missing metadata")
        package: dict[str, Any] = {folder: [] for folder in PACKAGE_FOLDERS}
        for folder in PACKAGE_FOLDERS:
            for name in sorted(names):
                if not (name.startswith(f"{folder}/") and name.endswith(".json")):
                    continue
                try:
                    record = json.loads(archive.read(name).decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                    raise TransferError(f"Invalid export file: {name} is not valid JSON") from exc
                if not isinstance(record, dict):
                    raise TransferError(f"Invalid export file: {name} is not an object")
                body = name[: -len(".json")] + ".hbs"
                if body in names:
                    record["content"] = archive.read(body).decode("utf-8")
                package[folder].append(record)
    return package


def _parse_package(data: Any, format: str) -> Mapping[str, Any]:
    if format == "zip":
        if not isinstance(data, str):
            raise TransferError("ZIP imports must be base64 encoded")
        return read_zip_package(data)
    if format != "json":
        raise TransferError(f"Unsupported import format: {format}")
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise TransferError("Invalid JSON data") from exc
    if not isinstance(data, Mapping):
        raise TransferError("Invalid JSON data")
    return data


def _present(record: Mapping[str, Any], mapping: Mapping[str, str]) -> dict[str, Any]:
    return {target: record[source] for source, target in mapping.items() if record.get(source) is not None}


def _error_entry(kind: DocumentKind, record: Mapping[str, Any], exc: Exception) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "type": kind.value,
        "id": record.get("id"),
        "name": record.get("name"),
        "error": str(exc),
    }
    if isinstance(exc, ContentValidationError):
        entry["details"] = [issue.to_dict() for issue in exc.result.errors]
    return entry


@dataclass(slots=True)
class ImportResults:
    templates: list[dict[str, Any]] = field(default_factory=list)
    snippets: list[dict[str, Any]] = field(default_factory=list)
    skipped_templates: list[dict[str, Any]] = field(default_factory=list)
    skipped_snippets: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "results": {
                "imported": {"templates": self.templates, "snippets": self.snippets},
                "skipped": {"templates": self.skipped_templates, "snippets": self.skipped_snippets},
                "errors": self.errors,
            },
            "summary": {
                "templatesImported": len(self.templates),
                "snippetsImported": len(self.snippets),
                "templatesSkipped": len(self.skipped_templates),
                "snippetsSkipped": len(self.skipped_snippets),
                "errors": len(self.errors),
            },
        }


@dataclass(slots=True)
class TemplateTransferService:
    templates: TemplateService
    snippets: SnippetService

    @classmethod
    def with_session(cls, session: AsyncSession, blob_store: Optional[BlobStore] = None) -> "TemplateTransferService":
        blob_store = blob_store or FileSystemBlobStore.from_settings()
        return cls(
            templates=TemplateService.with_session(session, blob_store),
            snippets=SnippetService.with_session(session, blob_store),
        )

    async def export_templates(
        self,
        tenant_id: str,
        template_ids: Sequence[str],
        *,
        include_snippets: bool = True,
        format: str = "zip",
    ) -> dict[str, Any]:
        """Bundle the tenant's templates, and the snippets they use, into a package.

        Ids that do not resolve to an active template are left out; if none
        resolve the export fails with :class:`TemplateNotFoundError`.
        """
        if format not in EXPORT_FORMATS:
            raise TransferError(f"Unsupported export format: {format}")
        ids = list(dict.fromkeys(template_ids or ()))
        if not ids:
            raise TransferError("Template IDs are required")
        if len(ids) > MAX_EXPORT_TEMPLATES:
            raise TransferError(f"Maximum {MAX_EXPORT_TEMPLATES} templates can be exported at once")

        found: list[Template] = []
        for template_id in ids:
            template = await self.templates.repository.get_by_id(tenant_id, template_id)
            if template is not None:
                found.append(template)
        if not found:
            raise TemplateNotFoundError(", ".join(ids))

        templates: list[dict[str, Any]] = []
        for template in found:
            try:
                template.content = await self.templates.blob_store.get_blob(template.storage_key)
                templates.append(_template_record(template))
            except OSError:
                logger.warning("Failed to load content for template %s", template.id, exc_info=True)
                template.content = ""
                templates.append({**_template_record(template), "error": "Failed to load content"})

        snippets: list[dict[str, Any]] = []
        if include_snippets:
            names = dict.fromkeys(name for template in found for name in template.snippets)
            for name in names:
                snippet = await self.snippets.repository.get_by_name(tenant_id, name)
                if snippet is None:
                    logger.info("Snippet %s referenced by an exported template no longer exists", name)
                    continue
                try:
                    snippet.content = await self.snippets.blob_store.get_blob(snippet.storage_key)
                except OSError:
                    logger.warning("Failed to load content for snippet %s", snippet.id, exc_info=True)
                    continue
                snippets.append(_snippet_record(snippet))

        exported_at = datetime.now(timezone.utc)
        export = {
            "exportedAt": exported_at.isoformat(),
            "tenantId": tenant_id,
            "templates": templates,
            "snippets": snippets,
        }
        filename = f"templates-export-{exported_at.date().isoformat()}.{format}"
        logger.info("Exported %d templates and %d snippets for tenant %s", len(templates), len(snippets), tenant_id)
        if format == "json":
            return {
                "format": "json",
                "filename": filename,
                "data": export,
                "templateCount": len(templates),
                "snippetCount": len(snippets),
            }
        archive = build_zip_package(export)
        return {
            "format": "zip",
            "filename": filename,
            "data": base64.b64encode(archive).decode("utf-8"),
            "size": len(archive),
            "templateCount": len(templates),
            "snippetCount": len(snippets),
        }

    async def import_templates(
        self,
        tenant_id: str,
        data: Union[str, bytes, Mapping[str, Any], None],
        *,
        tier: str,
        format: str = "json",
        conflict_resolution: str = "skip",
        preserve_ids: bool = False,
        imported_by: Optional[str] = None,
    ) -> ImportResults:
        """Create the package's snippets, then its templates, for ``tenant_id``.

        A document whose name (or preserved id) is already taken is skipped,
        overwritten in place or created under a free name depending on
        ``conflict_resolution``. Each document is re-validated and counted
        against the tenant's quota; per-document failures land in
        ``ImportResults.errors`` without stopping the import.
        """
        if conflict_resolution not in CONFLICT_RESOLUTIONS:
            raise TransferError(f"Unsupported conflict resolution: {conflict_resolution}")
        if not data:
            raise TransferError("Import data is required")
        package = _parse_package(data, format)

        templates = package.get("templates")
        if not isinstance(templates, list):
            raise TransferError("Invalid import data: templates array is required")
        if len(templates) > MAX_IMPORT_TEMPLATES:
            raise TransferError(f"Maximum {MAX_IMPORT_TEMPLATES} templates can be imported at once")
        snippets = package.get("snippets")
        if not isinstance(snippets, list):
            snippets = []

        results = ImportResults()
        options = {
            "tier": tier,
            "conflict_resolution": conflict_resolution,
            "preserve_ids": preserve_ids,
            "imported_by": imported_by,
        }
        for record in snippets:
            await self._import_snippet(tenant_id, record if isinstance(record, Mapping) else {}, results, **options)
        for record in templates:
            await self._import_template(tenant_id, record if isinstance(record, Mapping) else {}, results, **options)

        logger.info(
            "Imported %d templates and %d snippets for tenant %s (%d skipped, %d errors)",
            len(results.templates),
            len(results.snippets),
            tenant_id,
            len(results.skipped_templates) + len(results.skipped_snippets),
            len(results.errors),
        )
        return results

    async def _import_template(
        self,
        tenant_id: str,
        record: Mapping[str, Any],
        results: ImportResults,
        *,
        tier: str,
        conflict_resolution: str,
        preserve_ids: bool,
        imported_by: Optional[str],
    ) -> None:
        body = _present(
            record,
            {
                "name": "name",
                "content": "content",
                "description": "description",
                "category": "category",
                "tags": "tags",
                "isVisualMode": "isVisualMode",
            },
        )
        check = validate_request_body(body, ValidationSchema.CREATE_TEMPLATE)
        if not check.is_valid:
            results.errors.append(
                _error_entry(DocumentKind.TEMPLATE, record, ContentValidationError("Template validation failed", check))
            )
            return

        original_id = record.get("id")
        name = body["name"]
        fields = {
            "content": body["content"],
            "description": body.get("description"),
            "category": body.get("category") or "imported",
            "tags": body.get("tags") or ["imported"],
            "is_visual_mode": bool(body.get("isVisualMode", False)),
        }
        existing = await _find_conflict(self.templates.repository, tenant_id, name, original_id, preserve_ids)
        action = "created"
        try:
            if existing is not None:
                if conflict_resolution == "skip":
                    results.skipped_templates.append(
                        {"id": original_id, "name": name, "reason": "Template already exists"}
                    )
                    return
                if conflict_resolution == "overwrite":
                    template = await self.templates.update_template(
                        tenant_id, existing.id, name=name, updated_by=imported_by, **fields
                    )
                    results.templates.append(
                        {"id": template.id, "name": template.name, "originalId": original_id, "action": "overwritten"}
                    )
                    return
                name = await _free_name(self.templates.repository, tenant_id, name, lambda base, n: f"{base} ({n})")
                action = "renamed"
            template_id = await _reusable_id(self.templates.repository, original_id, preserve_ids)
            template = await self.templates.create_template(
                tenant_id, tier=tier, name=name, created_by=imported_by, template_id=template_id, **fields
            )
        except (TemplateError, QuotaError) as exc:
            results.errors.append(_error_entry(DocumentKind.TEMPLATE, record, exc))
            return
        results.templates.append(
            {"id": template.id, "name": template.name, "originalId": original_id, "action": action}
        )

    async def _import_snippet(
        self,
        tenant_id: str,
        record: Mapping[str, Any],
        results: ImportResults,
        *,
        tier: str,
        conflict_resolution: str,
        preserve_ids: bool,
        imported_by: Optional[str],
    ) -> None:
        body = _present(
            record, {"name": "name", "content": "content", "description": "description", "parameters": "parameters"}
        )
        check = validate_request_body(body, ValidationSchema.CREATE_SNIPPET)
        if not check.is_valid:
            results.errors.append(
                _error_entry(DocumentKind.SNIPPET, record, ContentValidationError("Snippet validation failed", check))
            )
            return

        original_id = record.get("id")
        name = body["name"]
        fields = {
            "content": body["content"],
            "description": body.get("description"),
            "parameters": body.get("parameters") or [],
        }
        existing = await _find_conflict(self.snippets.repository, tenant_id, name, original_id, preserve_ids)
        action = "created"
        try:
            if existing is not None:
                if conflict_resolution == "skip":
                    results.skipped_snippets.append(
                        {"id": original_id, "name": name, "reason": "Snippet already exists"}
                    )
                    return
                if conflict_resolution == "overwrite":
                    snippet = await self.snippets.update_snippet(
                        tenant_id, existing.id, name=name, updated_by=imported_by, **fields
                    )
                    results.snippets.append(
                        {"id": snippet.id, "name": snippet.name, "originalId": original_id, "action": "overwritten"}
                    )
                    return
                # 片段名不允许空格和括号
                name = await _free_name(self.snippets.repository, tenant_id, name, lambda base, n: f"{base}-{n}")
                action = "renamed"
            snippet_id = await _reusable_id(self.snippets.repository, original_id, preserve_ids)
            snippet = await self.snippets.create_snippet(
                tenant_id, tier=tier, name=name, created_by=imported_by, snippet_id=snippet_id, **fields
            )
        except (TemplateError, QuotaError) as exc:
            results.errors.append(_error_entry(DocumentKind.SNIPPET, record, exc))
            return
        results.snippets.append({"id": snippet.id, "name": snippet.name, "originalId": original_id, "action": action})


DocumentRepository = Union[TemplateRepository, SnippetRepository]


async def _find_conflict(
    repository: DocumentRepository, tenant_id: str, name: str, original_id: Any, preserve_ids: bool
) -> Union[Template, Snippet, None]:
    if preserve_ids and isinstance(original_id, str) and original_id:
        existing = await repository.get_by_id(tenant_id, original_id)
        if existing is not None:
            return existing
    return await repository.get_by_name(tenant_id, name)


async def _free_name(repository: DocumentRepository, tenant_id: str, name: str, variant) -> str:
    counter = 1
    candidate = variant(name, counter)
    while await repository.get_by_name(tenant_id, candidate) is not None:
        counter += 1
        candidate = variant(name, counter)
    return candidate


async def _reusable_id(repository: DocumentRepository, original_id: Any, preserve_ids: bool) -> Optional[str]:
    """The exported id when it is safe to keep, else ``None`` for a fresh one.

    Ids are global, so an id held by another tenant or by a deleted row is
    replaced rather than reused.
    """
    if not preserve_ids or not isinstance(original_id, str) or not _IMPORT_ID_RE.fullmatch(original_id):
        return None
    if await repository.id_exists(original_id):
        return None
    return original_id


__all__ = [
    "ImportResults",
    "TemplateTransferService",
    "build_zip_package",
    "read_zip_package",
]
