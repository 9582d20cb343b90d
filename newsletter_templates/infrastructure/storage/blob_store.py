"""Filesystem-backed blob store keyed by relative storage keys."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from newsletter_templates.core.config import get_settings

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".hbs"


def template_storage_key(tenant_id: str, template_id: str) -> str:
    return f"templates/{tenant_id}/{template_id}{BLOB_SUFFIX}"


def snippet_storage_key(tenant_id: str, snippet_id: str) -> str:
    return f"snippets/{tenant_id}/{snippet_id}{BLOB_SUFFIX}"


@dataclass(slots=True)
class FileSystemBlobStore:
    """Stores UTF-8 markup under ``root``; keys may not escape the root directory."""

    root: Path

    @classmethod
    def from_settings(cls) -> "FileSystemBlobStore":
        return cls(Path(get_settings().blob_storage_dir).resolve())

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith(("/", "\\")):
            raise ValueError(f"Invalid storage key: {key!r}")
        root = self.root.resolve()
        path = (root / key).resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"Storage key escapes blob root: {key!r}")
        return path

    async def get_blob(self, key: str) -> str:
        path = self._path_for(key)
        with path.open("r", encoding="utf-8") as stream:
            return stream.read()

    async def put_blob(self, key: str, content: str) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as stream:
            stream.write(content)
        logger.debug("Stored blob %s (%d chars)", key, len(content))

    async def delete_blob(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)
