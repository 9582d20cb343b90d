"""Blob storage for raw template and snippet markup."""

from .blob_store import FileSystemBlobStore, snippet_storage_key, template_storage_key

__all__ = ["FileSystemBlobStore", "snippet_storage_key", "template_storage_key"]
