"""Template domain specific exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationResult


class TemplateError(Exception):
    """Base class for template and snippet domain errors."""


class TemplateRenderError(TemplateError):
    """Raised when a top-level template cannot be compiled or evaluated."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Template rendering failed: {reason}")
        self.reason = reason


class SnippetRenderError(TemplateError):
    """Raised when a single snippet body cannot be compiled or evaluated."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Snippet rendering failed: {reason}")
        self.reason = reason


class SnippetNotFoundError(TemplateError):
    def __init__(self, snippet_id: str) -> None:
        super().__init__(f"Snippet {snippet_id} not found")
        self.snippet_id = snippet_id


class TemplateNotFoundError(TemplateError):
    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template {template_id} not found")
        self.template_id = template_id


class NameConflictError(TemplateError):
    """Raised when a tenant already owns an active document with the same name."""

    code = "NAME_EXISTS"

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"A {kind} named '{name}' already exists")
        self.kind = kind
        self.name = name


class ContentValidationError(TemplateError):
    """Raised by services when content fails semantic validation."""

    def __init__(self, message: str, result: "ValidationResult") -> None:
        super().__init__(message)
        self.result = result


class TemplateSyntaxError(TemplateError):
    """Raised when markup cannot be compiled."""


class TransferError(TemplateError):
    """Raised when an export request or import package is unusable as a whole."""

    code = "INVALID_TRANSFER"
