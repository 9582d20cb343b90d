"""Template and snippet domain: validation, rendering and request checks."""

from .engine import (
    SnippetResolver,
    compile_template,
    extract_used_snippets,
    get_snippet_by_id,
    render_snippet,
    render_template,
)
from .exceptions import (
    ContentValidationError,
    NameConflictError,
    SnippetNotFoundError,
    SnippetRenderError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateSyntaxError,
    TransferError,
)
from .helpers import build_helpers
from .models import DocumentKind, Snippet, SnippetParameter, SnippetUsage, Template
from .request_validation import (
    UnknownSchemaError,
    ValidationSchema,
    validate_preview_request,
    validate_request_body,
)
from .validation import ValidationIssue, ValidationResult
from .validators import validate_snippet, validate_template

__all__ = [
    "ContentValidationError",
    "DocumentKind",
    "NameConflictError",
    "Snippet",
    "SnippetNotFoundError",
    "SnippetParameter",
    "SnippetRenderError",
    "SnippetResolver",
    "SnippetUsage",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateSyntaxError",
    "TransferError",
    "UnknownSchemaError",
    "ValidationIssue",
    "ValidationResult",
    "ValidationSchema",
    "build_helpers",
    "compile_template",
    "extract_used_snippets",
    "get_snippet_by_id",
    "render_snippet",
    "render_template",
    "validate_preview_request",
    "validate_request_body",
    "validate_snippet",
    "validate_template",
]
