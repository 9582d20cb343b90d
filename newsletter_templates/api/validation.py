"""Request validation middleware for the template and snippet routes."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import status
from fastapi.responses import JSONResponse

from newsletter_templates.core.config import TemplateSettings, get_settings
from newsletter_templates.domain.templates import (
    DocumentKind,
    ValidationResult,
    ValidationSchema,
    validate_preview_request,
    validate_request_body,
    validate_snippet,
    validate_template,
)
from newsletter_templates.domain.templates.request_validation import resolve_schema

from .responses import create_validation_error_response, format_response

logger = logging.getLogger(__name__)

RawBody = Union[bytes, str, None]
Middleware = Callable[[RawBody], Awaitable[Optional[JSONResponse]]]

__all__ = [
    "create_validation_error_response",
    "read_validated_body",
    "validate_preview_request",
    "validate_request_body",
    "validation_middleware",
]


def _validate_content(
    schema: ValidationSchema, body: dict[str, Any], limits: TemplateSettings
) -> Optional[ValidationResult]:
    content = body["content"]
    try:
        if schema.kind is DocumentKind.TEMPLATE:
            return validate_template(content, check_best_practices=True, limits=limits)
        if schema.kind is DocumentKind.SNIPPET:
            return validate_snippet(content, body.get("parameters") or [], check_best_practices=True, limits=limits)
    except Exception as exc:
        logger.exception("Content validation crashed for %s", schema.value)
        result = ValidationResult()
        label = "Template" if schema.kind is DocumentKind.TEMPLATE else "Snippet"
        result.add_error(f"{label} validation error: {exc}", f"{label.upper()}_VALIDATION_ERROR")
        return result
    return None


def validation_middleware(
    schema: Union[str, ValidationSchema], *, limits: Optional[TemplateSettings] = None
) -> Middleware:
    """Build a body check for ``schema``.

    The returned coroutine takes the raw request body and yields a 400
    response when the request must be rejected, or ``None`` to proceed.
    An unknown schema name raises immediately.
    """
    schema_id = resolve_schema(schema)

    async def middleware(raw_body: RawBody) -> Optional[JSONResponse]:
        try:
            body = json.loads(raw_body or "{}")
            if not isinstance(body, dict):
                raise ValueError("Request body must be a JSON object")
        except ValueError as exc:
            logger.error("Validation middleware error: %s", exc)
            return format_response(
                status.HTTP_400_BAD_REQUEST,
                {
                    "message": "Invalid request format",
                    "code": "INVALID_REQUEST_FORMAT",
                    "details": {"error": str(exc)},
                },
            )

        validation = validate_request_body(body, schema_id)
        if not validation.is_valid:
            return format_response(
                status.HTTP_400_BAD_REQUEST,
                {
                    "message": "Request validation failed",
                    "code": "REQUEST_VALIDATION_FAILED",
                    "errors": [issue.to_dict() for issue in validation.errors],
                },
            )

        if body.get("content"):
            content_validation = _validate_content(schema_id, body, limits or get_settings().templates)
            if content_validation is not None and not content_validation.is_valid:
                return format_response(
                    status.HTTP_400_BAD_REQUEST,
                    {
                        "message": "Content validation failed",
                        "code": "CONTENT_VALIDATION_FAILED",
                        "errors": [issue.to_dict() for issue in content_validation.errors],
                        "warnings": [issue.to_dict() for issue in content_validation.warnings],
                    },
                )
            if content_validation is not None and content_validation.warnings:
                logger.warning(
                    "Content validation warnings for %s: %s",
                    schema_id.value,
                    ", ".join(content_validation.warning_codes()),
                )
        return None

    return middleware


async def read_validated_body(
    raw_body: RawBody, middleware: Middleware
) -> tuple[Optional[JSONResponse], dict[str, Any]]:
    """Run ``middleware`` on the raw body; return its rejection or the parsed body."""
    rejection = await middleware(raw_body)
    if rejection is not None:
        return rejection, {}
    return None, json.loads(raw_body or "{}")
