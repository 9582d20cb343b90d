"""JSON response helpers shared by the HTTP routers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from newsletter_templates.domain.quotas import QuotaError, QuotaExceededError, QuotaManager
from newsletter_templates.domain.templates import (
    ContentValidationError,
    NameConflictError,
    SnippetNotFoundError,
    SnippetRenderError,
    TemplateNotFoundError,
    TemplateRenderError,
    TransferError,
)


def format_response(status_code: int, body: Union[str, dict[str, Any], list[Any]]) -> JSONResponse:
    payload = {"message": body} if isinstance(body, str) else body
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def create_validation_error_response(
    message: str,
    errors: list[dict[str, Any]],
    warnings: Optional[list[dict[str, Any]]] = None,
) -> JSONResponse:
    return format_response(
        status.HTTP_400_BAD_REQUEST,
        {
            "message": message,
            "code": "VALIDATION_FAILED",
            "errors": errors,
            "warnings": warnings or [],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def domain_error_response(exc: Exception) -> JSONResponse:
    """Map a template or quota domain error onto its HTTP response.

    Not-found, name-conflict and render failures are raised as
    :class:`HTTPException`; quota and content failures carry structured bodies.
    """
    if isinstance(exc, (TemplateNotFoundError, SnippetNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, NameConflictError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(exc), "code": exc.code},
        ) from exc
    if isinstance(exc, TransferError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(exc), "code": exc.code},
        ) from exc
    if isinstance(exc, (TemplateRenderError, SnippetRenderError)):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, ContentValidationError):
        return create_validation_error_response(
            str(exc),
            [issue.to_dict() for issue in exc.result.errors],
            [issue.to_dict() for issue in exc.result.warnings],
        )
    if isinstance(exc, QuotaExceededError):
        return format_response(status.HTTP_403_FORBIDDEN, QuotaManager.format_quota_error(exc))
    if isinstance(exc, QuotaError):
        return format_response(status.HTTP_500_INTERNAL_SERVER_ERROR, QuotaManager.format_quota_error(exc))
    raise exc
