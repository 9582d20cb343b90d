"""Quota domain specific exceptions."""

from __future__ import annotations

from typing import Any, Optional

from .models import QuotaCheck


class QuotaError(Exception):
    """Base class for quota errors."""

    code = "INTERNAL_ERROR"


class QuotaExceededError(QuotaError):
    """Raised when creating a resource would exceed the tenant's tier limit."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str, quota_info: QuotaCheck) -> None:
        super().__init__(message)
        self.quota_info = quota_info


class InvalidResourceTypeError(QuotaError):
    def __init__(self, resource_type: Any) -> None:
        super().__init__(f"Invalid resource type: {resource_type}")
        self.resource_type = resource_type


class UsageLookupError(QuotaError):
    def __init__(self, reason: str, *, tenant_id: Optional[str] = None) -> None:
        super().__init__(f"Failed to get current usage: {reason}")
        self.tenant_id = tenant_id
