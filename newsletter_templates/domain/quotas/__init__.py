"""Quota domain: tier limits, usage checks and upgrade suggestions."""

from .exceptions import InvalidResourceTypeError, QuotaError, QuotaExceededError, UsageLookupError
from .manager import QuotaManager
from .models import (
    DEFAULT_TIER,
    TIER_LADDER,
    TIER_LIMITS,
    QuotaCheck,
    QuotaStatus,
    ResourceType,
    TierLimits,
    UpgradeSuggestions,
    Usage,
)

__all__ = [
    "DEFAULT_TIER",
    "TIER_LADDER",
    "TIER_LIMITS",
    "InvalidResourceTypeError",
    "QuotaCheck",
    "QuotaError",
    "QuotaExceededError",
    "QuotaManager",
    "QuotaStatus",
    "ResourceType",
    "TierLimits",
    "UpgradeSuggestions",
    "Usage",
    "UsageLookupError",
]
