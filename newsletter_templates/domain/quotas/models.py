"""Tier limits and quota value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ResourceType(str, Enum):
    TEMPLATE = "template"
    SNIPPET = "snippet"


@dataclass(frozen=True, slots=True)
class TierLimits:
    templates: int
    snippets: int

    def for_resource(self, resource: ResourceType) -> int:
        return self.templates if resource is ResourceType.TEMPLATE else self.snippets

    def to_dict(self) -> dict[str, int]:
        return {"templates": self.templates, "snippets": self.snippets}


DEFAULT_TIER = "free-tier"

TIER_LIMITS: dict[str, TierLimits] = {
    "free-tier": TierLimits(templates=1, snippets=2),
    "creator-tier": TierLimits(templates=5, snippets=10),
    "pro-tier": TierLimits(templates=100, snippets=100),
}

TIER_LADDER: tuple[str, ...] = ("free-tier", "creator-tier", "pro-tier")


def next_tier(tier: str) -> Optional[str]:
    if tier not in TIER_LADDER:
        return None
    position = TIER_LADDER.index(tier)
    if position + 1 >= len(TIER_LADDER):
        return None
    return TIER_LADDER[position + 1]


@dataclass(frozen=True, slots=True)
class Usage:
    templates: int = 0
    snippets: int = 0

    def for_resource(self, resource: ResourceType) -> int:
        return self.templates if resource is ResourceType.TEMPLATE else self.snippets

    def to_dict(self) -> dict[str, int]:
        return {"templates": self.templates, "snippets": self.snippets}


@dataclass(frozen=True, slots=True)
class QuotaCheck:
    allowed: bool
    current: int
    limit: int
    remaining: int
    type: str
    tier: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "current": self.current,
            "limit": self.limit,
            "remaining": self.remaining,
            "type": self.type,
            "tier": self.tier,
        }


@dataclass(frozen=True, slots=True)
class ResourceQuota:
    current: int
    limit: int
    remaining: int
    percentage: int
    can_create: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentage": self.percentage,
            "canCreate": self.can_create,
        }


@dataclass(frozen=True, slots=True)
class QuotaStatus:
    tier: str
    templates: ResourceQuota
    snippets: ResourceQuota
    within_limits: bool
    near_limit: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "templates": self.templates.to_dict(),
            "snippets": self.snippets.to_dict(),
            "overall": {"withinLimits": self.within_limits, "nearLimit": self.near_limit},
        }


@dataclass(slots=True)
class UpgradeSuggestion:
    reason: str
    suggested_tier: str
    current_limit: int
    new_limit: int
    benefit: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "suggestedTier": self.suggested_tier,
            "currentLimit": self.current_limit,
            "newLimit": self.new_limit,
            "benefit": self.benefit,
        }


@dataclass(slots=True)
class UpgradeSuggestions:
    current_tier: str
    usage: Usage
    current_limits: TierLimits
    suggestions: list[UpgradeSuggestion] = field(default_factory=list)

    @property
    def has_upgrade_options(self) -> bool:
        return bool(self.suggestions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentTier": self.current_tier,
            "usage": self.usage.to_dict(),
            "currentLimits": self.current_limits.to_dict(),
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
            "hasUpgradeOptions": self.has_upgrade_options,
        }
