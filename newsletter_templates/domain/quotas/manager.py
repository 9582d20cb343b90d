"""Tier-based quota checks for templates and snippets."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Union

from newsletter_templates.domain.templates.models import DocumentKind
from newsletter_templates.domain.templates.repository import DocumentStore

from .exceptions import InvalidResourceTypeError, QuotaExceededError, UsageLookupError
from .models import (
    DEFAULT_TIER,
    TIER_LIMITS,
    QuotaCheck,
    QuotaStatus,
    ResourceQuota,
    ResourceType,
    TierLimits,
    UpgradeSuggestion,
    UpgradeSuggestions,
    Usage,
    next_tier,
)

logger = logging.getLogger(__name__)


def _percentage(current: int, limit: int) -> int:
    # 与 JavaScript Math.round 相同：.5 向正无穷取整
    return int(math.floor(current / limit * 100 + 0.5))


def _remaining(current: int, limit: int) -> int:
    return max(limit - current, 0)


@dataclass(slots=True)
class QuotaManager:
    """Counts a tenant's documents and compares them against tier limits.

    Usage is read and then decided on without a transactional guard, so two
    concurrent creates at the boundary can both be allowed.
    """

    document_store: DocumentStore

    @staticmethod
    def get_tier_limits(tier: str | None) -> TierLimits:
        return TIER_LIMITS.get(tier or DEFAULT_TIER, TIER_LIMITS[DEFAULT_TIER])

    async def get_current_usage(self, tenant_id: str) -> Usage:
        try:
            templates = await self.document_store.count_documents(tenant_id, DocumentKind.TEMPLATE)
            snippets = await self.document_store.count_documents(tenant_id, DocumentKind.SNIPPET)
        except Exception as exc:
            logger.error("Error getting current usage for tenant %s: %s", tenant_id, exc)
            raise UsageLookupError(str(exc), tenant_id=tenant_id) from exc
        return Usage(templates=templates or 0, snippets=snippets or 0)

    async def _check(self, tenant_id: str, tier: str, resource: ResourceType) -> QuotaCheck:
        limits = self.get_tier_limits(tier)
        usage = await self.get_current_usage(tenant_id)
        current = usage.for_resource(resource)
        limit = limits.for_resource(resource)
        return QuotaCheck(
            allowed=current < limit,
            current=current,
            limit=limit,
            remaining=_remaining(current, limit),
            type=resource.value,
            tier=tier,
        )

    async def can_create_template(self, tenant_id: str, tier: str) -> QuotaCheck:
        return await self._check(tenant_id, tier, ResourceType.TEMPLATE)

    async def can_create_snippet(self, tenant_id: str, tier: str) -> QuotaCheck:
        return await self._check(tenant_id, tier, ResourceType.SNIPPET)

    async def enforce_quota(self, tenant_id: str, tier: str, resource_type: Union[str, ResourceType]) -> QuotaCheck:
        if resource_type in (ResourceType.TEMPLATE, ResourceType.TEMPLATE.value):
            check = await self.can_create_template(tenant_id, tier)
        elif resource_type in (ResourceType.SNIPPET, ResourceType.SNIPPET.value):
            check = await self.can_create_snippet(tenant_id, tier)
        else:
            raise InvalidResourceTypeError(resource_type)

        if not check.allowed:
            logger.info(
                "Quota denied for tenant %s: %s %d/%d on %s", tenant_id, check.type, check.current, check.limit, tier
            )
            raise QuotaExceededError(
                f"{check.type.capitalize()} limit exceeded. "
                f"You have reached your {check.tier} limit of {check.limit} {check.type}s. "
                f"Consider upgrading your plan to create more {check.type}s.",
                quota_info=check,
            )
        return check

    async def get_quota_status(self, tenant_id: str, tier: str) -> QuotaStatus:
        limits = self.get_tier_limits(tier)
        usage = await self.get_current_usage(tenant_id)

        templates = ResourceQuota(
            current=usage.templates,
            limit=limits.templates,
            remaining=_remaining(usage.templates, limits.templates),
            percentage=_percentage(usage.templates, limits.templates),
            can_create=usage.templates < limits.templates,
        )
        snippets = ResourceQuota(
            current=usage.snippets,
            limit=limits.snippets,
            remaining=_remaining(usage.snippets, limits.snippets),
            percentage=_percentage(usage.snippets, limits.snippets),
            can_create=usage.snippets < limits.snippets,
        )
        return QuotaStatus(
            tier=tier,
            templates=templates,
            snippets=snippets,
            within_limits=usage.templates <= limits.templates and usage.snippets <= limits.snippets,
            near_limit=templates.percentage >= 100 or snippets.percentage >= 100,
        )

    async def get_upgrade_suggestions(self, tenant_id: str, tier: str) -> UpgradeSuggestions:
        usage = await self.get_current_usage(tenant_id)
        limits = self.get_tier_limits(tier)
        result = UpgradeSuggestions(current_tier=tier, usage=usage, current_limits=limits)

        target = next_tier(tier)
        if target is None:
            return result
        target_limits = TIER_LIMITS[target]

        for resource in (ResourceType.TEMPLATE, ResourceType.SNIPPET):
            current_limit = limits.for_resource(resource)
            if usage.for_resource(resource) < current_limit:
                continue
            new_limit = target_limits.for_resource(resource)
            benefit = f"Increase {resource.value} limit from {current_limit} to {new_limit}"
            existing = next((item for item in result.suggestions if item.suggested_tier == target), None)
            if existing is None:
                result.suggestions.append(
                    UpgradeSuggestion(
                        reason=f"{resource.value}_limit",
                        suggested_tier=target,
                        current_limit=current_limit,
                        new_limit=new_limit,
                        benefit=benefit,
                    )
                )
            else:
                existing.reason = "multiple_limits"
                existing.benefit += f" and {benefit.lower()}"
        return result

    @staticmethod
    def format_quota_error(error: BaseException) -> dict[str, Any]:
        if isinstance(error, QuotaExceededError):
            return {
                "error": "Quota exceeded",
                "message": str(error),
                "code": QuotaExceededError.code,
                "quota": error.quota_info.to_dict(),
                "upgradeRequired": True,
            }
        return {
            "error": "Internal error",
            "message": str(error),
            "code": "INTERNAL_ERROR",
        }
