"""Quota status endpoints."""

from fastapi import APIRouter, Depends

from newsletter_templates.api.responses import domain_error_response
from newsletter_templates.domain.quotas import QuotaError, QuotaManager
from newsletter_templates.interfaces.http.deps import TenantContext, get_quota_manager, get_tenant_context

router = APIRouter()


@router.get("", summary="Current quota usage")
async def get_quota_status(
    tenant: TenantContext = Depends(get_tenant_context),
    manager: QuotaManager = Depends(get_quota_manager),
):
    try:
        quota = await manager.get_quota_status(tenant.tenant_id, tenant.tier)
    except QuotaError as exc:
        return domain_error_response(exc)
    return quota.to_dict()


@router.get("/upgrade-suggestions", summary="Upgrade suggestions for the current tier")
async def get_upgrade_suggestions(
    tenant: TenantContext = Depends(get_tenant_context),
    manager: QuotaManager = Depends(get_quota_manager),
):
    try:
        suggestions = await manager.get_upgrade_suggestions(tenant.tenant_id, tenant.tier)
    except QuotaError as exc:
        return domain_error_response(exc)
    return suggestions.to_dict()
