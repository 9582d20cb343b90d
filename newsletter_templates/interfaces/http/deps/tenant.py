"""Tenant context resolved from request headers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status

from newsletter_templates.domain.quotas import DEFAULT_TIER

TENANT_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True, slots=True)
class TenantContext:
    tenant_id: str
    tier: str = DEFAULT_TIER
    user_id: Optional[str] = None


async def get_tenant_context(
    x_tenant_id: Optional[str] = Header(default=None),
    x_user_tier: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> TenantContext:
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Tenant access required")
    if not TENANT_ID_RE.fullmatch(tenant_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid tenant id")
    return TenantContext(
        tenant_id=tenant_id,
        tier=(x_user_tier or "").strip() or DEFAULT_TIER,
        user_id=x_user_id,
    )


__all__ = ["TENANT_ID_RE", "TenantContext", "get_tenant_context"]
