from fastapi import APIRouter

from newsletter_templates.api.routers import quota, snippets, templates


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(templates.router, prefix="/templates", tags=["templates"])
    router.include_router(snippets.router, prefix="/snippets", tags=["snippets"])
    router.include_router(quota.router, prefix="/quota", tags=["quota"])
    return router


__all__ = [
    "create_api_router",
]
