"""SQLAlchemy implementation for the template repository."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import or_, select, update

from newsletter_templates.db.models import Template as TemplateModel
from newsletter_templates.domain.common.repository import AsyncRepository, dump_json, load_json_list
from newsletter_templates.domain.templates.models import Template

_JSON_FIELDS = ("tags", "snippets")


class SqlTemplateRepository(AsyncRepository[TemplateModel]):
    async def create(
        self,
        *,
        tenant_id: str,
        name: str,
        description: str | None,
        category: str | None,
        tags: Sequence[str],
        snippets: Sequence[str],
        is_visual_mode: bool,
        storage_key: str,
        created_by: str | None,
        template_id: str | None = None,
    ) -> Template:
        model = TemplateModel(
            tenant_id=tenant_id,
            name=name,
            description=description,
            category=category,
            tags=dump_json(list(tags)),
            snippets=dump_json(list(snippets)),
            is_visual_mode=is_visual_mode,
            storage_key=storage_key,
            created_by=created_by,
            updated_by=created_by,
        )
        if template_id:
            model.id = template_id
        await self.add(model)
        return self._to_domain(model)

    async def list_by_tenant(
        self,
        tenant_id: str,
        *,
        category: str | None = None,
        search: str | None = None,
        limit: int | None = 50,
    ) -> list[Template]:
        stmt = (
            select(TemplateModel)
            .where(TemplateModel.tenant_id == tenant_id)
            .where(TemplateModel.is_active.is_(True))
        )
        if category:
            stmt = stmt.where(TemplateModel.category == category)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(TemplateModel.name.ilike(pattern), TemplateModel.description.ilike(pattern)))
        stmt = stmt.order_by(TemplateModel.created_at.desc(), TemplateModel.name)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def get_by_id(self, tenant_id: str, template_id: str) -> Template | None:
        model = await self._get_model(tenant_id, template_id)
        return self._to_domain(model) if model else None

    async def get_by_name(self, tenant_id: str, name: str) -> Template | None:
        stmt = (
            select(TemplateModel)
            .where(TemplateModel.tenant_id == tenant_id)
            .where(TemplateModel.name == name)
            .where(TemplateModel.is_active.is_(True))
        )
        result = await self.session.execute(stmt)
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def update(self, tenant_id: str, template_id: str, **values: Any) -> Template | None:
        changes: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            changes[key] = dump_json(list(value)) if key in _JSON_FIELDS else value
        stmt = (
            update(TemplateModel)
            .where(TemplateModel.tenant_id == tenant_id)
            .where(TemplateModel.id == template_id)
            .where(TemplateModel.is_active.is_(True))
            .values(**changes, version=TemplateModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        model = await self._get_model(tenant_id, template_id, refresh=True)
        return self._to_domain(model) if model else None

    async def id_exists(self, template_id: str) -> bool:
        """Whether any row, of any tenant and including deleted ones, holds ``template_id``."""
        result = await self.session.execute(select(TemplateModel.id).where(TemplateModel.id == template_id))
        return result.first() is not None

    async def delete(self, tenant_id: str, template_id: str) -> None:
        stmt = (
            update(TemplateModel)
            .where(TemplateModel.tenant_id == tenant_id)
            .where(TemplateModel.id == template_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def _get_model(self, tenant_id: str, template_id: str, *, refresh: bool = False) -> Optional[TemplateModel]:
        stmt = (
            select(TemplateModel)
            .where(TemplateModel.tenant_id == tenant_id)
            .where(TemplateModel.id == template_id)
            .where(TemplateModel.is_active.is_(True))
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def _to_domain(model: TemplateModel) -> Template:
        return Template(
            id=model.id,
            tenant_id=model.tenant_id,
            name=model.name,
            description=model.description,
            category=model.category,
            tags=load_json_list(model.tags),
            snippets=load_json_list(model.snippets),
            is_visual_mode=bool(model.is_visual_mode),
            storage_key=model.storage_key,
            version=model.version or 1,
            is_active=bool(model.is_active),
            created_by=model.created_by,
            updated_by=model.updated_by,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
