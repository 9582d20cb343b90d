"""SQLAlchemy implementation for the snippet repository."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import or_, select, update

from newsletter_templates.db.models import Snippet as SnippetModel
from newsletter_templates.domain.common.repository import AsyncRepository, dump_json, load_json_list
from newsletter_templates.domain.templates.models import Snippet, SnippetParameter


class SqlSnippetRepository(AsyncRepository[SnippetModel]):
    async def create(
        self,
        *,
        tenant_id: str,
        name: str,
        description: str | None,
        parameters: Sequence[dict[str, Any]],
        storage_key: str,
        created_by: str | None,
        snippet_id: str | None = None,
    ) -> Snippet:
        model = SnippetModel(
            tenant_id=tenant_id,
            name=name,
            description=description,
            parameters=dump_json(list(parameters)),
            storage_key=storage_key,
            created_by=created_by,
            updated_by=created_by,
        )
        if snippet_id:
            model.id = snippet_id
        await self.add(model)
        return self._to_domain(model)

    async def list_by_tenant(self, tenant_id: str, *, search: str | None = None, limit: int | None = 50) -> list[Snippet]:
        stmt = (
            select(SnippetModel)
            .where(SnippetModel.tenant_id == tenant_id)
            .where(SnippetModel.is_active.is_(True))
        )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(SnippetModel.name.ilike(pattern), SnippetModel.description.ilike(pattern)))
        stmt = stmt.order_by(SnippetModel.created_at.desc(), SnippetModel.name)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def get_by_id(self, tenant_id: str, snippet_id: str) -> Snippet | None:
        model = await self._get_model(tenant_id, snippet_id)
        return self._to_domain(model) if model else None

    async def get_by_name(self, tenant_id: str, name: str) -> Snippet | None:
        stmt = (
            select(SnippetModel)
            .where(SnippetModel.tenant_id == tenant_id)
            .where(SnippetModel.name == name)
            .where(SnippetModel.is_active.is_(True))
        )
        result = await self.session.execute(stmt)
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def update(self, tenant_id: str, snippet_id: str, **values: Any) -> Snippet | None:
        changes: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            changes[key] = dump_json(list(value)) if key == "parameters" else value
        stmt = (
            update(SnippetModel)
            .where(SnippetModel.tenant_id == tenant_id)
            .where(SnippetModel.id == snippet_id)
            .where(SnippetModel.is_active.is_(True))
            .values(**changes, version=SnippetModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        model = await self._get_model(tenant_id, snippet_id, refresh=True)
        return self._to_domain(model) if model else None

    async def id_exists(self, snippet_id: str) -> bool:
        result = await self.session.execute(select(SnippetModel.id).where(SnippetModel.id == snippet_id))
        return result.first() is not None

    async def delete(self, tenant_id: str, snippet_id: str) -> None:
        stmt = (
            update(SnippetModel)
            .where(SnippetModel.tenant_id == tenant_id)
            .where(SnippetModel.id == snippet_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def _get_model(self, tenant_id: str, snippet_id: str, *, refresh: bool = False) -> Optional[SnippetModel]:
        stmt = (
            select(SnippetModel)
            .where(SnippetModel.tenant_id == tenant_id)
            .where(SnippetModel.id == snippet_id)
            .where(SnippetModel.is_active.is_(True))
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def _to_domain(model: SnippetModel) -> Snippet:
        return Snippet(
            id=model.id,
            tenant_id=model.tenant_id,
            name=model.name,
            description=model.description,
            parameters=[
                SnippetParameter.from_dict(item) for item in load_json_list(model.parameters) if isinstance(item, dict)
            ],
            storage_key=model.storage_key,
            version=model.version or 1,
            is_active=bool(model.is_active),
            created_by=model.created_by,
            updated_by=model.updated_by,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
