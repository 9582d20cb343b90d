"""SQLAlchemy ORM models."""
import uuid
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from newsletter_templates.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Template(Base):
    __tablename__ = "templates"
    __table_args__ = (Index("ix_templates_tenant_name", "tenant_id", "name"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500))
    category = Column(String(50))
    tags = Column(Text, nullable=False, default="[]")
    snippets = Column(Text, nullable=False, default="[]")
    is_visual_mode = Column(Boolean, nullable=False, default=False)
    storage_key = Column(String(500), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64))
    updated_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Snippet(Base):
    __tablename__ = "snippets"
    __table_args__ = (Index("ix_snippets_tenant_name", "tenant_id", "name"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500))
    parameters = Column(Text, nullable=False, default="[]")
    storage_key = Column(String(500), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64))
    updated_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
