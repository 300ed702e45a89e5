"""
Collection and Field metadata ORM models.

Collections are the platform's user-defined tables. Their definitions live in
these two metadata tables; the physical tables are created from them by the
collection runtime (see services/migration/collection_runtime.py).
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from migration_manager.models.orm.base import Base


class CollectionMeta(Base):
    """
    Collection definition.

    `name` is the natural key. `options` carries open-ended attributes such as
    `origin` (set for system-managed collections) and the platform defaults
    (logging, autoGenId, createdBy, ...).
    """

    __tablename__ = "collections"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str | None] = mapped_column(String(255), default=None)
    primary_key: Mapped[str] = mapped_column("primaryKey", String(255), default="id")
    template: Mapped[str] = mapped_column(String(100), default="general")
    data_source: Mapped[str] = mapped_column("dataSource", String(100), default="main")
    options: Mapped[dict] = mapped_column(JSONB, default=dict)
    sort: Mapped[int | None] = mapped_column(Integer, default=None)

    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime, default=datetime.utcnow, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime,
        default=datetime.utcnow,
        server_default=text("NOW()"),
        onupdate=datetime.utcnow,
    )


class FieldMeta(Base):
    """
    Field definition belonging to a collection.

    Identity within a collection is (collection_name, name).
    """

    __tablename__ = "fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_name: Mapped[str] = mapped_column("collectionName", String(255))
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(100), default="string")
    interface: Mapped[str | None] = mapped_column(String(100), default="input")
    data_source: Mapped[str] = mapped_column("dataSource", String(100), default="main")
    options: Mapped[dict] = mapped_column(JSONB, default=dict)
    sort: Mapped[int | None] = mapped_column(Integer, default=None)

    __table_args__ = (
        Index("ix_fields_collection_name_name", "collectionName", "name"),
    )
