"""
UI schema ORM models.

Schema nodes are stored one row per node; the tree is stored separately as a
closure table (ancestor, descendant, depth) that holds every reachable pair,
including the depth-0 self pair of each node.
"""

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from migration_manager.models.orm.base import Base


class UiSchema(Base):
    """
    A single UI schema node.

    `schema` holds the node's attributes minus `x-uid`, `name` and
    `properties`; children are reconstructed from the closure table.
    """

    __tablename__ = "ui_schemas"

    x_uid: Mapped[str] = mapped_column("x-uid", String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    type: Mapped[str | None] = mapped_column(String(100), default=None)
    schema: Mapped[dict] = mapped_column(JSONB, default=dict)

    __table_args__ = (
        Index("ix_ui_schemas_name_type", "name", "type"),
    )


class UiSchemaTreePath(Base):
    """Closure-table row linking an ancestor schema node to a descendant."""

    __tablename__ = "ui_schema_tree_path"

    ancestor: Mapped[str] = mapped_column(String(255), primary_key=True)
    descendant: Mapped[str] = mapped_column(String(255), primary_key=True)
    depth: Mapped[int] = mapped_column(Integer)
    async_: Mapped[bool] = mapped_column("async", Boolean, default=False)
    type: Mapped[str | None] = mapped_column(String(100), default=None)
    sort: Mapped[int | None] = mapped_column(Integer, default=None)

    __table_args__ = (
        Index("ix_ui_schema_tree_path_descendant", "descendant"),
    )
