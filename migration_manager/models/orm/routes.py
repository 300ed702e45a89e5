"""
Desktop route ORM model.

Routes form a strict tree through parent_id (NULL for roots). Tab descriptors
of a page may additionally be stored denormalized in the page's `children`
JSON column.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from migration_manager.models.orm.base import Base


class DesktopRoute(Base):
    """Menu/page route of the desktop UI."""

    __tablename__ = "desktop_routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_id: Mapped[int | None] = mapped_column(
        "parentId", ForeignKey("desktop_routes.id", ondelete="CASCADE"), default=None, index=True
    )
    title: Mapped[str | None] = mapped_column(String(255), default=None)
    tooltip: Mapped[str | None] = mapped_column(String(255), default=None)
    icon: Mapped[str | None] = mapped_column(String(255), default=None)
    schema_uid: Mapped[str | None] = mapped_column("schemaUid", String(255), default=None, index=True)
    menu_schema_uid: Mapped[str | None] = mapped_column("menuSchemaUid", String(255), default=None)
    tab_schema_name: Mapped[str | None] = mapped_column("tabSchemaName", String(255), default=None)
    type: Mapped[str | None] = mapped_column(String(100), default=None)
    options: Mapped[dict | None] = mapped_column(JSONB, default=None)
    sort: Mapped[int | None] = mapped_column(Integer, default=None)
    hide_in_menu: Mapped[bool | None] = mapped_column("hideInMenu", Boolean, default=None)
    enable_tabs: Mapped[bool | None] = mapped_column("enableTabs", Boolean, default=None)
    enable_header: Mapped[bool | None] = mapped_column("enableHeader", Boolean, default=None)
    display_title: Mapped[bool | None] = mapped_column("displayTitle", Boolean, default=None)
    hidden: Mapped[bool | None] = mapped_column(Boolean, default=None)
    children: Mapped[list | None] = mapped_column(JSONB, default=None)
