"""
Workflow and FlowNode ORM models.

A workflow owns a graph of nodes. Nodes link to each other through
upstream/downstream foreign keys that reference flow_nodes.id, which is why
exports translate them to node keys before they leave this database.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from migration_manager.models.orm.base import Base


class Workflow(Base):
    """Workflow definition (trigger configuration plus its node graph)."""

    __tablename__ = "workflows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    title: Mapped[str | None] = mapped_column(String(255), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    type: Mapped[str] = mapped_column(String(100))
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    current: Mapped[bool] = mapped_column(Boolean, default=True)
    sync: Mapped[bool] = mapped_column(Boolean, default=False)
    trigger_title: Mapped[str | None] = mapped_column("triggerTitle", String(255), default=None)
    options: Mapped[dict] = mapped_column(JSONB, default=dict)
    config: Mapped[dict] = mapped_column(JSONB, default=dict)

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

    # Relationships
    nodes: Mapped[list["FlowNode"]] = relationship(
        "FlowNode",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="FlowNode.id",
    )

    __table_args__ = (
        Index("ix_workflows_title_type", "title", "type"),
    )


class FlowNode(Base):
    """
    Node within a workflow graph.

    `key` is unique within a workflow and stable across databases.
    """

    __tablename__ = "flow_nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str | None] = mapped_column(String(255), default=None)
    workflow_id: Mapped[int] = mapped_column(
        "workflowId", ForeignKey("workflows.id", ondelete="CASCADE")
    )
    type: Mapped[str | None] = mapped_column(String(100), default=None)
    title: Mapped[str | None] = mapped_column(String(255), default=None)
    upstream_id: Mapped[int | None] = mapped_column(
        "upstreamId", ForeignKey("flow_nodes.id", ondelete="SET NULL"), default=None
    )
    downstream_id: Mapped[int | None] = mapped_column(
        "downstreamId", ForeignKey("flow_nodes.id", ondelete="SET NULL"), default=None
    )
    branch_index: Mapped[int | None] = mapped_column("branchIndex", Integer, default=None)
    config: Mapped[dict] = mapped_column(JSONB, default=dict)

    workflow: Mapped["Workflow"] = relationship("Workflow", back_populates="nodes")

    __table_args__ = (
        Index("ix_flow_nodes_workflow_key", "workflowId", "key"),
    )
