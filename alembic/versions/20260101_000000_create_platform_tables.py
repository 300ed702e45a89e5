"""Create platform metadata tables

Revision ID: create_platform_tables
Revises:
Create Date: 2026-01-01

Tables read and written by migrations:
- collections / fields: collection definitions
- workflows / flow_nodes: workflow graphs
- ui_schemas / ui_schema_tree_path: UI schema nodes and their closure table
- desktop_routes: menu/page route tree
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "create_platform_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "collections",
        sa.Column("name", sa.String(255), primary_key=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("primaryKey", sa.String(255), nullable=False, server_default="id"),
        sa.Column("template", sa.String(100), nullable=False, server_default="general"),
        sa.Column("dataSource", sa.String(100), nullable=False, server_default="main"),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("sort", sa.Integer(), nullable=True),
        sa.Column("createdAt", sa.DateTime(), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updatedAt", sa.DateTime(), nullable=False, server_default=sa.text("NOW()")),
    )

    op.create_table(
        "fields",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("collectionName", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(100), nullable=False, server_default="string"),
        sa.Column("interface", sa.String(100), nullable=True),
        sa.Column("dataSource", sa.String(100), nullable=False, server_default="main"),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("sort", sa.Integer(), nullable=True),
    )
    op.create_index("ix_fields_collection_name_name", "fields", ["collectionName", "name"])

    op.create_table(
        "workflows",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(255), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("current", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sync", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("triggerTitle", sa.String(255), nullable=True),
        sa.Column("options", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("config", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("createdAt", sa.DateTime(), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updatedAt", sa.DateTime(), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("ix_workflows_key", "workflows", ["key"])
    op.create_index("ix_workflows_title_type", "workflows", ["title", "type"])

    op.create_table(
        "flow_nodes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(255), nullable=True),
        sa.Column(
            "workflowId",
            sa.Integer(),
            sa.ForeignKey("workflows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column(
            "upstreamId",
            sa.Integer(),
            sa.ForeignKey("flow_nodes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "downstreamId",
            sa.Integer(),
            sa.ForeignKey("flow_nodes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("branchIndex", sa.Integer(), nullable=True),
        sa.Column("config", postgresql.JSONB(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_flow_nodes_workflow_key", "flow_nodes", ["workflowId", "key"])

    op.create_table(
        "ui_schemas",
        sa.Column("x-uid", sa.String(255), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("schema", postgresql.JSONB(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_ui_schemas_name_type", "ui_schemas", ["name", "type"])

    op.create_table(
        "ui_schema_tree_path",
        sa.Column("ancestor", sa.String(255), primary_key=True),
        sa.Column("descendant", sa.String(255), primary_key=True),
        sa.Column("depth", sa.Integer(), nullable=False),
        sa.Column("async", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("sort", sa.Integer(), nullable=True),
    )
    op.create_index("ix_ui_schema_tree_path_descendant", "ui_schema_tree_path", ["descendant"])

    op.create_table(
        "desktop_routes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "parentId",
            sa.Integer(),
            sa.ForeignKey("desktop_routes.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("tooltip", sa.String(255), nullable=True),
        sa.Column("icon", sa.String(255), nullable=True),
        sa.Column("schemaUid", sa.String(255), nullable=True),
        sa.Column("menuSchemaUid", sa.String(255), nullable=True),
        sa.Column("tabSchemaName", sa.String(255), nullable=True),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("options", postgresql.JSONB(), nullable=True),
        sa.Column("sort", sa.Integer(), nullable=True),
        sa.Column("hideInMenu", sa.Boolean(), nullable=True),
        sa.Column("enableTabs", sa.Boolean(), nullable=True),
        sa.Column("enableHeader", sa.Boolean(), nullable=True),
        sa.Column("displayTitle", sa.Boolean(), nullable=True),
        sa.Column("hidden", sa.Boolean(), nullable=True),
        sa.Column("children", postgresql.JSONB(), nullable=True),
    )
    op.create_index("ix_desktop_routes_parentId", "desktop_routes", ["parentId"])
    op.create_index("ix_desktop_routes_schemaUid", "desktop_routes", ["schemaUid"])


def downgrade() -> None:
    op.drop_table("desktop_routes")
    op.drop_table("ui_schema_tree_path")
    op.drop_table("ui_schemas")
    op.drop_table("flow_nodes")
    op.drop_table("workflows")
    op.drop_table("fields")
    op.drop_table("collections")
