"""
SQLAlchemy ORM Models

Pure database models using SQLAlchemy 2.0 declarative style. These mirror
the platform tables the migration service reads from and writes to.

For API schemas, see models/contracts.
"""

from migration_manager.models.orm.base import Base
from migration_manager.models.orm.collections import CollectionMeta, FieldMeta
from migration_manager.models.orm.routes import DesktopRoute
from migration_manager.models.orm.ui_schemas import UiSchema, UiSchemaTreePath
from migration_manager.models.orm.workflows import FlowNode, Workflow

__all__ = [
    # Base
    "Base",
    # Collections
    "CollectionMeta",
    "FieldMeta",
    # Workflows
    "Workflow",
    "FlowNode",
    # UI schemas
    "UiSchema",
    "UiSchemaTreePath",
    # Routes
    "DesktopRoute",
]
