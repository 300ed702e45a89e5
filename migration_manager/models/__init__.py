"""
Migration Manager Models

ORM models (database tables):
    from migration_manager.models import Workflow, FlowNode
    from migration_manager.models.orm.workflows import Workflow  # Granular access

Pydantic contracts (API request/response):
    from migration_manager.models.contracts.migration import ExportPayload
"""

from migration_manager.models.orm import (
    Base,
    CollectionMeta,
    DesktopRoute,
    FieldMeta,
    FlowNode,
    UiSchema,
    UiSchemaTreePath,
    Workflow,
)

__all__ = [
    "Base",
    "CollectionMeta",
    "DesktopRoute",
    "FieldMeta",
    "FlowNode",
    "UiSchema",
    "UiSchemaTreePath",
    "Workflow",
]
