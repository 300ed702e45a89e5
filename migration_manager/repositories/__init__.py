"""
Repositories

Record repositories over the platform tables and the UI schema tree.
"""

from migration_manager.repositories.base import (
    COLLECTIONS,
    DESKTOP_ROUTES,
    FIELDS,
    FLOW_NODES,
    UI_SCHEMA_TREE_PATH,
    UI_SCHEMAS,
    WORKFLOWS,
    RecordRepository,
    SqlRecordRepository,
    SqlStorage,
    Storage,
)
from migration_manager.repositories.ui_schemas import UiSchemaTreeRepository, generate_uid

__all__ = [
    "RecordRepository",
    "SqlRecordRepository",
    "Storage",
    "SqlStorage",
    "UiSchemaTreeRepository",
    "generate_uid",
    "COLLECTIONS",
    "FIELDS",
    "WORKFLOWS",
    "FLOW_NODES",
    "UI_SCHEMAS",
    "UI_SCHEMA_TREE_PATH",
    "DESKTOP_ROUTES",
]
