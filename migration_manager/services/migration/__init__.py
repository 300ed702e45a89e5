"""
Migration services

Export, import and apply of collections, workflows, UI schemas and desktop
routes between platform instances.
"""

from migration_manager.services.migration.collection_runtime import (
    CollectionRuntime,
    PlatformHooks,
    SqlCollectionRuntime,
)
from migration_manager.services.migration.natural_keys import (
    WORKFLOW_LOOKUP_ORDER,
    NaturalKeyResolver,
    WorkflowIdentity,
)
from migration_manager.services.migration.orchestrator import MigrationOrchestrator
from migration_manager.services.migration.policy import ReconciliationPolicyEngine
from migration_manager.services.migration.route_tree import RouteTreeCodec
from migration_manager.services.migration.schema_sync import SchemaSubtreeSync
from migration_manager.services.migration.workflow_graph import WorkflowGraphCodec

__all__ = [
    "CollectionRuntime",
    "MigrationOrchestrator",
    "NaturalKeyResolver",
    "PlatformHooks",
    "ReconciliationPolicyEngine",
    "RouteTreeCodec",
    "SchemaSubtreeSync",
    "SqlCollectionRuntime",
    "WORKFLOW_LOOKUP_ORDER",
    "WorkflowGraphCodec",
    "WorkflowIdentity",
]
