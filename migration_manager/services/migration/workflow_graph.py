"""
Workflow graph translation.

Stored nodes link to each other by database id (upstream_id/downstream_id).
Exported nodes link by their portable `key` instead, and imports translate the
keys back to ids of the target store in two passes: upsert every node first,
then patch links once every key has an id.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from migration_manager.models.contracts.migration import WorkflowBundle, WorkflowNodeBundle
from migration_manager.repositories.base import Record, RecordRepository

logger = logging.getLogger(__name__)


@dataclass
class NodeSyncStats:
    upserted: int = 0
    deleted: int = 0
    key_to_id: dict[str, Any] = field(default_factory=dict)


def workflow_values(bundle: WorkflowBundle) -> dict[str, Any]:
    """Scalar columns written when a workflow is created or overwritten."""
    return {
        "title": bundle.title,
        "type": bundle.type,
        "sync": bool(bundle.sync),
        "description": bundle.description,
        "trigger_title": bundle.trigger_title,
        "options": bundle.options or {},
        "config": bundle.config or {},
    }


class WorkflowGraphCodec:
    """Export and re-link the node graph of a workflow."""

    def __init__(self, nodes: RecordRepository):
        self.nodes = nodes

    @staticmethod
    def export_nodes(rows: list[Record]) -> list[WorkflowNodeBundle]:
        id_to_key = {row["id"]: row.get("key") for row in rows}

        def link(node_id: Any) -> str | None:
            return id_to_key.get(node_id) if node_id else None

        return [
            WorkflowNodeBundle(
                key=row.get("key"),
                type=row.get("type"),
                title=row.get("title"),
                upstream_key=link(row.get("upstream_id")),
                downstream_key=link(row.get("downstream_id")),
                branch_index=row.get("branch_index"),
                config=row.get("config") or {},
            )
            for row in rows
        ]

    @classmethod
    def export_workflow(cls, row: Record) -> WorkflowBundle:
        """Portable form of a workflow record loaded with its nodes."""
        return WorkflowBundle(
            key=row.get("key"),
            title=row.get("title"),
            description=row.get("description"),
            type=row.get("type"),
            sync=bool(row.get("sync")),
            current=True,
            trigger_title=row.get("trigger_title"),
            options=row.get("options") or {},
            config=row.get("config") or {},
            nodes=cls.export_nodes(row.get("nodes") or []),
        )

    async def sync_nodes(
        self,
        workflow_id: Any,
        nodes: list[WorkflowNodeBundle | None],
        *,
        prune: bool = False,
    ) -> NodeSyncStats:
        """
        Upsert nodes by key, optionally prune the rest, then re-link.

        Nodes without a key are ignored. A link naming a key that is not part
        of the input becomes None.

        Args:
            workflow_id: Target workflow id
            nodes: Incoming nodes
            prune: Delete existing keyed nodes whose key is absent from the input

        Returns:
            Counts plus the final key -> id map
        """
        stats = NodeSyncStats()
        keyed = [node for node in nodes if node is not None and node.key]

        existing_by_key: dict[str, Record] = {}
        for row in await self.nodes.find({"workflow_id": workflow_id}):
            if row.get("key"):
                existing_by_key.setdefault(row["key"], row)

        # Pass 1: every node gets an id
        for node in keyed:
            existing = existing_by_key.get(node.key)
            if existing is not None:
                config = node.config if "config" in node.model_fields_set else existing.get("config")
                await self.nodes.update(
                    existing["id"],
                    {
                        "type": node.type or existing.get("type"),
                        "title": node.title if node.title is not None else existing.get("title"),
                        "config": config or {},
                        "branch_index": node.branch_index,
                    },
                )
                stats.key_to_id[node.key] = existing["id"]
            else:
                created = await self.nodes.create(
                    {
                        "workflow_id": workflow_id,
                        "key": node.key,
                        "type": node.type,
                        "title": node.title,
                        "config": node.config or {},
                        "upstream_id": None,
                        "downstream_id": None,
                        "branch_index": node.branch_index,
                    }
                )
                existing_by_key[node.key] = created
                stats.key_to_id[node.key] = created["id"]
            stats.upserted += 1

        if prune:
            input_keys = {node.key for node in keyed}
            for row in await self.nodes.find({"workflow_id": workflow_id}):
                if row.get("key") and row["key"] not in input_keys:
                    await self.nodes.destroy(pk=row["id"])
                    stats.deleted += 1

        # Pass 2: links resolve through the complete map
        for node in keyed:
            node_id = stats.key_to_id[node.key]
            upstream_id = stats.key_to_id.get(node.upstream_key) if node.upstream_key else None
            downstream_id = stats.key_to_id.get(node.downstream_key) if node.downstream_key else None
            if node.upstream_key and upstream_id is None:
                logger.debug(f"Node '{node.key}' links to unknown upstream '{node.upstream_key}'")
            await self.nodes.update(
                node_id,
                {
                    "upstream_id": upstream_id,
                    "downstream_id": downstream_id,
                    "branch_index": node.branch_index,
                },
            )

        return stats
