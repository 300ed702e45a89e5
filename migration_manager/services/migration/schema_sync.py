"""
UI schema subtree synchronization.

Two write paths with different identity rules:

- replace (import): the root is identified by uid; an existing subtree is
  removed and the incoming document inserted in its place.
- merge (apply): the root is identified by (name, type); an existing root keeps
  its uid, its own attributes are updated, and its descendants are replaced.
"""

import logging
from dataclasses import dataclass
from typing import Any, Literal

from migration_manager.models.contracts.migration import UiSchemaBundle
from migration_manager.repositories.ui_schemas import UiSchemaTreeRepository, node_attributes
from migration_manager.services.migration.capabilities import Hook, call_hook

logger = logging.getLogger(__name__)


@dataclass
class SchemaWriteOutcome:
    uid: str
    action: Literal["created", "updated", "merged"]


class SchemaSubtreeSync:
    """Fetch, replace and merge UI schema subtrees."""

    def __init__(self, tree: UiSchemaTreeRepository, remove_schema: Hook | None = None):
        self.tree = tree
        self.remove_schema = remove_schema

    async def fetch(self, uid: str) -> dict[str, Any] | None:
        return await self.tree.get_json_schema(uid)

    async def replace(self, bundle: UiSchemaBundle) -> SchemaWriteOutcome:
        """
        Import path: drop whatever lives at rootUid, then insert the document.

        A nested root is reinserted under its old parent, keeping its name and sort.
        """
        uid = bundle.root_uid
        document = dict(bundle.data or {})
        document["x-uid"] = uid

        existing = await self.tree.find_node(uid)
        parent = await self.tree.parent_link(uid) if existing is not None else None
        existed = existing is not None
        if existed:
            removed = await call_hook(self.remove_schema, uid, label="remove_schema")
            if not removed or await self.tree.find_node(uid) is not None:
                await self.tree.remove(uid)

        if parent is not None:
            await self.tree.insert(document, parent["ancestor"], name=existing["name"], sort=parent.get("sort"))
        else:
            await self.tree.insert(document)
        return SchemaWriteOutcome(uid=uid, action="updated" if existed else "created")

    async def merge(self, document: dict[str, Any]) -> SchemaWriteOutcome:
        """
        Apply path: merge a document into the root matching its (name, type).

        The document must carry both `name` and `type`.
        """
        name = document["name"]
        node_type = document["type"]
        target = await self.tree.schemas.find_one({"name": name, "type": node_type})

        if target is None:
            uid = await self.tree.insert(document)
            return SchemaWriteOutcome(uid=uid, action="created")

        uid = target["x_uid"]
        await self.tree.schemas.update(
            uid,
            {"name": name, "type": node_type, "schema": node_attributes(document)},
        )
        removed = await self.tree.remove_descendants(uid)
        logger.debug(f"Merging schema '{uid}': replaced {removed} descendant node(s)")

        properties = document.get("properties") or {}
        for child_name, child in properties.items():
            if isinstance(child, dict):
                await self.tree.insert_adjacent(uid, child, "beforeEnd", name=child_name)
        return SchemaWriteOutcome(uid=uid, action="merged")
