"""
UI Schema Tree Repository

Nested schema documents on top of two record repositories: one row per node
in `ui_schemas`, and the closure table `ui_schema_tree_path` holding every
(ancestor, descendant, depth) pair including the depth-0 self pair.
"""

import secrets
import string
from typing import Any, Literal

from migration_manager.repositories.base import RecordRepository

UID_ALPHABET = string.ascii_lowercase + string.digits
UID_LENGTH = 11

# Keys stored in dedicated columns rather than inside the `schema` JSON
_RESERVED_KEYS = ("properties", "x-uid", "name")

Position = Literal["beforeEnd", "afterBegin"]


def generate_uid() -> str:
    """Random 11-character lowercase alphanumeric uid."""
    return "".join(secrets.choice(UID_ALPHABET) for _ in range(UID_LENGTH))


def node_attributes(document: dict[str, Any]) -> dict[str, Any]:
    """Scalar attributes of a schema node (everything but uid, name and children)."""
    return {key: value for key, value in document.items() if key not in _RESERVED_KEYS}


class UiSchemaTreeRepository:
    """Hydrate, insert and remove UI schema subtrees."""

    def __init__(self, schemas: RecordRepository, paths: RecordRepository):
        self.schemas = schemas
        self.paths = paths

    async def find_node(self, uid: str) -> dict[str, Any] | None:
        return await self.schemas.find_one({"x_uid": uid})

    async def parent_link(self, uid: str) -> dict[str, Any] | None:
        """The depth-1 closure row pointing at uid, or None for a root node."""
        return await self.paths.find_one({"descendant": uid, "depth": 1})

    async def get_json_schema(self, uid: str) -> dict[str, Any] | None:
        """
        Return the nested document rooted at uid, or None if there is no such node.

        Children come from depth-1 closure rows ordered by `sort` and are keyed
        by their stored name under `properties`.
        """
        row = await self.find_node(uid)
        if row is None:
            return None
        return await self._hydrate(row)

    async def _hydrate(self, row: dict[str, Any]) -> dict[str, Any]:
        document = dict(row.get("schema") or {})
        if row.get("type") is not None:
            document.setdefault("type", row["type"])
        document["name"] = row["name"]
        document["x-uid"] = row["x_uid"]

        links = await self.paths.find({"ancestor": row["x_uid"], "depth": 1}, sort=["sort"])
        properties: dict[str, Any] = {}
        for link in links:
            child = await self.find_node(link["descendant"])
            if child is not None:
                properties[child["name"]] = await self._hydrate(child)
        if properties:
            document["properties"] = properties
        return document

    async def insert(
        self,
        document: dict[str, Any],
        parent_uid: str | None = None,
        *,
        name: str | None = None,
        sort: int | None = None,
    ) -> str:
        """
        Insert a document (and its `properties` recursively) below parent_uid.

        Nodes without an `x-uid` get a generated one. Each node receives its
        self row once plus one closure row per ancestor of the parent.

        Returns:
            The uid of the inserted root node
        """
        uid = document.get("x-uid") or generate_uid()
        node_name = name or document.get("name") or uid
        values = {
            "name": node_name,
            "type": document.get("type"),
            "schema": node_attributes(document),
        }

        if await self.find_node(uid) is None:
            await self.schemas.create({"x_uid": uid, **values})
        else:
            await self.schemas.update(uid, values)

        if await self.paths.find_one({"ancestor": uid, "descendant": uid}) is None:
            await self.paths.create(
                {"ancestor": uid, "descendant": uid, "depth": 0, "async_": False}
            )

        if parent_uid:
            for ancestor in await self.paths.find({"descendant": parent_uid}):
                exists = await self.paths.find_one(
                    {"ancestor": ancestor["ancestor"], "descendant": uid}
                )
                if exists is None:
                    await self.paths.create(
                        {
                            "ancestor": ancestor["ancestor"],
                            "descendant": uid,
                            "depth": ancestor["depth"] + 1,
                            "async_": False,
                            "type": "properties",
                            "sort": sort,
                        }
                    )

        properties = document.get("properties") or {}
        for index, (child_name, child) in enumerate(properties.items(), start=1):
            if isinstance(child, dict):
                await self.insert(child, uid, name=child_name, sort=index)

        return uid

    async def insert_adjacent(
        self,
        target_uid: str,
        document: dict[str, Any],
        position: Position = "beforeEnd",
        *,
        name: str | None = None,
    ) -> str:
        """Insert document as the last (beforeEnd) or first (afterBegin) child of target_uid."""
        siblings = await self.paths.find({"ancestor": target_uid, "depth": 1})
        sorts = [row["sort"] for row in siblings if row.get("sort") is not None]
        if position == "beforeEnd":
            sort = max(sorts, default=0) + 1
        elif position == "afterBegin":
            sort = min(sorts, default=1) - 1
        else:
            raise ValueError(f"Unsupported position: {position}")
        return await self.insert(document, target_uid, name=name, sort=sort)

    async def remove(self, uid: str) -> int:
        """Delete the node and its whole subtree. Returns the number of nodes removed."""
        rows = await self.paths.find({"ancestor": uid})
        uids = {row["descendant"] for row in rows} | {uid}
        return await self._purge(sorted(uids))

    async def remove_descendants(self, uid: str) -> int:
        """Delete every strict descendant of uid, keeping uid itself."""
        rows = await self.paths.find({"ancestor": uid, "depth": {"$gt": 0}})
        uids = sorted({row["descendant"] for row in rows})
        if not uids:
            return 0
        return await self._purge(uids)

    async def _purge(self, uids: list[str]) -> int:
        await self.paths.destroy({"descendant": {"$in": uids}}, force=True)
        await self.paths.destroy({"ancestor": {"$in": uids}}, force=True)
        return await self.schemas.destroy({"x_uid": {"$in": uids}}, force=True)
