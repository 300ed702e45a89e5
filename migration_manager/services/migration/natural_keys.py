"""
Natural-key lookups against the target store.

Every lookup is read-only. Where several records match, the one with the
lowest primary key wins.
"""

from collections.abc import Awaitable, Callable
from typing import NamedTuple

from migration_manager.repositories.base import (
    COLLECTIONS,
    DESKTOP_ROUTES,
    FIELDS,
    UI_SCHEMAS,
    WORKFLOWS,
    Record,
    RecordRepository,
    Storage,
)


class WorkflowIdentity(NamedTuple):
    key: str | None = None
    title: str | None = None
    type: str | None = None


WorkflowStrategy = Callable[[RecordRepository, WorkflowIdentity], Awaitable[Record | None]]


async def workflow_by_key(repo: RecordRepository, identity: WorkflowIdentity) -> Record | None:
    if not identity.key:
        return None
    return await repo.find_one({"key": identity.key})


async def workflow_by_title_and_type(
    repo: RecordRepository, identity: WorkflowIdentity
) -> Record | None:
    if not identity.title or not identity.type:
        return None
    return await repo.find_one({"title": identity.title, "type": identity.type})


# Tried in order; the first strategy returning a record wins.
WORKFLOW_LOOKUP_ORDER: tuple[WorkflowStrategy, ...] = (
    workflow_by_key,
    workflow_by_title_and_type,
)


class NaturalKeyResolver:
    """Resolve caller-visible identifiers to existing records."""

    def __init__(
        self,
        storage: Storage,
        workflow_strategies: tuple[WorkflowStrategy, ...] = WORKFLOW_LOOKUP_ORDER,
    ):
        self.storage = storage
        self.workflow_strategies = workflow_strategies

    async def collection(self, name: str) -> Record | None:
        return await self.storage.get_repository(COLLECTIONS).find_one({"name": name})

    async def field(self, collection_name: str, name: str) -> Record | None:
        return await self.storage.get_repository(FIELDS).find_one(
            {"collection_name": collection_name, "name": name}
        )

    async def workflow(self, identity: WorkflowIdentity) -> Record | None:
        repo = self.storage.get_repository(WORKFLOWS)
        for strategy in self.workflow_strategies:
            record = await strategy(repo, identity)
            if record is not None:
                return record
        return None

    async def schema_by_uid(self, uid: str) -> Record | None:
        return await self.storage.get_repository(UI_SCHEMAS).find_one({"x_uid": uid})

    async def route_by_schema_uid(self, schema_uid: str) -> Record | None:
        return await self.storage.get_repository(DESKTOP_ROUTES).find_one({"schema_uid": schema_uid})
