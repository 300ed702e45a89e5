"""
Record Repositories

Generic record repository contract used by the migration services, plus its
SQLAlchemy implementation.

Records are plain dicts keyed by ORM attribute name. Filters are dicts of
attribute -> value, where a value may be an operator dict:

    {"key": "wf-1"}                      equality (None means IS NULL)
    {"id": {"$in": [1, 2, 3]}}           membership
    {"depth": {"$gt": 0}}                greater than
    {"schema_uid": {"$ne": None}}        null-safe inequality
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import ColumnElement, delete, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from migration_manager.core.exceptions import (
    MigrationError,
    RecordNotFoundError,
    RepositoryNotFoundError,
)
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

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Filter = dict[str, Any]

# Repository names
COLLECTIONS = "collections"
FIELDS = "fields"
WORKFLOWS = "workflows"
FLOW_NODES = "flow_nodes"
UI_SCHEMAS = "ui_schemas"
UI_SCHEMA_TREE_PATH = "ui_schema_tree_path"
DESKTOP_ROUTES = "desktop_routes"

REPOSITORY_MODELS: dict[str, type[Base]] = {
    COLLECTIONS: CollectionMeta,
    FIELDS: FieldMeta,
    WORKFLOWS: Workflow,
    FLOW_NODES: FlowNode,
    UI_SCHEMAS: UiSchema,
    UI_SCHEMA_TREE_PATH: UiSchemaTreePath,
    DESKTOP_ROUTES: DesktopRoute,
}


class RecordRepository(ABC):
    """Find/create/update/destroy over one kind of record."""

    name: str
    primary_key: str

    @abstractmethod
    async def find(
        self,
        filter: Filter | None = None,
        *,
        appends: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> list[Record]:
        """Return all records matching the filter. Sort keys prefixed with '-' are descending."""

    async def find_one(
        self,
        filter: Filter | None = None,
        *,
        appends: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> Record | None:
        """Return the first matching record or None."""
        records = await self.find(filter, appends=appends, sort=sort)
        return records[0] if records else None

    @abstractmethod
    async def create(self, values: Record) -> Record:
        """Insert a record and return it with generated values filled in."""

    @abstractmethod
    async def update(self, pk: Any, values: Record) -> Record:
        """Update the record identified by pk. Raises RecordNotFoundError."""

    @abstractmethod
    async def destroy(
        self,
        filter: Filter | None = None,
        *,
        pk: Any = None,
        force: bool = False,
    ) -> int:
        """Delete matching records and return how many were removed."""


class Storage(ABC):
    """Named repositories plus per-item savepoints."""

    @abstractmethod
    def get_repository(self, name: str) -> RecordRepository:
        """Return the repository registered under name or raise RepositoryNotFoundError."""

    def has_repository(self, name: str) -> bool:
        try:
            self.get_repository(name)
        except RepositoryNotFoundError:
            return False
        return True

    @abstractmethod
    def savepoint(self) -> Any:
        """Async context manager; a failure inside rolls back only that block."""


class SqlRecordRepository(RecordRepository):
    """RecordRepository backed by an SQLAlchemy ORM model."""

    def __init__(self, session: AsyncSession, model: type[Base], name: str):
        self.session = session
        self.model = model
        self.name = name
        mapper = inspect(model)
        self._attrs = [attr.key for attr in mapper.column_attrs]
        self.primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key

    def _column(self, key: str) -> Any:
        if key not in self._attrs:
            raise MigrationError(f"Unknown attribute '{key}' on repository '{self.name}'")
        return getattr(self.model, key)

    def _where(self, filter: Filter | None) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []
        for key, value in (filter or {}).items():
            column = self._column(key)
            if not isinstance(value, dict):
                clauses.append(column.is_(None) if value is None else column == value)
                continue
            for op, operand in value.items():
                if op == "$in":
                    clauses.append(column.in_(list(operand)))
                elif op == "$gt":
                    clauses.append(column > operand)
                elif op == "$ne":
                    clauses.append(column.is_distinct_from(operand))
                elif op == "$eq":
                    clauses.append(column.is_not_distinct_from(operand))
                else:
                    raise MigrationError(f"Unsupported filter operator '{op}'")
        return clauses

    @staticmethod
    def _as_dict(obj: Any) -> Record:
        return {attr.key: getattr(obj, attr.key) for attr in inspect(type(obj)).column_attrs}

    def _to_record(self, obj: Any, appends: list[str] | None = None) -> Record:
        record = self._as_dict(obj)
        for relation in appends or []:
            related = getattr(obj, relation)
            if isinstance(related, list):
                record[relation] = [self._as_dict(item) for item in related]
            else:
                record[relation] = self._as_dict(related) if related is not None else None
        return record

    def _values(self, values: Record) -> Record:
        return {key: value for key, value in values.items() if key in self._attrs}

    async def find(
        self,
        filter: Filter | None = None,
        *,
        appends: list[str] | None = None,
        sort: list[str] | None = None,
    ) -> list[Record]:
        query = select(self.model).where(*self._where(filter))
        for relation in appends or []:
            query = query.options(selectinload(getattr(self.model, relation)))
        for key in sort or [self.primary_key]:
            if key.startswith("-"):
                query = query.order_by(self._column(key[1:]).desc())
            else:
                query = query.order_by(self._column(key))

        result = await self.session.execute(query)
        return [self._to_record(obj, appends) for obj in result.scalars().all()]

    async def create(self, values: Record) -> Record:
        obj = self.model(**self._values(values))
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)
        return self._to_record(obj)

    async def update(self, pk: Any, values: Record) -> Record:
        obj = await self.session.get(self.model, pk)
        if obj is None:
            raise RecordNotFoundError(self.name, pk)

        for key, value in self._values(values).items():
            setattr(obj, key, value)
        await self.session.flush()
        await self.session.refresh(obj)
        return self._to_record(obj)

    async def destroy(
        self,
        filter: Filter | None = None,
        *,
        pk: Any = None,
        force: bool = False,
    ) -> int:
        if pk is not None:
            filter = {**(filter or {}), self.primary_key: pk}
        if not filter:
            raise MigrationError(f"Refusing to destroy every record of '{self.name}'")

        if force:
            # Bulk statement; skips ORM cascades
            result = await self.session.execute(
                delete(self.model).where(*self._where(filter))
            )
            return result.rowcount or 0

        result = await self.session.execute(select(self.model).where(*self._where(filter)))
        objs = list(result.scalars().all())
        for obj in objs:
            await self.session.delete(obj)
        await self.session.flush()
        return len(objs)


class SqlStorage(Storage):
    """Storage over one AsyncSession. Savepoints map to SAVEPOINT via begin_nested()."""

    def __init__(
        self,
        session: AsyncSession,
        models: dict[str, type[Base]] | None = None,
    ):
        self.session = session
        self._models = models if models is not None else REPOSITORY_MODELS
        self._repositories: dict[str, SqlRecordRepository] = {}

    def get_repository(self, name: str) -> RecordRepository:
        if name not in self._models:
            raise RepositoryNotFoundError(name)
        if name not in self._repositories:
            self._repositories[name] = SqlRecordRepository(self.session, self._models[name], name)
        return self._repositories[name]

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self.session.begin_nested():
            yield
