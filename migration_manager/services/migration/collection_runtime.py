"""
Collection runtime.

The platform keeps an in-memory registry of collections built from the
`collections`/`fields` metadata rows. Apply uses it to rebuild missing
definitions and to sync physical tables with their metadata.

Sync is additive: a missing table is created, missing columns are added, and
nothing is ever dropped or retyped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    inspect,
)
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import TypeEngine

from migration_manager.repositories.base import COLLECTIONS, FIELDS, Storage
from migration_manager.services.migration.capabilities import Hook

logger = logging.getLogger(__name__)

FIELD_TYPES: dict[str, Callable[[], TypeEngine[Any]]] = {
    "string": lambda: String(255),
    "password": lambda: String(255),
    "text": Text,
    "integer": Integer,
    "sort": Integer,
    "bigInt": BigInteger,
    "boolean": Boolean,
    "float": Float,
    "double": Float,
    "decimal": Numeric,
    "date": DateTime,
    "datetime": DateTime,
    "json": JSON,
    "jsonb": JSON,
    "array": JSON,
    "uuid": lambda: String(64),
    "uid": lambda: String(64),
}

# Stored on the other side of the relation or in a through table
RELATION_TYPES = frozenset({"belongsTo", "hasMany", "hasOne", "belongsToMany"})

# Platform defaults for newly created collections
DEFAULT_COLLECTION_OPTIONS: dict[str, bool] = {
    "logging": True,
    "autoGenId": True,
    "createdBy": True,
    "updatedBy": True,
    "createdAt": True,
    "updatedAt": True,
    "sortable": True,
}


class RuntimeCollection(Protocol):
    name: str

    def field_options(self, field_name: str) -> dict[str, Any] | None: ...

    async def sync(self, *, alter: bool = True) -> None: ...


class CollectionRuntime(Protocol):
    def get_collection(self, name: str) -> RuntimeCollection | None: ...

    async def define(self, definition: dict[str, Any]) -> RuntimeCollection: ...

    async def reload(self) -> None: ...


@dataclass
class PlatformHooks:
    """Optional callbacks into the host platform. Any of them may be None."""

    remove_schema: Hook | None = None
    reload_collections: Hook | None = None
    reload_schemas: Hook | None = None
    reload_workflows: Hook | None = None


def column_for_field(field: dict[str, Any]) -> Column | None:
    """Column for a field definition, or None for relations and unknown types."""
    field_type = field.get("type") or "string"
    if field_type in RELATION_TYPES:
        return None
    factory = FIELD_TYPES.get(field_type)
    if factory is None:
        logger.debug(f"Field '{field.get('name')}' has unmapped type '{field_type}', no column")
        return None
    return Column(field["name"], factory(), nullable=True)


def build_columns(definition: dict[str, Any]) -> list[Column]:
    """Columns of a collection definition, primary key and audit columns included."""
    options = definition.get("options") or {}
    primary_key = definition.get("primary_key") or "id"
    fields = {f["name"]: f for f in definition.get("fields") or [] if f.get("name")}

    columns: list[Column] = []
    if primary_key not in fields or options.get("autoGenId"):
        columns.append(Column(primary_key, BigInteger, primary_key=True, autoincrement=True))
    if options.get("createdAt"):
        columns.append(Column("createdAt", DateTime, nullable=True))
    if options.get("updatedAt"):
        columns.append(Column("updatedAt", DateTime, nullable=True))
    if options.get("createdBy"):
        columns.append(Column("createdById", BigInteger, nullable=True))
    if options.get("updatedBy"):
        columns.append(Column("updatedById", BigInteger, nullable=True))
    if options.get("sortable"):
        columns.append(Column("sort", Integer, nullable=True))

    taken = {column.name for column in columns}
    for name, field in fields.items():
        if name in taken:
            continue
        column = column_for_field(field)
        if column is not None:
            if name == primary_key:
                column = Column(name, column.type, primary_key=True)
            columns.append(column)
            taken.add(name)
    return columns


class SqlRuntimeCollection:
    """A collection definition bound to a physical table."""

    def __init__(self, session: AsyncSession, definition: dict[str, Any]):
        self.session = session
        self.definition = definition
        self.name: str = definition["name"]
        self._fields = {f["name"]: f for f in definition.get("fields") or [] if f.get("name")}

    def field_options(self, field_name: str) -> dict[str, Any] | None:
        field = self._fields.get(field_name)
        return (field or {}).get("options") or None

    def _sync(self, connection: Connection) -> None:
        columns = build_columns(self.definition)
        existing_tables = inspect(connection).get_table_names()
        if self.name not in existing_tables:
            Table(self.name, MetaData(), *columns).create(connection)
            logger.info(f"Created table '{self.name}' with {len(columns)} column(s)")
            return

        present = {column["name"] for column in inspect(connection).get_columns(self.name)}
        operations = Operations(MigrationContext.configure(connection))
        for column in columns:
            if column.name in present:
                continue
            operations.add_column(self.name, Column(column.name, column.type, nullable=True))
            logger.info(f"Added column '{self.name}.{column.name}'")

    async def sync(self, *, alter: bool = True) -> None:
        if not alter:
            return
        connection = await self.session.connection()
        await connection.run_sync(self._sync)


class SqlCollectionRuntime:
    """Collection registry rebuilt from metadata rows."""

    def __init__(self, session: AsyncSession, storage: Storage):
        self.session = session
        self.storage = storage
        self._collections: dict[str, SqlRuntimeCollection] = {}

    def get_collection(self, name: str) -> SqlRuntimeCollection | None:
        return self._collections.get(name)

    async def define(self, definition: dict[str, Any]) -> SqlRuntimeCollection:
        collection = SqlRuntimeCollection(self.session, definition)
        self._collections[collection.name] = collection
        return collection

    async def reload(self) -> None:
        collections = await self.storage.get_repository(COLLECTIONS).find()
        fields = await self.storage.get_repository(FIELDS).find(sort=["collection_name", "sort", "id"])

        by_collection: dict[str, list[dict[str, Any]]] = {}
        for field in fields:
            by_collection.setdefault(field["collection_name"], []).append(field)

        self._collections.clear()
        for meta in collections:
            await self.define(
                {
                    "name": meta["name"],
                    "title": meta.get("title"),
                    "primary_key": meta.get("primary_key") or "id",
                    "options": meta.get("options") or {},
                    "fields": by_collection.get(meta["name"], []),
                }
            )
        logger.debug(f"Collection registry reloaded: {len(self._collections)} collection(s)")
