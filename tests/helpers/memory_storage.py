"""
In-memory Storage for service tests.

Implements the RecordRepository contract (filters, appends, sort, savepoints)
over plain dicts so the migration services run end to end without PostgreSQL.
Column sets and defaults mirror the ORM models.
"""

import copy
import itertools
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from migration_manager.core.exceptions import (
    MigrationError,
    RecordNotFoundError,
    RepositoryNotFoundError,
)
from migration_manager.repositories.base import RecordRepository, Storage

TABLES: dict[str, dict[str, Any]] = {
    "collections": {
        "pk": ("name",),
        "columns": {
            "name": None,
            "title": None,
            "primary_key": "id",
            "template": "general",
            "data_source": "main",
            "options": {},
            "sort": None,
        },
    },
    "fields": {
        "pk": ("id",),
        "columns": {
            "id": None,
            "collection_name": None,
            "name": None,
            "type": "string",
            "interface": "input",
            "data_source": "main",
            "options": {},
            "sort": None,
        },
    },
    "workflows": {
        "pk": ("id",),
        "columns": {
            "id": None,
            "key": None,
            "title": None,
            "description": None,
            "type": None,
            "enabled": False,
            "current": True,
            "sync": False,
            "trigger_title": None,
            "options": {},
            "config": {},
        },
    },
    "flow_nodes": {
        "pk": ("id",),
        "columns": {
            "id": None,
            "key": None,
            "workflow_id": None,
            "type": None,
            "title": None,
            "upstream_id": None,
            "downstream_id": None,
            "branch_index": None,
            "config": {},
        },
    },
    "ui_schemas": {
        "pk": ("x_uid",),
        "columns": {"x_uid": None, "name": "", "type": None, "schema": {}},
    },
    "ui_schema_tree_path": {
        "pk": ("ancestor", "descendant"),
        "columns": {
            "ancestor": None,
            "descendant": None,
            "depth": 0,
            "async_": False,
            "type": None,
            "sort": None,
        },
    },
    "desktop_routes": {
        "pk": ("id",),
        "columns": {
            "id": None,
            "parent_id": None,
            "title": None,
            "tooltip": None,
            "icon": None,
            "schema_uid": None,
            "menu_schema_uid": None,
            "tab_schema_name": None,
            "type": None,
            "options": None,
            "sort": None,
            "hide_in_menu": None,
            "enable_tabs": None,
            "enable_header": None,
            "display_title": None,
            "hidden": None,
            "children": None,
        },
    },
}

# relation name -> (target repository, foreign key on target)
RELATIONS: dict[str, dict[str, tuple[str, str]]] = {
    "workflows": {"nodes": ("flow_nodes", "workflow_id")},
}


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is None, value if value is not None else 0)


def _matches(row: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    for key, expected in (filter or {}).items():
        actual = row.get(key)
        if isinstance(expected, dict):
            for op, operand in expected.items():
                if op == "$in" and actual not in list(operand):
                    return False
                if op == "$gt" and (actual is None or not actual > operand):
                    return False
                if op == "$ne" and actual == operand:
                    return False
                if op == "$eq" and actual != operand:
                    return False
                if op not in ("$in", "$gt", "$ne", "$eq"):
                    raise MigrationError(f"Unsupported filter operator '{op}'")
        elif actual != expected:
            return False
    return True


class MemoryRepository(RecordRepository):
    def __init__(self, storage: "MemoryStorage", name: str):
        table = TABLES[name]
        self.storage = storage
        self.name = name
        self.pk_columns: tuple[str, ...] = table["pk"]
        self.primary_key = self.pk_columns[0]
        self.columns: dict[str, Any] = table["columns"]
        self.rows: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    def _check(self, filter: dict[str, Any] | None) -> None:
        for key in filter or {}:
            if key not in self.columns:
                raise MigrationError(f"Unknown attribute '{key}' on repository '{self.name}'")

    def _with_appends(self, row: dict[str, Any], appends: list[str] | None) -> dict[str, Any]:
        record = copy.deepcopy(row)
        for relation in appends or []:
            target, foreign_key = RELATIONS[self.name][relation]
            related = self.storage.get_repository(target)
            record[relation] = sorted(
                (copy.deepcopy(r) for r in related.rows if r.get(foreign_key) == row["id"]),
                key=lambda r: r["id"],
            )
        return record

    async def find(self, filter=None, *, appends=None, sort=None):
        self._check(filter)
        rows = [row for row in self.rows if _matches(row, filter)]
        for key in reversed(sort or [self.primary_key]):
            descending = key.startswith("-")
            column = key.lstrip("-")
            rows.sort(key=lambda r: _sort_key(r.get(column)), reverse=descending)
        return [self._with_appends(row, appends) for row in rows]

    async def create(self, values):
        row = copy.deepcopy(self.columns)
        row.update({k: copy.deepcopy(v) for k, v in values.items() if k in self.columns})
        if self.pk_columns == ("id",) and row.get("id") is None:
            row["id"] = next(self._ids)
        self.rows.append(row)
        return copy.deepcopy(row)

    async def update(self, pk, values):
        for row in self.rows:
            if row[self.primary_key] == pk:
                row.update({k: copy.deepcopy(v) for k, v in values.items() if k in self.columns})
                return copy.deepcopy(row)
        raise RecordNotFoundError(self.name, pk)

    async def destroy(self, filter=None, *, pk=None, force=False):
        if pk is not None:
            filter = {**(filter or {}), self.primary_key: pk}
        if not filter:
            raise MigrationError(f"Refusing to destroy every record of '{self.name}'")
        self._check(filter)
        doomed = [row for row in self.rows if _matches(row, filter)]
        self.rows = [row for row in self.rows if not _matches(row, filter)]
        return len(doomed)


class MemoryStorage(Storage):
    def __init__(self, names: list[str] | None = None):
        self.repositories = {
            name: MemoryRepository(self, name) for name in (names or list(TABLES))
        }

    def get_repository(self, name: str) -> MemoryRepository:
        if name not in self.repositories:
            raise RepositoryNotFoundError(name)
        return self.repositories[name]

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {name: copy.deepcopy(repo.rows) for name, repo in self.repositories.items()}

    def restore(self, snapshot: dict[str, list[dict[str, Any]]]) -> None:
        for name, rows in snapshot.items():
            self.repositories[name].rows = copy.deepcopy(rows)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        saved = self.snapshot()
        try:
            yield
        except BaseException:
            self.restore(saved)
            raise

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.repositories[name].rows
