"""Tests for collection column building and runtime registry reloads."""

from unittest.mock import MagicMock

from sqlalchemy import BigInteger, Float, String

from migration_manager.repositories.base import COLLECTIONS, FIELDS
from migration_manager.services.migration.collection_runtime import (
    DEFAULT_COLLECTION_OPTIONS,
    SqlCollectionRuntime,
    build_columns,
    column_for_field,
)


class TestColumns:
    def test_relations_have_no_column(self):
        assert column_for_field({"name": "customer", "type": "belongsTo"}) is None

    def test_unknown_type_has_no_column(self):
        assert column_for_field({"name": "blob", "type": "hologram"}) is None

    def test_missing_type_defaults_to_string(self):
        column = column_for_field({"name": "title"})
        assert isinstance(column.type, String)
        assert column.nullable

    def test_default_options_add_audit_columns(self):
        columns = build_columns(
            {
                "name": "invoices",
                "options": DEFAULT_COLLECTION_OPTIONS,
                "fields": [{"name": "amount", "type": "float"}],
            }
        )
        names = [column.name for column in columns]
        assert names[0] == "id"
        assert {"createdAt", "updatedAt", "createdById", "updatedById", "sort", "amount"} <= set(names)
        assert isinstance(columns[0].type, BigInteger)
        assert columns[0].primary_key
        assert isinstance(next(c for c in columns if c.name == "amount").type, Float)

    def test_declared_primary_key_field(self):
        columns = build_columns(
            {"name": "codes", "primary_key": "code", "fields": [{"name": "code", "type": "string"}]}
        )
        assert [(c.name, c.primary_key) for c in columns] == [("code", True)]

    def test_field_named_like_audit_column_is_not_duplicated(self):
        columns = build_columns(
            {"name": "x", "options": {"sortable": True}, "fields": [{"name": "sort", "type": "sort"}]}
        )
        assert [c.name for c in columns].count("sort") == 1


class TestRegistry:
    async def test_reload_builds_definitions_from_metadata(self, storage):
        await storage.get_repository(COLLECTIONS).create({"name": "orders", "title": "Orders"})
        await storage.get_repository(FIELDS).create(
            {"collection_name": "orders", "name": "total", "type": "float", "options": {"precision": 2}}
        )
        runtime = SqlCollectionRuntime(MagicMock(), storage)

        assert runtime.get_collection("orders") is None
        await runtime.reload()

        collection = runtime.get_collection("orders")
        assert collection.name == "orders"
        assert collection.field_options("total") == {"precision": 2}
        assert collection.field_options("missing") is None

    async def test_define_registers_collection(self, storage):
        runtime = SqlCollectionRuntime(MagicMock(), storage)
        await runtime.define({"name": "tmp", "fields": []})
        assert runtime.get_collection("tmp") is not None
