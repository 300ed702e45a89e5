"""Tests for the SQLAlchemy record repository (no database required)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from migration_manager.core.exceptions import (
    MigrationError,
    RecordNotFoundError,
    RepositoryNotFoundError,
)
from migration_manager.models.orm import UiSchema, Workflow
from migration_manager.repositories.base import (
    FLOW_NODES,
    UI_SCHEMAS,
    SqlRecordRepository,
    SqlStorage,
)


def compiled(clause) -> str:
    return str(clause.compile(dialect=postgresql.dialect()))


@pytest.fixture
def session():
    session = AsyncMock()
    session.add = MagicMock()
    return session


class TestFilters:
    def test_none_means_is_null(self, session):
        repo = SqlRecordRepository(session, Workflow, "workflows")
        [clause] = repo._where({"key": None})
        assert "IS NULL" in compiled(clause)

    def test_operators(self, session):
        repo = SqlRecordRepository(session, Workflow, "workflows")
        clauses = repo._where({"id": {"$in": [1, 2], "$gt": 0}, "key": {"$ne": None}})
        sql = [compiled(c) for c in clauses]
        assert "IN" in sql[0]
        assert ">" in sql[1]
        assert "IS DISTINCT FROM" in sql[2]

    def test_attribute_names_map_to_quoted_columns(self, session):
        repo = SqlRecordRepository(session, UiSchema, "ui_schemas")
        [clause] = repo._where({"x_uid": "abc"})
        assert '"x-uid"' in compiled(clause)
        assert repo.primary_key == "x_uid"

    def test_unknown_attribute(self, session):
        repo = SqlRecordRepository(session, Workflow, "workflows")
        with pytest.raises(MigrationError, match="Unknown attribute 'slug'"):
            repo._where({"slug": "x"})

    def test_unknown_operator(self, session):
        repo = SqlRecordRepository(session, Workflow, "workflows")
        with pytest.raises(MigrationError, match="Unsupported filter operator"):
            repo._where({"id": {"$like": "1%"}})


class TestWrites:
    async def test_update_missing_record(self, session):
        session.get.return_value = None
        repo = SqlRecordRepository(session, Workflow, "workflows")
        with pytest.raises(RecordNotFoundError):
            await repo.update(42, {"title": "x"})

    async def test_destroy_without_filter_is_refused(self, session):
        repo = SqlRecordRepository(session, Workflow, "workflows")
        with pytest.raises(MigrationError):
            await repo.destroy({}, force=True)
        session.execute.assert_not_awaited()


class TestStorage:
    def test_repositories_are_cached(self, session):
        storage = SqlStorage(session)
        assert storage.get_repository(UI_SCHEMAS) is storage.get_repository(UI_SCHEMAS)

    def test_alias_lookup(self, session):
        storage = SqlStorage(session)
        assert storage.has_repository(FLOW_NODES)
        assert not storage.has_repository("flowNodes")
        with pytest.raises(RepositoryNotFoundError):
            storage.get_repository("flowNodes")
