"""Tests for desktop route nesting, tab folding and route import."""

import pytest

from migration_manager.models.contracts.migration import (
    ReconciliationResult,
    RouteBundle,
    TabDescriptor,
)
from migration_manager.repositories.base import DESKTOP_ROUTES
from migration_manager.services.migration.route_tree import (
    PREVIEW_PARENT_ID,
    RouteExportWalk,
    RouteTreeCodec,
    route_type,
)


def route(id, type, parent_id=None, schema_uid=None, **extra):
    return {
        "id": id,
        "parent_id": parent_id,
        "type": type,
        "schema_uid": schema_uid,
        "title": extra.pop("title", f"route-{id}"),
        **extra,
    }


@pytest.fixture
def codec(storage) -> RouteTreeCodec:
    return RouteTreeCodec(storage)


@pytest.fixture
def routes_repo(storage):
    return storage.get_repository(DESKTOP_ROUTES)


class TestRouteType:
    def test_case_insensitive(self):
        assert route_type({"type": "Tabs"}) == "tabs"
        assert route_type(RouteBundle(type="PAGE")) == "page"
        assert route_type({}) == ""


class TestExportWalk:
    def test_group_nests_pages(self):
        walk = RouteExportWalk(
            [route(1, "group"), route(2, "page", 1, "p2"), route(3, "page", 1, "p3")]
        )
        [group] = walk.export([1])
        assert [child.schema_uid for child in group.children] == ["p2", "p3"]
        assert walk.schema_refs == [("p2", "page"), ("p3", "page")]

    def test_tabs_row_under_page_folds_into_descriptor(self):
        walk = RouteExportWalk(
            [route(1, "page", None, "p1"), route(2, "tabs", 1, "t1", tab_schema_name="tab-a")]
        )
        [page] = walk.export([1])
        [tab] = page.children
        assert isinstance(tab, TabDescriptor)
        assert (tab.schema_uid, tab.tab_schema_name, tab.hidden) == ("t1", "tab-a", False)
        assert ("t1", "tabs") in walk.schema_refs

    def test_tabs_outside_page_are_dropped(self):
        walk = RouteExportWalk([route(1, "group"), route(2, "tabs", 1, "t1")])
        [group] = walk.export([1])
        assert group.children == []
        assert walk.schema_refs == []

    def test_tabs_selected_as_root_exports_nothing(self):
        walk = RouteExportWalk([route(1, "tabs", None, "t1")])
        assert walk.export([1]) == []

    def test_embedded_tabs_used_when_no_tab_rows(self):
        """A page without tab rows exports the tabs held in its children column, once per uid."""
        page = route(
            1,
            "page",
            None,
            "p1",
            children=[
                {"type": "tabs", "schemaUid": "t1", "tabSchemaName": "a"},
                {"type": "tabs", "schemaUid": "t1", "tabSchemaName": "dup"},
                {"type": "tabs", "schemaUid": "t2", "hidden": True},
                {"type": "page", "schemaUid": "ignored"},
            ],
        )
        walk = RouteExportWalk([page])
        [exported] = walk.export([1])
        assert [tab.schema_uid for tab in exported.children] == ["t1", "t2"]
        assert exported.children[1].hidden is True

    def test_tab_rows_win_over_embedded_tabs(self):
        page = route(1, "page", None, "p1", children=[{"type": "tabs", "schemaUid": "old"}])
        walk = RouteExportWalk([page, route(2, "tabs", 1, "new")])
        [exported] = walk.export([1])
        assert [tab.schema_uid for tab in exported.children] == ["new"]

    @pytest.mark.parametrize(
        "selector",
        [2, "2", {"id": 2}, {"routeId": "2"}, "p2"],
    )
    def test_selector_forms(self, selector):
        walk = RouteExportWalk([route(1, "group"), route(2, "page", None, "p2")])
        assert walk.select(selector)["id"] == 2

    def test_unknown_selector_is_skipped(self):
        walk = RouteExportWalk([route(1, "group")])
        assert walk.export([99, "missing", {"id": "x"}]) == []

class TestImport:
    async def test_children_get_parent_ids_top_down(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [
                {
                    "type": "group",
                    "title": "Sales",
                    "children": [
                        {"type": "page", "title": "Orders", "schemaUid": "p1"},
                        {"type": "link", "title": "Docs", "options": {"url": "https://x"}},
                    ],
                }
            ],
            result,
        )
        rows = {row["title"]: row for row in await routes_repo.find()}
        assert rows["Sales"]["parent_id"] is None
        assert rows["Orders"]["parent_id"] == rows["Sales"]["id"]
        assert rows["Docs"]["parent_id"] == rows["Sales"]["id"]
        assert result.success == 3

    async def test_page_tabs_stored_in_children_column(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [
                {
                    "type": "page",
                    "schemaUid": "p1",
                    "children": [{"type": "tabs", "schemaUid": "t1", "tabSchemaName": "a"}],
                }
            ],
            result,
        )
        rows = await routes_repo.find()
        assert len(rows) == 1
        assert rows[0]["children"] == [
            {"type": "tabs", "schemaUid": "t1", "tabSchemaName": "a", "hidden": False}
        ]

    async def test_top_level_tabs_never_become_rows(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes([{"type": "tabs", "schemaUid": "t1"}], result)
        assert await routes_repo.find() == []
        assert result.success == 0

    async def test_existing_schema_uid_is_skipped_but_children_walked(self, codec, routes_repo):
        existing = await routes_repo.create({"type": "group", "title": "Old", "schema_uid": "g1"})
        result = ReconciliationResult()
        await codec.import_routes(
            [
                {
                    "type": "group",
                    "title": "New",
                    "schemaUid": "g1",
                    "children": [{"type": "page", "title": "Child", "schemaUid": "p9"}],
                }
            ],
            result,
        )
        child = await routes_repo.find_one({"schema_uid": "p9"})
        assert result.skipped == 1
        assert result.success == 1
        assert child["parent_id"] == existing["id"]
        assert len(await routes_repo.find({"schema_uid": "g1"})) == 1

    async def test_links_are_never_deduplicated(self, codec, routes_repo):
        await routes_repo.create({"type": "link", "schema_uid": "l1"})
        result = ReconciliationResult()
        await codec.import_routes([{"type": "link", "schemaUid": "l1"}], result)
        assert len(await routes_repo.find({"schema_uid": "l1"})) == 2
        assert result.skipped == 0

    async def test_preview_writes_nothing(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [{"type": "group", "title": "G", "children": [{"type": "page", "title": "P"}]}],
            result,
            preview=True,
        )
        assert await routes_repo.find() == []
        assert result.success == 2
        assert result.pending_creates == [
            {"route": "G", "type": "group", "action": "create"},
            {"route": "P", "type": "page", "action": "create"},
        ]

    async def test_preview_returns_placeholder_anchor(self, codec):
        anchor = await codec._import_node({"type": "page"}, None, ReconciliationResult(), True)
        assert anchor == PREVIEW_PARENT_ID

    async def test_malformed_route_is_counted_and_siblings_continue(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [{"type": "page", "sort": "not-a-number", "title": "Bad"}, {"type": "page", "title": "Good"}],
            result,
        )
        assert result.failed == 1
        assert result.errors[0]["route"] == "Bad"
        assert [row["title"] for row in await routes_repo.find()] == ["Good"]

    async def test_malformed_nested_route_fails_alone(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [
                {
                    "type": "group",
                    "title": "Root",
                    "children": [
                        {"type": "page", "title": "Good child"},
                        {"type": "page", "title": "Bad child", "sort": "x"},
                    ],
                }
            ],
            result,
        )
        rows = {row["title"]: row for row in await routes_repo.find()}
        assert set(rows) == {"Root", "Good child"}
        assert rows["Good child"]["parent_id"] == rows["Root"]["id"]
        assert result.success == 2
        assert result.failed == 1
        assert result.errors[0]["route"] == "Bad child"

    async def test_malformed_grandchild_keeps_its_ancestors(self, codec, routes_repo):
        result = ReconciliationResult()
        await codec.import_routes(
            [
                {
                    "type": "group",
                    "title": "Root",
                    "children": [
                        {
                            "type": "group",
                            "title": "Middle",
                            "children": [{"type": "page", "title": "Leaf", "hidden": "maybe"}],
                        }
                    ],
                }
            ],
            result,
        )
        assert sorted(row["title"] for row in await routes_repo.find()) == ["Middle", "Root"]
        assert result.failed == 1
        assert result.errors[0]["route"] == "Leaf"

    async def test_validated_bundle_keeps_tabs_and_walks_children(self, codec, routes_repo):
        bundle = RouteBundle.model_validate(
            {
                "type": "page",
                "title": "Orders",
                "schemaUid": "p1",
                "children": [
                    {"type": "tabs", "schemaUid": "t1"},
                    {"type": "link", "title": "Help"},
                ],
            }
        )
        result = ReconciliationResult()
        await codec.import_routes([bundle], result)
        rows = {row["title"]: row for row in await routes_repo.find()}
        assert rows["Orders"]["children"] == [
            {"type": "tabs", "schemaUid": "t1", "tabSchemaName": None, "hidden": False}
        ]
        assert rows["Help"]["parent_id"] == rows["Orders"]["id"]
        assert result.success == 2
