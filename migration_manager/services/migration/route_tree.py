"""
Desktop route tree translation.

Routes are stored flat, linked by parent_id. Exports nest them; imports
flatten them again, assigning parent ids top-down. A `tabs` route only means
something directly under a `page`: it is exported as an inline tab descriptor
of the page and imported into the page's `children` JSON column, never as a
route row of its own.
"""

import logging
from collections import defaultdict
from typing import Any

from pydantic import ValidationError

from migration_manager.models.contracts.migration import (
    ReconciliationResult,
    RouteBundle,
    RouteSelector,
    TabDescriptor,
)
from migration_manager.repositories.base import DESKTOP_ROUTES, Record, Storage
from migration_manager.services.migration.natural_keys import NaturalKeyResolver

logger = logging.getLogger(__name__)

ROUTE_FIELDS = (
    "title",
    "tooltip",
    "icon",
    "schema_uid",
    "menu_schema_uid",
    "tab_schema_name",
    "type",
    "options",
    "sort",
    "hide_in_menu",
    "enable_tabs",
    "enable_header",
    "display_title",
    "hidden",
)

# Placeholder parent id handed to children during preview
PREVIEW_PARENT_ID = 0


def route_type(node: Any) -> str:
    value = node.get("type") if isinstance(node, dict) else getattr(node, "type", None)
    return str(value or "").lower()


def _selector_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _split_children(node: Any) -> tuple[Any, list[Any]]:
    """Split a route into itself (keeping only its tab descriptors) and its nested routes."""
    if isinstance(node, RouteBundle):
        tabs = [child for child in node.children if isinstance(child, TabDescriptor)]
        routes = [child for child in node.children if not isinstance(child, TabDescriptor)]
        return node.model_copy(update={"children": tabs}), routes
    if not isinstance(node, dict):
        return node, []

    children = node.get("children")
    children = children if isinstance(children, list) else []
    tabs = [child for child in children if isinstance(child, dict) and route_type(child) == "tabs"]
    routes = [child for child in children if isinstance(child, dict) and route_type(child) != "tabs"]
    return {**node, "children": tabs}, routes


class RouteExportWalk:
    """
    In-memory walk over the full route set.

    Schema uids met along the way are collected in `schema_refs` as
    (uid, source_type) pairs, in visit order.
    """

    def __init__(self, rows: list[Record]):
        self.rows = rows
        self.by_id: dict[Any, Record] = {}
        self.children: dict[Any, list[Record]] = defaultdict(list)
        for row in rows:
            self.by_id[row["id"]] = row
            self.children[row.get("parent_id")].append(row)
        self.schema_refs: list[tuple[str, str]] = []

    def select(self, selector: RouteSelector) -> Record | None:
        """Resolve an id, numeric string, {id|routeId} object or schemaUid to a row."""
        route_id = _selector_id(selector)
        if route_id is not None:
            return self.by_id.get(route_id)
        if isinstance(selector, dict):
            raw = selector.get("id") or selector.get("routeId")
            try:
                return self.by_id.get(int(raw)) if raw else None
            except (TypeError, ValueError):
                return None
        if isinstance(selector, str):
            return next((row for row in self.rows if row.get("schema_uid") == selector), None)
        return None

    def visit_route(self, node: Record, parent_type: str | None) -> RouteBundle | TabDescriptor | None:
        node_type = route_type(node)
        if node_type == "tabs":
            return self.visit_tabs(node, parent_type)

        if node.get("schema_uid"):
            self.schema_refs.append((node["schema_uid"], node.get("type") or "route"))

        kids = self.children.get(node["id"], [])
        tab_kids = [kid for kid in kids if route_type(kid) == "tabs"]
        other_kids = [kid for kid in kids if route_type(kid) != "tabs"]

        children: list[RouteBundle | TabDescriptor] = []
        if node_type == "page":
            for kid in tab_kids:
                tab = self.visit_tabs(kid, "page")
                if tab is not None:
                    children.append(tab)
            if not tab_kids:
                children.extend(self._embedded_tabs(node))
        for kid in other_kids:
            entry = self.visit_route(kid, node_type)
            if entry is not None:
                children.append(entry)

        return RouteBundle(**{name: node.get(name) for name in ROUTE_FIELDS}, children=children)

    def visit_tabs(self, node: Record, parent_type: str | None) -> TabDescriptor | None:
        if parent_type != "page":
            return None
        if node.get("schema_uid"):
            self.schema_refs.append((node["schema_uid"], "tabs"))
        return TabDescriptor(
            schema_uid=node.get("schema_uid"),
            tab_schema_name=node.get("tab_schema_name"),
            hidden=bool(node.get("hidden")),
        )

    def _embedded_tabs(self, page: Record) -> list[TabDescriptor]:
        """Tab descriptors stored in the page's `children` column, deduplicated by schemaUid."""
        tabs: list[TabDescriptor] = []
        seen: set[str] = set()
        for item in page.get("children") or []:
            if not isinstance(item, dict) or route_type(item) != "tabs":
                continue
            schema_uid = item.get("schemaUid")
            if schema_uid:
                if schema_uid in seen:
                    continue
                seen.add(schema_uid)
                self.schema_refs.append((schema_uid, "tabs"))
            tabs.append(
                TabDescriptor(
                    schema_uid=schema_uid,
                    tab_schema_name=item.get("tabSchemaName"),
                    hidden=bool(item.get("hidden")),
                )
            )
        return tabs

    def export(self, selectors: list[RouteSelector]) -> list[RouteBundle]:
        exported: list[RouteBundle] = []
        for selector in selectors:
            root = self.select(selector)
            if root is None:
                logger.debug(f"Route selector {selector!r} matched nothing")
                continue
            entry = self.visit_route(root, None)
            if isinstance(entry, RouteBundle):
                exported.append(entry)
        return exported


class RouteTreeCodec:
    """Read route trees out of, and write them into, the desktop route store."""

    def __init__(self, storage: Storage, resolver: NaturalKeyResolver | None = None):
        self.storage = storage
        self.routes = storage.get_repository(DESKTOP_ROUTES)
        self.resolver = resolver or NaturalKeyResolver(storage)

    async def export(self, selectors: list[RouteSelector]) -> tuple[list[RouteBundle], list[tuple[str, str]]]:
        """
        Nest the selected roots.

        Returns:
            Exported route trees and the (uid, source_type) schema references they carry
        """
        walk = RouteExportWalk(await self.routes.find())
        return walk.export(selectors), walk.schema_refs

    async def import_routes(
        self,
        nodes: list[Any],
        result: ReconciliationResult,
        *,
        preview: bool = False,
    ) -> None:
        for node in nodes:
            await self._import_node(node, None, result, preview)

    async def _import_node(
        self,
        node: Any,
        parent_id: Any,
        result: ReconciliationResult,
        preview: bool,
    ) -> Any:
        """
        Create one route (pre-order) and then its children. Returns the anchor id or None.

        Each node is validated on its own, so a malformed descendant fails
        alone and never takes its ancestors or siblings with it.
        """
        if isinstance(node, TabDescriptor) or route_type(node) == "tabs":
            return None

        own, route_children = _split_children(node)
        try:
            bundle = own if isinstance(own, RouteBundle) else RouteBundle.model_validate(own)
        except ValidationError as e:
            label = node.get("title") or node.get("schemaUid") if isinstance(node, dict) else None
            result.failed += 1
            result.errors.append({"route": label or "unknown", "error": str(e)})
            logger.warning(f"Skipping malformed route '{label or 'unknown'}': {e}")
            return None

        node_type = route_type(bundle)
        label = bundle.title or bundle.schema_uid or "unknown"
        try:
            async with self.storage.savepoint():
                anchor_id = await self._write_route(bundle, node_type, parent_id, result, preview)
        except Exception as e:
            result.failed += 1
            result.errors.append({"route": label, "error": str(e)})
            logger.warning(f"Failed to import route '{label}': {e}")
            return None

        for child in route_children:
            await self._import_node(child, anchor_id, result, preview)

        return anchor_id

    async def _write_route(
        self,
        bundle: RouteBundle,
        node_type: str,
        parent_id: Any,
        result: ReconciliationResult,
        preview: bool,
    ) -> Any:
        if bundle.schema_uid and node_type != "link":
            existing = await self.resolver.route_by_schema_uid(bundle.schema_uid)
            if existing is not None:
                result.skipped += 1
                return existing["id"]

        values: dict[str, Any] = {name: getattr(bundle, name) for name in ROUTE_FIELDS}
        values["parent_id"] = parent_id
        tabs = [child for child in bundle.children if isinstance(child, TabDescriptor)]
        if node_type == "page" and tabs:
            values["children"] = [tab.model_dump(by_alias=True) for tab in tabs]

        if preview:
            result.pending_creates.append(
                {
                    "route": bundle.title or bundle.schema_uid or "unknown",
                    "type": node_type,
                    "action": "create",
                }
            )
            result.success += 1
            return PREVIEW_PARENT_ID

        created = await self.routes.create(values)
        result.success += 1
        return created["id"]
