"""
Migration Orchestrator

The five public migration operations: export, import, list, validate and
apply. Each runs against one Storage for the duration of a request; per-item
failures are caught inside a savepoint and reported, anything else propagates.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from migration_manager.config import Settings, get_settings
from migration_manager.core.exceptions import InvalidBundleError, MigrationError
from migration_manager.models.contracts.migration import (
    ApplyRequest,
    ApplyResponse,
    ApplyResults,
    CollectionBundle,
    CollectionListItem,
    ExportPayload,
    ExportRequest,
    ImportRequest,
    ImportResponse,
    ListData,
    RouteListItem,
    UiSchemaBundle,
    ValidationIssue,
    ValidationReport,
    WorkflowBundle,
    WorkflowListItem,
)
from migration_manager.repositories.base import (
    COLLECTIONS,
    DESKTOP_ROUTES,
    FIELDS,
    UI_SCHEMA_TREE_PATH,
    UI_SCHEMAS,
    WORKFLOWS,
    RecordRepository,
    Storage,
)
from migration_manager.repositories.ui_schemas import UiSchemaTreeRepository
from migration_manager.services.migration.capabilities import call_hook, first_repository
from migration_manager.services.migration.collection_runtime import (
    DEFAULT_COLLECTION_OPTIONS,
    CollectionRuntime,
    PlatformHooks,
)
from migration_manager.services.migration.natural_keys import NaturalKeyResolver, WorkflowIdentity
from migration_manager.services.migration.policy import (
    EntityAction,
    FieldAction,
    ReconciliationPolicyEngine,
)
from migration_manager.services.migration.route_tree import RouteTreeCodec, route_type
from migration_manager.services.migration.schema_sync import SchemaSubtreeSync
from migration_manager.services.migration.workflow_graph import (
    WorkflowGraphCodec,
    workflow_values,
)

logger = logging.getLogger(__name__)

SCHEMA_ROUTE_TYPES = frozenset({"page", "menu", "group"})
LINK_ROUTE_TYPES = frozenset({"link"})


def _error_message(error: Exception) -> str:
    if isinstance(error, ValidationError):
        return "; ".join(f"{'.'.join(map(str, e['loc'])) or 'item'}: {e['msg']}" for e in error.errors())
    return str(error)


def _item_name(item: Any, *keys: str) -> str:
    if isinstance(item, dict):
        for key in keys:
            if item.get(key):
                return str(item[key])
    return "unknown"


def _collection_name(item: Any) -> str | None:
    """Apply accepts a bare collection name or a bundle carrying one."""
    if isinstance(item, str):
        return item or None
    if isinstance(item, dict) and item.get("name"):
        return str(item["name"])
    return None


class MigrationOrchestrator:
    """Run migration operations against a Storage."""

    def __init__(
        self,
        storage: Storage,
        runtime: CollectionRuntime | None = None,
        hooks: PlatformHooks | None = None,
        settings: Settings | None = None,
    ):
        self.storage = storage
        self.runtime = runtime
        self.hooks = hooks or PlatformHooks()
        self.settings = settings or get_settings()
        self.resolver = NaturalKeyResolver(storage)
        self.tree = UiSchemaTreeRepository(
            storage.get_repository(UI_SCHEMAS),
            storage.get_repository(UI_SCHEMA_TREE_PATH),
        )
        self.schemas = SchemaSubtreeSync(self.tree, remove_schema=self.hooks.remove_schema)

    def _repo(self, name: str) -> RecordRepository:
        return self.storage.get_repository(name)

    def _flow_nodes(self) -> RecordRepository:
        repo = first_repository(self.storage, self.settings.flow_node_repository_names)
        if repo is None:
            raise MigrationError("Flow node repository not found")
        return repo

    # =========================================================================
    # Export
    # =========================================================================

    async def export(self, request: ExportRequest) -> ExportPayload:
        payload = ExportPayload(
            version=self.settings.platform_version,
            export_date=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )
        logger.info(
            f"Exporting {len(request.collections)} collection(s), "
            f"{len(request.workflows)} workflow(s), {len(request.route_selectors)} route(s)"
        )

        for name in request.collections:
            bundle = await self._export_collection(name)
            if bundle is not None:
                payload.collections.append(bundle)

        for selector in request.workflows:
            row = await self._find_workflow_for_export(selector)
            if row is not None:
                payload.workflows.append(WorkflowGraphCodec.export_workflow(row))

        pushed: set[str] = set()

        async def push_schema(uid: str, source_type: str) -> None:
            if not uid or uid in pushed:
                return
            document = await self.schemas.fetch(uid)
            if document is not None:
                payload.ui_schemas.append(
                    UiSchemaBundle(root_uid=uid, source_type=source_type, data=document)
                )
                pushed.add(uid)

        for item in request.ui_schemas:
            if isinstance(item, str):
                await push_schema(item, "direct")
            elif isinstance(item, dict) and item.get("uid"):
                await push_schema(str(item["uid"]), "direct")

        routes, schema_refs = await RouteTreeCodec(self.storage, self.resolver).export(
            request.route_selectors
        )
        payload.desktop_routes.extend(routes)
        for uid, source_type in schema_refs:
            await push_schema(uid, source_type)

        return payload

    async def _export_collection(self, name: str) -> CollectionBundle | None:
        meta = await self.resolver.collection(name)
        if meta is None:
            return None

        runtime_collection = self.runtime.get_collection(name) if self.runtime else None
        fields = []
        for row in await self._repo(FIELDS).find({"collection_name": name}, sort=["sort", "id"]):
            options = row.get("options") or {}
            if not options and runtime_collection is not None:
                options = runtime_collection.field_options(row["name"]) or {}
            fields.append(
                {
                    "name": row["name"],
                    "type": row.get("type"),
                    "interface": row.get("interface"),
                    "options": options,
                }
            )

        return CollectionBundle(
            name=name,
            title=meta.get("title") or name,
            primary_key=meta.get("primary_key") or "id",
            template=meta.get("template") or "general",
            fields=fields,
        )

    async def _find_workflow_for_export(self, selector: int | str) -> dict[str, Any] | None:
        repo = self._repo(WORKFLOWS)
        if isinstance(selector, int) or str(selector).isdigit():
            return await repo.find_one({"id": int(selector)}, appends=["nodes"])
        return await repo.find_one({"key": str(selector)}, appends=["nodes"])

    # =========================================================================
    # Import
    # =========================================================================

    async def import_(self, request: ImportRequest) -> ImportResponse:
        policy = ReconciliationPolicyEngine(request.options)
        results = policy.results
        logger.info(
            f"Import started (preview={policy.preview}, overwrite={policy.overwrite})"
        )

        for item in request.collections:
            await self._import_collection(item, policy)

        if request.workflows:
            graph = WorkflowGraphCodec(self._flow_nodes())
            for item in request.workflows:
                await self._import_workflow(item, policy, graph)

        await RouteTreeCodec(self.storage, self.resolver).import_routes(
            request.route_items, results.desktop_routes, preview=policy.preview
        )

        for item in request.ui_schemas:
            await self._import_ui_schema(item, policy)

        total_processed = (
            len(request.collections)
            + len(request.workflows)
            + len(request.ui_schemas)
            + len(request.route_items)
        )
        summary = policy.summarize(total_processed)
        logger.info(
            f"Import finished: {summary.total_success} created, {summary.total_updated} updated, "
            f"{summary.total_skipped} skipped, {summary.total_failed} failed"
        )
        return ImportResponse(
            success=summary.total_success > 0 or summary.total_updated > 0,
            preview=policy.preview,
            overwrite=policy.overwrite,
            results=results,
            summary=summary,
            message=policy.message(summary),
        )

    async def _import_collection(self, item: Any, policy: ReconciliationPolicyEngine) -> None:
        result = policy.results.collections
        name = _item_name(item, "name")
        try:
            bundle = CollectionBundle.model_validate(item)
            async with self.storage.savepoint():
                existing = await self.resolver.collection(bundle.name)
                if existing is None:
                    if policy.preview:
                        result.pending_creates.append(
                            {
                                "collection": bundle.name,
                                "title": bundle.title or bundle.name,
                                "fieldsCount": len(bundle.fields),
                            }
                        )
                    else:
                        await self._create_collection(bundle)
                else:
                    for field in bundle.fields:
                        current = await self.resolver.field(bundle.name, field.name)
                        action = policy.field_action(current is not None)
                        if action is FieldAction.CREATE:
                            await self._create_field(bundle.name, field.model_dump())
                        elif action is FieldAction.UPDATE:
                            await self._repo(FIELDS).update(
                                current["id"], policy.merge_field(field.model_dump(), current)
                            )
                            result.updated += 1
                        elif action is FieldAction.PENDING:
                            result.pending_creates.append(
                                {"collection": bundle.name, "field": field.name}
                            )
                        else:
                            result.skipped += 1
                result.success += 1
        except Exception as e:
            policy.record_failure(result, "collection", name, _error_message(e))

    async def _create_collection(self, bundle: CollectionBundle) -> None:
        await self._repo(COLLECTIONS).create(
            {
                "name": bundle.name,
                "title": bundle.title or bundle.name,
                "template": bundle.template or "general",
                "primary_key": bundle.primary_key or "id",
                "data_source": self.settings.default_data_source,
                "options": dict(DEFAULT_COLLECTION_OPTIONS),
            }
        )
        for index, field in enumerate(bundle.fields, start=1):
            await self._create_field(bundle.name, {**field.model_dump(), "sort": index})

    async def _create_field(self, collection_name: str, field: dict[str, Any]) -> None:
        await self._repo(FIELDS).create(
            {
                "collection_name": collection_name,
                "name": field["name"],
                "type": field.get("type") or "string",
                "interface": field.get("interface") or "input",
                "data_source": self.settings.default_data_source,
                "options": field.get("options") or {},
                "sort": field.get("sort"),
            }
        )

    async def _import_workflow(
        self,
        item: Any,
        policy: ReconciliationPolicyEngine,
        graph: WorkflowGraphCodec,
    ) -> None:
        result = policy.results.workflows
        name = _item_name(item, "title", "key")
        if not isinstance(item, dict) or not item.get("title") or not item.get("type"):
            result.skipped += 1
            return
        try:
            bundle = WorkflowBundle.model_validate(item)

            existing = await self.resolver.workflow(
                WorkflowIdentity(bundle.key, bundle.title, bundle.type)
            )
            action = policy.entity_action(existing is not None)
            if action is EntityAction.SKIP:
                result.skipped += 1
                return

            if policy.preview:
                result.pending_creates.append(
                    {"key": bundle.key or "(auto)", "title": bundle.title, "action": action.value}
                )
                result.success += 1
                return

            async with self.storage.savepoint():
                if existing is not None:
                    workflow_id = existing["id"]
                    await self._repo(WORKFLOWS).update(workflow_id, workflow_values(bundle))
                else:
                    created = await self._repo(WORKFLOWS).create(
                        {**workflow_values(bundle), "key": bundle.key, "current": True}
                    )
                    workflow_id = created["id"]

                stats = await graph.sync_nodes(workflow_id, bundle.nodes, prune=policy.overwrite)
                logger.debug(
                    f"Workflow '{name}': {stats.upserted} node(s) upserted, {stats.deleted} pruned"
                )

                if existing is not None:
                    result.updated += 1
                else:
                    result.success += 1
        except Exception as e:
            policy.record_failure(result, "workflow", name, _error_message(e))

    async def _import_ui_schema(self, item: Any, policy: ReconciliationPolicyEngine) -> None:
        result = policy.results.ui_schemas
        name = _item_name(item, "rootUid")
        try:
            bundle = UiSchemaBundle.model_validate(item)
            if not bundle.root_uid or not bundle.data:
                raise InvalidBundleError("rootUid and data are required")

            if policy.preview:
                result.pending_creates.append({"uid": bundle.root_uid, "action": "replace"})
                result.success += 1
                return

            async with self.storage.savepoint():
                outcome = await self.schemas.replace(bundle)
            if outcome.action == "updated":
                result.updated += 1
            else:
                result.success += 1
        except Exception as e:
            policy.record_failure(result, "schema", name, _error_message(e))

    # =========================================================================
    # List
    # =========================================================================

    async def list_(self) -> ListData:
        collections = [
            row
            for row in await self._repo(COLLECTIONS).find()
            if not (row.get("options") or {}).get("origin")
        ]
        names = [row["name"] for row in collections]

        field_counts: dict[str, int] = {}
        if names:
            for row in await self._repo(FIELDS).find({"collection_name": {"$in": names}}):
                key = str(row.get("collection_name") or "")
                field_counts[key] = field_counts.get(key, 0) + 1

        collection_items = sorted(
            (
                CollectionListItem(
                    name=str(row["name"]),
                    title=str(row.get("title") or row["name"]),
                    fields=field_counts.get(str(row["name"]), 0),
                )
                for row in collections
                if row.get("name") and not str(row["name"]).startswith("_")
            ),
            key=lambda item: item.name,
        )

        workflow_items = [
            WorkflowListItem(
                id=row["id"],
                title=str(row.get("title") or ""),
                key=str(row.get("key") or ""),
                enabled=bool(row.get("enabled")),
            )
            for row in await self._repo(WORKFLOWS).find()
        ]

        roots = [row for row in await self._repo(DESKTOP_ROUTES).find() if row.get("parent_id") is None]
        schema_entries = [
            self._route_list_item(row, is_link=False)
            for row in roots
            if row.get("schema_uid") and route_type(row) in SCHEMA_ROUTE_TYPES
        ]
        link_entries = [
            self._route_list_item(row, is_link=True)
            for row in roots
            if route_type(row) in LINK_ROUTE_TYPES
        ]

        return ListData(
            collections=collection_items,
            workflows=workflow_items,
            ui_schemas=schema_entries + link_entries,
        )

    @staticmethod
    def _route_list_item(row: dict[str, Any], *, is_link: bool) -> RouteListItem:
        display_title = row.get("title")
        if not display_title and isinstance(row.get("display_title"), str):
            display_title = row["display_title"]
        link_target = None
        if is_link:
            options = row.get("options") or {}
            link_target = options.get("to") or options.get("url") or options.get("path")
        return RouteListItem(
            route_id=row["id"],
            display_title=display_title or "Untitled",
            type=row.get("type") or ("link" if is_link else ""),
            uid=row.get("schema_uid"),
            schema_uid=row.get("schema_uid"),
            menu_schema_uid=row.get("menu_schema_uid"),
            is_link=is_link,
            link_target=link_target,
        )

    # =========================================================================
    # Validate
    # =========================================================================

    async def validate(self, request: ImportRequest) -> ValidationReport:
        report = ValidationReport()

        for item in request.collections:
            if not isinstance(item, dict) or not item.get("name"):
                report.errors.append(
                    ValidationIssue(type="collection", name="unknown", message="Collection name is required.")
                )
                continue
            try:
                bundle = CollectionBundle.model_validate(item)
            except ValidationError as e:
                report.errors.append(
                    ValidationIssue(type="collection", name=str(item["name"]), message=_error_message(e))
                )
                continue
            if await self.resolver.collection(bundle.name) is None:
                continue
            new_fields = existing_fields = 0
            for field in bundle.fields:
                if await self.resolver.field(bundle.name, field.name) is None:
                    new_fields += 1
                else:
                    existing_fields += 1
            report.warnings.append(
                ValidationIssue(
                    type="collection",
                    name=bundle.name,
                    message=(
                        f"Collection exists. {new_fields} new field(s) will be added. "
                        f"{existing_fields} existing field(s) will be preserved."
                    ),
                )
            )

        for item in request.workflows:
            if not isinstance(item, dict) or not (item.get("key") or item.get("title")):
                continue
            try:
                bundle = WorkflowBundle.model_validate(item)
            except ValidationError as e:
                report.errors.append(
                    ValidationIssue(type="workflow", name=_item_name(item, "title", "key"), message=_error_message(e))
                )
                continue
            name = bundle.title or bundle.key
            self._check_workflow_graph(bundle, name, report)
            existing = await self.resolver.workflow(
                WorkflowIdentity(bundle.key, bundle.title, bundle.type)
            )
            if existing is not None:
                report.warnings.append(
                    ValidationIssue(
                        type="workflow",
                        name=name,
                        message="Workflow already exists (will be updated if overwrite=true).",
                    )
                )

        for item in request.ui_schemas:
            uid = item.get("rootUid") if isinstance(item, dict) else None
            if not uid or not item.get("data"):
                report.errors.append(
                    ValidationIssue(
                        type="uiSchema",
                        name=str(uid or "unknown"),
                        message="UI Schema bundle requires rootUid and data.",
                    )
                )
                continue
            if await self.resolver.schema_by_uid(uid) is not None:
                report.warnings.append(
                    ValidationIssue(
                        type="uiSchema",
                        name=str(uid),
                        message="UI Schema already exists (will be replaced if overwrite=true).",
                    )
                )

        report.valid = not report.errors
        return report

    @staticmethod
    def _check_workflow_graph(bundle: WorkflowBundle, name: str, report: ValidationReport) -> None:
        keys: set[str] = set()
        for node in bundle.nodes:
            if node is None or not node.key:
                continue
            if node.key in keys:
                report.errors.append(
                    ValidationIssue(type="workflow", name=name, message=f"Duplicate node key '{node.key}'.")
                )
            keys.add(node.key)
        for node in bundle.nodes:
            if node is None or not node.key:
                continue
            for link in (node.upstream_key, node.downstream_key):
                if link and link not in keys:
                    report.warnings.append(
                        ValidationIssue(
                            type="workflow",
                            name=name,
                            message=f"Node '{node.key}' links to unknown node '{link}'; the link will be dropped.",
                        )
                    )

    # =========================================================================
    # Apply
    # =========================================================================

    async def apply(self, request: ApplyRequest) -> ApplyResponse:
        results = ApplyResults()
        overwrite = request.options.overwrite
        logger.info(
            f"Apply started: {len(request.collections)} collection(s), "
            f"{len(request.workflows)} workflow(s), {len(request.ui_schemas)} schema(s)"
        )

        await call_hook(self.hooks.reload_collections, label="reload_collections")

        for item in request.collections:
            await self._apply_collection(item, results)

        if request.workflows:
            graph = WorkflowGraphCodec(self._flow_nodes())
            for item in request.workflows:
                await self._apply_workflow(item, results, graph, overwrite)

        for item in request.ui_schemas:
            await self._apply_ui_schema(item, results)

        await call_hook(self.hooks.reload_collections, label="reload_collections")
        await call_hook(self.hooks.reload_schemas, label="reload_schemas")
        await call_hook(self.hooks.reload_workflows, label="reload_workflows")

        logger.info(
            f"Apply finished: {results.collections.synced} collection(s) synced, "
            f"{results.workflows.created + results.workflows.updated} workflow(s), "
            f"{results.ui_schemas.created + results.ui_schemas.updated} schema(s)"
        )
        return ApplyResponse(results=results)

    async def _runtime_collection(self, name: str) -> Any:
        if self.runtime is None:
            return None
        collection = self.runtime.get_collection(name)
        if collection is None:
            await self.runtime.reload()
            await call_hook(self.hooks.reload_collections, label="reload_collections")
            collection = self.runtime.get_collection(name)
        return collection

    async def _apply_collection(self, item: Any, results: ApplyResults) -> None:
        result = results.collections
        name = _collection_name(item)
        if name is None:
            return
        try:
            if self.runtime is None:
                raise MigrationError("Collection runtime not configured")
            async with self.storage.savepoint():
                collection = await self._runtime_collection(name)
                if collection is None:
                    meta = await self.resolver.collection(name)
                    if meta is None:
                        result.skipped += 1
                        return
                    fields = await self._repo(FIELDS).find({"collection_name": name}, sort=["sort", "id"])
                    collection = await self.runtime.define(
                        {
                            "name": name,
                            "title": meta.get("title") or name,
                            "primary_key": meta.get("primary_key") or "id",
                            "options": {**DEFAULT_COLLECTION_OPTIONS, **(meta.get("options") or {})},
                            "fields": [
                                {
                                    **row,
                                    "type": row.get("type") or "string",
                                    "interface": row.get("interface") or "input",
                                }
                                for row in fields
                            ],
                        }
                    )
                    result.rebuilt += 1
                await collection.sync(alter=True)
                result.synced += 1
        except Exception as e:
            result.errors.append({"collection": name, "error": _error_message(e)})
            logger.warning(f"Failed to apply collection '{name}': {e}")

    async def _apply_workflow(
        self,
        item: Any,
        results: ApplyResults,
        graph: WorkflowGraphCodec,
        overwrite: bool,
    ) -> None:
        result = results.workflows
        if not isinstance(item, dict):
            return
        natural_key = item.get("key") or item.get("slug") or item.get("id") or item.get("name")
        if not natural_key:
            return
        key = str(natural_key)
        try:
            bundle = WorkflowBundle.model_validate(item)
            async with self.storage.savepoint():
                existing = await self.resolver.workflow(WorkflowIdentity(key=key))
                if existing is not None:
                    workflow_id = existing["id"]
                    await self._repo(WORKFLOWS).update(workflow_id, workflow_values(bundle))
                else:
                    created = await self._repo(WORKFLOWS).create(
                        {**workflow_values(bundle), "key": key, "current": True}
                    )
                    workflow_id = created["id"]

                stats = await graph.sync_nodes(workflow_id, bundle.nodes, prune=overwrite)
                result.nodes_upserted += stats.upserted
                result.nodes_deleted += stats.deleted
                if existing is not None:
                    result.updated += 1
                else:
                    result.created += 1
        except Exception as e:
            result.errors.append({"workflow": key, "error": _error_message(e)})
            logger.warning(f"Failed to apply workflow '{key}': {e}")

    async def _apply_ui_schema(self, item: Any, results: ApplyResults) -> None:
        result = results.ui_schemas
        data = item.get("data") if isinstance(item, dict) else None
        if not isinstance(data, dict) or not data.get("name") or not data.get("type"):
            return
        name = str(data["name"])
        try:
            async with self.storage.savepoint():
                outcome = await self.schemas.merge(data)
            if outcome.action == "merged":
                result.updated += 1
                result.merged += 1
            else:
                result.created += 1
        except Exception as e:
            result.errors.append({"schema": name, "error": _error_message(e)})
            logger.warning(f"Failed to apply UI schema '{name}': {e}")
