"""Pydantic models for migration export/import/apply operations.

Wire documents use camelCase keys; models expose snake_case attributes and
accept either spelling on input.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BundleModel(CamelModel):
    """Base for portable bundles; unknown keys are preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


# --- Collections ---

class FieldBundle(BundleModel):
    name: str
    type: str | None = None
    interface: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("options", mode="before")
    @classmethod
    def _options_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class CollectionBundle(BundleModel):
    name: str
    title: str | None = None
    primary_key: str | None = None
    template: str | None = None
    fields: list[FieldBundle] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def _fields_list(cls, value: Any) -> list:
        return _as_list(value)


# --- Workflows ---

class WorkflowNodeBundle(BundleModel):
    key: str | None = None
    type: str | None = None
    title: str | None = None
    upstream_key: str | None = None
    downstream_key: str | None = None
    branch_index: int | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class WorkflowBundle(BundleModel):
    key: str | None = None
    title: str | None = None
    description: str | None = None
    type: str | None = None
    sync: bool = False
    current: bool = True
    trigger_title: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)
    nodes: list[WorkflowNodeBundle | None] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def _nodes_list(cls, value: Any) -> list:
        return _as_list(value)

    @field_validator("options", "config", mode="before")
    @classmethod
    def _bag_dict(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


# --- UI schemas ---

class UiSchemaBundle(BundleModel):
    mode: str = "complete"
    root_uid: str | None = None
    source_type: str | None = None
    data: dict[str, Any] | None = None


# --- Routes ---

class TabDescriptor(CamelModel):
    """Tab folded into its owning page route."""

    type: str = "tabs"
    schema_uid: str | None = None
    tab_schema_name: str | None = None
    hidden: bool = False


def _route_child_tag(value: Any) -> str:
    node_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return "tab" if str(node_type or "").lower() == "tabs" else "route"


class RouteBundle(BundleModel):
    title: str | None = None
    tooltip: str | None = None
    icon: str | None = None
    schema_uid: str | None = None
    menu_schema_uid: str | None = None
    tab_schema_name: str | None = None
    type: str | None = None
    options: Any = None
    sort: int | None = None
    hide_in_menu: bool | None = None
    enable_tabs: bool | None = None
    enable_header: bool | None = None
    display_title: Any = None
    hidden: bool | None = None
    children: list[
        Annotated[
            Union[
                Annotated[TabDescriptor, Tag("tab")],
                Annotated["RouteBundle", Tag("route")],
            ],
            Discriminator(_route_child_tag),
        ]
    ] = Field(default_factory=list)

    @field_validator("children", mode="before")
    @classmethod
    def _children_list(cls, value: Any) -> list:
        return [child for child in _as_list(value) if isinstance(child, (dict, BaseModel))]


# --- Export ---

RouteSelector = int | str | dict[str, Any]


class ExportRequest(CamelModel):
    collections: list[str] = Field(default_factory=list)
    workflows: list[int | str] = Field(default_factory=list)
    ui_schemas: list[str | dict[str, Any]] = Field(default_factory=list)
    desktop_routes: list[RouteSelector] = Field(default_factory=list)
    routes: list[RouteSelector] = Field(default_factory=list)

    @field_validator("collections", "workflows", "ui_schemas", "desktop_routes", "routes", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list:
        return _as_list(value)

    @property
    def route_selectors(self) -> list[RouteSelector]:
        return self.desktop_routes or self.routes


class ExportPayload(CamelModel):
    version: str
    export_date: str
    collections: list[CollectionBundle] = Field(default_factory=list)
    workflows: list[WorkflowBundle] = Field(default_factory=list)
    ui_schemas: list[UiSchemaBundle] = Field(default_factory=list)
    desktop_routes: list[RouteBundle] = Field(default_factory=list)


class ExportResponse(CamelModel):
    success: bool = True
    data: ExportPayload


# --- Import ---

class ImportOptions(CamelModel):
    preview: bool = False
    overwrite: bool = False


class ImportRequest(CamelModel):
    """Import payload. Items stay loosely typed so one bad item cannot sink the batch."""

    collections: list[Any] = Field(default_factory=list)
    workflows: list[Any] = Field(default_factory=list)
    ui_schemas: list[Any] = Field(default_factory=list)
    desktop_routes: list[Any] = Field(default_factory=list)
    routes: list[Any] = Field(default_factory=list)
    options: ImportOptions = Field(default_factory=ImportOptions)

    @field_validator("collections", "workflows", "ui_schemas", "desktop_routes", "routes", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list:
        return _as_list(value)

    @field_validator("options", mode="before")
    @classmethod
    def _options(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ImportOptions)) else {}

    @property
    def route_items(self) -> list[Any]:
        return self.desktop_routes or self.routes


class ReconciliationResult(CamelModel):
    success: int = 0
    failed: int = 0
    skipped: int = 0
    updated: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)
    pending_creates: list[dict[str, Any]] = Field(default_factory=list)


class ImportResults(CamelModel):
    collections: ReconciliationResult = Field(default_factory=ReconciliationResult)
    workflows: ReconciliationResult = Field(default_factory=ReconciliationResult)
    ui_schemas: ReconciliationResult = Field(default_factory=ReconciliationResult)
    desktop_routes: ReconciliationResult = Field(default_factory=ReconciliationResult)

    def all(self) -> list[ReconciliationResult]:
        return [self.collections, self.workflows, self.ui_schemas, self.desktop_routes]


class ImportSummary(CamelModel):
    total_processed: int = 0
    total_success: int = 0
    total_updated: int = 0
    total_failed: int = 0
    total_skipped: int = 0


class ImportResponse(CamelModel):
    success: bool
    preview: bool
    overwrite: bool
    results: ImportResults
    summary: ImportSummary
    message: str


# --- List ---

class CollectionListItem(CamelModel):
    name: str
    title: str
    fields: int = 0


class WorkflowListItem(CamelModel):
    id: int | str
    title: str
    key: str
    enabled: bool


class RouteListItem(CamelModel):
    route_id: int | str
    display_title: str
    type: str
    uid: str | None = None
    schema_uid: str | None = None
    menu_schema_uid: str | None = None
    is_link: bool = False
    link_target: Any = None


class ListData(CamelModel):
    collections: list[CollectionListItem] = Field(default_factory=list)
    workflows: list[WorkflowListItem] = Field(default_factory=list)
    ui_schemas: list[RouteListItem] = Field(default_factory=list)


class ListResponse(CamelModel):
    success: bool = True
    data: ListData


# --- Validate ---

class ValidationIssue(CamelModel):
    type: Literal["collection", "workflow", "uiSchema"]
    name: str
    message: str


class ValidationReport(CamelModel):
    valid: bool = True
    warnings: list[ValidationIssue] = Field(default_factory=list)
    errors: list[ValidationIssue] = Field(default_factory=list)


class ValidateResponse(CamelModel):
    success: bool = True
    validation: ValidationReport


# --- Apply ---

class ApplyOptions(CamelModel):
    overwrite: bool = False


class ApplyRequest(CamelModel):
    collections: list[Any] = Field(default_factory=list)
    workflows: list[Any] = Field(default_factory=list)
    ui_schemas: list[Any] = Field(default_factory=list)
    options: ApplyOptions = Field(default_factory=ApplyOptions)

    @field_validator("collections", "workflows", "ui_schemas", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list:
        return _as_list(value)

    @field_validator("options", mode="before")
    @classmethod
    def _options(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ApplyOptions)) else {}


class ApplyCollectionResults(CamelModel):
    synced: int = 0
    rebuilt: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ApplyWorkflowResults(CamelModel):
    updated: int = 0
    created: int = 0
    nodes_upserted: int = 0
    nodes_deleted: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ApplyUiSchemaResults(CamelModel):
    updated: int = 0
    created: int = 0
    merged: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


class ApplyResults(CamelModel):
    collections: ApplyCollectionResults = Field(default_factory=ApplyCollectionResults)
    workflows: ApplyWorkflowResults = Field(default_factory=ApplyWorkflowResults)
    ui_schemas: ApplyUiSchemaResults = Field(default_factory=ApplyUiSchemaResults)


class RefreshFlags(CamelModel):
    schema_: bool = Field(default=True, alias="schema")
    collections: bool = True
    workflows: bool = True


class ApplyResponse(CamelModel):
    success: bool = True
    results: ApplyResults
    message: str = "Apply completed."
    refresh: RefreshFlags = Field(default_factory=RefreshFlags)


# --- Errors ---

class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    stack: str | None = None
