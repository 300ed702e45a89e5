"""
Reconciliation policy.

Turns the caller's {preview, overwrite} options into per-item decisions and
keeps the per-kind counters of an import.
"""

import logging
from enum import Enum
from typing import Any

from migration_manager.models.contracts.migration import (
    ImportOptions,
    ImportResults,
    ImportSummary,
    ReconciliationResult,
)

logger = logging.getLogger(__name__)

PREVIEW_MESSAGE = "Preview completed. Set preview:false to apply changes."
NO_CHANGES_MESSAGE = "No changes applied."


class FieldAction(str, Enum):
    CREATE = "create"
    PENDING = "pending"
    UPDATE = "update"
    SKIP = "skip"


class EntityAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class ReconciliationPolicyEngine:
    """Per-request policy and counters shared by every entity kind."""

    def __init__(self, options: ImportOptions | None = None):
        self.options = options or ImportOptions()
        self.results = ImportResults()

    @property
    def preview(self) -> bool:
        return self.options.preview

    @property
    def overwrite(self) -> bool:
        return self.options.overwrite

    def field_action(self, exists: bool) -> FieldAction:
        """Decide what happens to one incoming field of an existing collection."""
        if not exists:
            return FieldAction.PENDING if self.preview else FieldAction.CREATE
        if self.overwrite and not self.preview:
            return FieldAction.UPDATE
        return FieldAction.SKIP

    def entity_action(self, exists: bool) -> EntityAction:
        """Existing entities are only touched when overwrite is set."""
        if not exists:
            return EntityAction.CREATE
        return EntityAction.UPDATE if self.overwrite else EntityAction.SKIP

    @staticmethod
    def merge_field(incoming: dict[str, Any], existing: dict[str, Any]) -> dict[str, Any]:
        """Values for an overwritten field: incoming type/interface win, options are merged."""
        return {
            "type": incoming.get("type") or existing.get("type"),
            "interface": incoming.get("interface") or existing.get("interface"),
            "options": {**(existing.get("options") or {}), **(incoming.get("options") or {})},
        }

    @staticmethod
    def record_failure(
        result: ReconciliationResult, label: str, name: Any, error: Exception | str
    ) -> None:
        result.failed += 1
        result.errors.append({label: name, "error": str(error)})
        logger.warning(f"Failed to import {label} '{name}': {error}")

    def summarize(self, total_processed: int) -> ImportSummary:
        kinds = self.results.all()
        return ImportSummary(
            total_processed=total_processed,
            total_success=sum(r.success for r in kinds),
            total_updated=sum(r.updated for r in kinds),
            total_failed=sum(r.failed for r in kinds),
            total_skipped=sum(r.skipped for r in kinds),
        )

    def message(self, summary: ImportSummary) -> str:
        if self.preview:
            return PREVIEW_MESSAGE
        if summary.total_success + summary.total_updated > 0:
            return (
                f"Import completed. {summary.total_success} created, "
                f"{summary.total_updated} updated."
            )
        return NO_CHANGES_MESSAGE
