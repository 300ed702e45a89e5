"""
Migration Router

Export, import, list, validate and apply of collections, workflows, UI schemas
and desktop routes. Every action requires a migration administrator.

Request bodies may carry the payload directly or wrapped as {"data": {...}}
or {"values": {...}}.
"""

import logging
import traceback
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from migration_manager.config import get_settings
from migration_manager.core.auth import MigrationAdmin
from migration_manager.core.database import DbSession
from migration_manager.models.contracts.migration import (
    ApplyRequest,
    ApplyResponse,
    ErrorResponse,
    ExportRequest,
    ExportResponse,
    ImportRequest,
    ImportResponse,
    ListResponse,
    ValidateResponse,
)
from migration_manager.repositories.base import SqlStorage
from migration_manager.services.migration import (
    MigrationOrchestrator,
    PlatformHooks,
    SqlCollectionRuntime,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/migration", tags=["Migration"])

REFRESH_HEADER = "X-Migration-Refresh"

Payload = Annotated[dict[str, Any] | None, Body()]


# ============================================================
# DEPENDENCIES
# ============================================================


def get_platform_hooks() -> PlatformHooks:
    """Hooks into the host platform. Override to wire reload/remove callbacks."""
    return PlatformHooks()


async def get_orchestrator(
    db: DbSession,
    hooks: Annotated[PlatformHooks, Depends(get_platform_hooks)],
) -> MigrationOrchestrator:
    storage = SqlStorage(db)
    return MigrationOrchestrator(
        storage,
        runtime=SqlCollectionRuntime(db, storage),
        hooks=hooks,
        settings=get_settings(),
    )


Orchestrator = Annotated[MigrationOrchestrator, Depends(get_orchestrator)]


# ============================================================
# HELPERS
# ============================================================


def _unwrap_payload(body: Any) -> dict[str, Any]:
    """Prefer a non-empty `data`, then a non-empty `values`, then the body itself."""
    if not isinstance(body, dict):
        return {}
    for key in ("data", "values"):
        inner = body.get(key)
        if isinstance(inner, dict) and inner:
            return inner
    return body


def _parse(model: type, body: Any) -> Any:
    try:
        return model.model_validate(_unwrap_payload(body))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid payload: {e}")


def _failure(action: str, error: Exception) -> JSONResponse:
    logger.error(f"Migration {action} failed: {error}", exc_info=True)
    body = ErrorResponse(message=str(error) or f"{action.capitalize()} failed", stack=traceback.format_exc())
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(by_alias=True),
    )


# ============================================================
# ENDPOINTS
# ============================================================


@router.post("/export", response_model=ExportResponse)
async def export_migration(
    orchestrator: Orchestrator,
    user: MigrationAdmin,
    body: Payload = None,
) -> ExportResponse | JSONResponse:
    """Export the selected collections, workflows, UI schemas and routes."""
    request = _parse(ExportRequest, body)
    try:
        payload = await orchestrator.export(request)
    except Exception as e:
        return _failure("export", e)
    logger.info(f"Export by {user.email}: {len(payload.collections)} collection(s)")
    return ExportResponse(data=payload)


@router.post("/import", response_model=ImportResponse)
async def import_migration(
    orchestrator: Orchestrator,
    user: MigrationAdmin,
    body: Payload = None,
) -> ImportResponse | JSONResponse:
    """Import an export document, honoring options.preview and options.overwrite."""
    request = _parse(ImportRequest, body)
    try:
        return await orchestrator.import_(request)
    except Exception as e:
        return _failure("import", e)


@router.get("/list", response_model=ListResponse)
async def list_migration_sources(
    orchestrator: Orchestrator,
    user: MigrationAdmin,
) -> ListResponse | JSONResponse:
    """List exportable collections, workflows and root routes."""
    try:
        return ListResponse(data=await orchestrator.list_())
    except Exception as e:
        return _failure("list", e)


@router.post("/validate", response_model=ValidateResponse)
async def validate_migration(
    orchestrator: Orchestrator,
    user: MigrationAdmin,
    body: Payload = None,
) -> ValidateResponse | JSONResponse:
    """Read-only pre-check of an import document."""
    request = _parse(ImportRequest, body)
    try:
        return ValidateResponse(validation=await orchestrator.validate(request))
    except Exception as e:
        return _failure("validate", e)


@router.post("/apply", response_model=ApplyResponse)
async def apply_migration(
    orchestrator: Orchestrator,
    user: MigrationAdmin,
    response: Response,
    body: Payload = None,
) -> ApplyResponse | JSONResponse:
    """Sync collections, upsert workflows and merge UI schemas into existing roots."""
    request = _parse(ApplyRequest, body)
    try:
        result = await orchestrator.apply(request)
    except Exception as e:
        return _failure("apply", e)
    response.headers[REFRESH_HEADER] = "schema"
    return result
