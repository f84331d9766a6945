"""
Identity Sync API Endpoints

REST API for the identity reconciliation engine:
- GET  /api/identity-sync/health - Module status (public)
- GET  /api/identity-sync/status - Aggregate account counts
- GET  /api/identity-sync/compare - Provider vs store comparison
- POST /api/identity-sync/import - Import provider identities (profile sync)
- POST /api/identity-sync/resolve - Resolve every role conflict
- POST /api/identity-sync/resolve/{external_id} - Resolve one role conflict
- POST /api/identity-sync/cleanup - Remove aged orphan accounts

Permissions:
- health: public
- everything else: administrator
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from config import get_settings
from identity_sync.endpoints.dependencies import get_sync_service
from identity_sync.errors import IdentitySyncError
from identity_sync.records import summarize_resolutions
from identity_sync.services.sync_service import IdentitySyncService
from middleware.auth import OperatorUser, require_administrator
from utils.validation_errors import http_error_for, raise_invalid_parameter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/identity-sync", tags=["Identity Sync"])


# ==================== Request Models ====================

class CleanupRequest(BaseModel):
    """Request to remove aged orphan accounts."""
    retention_days: int = Field(..., gt=0, description="Minimum orphan age in days; no default")
    confirm: bool = Field(default=False, description="Must be true for a destructive run")
    dry_run: bool = Field(default=False, description="List candidates without deleting")


# ==================== Endpoints ====================

@router.get("/health")
async def get_module_health():
    """
    Get identity sync module status.
    No authentication required.
    """
    settings = get_settings()
    return {
        "status": "ok",
        "module": "identity_sync",
        "version": settings.API_VERSION,
        "provider_admin_access": settings.provider_has_admin_access,
    }


@router.get("/status")
async def get_sync_status(
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """Aggregate counts over current accounts."""
    try:
        status = await service.get_status()
    except IdentitySyncError as e:
        raise http_error_for(e)

    return {
        "stats": status.to_dict(),
        "suggested_retention_days": get_settings().ORPHAN_RETENTION_DEFAULT_DAYS,
    }


@router.get("/compare")
async def compare_snapshots(
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """
    Compare provider identities with store accounts.

    provider_snapshot_exhaustive is false when only the caller's own
    identity was visible; store-only accounts are then not evidence of
    anything missing at the provider.
    """
    try:
        result = await service.get_comparison()
    except IdentitySyncError as e:
        raise http_error_for(e)
    return result.to_dict()


@router.post("/import")
async def import_from_provider(
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """
    Import provider identities into the store.

    Creates missing accounts and refreshes email/display name on existing
    ones. Existing roles are never changed.
    """
    try:
        result = await service.import_from_provider(performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)
    return result.to_dict()


@router.post("/resolve")
async def resolve_all_conflicts(
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """Push the store role to the provider for every current conflict."""
    try:
        outcomes = await service.resolve_conflicts(performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)
    return summarize_resolutions(outcomes)


@router.post("/resolve/{external_id}")
async def resolve_one_conflict(
    external_id: str,
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """Resolve a single named conflict. 404 if it is not currently in conflict."""
    try:
        outcome = await service.resolve_conflict(external_id, performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)
    return summarize_resolutions([outcome])


@router.post("/cleanup")
async def cleanup_orphans(
    request: CleanupRequest,
    operator: OperatorUser = Depends(require_administrator),
    service: IdentitySyncService = Depends(get_sync_service)
):
    """
    Permanently delete unlinked accounts older than retention_days.

    **Irreversible.** Requires confirm=true unless dry_run is set.
    Returns the manifest of removed ids.
    """
    if not request.dry_run and not request.confirm:
        raise_invalid_parameter("confirm", "confirm must be true to permanently delete orphan accounts")

    try:
        result = await service.cleanup_orphans(
            request.retention_days,
            dry_run=request.dry_run,
            performed_by=operator.actor
        )
    except IdentitySyncError as e:
        raise http_error_for(e)

    logger.info(f"Orphan cleanup by {operator.actor}: removed={result.removed_ids} dry_run={result.dry_run}")
    return result.to_dict()
