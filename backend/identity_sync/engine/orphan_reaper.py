"""
Orphan Reaper

Permanently removes store accounts that were never linked to a provider
identity (external_id IS NULL) and are older than the retention window.
Linked accounts are never candidates, whatever their age or activity.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from identity_sync.audit import SyncAuditEvent, log_sync_event
from identity_sync.errors import IdentitySyncError, ValidationError
from identity_sync.records import CleanupResult, RecordFailure
from identity_sync.storage.account_store import AccountStore

logger = logging.getLogger(__name__)


def validate_retention_days(retention_days) -> int:
    """
    Raises:
        ValidationError: not a positive whole number of days
    """
    if isinstance(retention_days, bool) or not isinstance(retention_days, int):
        raise ValidationError(f"retention_days must be an integer, got {retention_days!r}")
    if retention_days < 1:
        raise ValidationError("retention_days must be at least 1")
    return retention_days


class OrphanReaper:

    def __init__(self, store: AccountStore):
        self.store = store

    async def cleanup(
        self,
        retention_days: int,
        dry_run: bool = False,
        performed_by: str = "identity_sync",
        now: Optional[datetime] = None
    ) -> CleanupResult:
        """
        Delete unlinked accounts created before now - retention_days.

        retention_days has no default on purpose. With dry_run the
        manifest lists what would be removed and nothing is deleted.
        """
        retention_days = validate_retention_days(retention_days)
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

        result = CleanupResult(retention_days=retention_days, cutoff=cutoff, dry_run=dry_run)
        candidates = await self.store.list_orphans_older_than(cutoff)

        for account in candidates:
            # Belt and braces against a store that returns more than asked
            if account.external_id is not None or account.created_at >= cutoff:
                logger.error(f"Orphan listing returned ineligible account {account.id}; skipped")
                continue

            if dry_run:
                result.removed_ids.append(account.id)
                continue

            try:
                await self.store.delete_orphan(account.id, cutoff, performed_by=performed_by)
            except IdentitySyncError as e:
                logger.warning(f"Orphan cleanup skipped account {account.id}: {e.message}")
                result.failed.append(RecordFailure.from_error(account.id, e))
                continue
            result.removed_ids.append(account.id)

        log_sync_event(
            SyncAuditEvent.CLEANUP_COMPLETED,
            {
                "retention_days": retention_days,
                "cutoff": cutoff.isoformat(),
                "dry_run": dry_run,
                "removed_ids": result.removed_ids,
                "failed": len(result.failed),
            },
            actor=performed_by,
            level=logging.WARNING if result.removed_ids and not dry_run else logging.INFO
        )
        return result
