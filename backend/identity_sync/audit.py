"""
Identity Sync - Audit Events

Structured log events for every operator-triggered batch. Row-level
writes are additionally persisted by AccountStore.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger(__name__)


class SyncAuditEvent:
    """Audit event types for identity sync operations."""
    COMPARE = "identity_sync.compare"
    IMPORT_COMPLETED = "identity_sync.import_completed"
    CONFLICT_RESOLVED = "identity_sync.conflict_resolved"
    CONFLICT_FAILED = "identity_sync.conflict_failed"
    CLEANUP_COMPLETED = "identity_sync.cleanup_completed"
    ACCOUNT_ROLE_CHANGED = "identity_sync.account_role_changed"
    ACCOUNT_DEACTIVATED = "identity_sync.account_deactivated"
    ACCOUNT_REACTIVATED = "identity_sync.account_reactivated"
    ACCOUNT_DELETED = "identity_sync.account_deleted"


def log_sync_event(
    event_type: str,
    details: Dict[str, Any],
    actor: str = "system",
    level: int = logging.INFO
):
    """Log identity sync event for audit trail."""
    log_entry = {
        "event": event_type,
        "details": details,
        "actor": actor,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    logger.log(level, f"Identity sync event: {event_type}", extra=log_entry)
