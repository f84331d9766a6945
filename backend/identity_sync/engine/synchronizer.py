"""
Synchronizer

Imports provider identities into the store as a profile sync.

Rules:
- Missing account: create it, copying the provider role once
- Existing account: update email and display name only
- Never change the role of an existing account; that belongs to
  ConflictResolver
- Unchanged identities cause no writes, so re-running is free
"""

import logging
from typing import Iterable

from identity_sync.audit import SyncAuditEvent, log_sync_event
from identity_sync.errors import IdentitySyncError
from identity_sync.records import IdentityRecord, ImportResult, RecordFailure
from identity_sync.storage.account_store import AccountStore

logger = logging.getLogger(__name__)


class Synchronizer:

    def __init__(self, store: AccountStore):
        self.store = store

    async def import_provider_identities(
        self,
        identities: Iterable[IdentityRecord],
        performed_by: str = "identity_sync"
    ) -> ImportResult:
        """
        Upsert an account per identity, keyed by external_id.

        Per-record failures are collected in ImportResult.failed; the
        batch always runs to the end.
        """
        result = ImportResult()

        for identity in identities:
            try:
                outcome = await self._import_one(identity, performed_by)
            except IdentitySyncError as e:
                logger.warning(f"Import failed for {identity.external_id}: {e.message}")
                result.failed.append(RecordFailure.from_error(identity.external_id, e))
                continue

            getattr(result, outcome).append(identity.external_id)

        log_sync_event(
            SyncAuditEvent.IMPORT_COMPLETED,
            {
                "created": len(result.created),
                "updated": len(result.updated),
                "unchanged": len(result.unchanged),
                "failed": len(result.failed),
            },
            actor=performed_by
        )
        return result

    async def _import_one(self, identity: IdentityRecord, performed_by: str) -> str:
        account = await self.store.get_by_external_id(identity.external_id)

        if account is None:
            await self.store.create_account(
                email=identity.email,
                display_name=identity.display_name,
                role=identity.role,
                external_id=identity.external_id,
                performed_by=performed_by
            )
            return "created"

        email = identity.email or account.email
        if email == account.email and identity.display_name == account.display_name:
            return "unchanged"

        if identity.role.value != account.role:
            logger.info(
                f"Account {account.id} role differs from provider "
                f"({account.role} vs {identity.role.value}); left for conflict resolution"
            )

        await self.store.update_profile(
            account.id,
            email=email,
            display_name=identity.display_name,
            performed_by=performed_by
        )
        return "updated"
