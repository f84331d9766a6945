"""
Conflict Resolver

Resolves role conflicts with a fixed precedence: the store role is
authoritative, so the account's current role is written back to the
provider's metadata. Conflicts are independent and are resolved
concurrently under a semaphore that bounds provider writes; store
reads stay sequential on the shared session.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Union

from identity_sync.audit import SyncAuditEvent, log_sync_event
from identity_sync.clients.identity_provider import IdentityProviderClient
from identity_sync.errors import IdentitySyncError, NotFoundError
from identity_sync.models import AccountRole
from identity_sync.records import ResolutionOutcome, RoleConflict, normalize_role
from identity_sync.storage.account_store import AccountStore

logger = logging.getLogger(__name__)


class ConflictResolver:

    def __init__(
        self,
        provider: IdentityProviderClient,
        store: Optional[AccountStore] = None,
        max_concurrency: int = 5
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.provider = provider
        self.store = store
        self.max_concurrency = max_concurrency

    async def resolve(
        self,
        conflicts: Iterable[RoleConflict],
        performed_by: str = "identity_sync"
    ) -> List[ResolutionOutcome]:
        """
        Resolve every conflict; one failure never blocks the rest.

        Store roles are read one at a time because the store's session
        cannot be shared by concurrent tasks; only the provider writes
        run concurrently. Outcomes are returned in the order the
        conflicts were given.
        """
        conflicts = list(conflicts)

        targets: List[Union[AccountRole, IdentitySyncError]] = []
        for conflict in conflicts:
            try:
                targets.append(await self._authoritative_role(conflict))
            except IdentitySyncError as e:
                targets.append(e)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(conflict: RoleConflict, target) -> ResolutionOutcome:
            if isinstance(target, IdentitySyncError):
                return self._failed(conflict, target, performed_by)
            async with semaphore:
                return await self._push(conflict, target, performed_by)

        return list(await asyncio.gather(*(bounded(c, t) for c, t in zip(conflicts, targets))))

    async def resolve_one(
        self,
        conflict: RoleConflict,
        performed_by: str = "identity_sync"
    ) -> ResolutionOutcome:
        try:
            target_role = await self._authoritative_role(conflict)
        except IdentitySyncError as e:
            return self._failed(conflict, e, performed_by)
        return await self._push(conflict, target_role, performed_by)

    async def _push(
        self,
        conflict: RoleConflict,
        target_role: AccountRole,
        performed_by: str
    ) -> ResolutionOutcome:
        try:
            if target_role == conflict.provider_role:
                # Store already moved to the provider's value since the snapshot
                resolved_to = target_role
            else:
                updated = await self.provider.update_role(conflict.external_id, target_role)
                resolved_to = updated.role
        except IdentitySyncError as e:
            return self._failed(conflict, e, performed_by)

        log_sync_event(
            SyncAuditEvent.CONFLICT_RESOLVED,
            {
                "external_id": conflict.external_id,
                "account_id": conflict.account_id,
                "provider_role": conflict.provider_role.value,
                "resolved_to": resolved_to.value,
            },
            actor=performed_by
        )
        return ResolutionOutcome(external_id=conflict.external_id, success=True, resolved_to=resolved_to)

    def _failed(self, conflict: RoleConflict, error: IdentitySyncError, performed_by: str) -> ResolutionOutcome:
        log_sync_event(
            SyncAuditEvent.CONFLICT_FAILED,
            {
                "external_id": conflict.external_id,
                "account_id": conflict.account_id,
                "error": error.message,
                "error_type": error.error_type,
            },
            actor=performed_by,
            level=logging.WARNING
        )
        return ResolutionOutcome(
            external_id=conflict.external_id,
            success=False,
            error=error.message,
            error_type=error.error_type
        )

    async def _authoritative_role(self, conflict: RoleConflict) -> AccountRole:
        """Re-read the store role so a stale snapshot is never pushed."""
        if self.store is None:
            return conflict.store_role

        account = await self.store.get_by_id(conflict.account_id)
        if account is None or account.external_id != conflict.external_id:
            raise NotFoundError(
                f"Account {conflict.account_id} is no longer linked to {conflict.external_id}",
                external_id=conflict.external_id,
                account_id=conflict.account_id
            )
        return normalize_role(account.role)
