"""
Identity Sync Service

Operator-facing facade over the reconciliation engine:
- Aggregate status
- Comparison of provider and store snapshots
- Provider import (profile sync)
- Role conflict resolution (all, or one named conflict)
- Orphan cleanup with an explicit retention window

Every call fetches fresh snapshots; nothing is cached between calls.
Import and conflict resolution stay separate operations so a profile
sync can never change authorization.
"""

import asyncio
import logging
from typing import List, Optional

from identity_sync.audit import SyncAuditEvent, log_sync_event
from identity_sync.clients.identity_provider import IdentityProviderClient, ProviderSnapshotFetcher
from identity_sync.engine import (
    compare,
    Synchronizer,
    ConflictResolver,
    OrphanReaper,
    StatusReporter,
)
from identity_sync.errors import AuthorizationError, NotFoundError
from identity_sync.records import (
    CleanupResult,
    ComparisonResult,
    ImportResult,
    ResolutionOutcome,
    SyncStatus,
)
from identity_sync.storage.account_store import AccountStore, StoreSnapshotFetcher

logger = logging.getLogger(__name__)


class IdentitySyncService:
    """
    Wires the fetchers and engine components around one store and one
    provider client. The provider is optional: status and cleanup never
    talk to it.
    """

    def __init__(
        self,
        store: AccountStore,
        provider: Optional[IdentityProviderClient] = None,
        resolve_concurrency: int = 5
    ):
        self.store = store
        self.provider = provider
        self.store_fetcher = StoreSnapshotFetcher(store)
        self.synchronizer = Synchronizer(store)
        self.reaper = OrphanReaper(store)
        self.reporter = StatusReporter(store)
        self.resolve_concurrency = resolve_concurrency

    def _require_provider(self) -> IdentityProviderClient:
        if self.provider is None:
            raise AuthorizationError(
                "No identity provider credentials: configure a provider secret key or send a caller session token"
            )
        return self.provider

    async def get_status(self) -> SyncStatus:
        return await self.reporter.get_status()

    async def get_comparison(self) -> ComparisonResult:
        provider_fetcher = ProviderSnapshotFetcher(self._require_provider())
        snapshot, accounts = await asyncio.gather(
            provider_fetcher.fetch(),
            self.store_fetcher.fetch()
        )
        result = compare(snapshot.identities, accounts, provider_snapshot_exhaustive=snapshot.exhaustive)

        log_sync_event(
            SyncAuditEvent.COMPARE,
            {
                "identities": len(snapshot.identities),
                "accounts": len(accounts),
                "exhaustive": snapshot.exhaustive,
                "only_in_provider": len(result.only_in_provider),
                "only_in_store": len(result.only_in_store),
                "matched": len(result.matched_pairs),
                "role_conflicts": len(result.role_conflicts),
                "duplicate_identities": len(result.duplicate_identities),
            }
        )
        return result

    async def import_from_provider(self, performed_by: str = "identity_sync") -> ImportResult:
        snapshot = await ProviderSnapshotFetcher(self._require_provider()).fetch()
        return await self.synchronizer.import_provider_identities(snapshot.identities, performed_by=performed_by)

    def _resolver(self) -> ConflictResolver:
        return ConflictResolver(
            self._require_provider(),
            store=self.store,
            max_concurrency=self.resolve_concurrency
        )

    async def resolve_conflicts(self, performed_by: str = "identity_sync") -> List[ResolutionOutcome]:
        comparison = await self.get_comparison()
        if not comparison.role_conflicts:
            return []
        return await self._resolver().resolve(comparison.role_conflicts, performed_by=performed_by)

    async def resolve_conflict(self, external_id: str, performed_by: str = "identity_sync") -> ResolutionOutcome:
        """
        Resolve a single named conflict.

        Raises:
            NotFoundError: external_id is not currently in conflict
        """
        comparison = await self.get_comparison()
        conflict = comparison.conflict_for(external_id)
        if conflict is None:
            raise NotFoundError(f"No role conflict for {external_id}", external_id=external_id)
        return await self._resolver().resolve_one(conflict, performed_by=performed_by)

    async def cleanup_orphans(
        self,
        retention_days: int,
        dry_run: bool = False,
        performed_by: str = "identity_sync"
    ) -> CleanupResult:
        return await self.reaper.cleanup(retention_days, dry_run=dry_run, performed_by=performed_by)
