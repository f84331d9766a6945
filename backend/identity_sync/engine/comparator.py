"""
Comparator

Partitions a provider snapshot and a store snapshot into
only-in-provider, only-in-store and matched pairs, and flags role
conflicts on the matches. Pure: classifies, never mutates.
"""

import logging
from typing import Dict, Iterable, List

from identity_sync.records import (
    AccountRecord,
    ComparisonResult,
    IdentityRecord,
    MatchedPair,
    RoleConflict,
    StoreOnlyAccount,
    StoreOnlyReason,
)

logger = logging.getLogger(__name__)


def compare(
    identities: Iterable[IdentityRecord],
    accounts: Iterable[AccountRecord],
    provider_snapshot_exhaustive: bool = False
) -> ComparisonResult:
    """
    Compare provider identities with store accounts.

    Input order is preserved in every output list. A store account whose
    external_id is absent from the snapshot is reported as
    NOT_VISIBLE_AT_PROVIDER, never as UNLINKED: the snapshot may be partial.
    Repeated provider ids are compared once and listed in
    duplicate_identities.
    """
    result = ComparisonResult(provider_snapshot_exhaustive=provider_snapshot_exhaustive)

    identity_list: List[IdentityRecord] = []
    by_external_id: Dict[str, IdentityRecord] = {}
    for identity in identities:
        if identity.external_id in by_external_id:
            logger.warning(f"Duplicate identity {identity.external_id} in provider snapshot")
            result.duplicate_identities.append(identity)
            continue
        by_external_id[identity.external_id] = identity
        identity_list.append(identity)

    linked_ids = set()

    for account in accounts:
        if account.external_id is None:
            result.only_in_store.append(StoreOnlyAccount(account, StoreOnlyReason.UNLINKED))
            continue

        identity = by_external_id.get(account.external_id)
        if identity is None:
            result.only_in_store.append(StoreOnlyAccount(account, StoreOnlyReason.NOT_VISIBLE_AT_PROVIDER))
            continue

        linked_ids.add(account.external_id)
        pair = MatchedPair(identity=identity, account=account)
        result.matched_pairs.append(pair)
        if identity.role != account.role:
            result.role_conflicts.append(RoleConflict.from_pair(pair))

    result.only_in_provider = [i for i in identity_list if i.external_id not in linked_ids]
    return result
