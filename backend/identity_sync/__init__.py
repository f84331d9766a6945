"""
Identity Sync Module

Keeps store accounts consistent with the external identity provider.
The store is the system of record for roles.

Features:
- Comparison of provider identities and store accounts
- Provider import (profile fields only for existing accounts)
- Role conflict resolution (store role written back to the provider)
- Orphan cleanup with an explicit retention window
- Aggregate status for operators

Routers live in identity_sync.endpoints and are mounted by server.py.
"""

from identity_sync.models import AccountDB, AccountSyncLogDB, AccountRole
from identity_sync.errors import (
    IdentitySyncError,
    TransientNetworkError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from identity_sync.records import (
    IdentityRecord,
    AccountRecord,
    ProviderSnapshot,
    MatchedPair,
    RoleConflict,
    ComparisonResult,
    SyncStatus,
    normalize_role,
)
from identity_sync.services.sync_service import IdentitySyncService

__all__ = [
    'AccountDB',
    'AccountSyncLogDB',
    'AccountRole',
    'IdentitySyncError',
    'TransientNetworkError',
    'AuthorizationError',
    'NotFoundError',
    'ValidationError',
    'IdentityRecord',
    'AccountRecord',
    'ProviderSnapshot',
    'MatchedPair',
    'RoleConflict',
    'ComparisonResult',
    'SyncStatus',
    'normalize_role',
    'IdentitySyncService',
]
