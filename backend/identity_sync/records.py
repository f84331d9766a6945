"""
Identity Sync - Snapshot and Result Records

Plain dataclasses passed between the fetchers, the comparator and the
batch operations. Nothing here touches the network or the database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from identity_sync.errors import IdentitySyncError, ValidationError
from identity_sync.models import AccountRole

# Legacy provider vocabulary from the storefront's first role scheme
_ROLE_ALIASES = {
    "administrator": AccountRole.ADMINISTRATOR,
    "admin": AccountRole.ADMINISTRATOR,
    "standard": AccountRole.STANDARD,
    "customer": AccountRole.STANDARD,
}


def normalize_role(value: Any) -> AccountRole:
    """Map an incoming role value onto the enum; anything unrecognized is standard."""
    if isinstance(value, AccountRole):
        return value
    if not isinstance(value, str):
        return AccountRole.STANDARD
    return _ROLE_ALIASES.get(value.strip().lower(), AccountRole.STANDARD)


def parse_role(value: Any) -> AccountRole:
    """
    Strict role parsing for explicit writes.

    Raises:
        ValidationError: value is not one of the enum values
    """
    if isinstance(value, AccountRole):
        return value
    try:
        return AccountRole(value)
    except ValueError:
        raise ValidationError(f"Invalid role {value!r}; expected one of {[r.value for r in AccountRole]}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class IdentityRecord:
    """Provider-side identity as seen by the caller."""
    external_id: str
    email: str
    display_name: str
    role: AccountRole = AccountRole.STANDARD
    created_at: Optional[datetime] = None
    last_authenticated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role.value,
            "created_at": _iso(self.created_at),
            "last_authenticated_at": _iso(self.last_authenticated_at),
        }


@dataclass(frozen=True)
class AccountRecord:
    """Store-side account snapshot."""
    id: int
    external_id: Optional[str]
    email: str
    display_name: str
    role: AccountRole
    is_active: bool
    created_at: datetime

    @classmethod
    def from_db(cls, account) -> "AccountRecord":
        return cls(
            id=account.id,
            external_id=account.external_id,
            email=account.email,
            display_name=account.display_name,
            role=normalize_role(account.role),
            is_active=bool(account.is_active),
            created_at=account.created_at,
        )

    @property
    def is_linked(self) -> bool:
        return self.external_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


@dataclass(frozen=True)
class ProviderSnapshot:
    """
    Identities visible to the caller.

    exhaustive is False whenever the caller could only see part of the
    provider's user base (typically just their own identity).
    """
    identities: List[IdentityRecord]
    exhaustive: bool


@dataclass(frozen=True)
class MatchedPair:
    identity: IdentityRecord
    account: AccountRecord

    @property
    def external_id(self) -> str:
        return self.identity.external_id

    def to_dict(self) -> Dict[str, Any]:
        return {"identity": self.identity.to_dict(), "account": self.account.to_dict()}


@dataclass(frozen=True)
class RoleConflict:
    """A matched pair whose provider and store roles differ."""
    external_id: str
    account_id: int
    email: str
    display_name: str
    provider_role: AccountRole
    store_role: AccountRole

    @classmethod
    def from_pair(cls, pair: MatchedPair) -> "RoleConflict":
        return cls(
            external_id=pair.identity.external_id,
            account_id=pair.account.id,
            email=pair.account.email,
            display_name=pair.account.display_name,
            provider_role=pair.identity.role,
            store_role=pair.account.role,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "account_id": self.account_id,
            "email": self.email,
            "display_name": self.display_name,
            "provider_role": self.provider_role.value,
            "store_role": self.store_role.value,
        }


class StoreOnlyReason(str, Enum):
    """Why a store account had no counterpart in the provider snapshot"""
    UNLINKED = "unlinked"
    NOT_VISIBLE_AT_PROVIDER = "not_visible_at_provider"


@dataclass(frozen=True)
class StoreOnlyAccount:
    account: AccountRecord
    reason: StoreOnlyReason

    @property
    def reap_eligible(self) -> bool:
        # An id missing from a (possibly partial) provider snapshot is never grounds for removal
        return self.reason == StoreOnlyReason.UNLINKED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account.to_dict(),
            "reason": self.reason.value,
            "reap_eligible": self.reap_eligible,
        }


@dataclass
class ComparisonResult:
    only_in_provider: List[IdentityRecord] = field(default_factory=list)
    only_in_store: List[StoreOnlyAccount] = field(default_factory=list)
    matched_pairs: List[MatchedPair] = field(default_factory=list)
    role_conflicts: List[RoleConflict] = field(default_factory=list)
    # Repeated external_ids in the provider snapshot; only the first is compared
    duplicate_identities: List[IdentityRecord] = field(default_factory=list)
    provider_snapshot_exhaustive: bool = False

    @property
    def unlinked_accounts(self) -> List[AccountRecord]:
        return [e.account for e in self.only_in_store if e.reason == StoreOnlyReason.UNLINKED]

    @property
    def not_visible_accounts(self) -> List[AccountRecord]:
        return [e.account for e in self.only_in_store if e.reason == StoreOnlyReason.NOT_VISIBLE_AT_PROVIDER]

    def conflict_for(self, external_id: str) -> Optional[RoleConflict]:
        for conflict in self.role_conflicts:
            if conflict.external_id == external_id:
                return conflict
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "only_in_provider": [i.to_dict() for i in self.only_in_provider],
            "only_in_store": [e.to_dict() for e in self.only_in_store],
            "matched_pairs": [p.to_dict() for p in self.matched_pairs],
            "role_conflicts": [c.to_dict() for c in self.role_conflicts],
            "duplicate_identities": [i.to_dict() for i in self.duplicate_identities],
            "provider_snapshot_exhaustive": self.provider_snapshot_exhaustive,
            "counts": {
                "only_in_provider": len(self.only_in_provider),
                "only_in_store": len(self.only_in_store),
                "unlinked": len(self.unlinked_accounts),
                "not_visible_at_provider": len(self.not_visible_accounts),
                "matched": len(self.matched_pairs),
                "role_conflicts": len(self.role_conflicts),
                "duplicate_identities": len(self.duplicate_identities),
            },
        }


# ==================== BATCH RESULTS ====================

@dataclass(frozen=True)
class RecordFailure:
    """One per-record failure inside a batch."""
    key: str
    error: str
    error_type: str

    @classmethod
    def from_error(cls, key: Any, error: IdentitySyncError) -> "RecordFailure":
        return cls(key=str(key), error=error.message, error_type=error.error_type)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "error": self.error, "error_type": self.error_type}


@dataclass
class ImportResult:
    """Outcome of importing provider identities; lists hold external ids."""
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: List[RecordFailure] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.created) + len(self.updated)

    @property
    def success_count(self) -> int:
        return len(self.created) + len(self.updated) + len(self.unchanged)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": list(self.created),
            "updated": list(self.updated),
            "unchanged": list(self.unchanged),
            "failed": [f.to_dict() for f in self.failed],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass(frozen=True)
class ResolutionOutcome:
    external_id: str
    success: bool
    resolved_to: Optional[AccountRole] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"external_id": self.external_id, "success": self.success}
        if self.resolved_to is not None:
            data["resolved_to"] = self.resolved_to.value
        if self.error is not None:
            data["error"] = self.error
            data["error_type"] = self.error_type
        return data


def summarize_resolutions(outcomes: List[ResolutionOutcome]) -> Dict[str, Any]:
    succeeded = sum(1 for o in outcomes if o.success)
    return {
        "results": [o.to_dict() for o in outcomes],
        "success_count": succeeded,
        "failure_count": len(outcomes) - succeeded,
    }


@dataclass
class CleanupResult:
    """Audit manifest of an orphan cleanup run."""
    retention_days: int
    cutoff: datetime
    dry_run: bool = False
    removed_ids: List[int] = field(default_factory=list)
    failed: List[RecordFailure] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.removed_ids)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retention_days": self.retention_days,
            "cutoff": self.cutoff.isoformat(),
            "dry_run": self.dry_run,
            "removed_ids": list(self.removed_ids),
            "failed": [f.to_dict() for f in self.failed],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass(frozen=True)
class SyncStatus:
    total: int
    with_link: int
    without_link: int
    administrators: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "with_link": self.with_link,
            "without_link": self.without_link,
            "administrators": self.administrators,
        }
