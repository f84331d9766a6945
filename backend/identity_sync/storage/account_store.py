"""
Account Store - Datastore Boundary

All reads and writes against the accounts table. Every write is its own
transaction and appends an AccountSyncLogDB row in the same commit, so a
batch cut short leaves the table consistent and resumable.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func, case, and_
from sqlalchemy.exc import IntegrityError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_sync.errors import NotFoundError, TransientNetworkError, ValidationError
from identity_sync.models import AccountDB, AccountSyncLogDB, AccountRole
from identity_sync.records import AccountRecord, SyncStatus, parse_role

logger = logging.getLogger(__name__)


class AccountStore:
    """
    Account Store - persistence for store-side accounts.

    Ensures:
    - role is always an AccountRole value
    - external_id stays unique (enforced by the table)
    - every write is audited
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def list_accounts(
        self,
        role: Optional[AccountRole] = None,
        linked: Optional[bool] = None,
        is_active: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[AccountDB]:
        """List accounts, optionally filtered by role, link state and active flag."""
        query = select(AccountDB)
        if role is not None:
            query = query.where(AccountDB.role == parse_role(role).value)
        if linked is True:
            query = query.where(AccountDB.external_id.is_not(None))
        elif linked is False:
            query = query.where(AccountDB.external_id.is_(None))
        if is_active is not None:
            query = query.where(AccountDB.is_active == is_active)
        query = query.order_by(AccountDB.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self._execute(query)
        return list(result.scalars().all())

    async def get_by_id(self, account_id: int) -> Optional[AccountDB]:
        result = await self._execute(select(AccountDB).where(AccountDB.id == account_id))
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Optional[AccountDB]:
        result = await self._execute(select(AccountDB).where(AccountDB.external_id == external_id))
        return result.scalar_one_or_none()

    async def require(self, account_id: int) -> AccountDB:
        account = await self.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)
        return account

    async def list_orphans_older_than(self, cutoff: datetime) -> List[AccountDB]:
        """Unlinked accounts created strictly before cutoff."""
        result = await self._execute(
            select(AccountDB)
            .where(and_(AccountDB.external_id.is_(None), AccountDB.created_at < cutoff))
            .order_by(AccountDB.id)
        )
        return list(result.scalars().all())

    async def count_status(self) -> SyncStatus:
        """Aggregate counters in a single query."""
        result = await self._execute(
            select(
                func.count(AccountDB.id),
                func.count(AccountDB.external_id),
                func.coalesce(
                    func.sum(case((AccountDB.role == AccountRole.ADMINISTRATOR.value, 1), else_=0)),
                    0
                ),
            )
        )
        total, with_link, administrators = result.one()
        total = int(total or 0)
        with_link = int(with_link or 0)
        return SyncStatus(
            total=total,
            with_link=with_link,
            without_link=total - with_link,
            administrators=int(administrators or 0),
        )

    # ==================== WRITES ====================

    async def create_account(
        self,
        email: str,
        display_name: Optional[str] = None,
        role: AccountRole = AccountRole.STANDARD,
        external_id: Optional[str] = None,
        performed_by: str = "system"
    ) -> AccountDB:
        """
        Create a new account.

        Raises:
            ValidationError: bad role, or external_id already linked to another account
        """
        role = parse_role(role)
        account = AccountDB(
            email=email.strip().lower(),
            display_name=display_name or "User",
            role=role.value,
            external_id=external_id,
            is_active=True,
        )
        self.db.add(account)
        await self._flush(external_id=external_id)

        self._log(account, "create", performed_by, {"role": role.value, "email": account.email})
        await self._commit(external_id=external_id)
        await self.db.refresh(account)

        logger.info(f"Created account {account.id} (external_id={external_id})")
        return account

    async def update_profile(
        self,
        account_id: int,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        performed_by: str = "system"
    ) -> AccountDB:
        """Update profile fields only. Role and link are never touched here."""
        account = await self.require(account_id)

        changes: Dict[str, Any] = {}
        if email is not None and email.strip().lower() != account.email:
            changes["email"] = {"from": account.email, "to": email.strip().lower()}
            account.email = email.strip().lower()
        if display_name is not None and display_name != account.display_name:
            changes["display_name"] = {"from": account.display_name, "to": display_name}
            account.display_name = display_name

        if not changes:
            return account

        self._log(account, "update_profile", performed_by, changes)
        await self._commit(account_id=account_id)
        await self.db.refresh(account)
        return account

    async def update_role(
        self,
        account_id: int,
        role: Any,
        performed_by: str = "system"
    ) -> AccountDB:
        """
        Change the stored role.

        Raises:
            ValidationError: role is not an AccountRole value (nothing is written)
            NotFoundError: account does not exist
        """
        new_role = parse_role(role)
        account = await self.require(account_id)
        if account.role == new_role.value:
            return account

        previous = account.role
        account.role = new_role.value
        self._log(account, "update_role", performed_by, {"from": previous, "to": new_role.value})
        await self._commit(account_id=account_id)
        await self.db.refresh(account)

        logger.info(f"Account {account_id} role changed {previous} -> {new_role.value} by {performed_by}")
        return account

    async def soft_delete(self, account_id: int, performed_by: str = "system") -> AccountDB:
        return await self._set_active(account_id, False, "deactivate", performed_by)

    async def reactivate(self, account_id: int, performed_by: str = "system") -> AccountDB:
        return await self._set_active(account_id, True, "reactivate", performed_by)

    async def hard_delete(self, account_id: int, performed_by: str = "system") -> None:
        """Permanently remove an account row, linked or not."""
        account = await self.require(account_id)
        self._log(account, "delete", performed_by, {"email": account.email, "linked": account.is_linked})
        await self.db.delete(account)
        await self._commit(account_id=account_id)
        logger.warning(f"Account {account_id} permanently deleted by {performed_by}")

    async def delete_orphan(self, account_id: int, cutoff: datetime, performed_by: str = "system") -> None:
        """
        Delete an account only if it is still unlinked and older than cutoff.

        The eligibility check is repeated inside the DELETE so an account
        linked after the orphan listing is never removed.

        Raises:
            NotFoundError: account vanished or is no longer eligible
        """
        result = await self._execute(
            delete(AccountDB).where(
                and_(
                    AccountDB.id == account_id,
                    AccountDB.external_id.is_(None),
                    AccountDB.created_at < cutoff,
                )
            )
        )
        if not result.rowcount:
            await self.db.rollback()
            raise NotFoundError(
                f"Account {account_id} no longer exists or is no longer an eligible orphan",
                account_id=account_id
            )

        self.db.add(AccountSyncLogDB(
            account_id=account_id,
            external_id=None,
            action="delete",
            performed_by=performed_by,
            details={"reason": "orphan_cleanup", "cutoff": cutoff.isoformat()},
        ))
        await self._commit(account_id=account_id)

    # ==================== HELPERS ====================

    async def _set_active(self, account_id: int, active: bool, action: str, performed_by: str) -> AccountDB:
        account = await self.require(account_id)
        if account.is_active == active:
            return account
        account.is_active = active
        self._log(account, action, performed_by, {})
        await self._commit(account_id=account_id)
        await self.db.refresh(account)
        return account

    def _log(self, account: AccountDB, action: str, performed_by: str, details: Dict[str, Any]) -> None:
        self.db.add(AccountSyncLogDB(
            account_id=account.id,
            external_id=account.external_id,
            action=action,
            performed_by=performed_by,
            details=details,
        ))

    async def _execute(self, statement):
        try:
            return await self.db.execute(statement)
        except DBAPIError as e:
            await self.db.rollback()
            raise TransientNetworkError(f"Datastore query failed: {e.orig or e}")

    async def _flush(self, external_id: Optional[str] = None) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError(
                f"An account is already linked to external_id {external_id}",
                external_id=external_id
            )
        except DBAPIError as e:
            await self.db.rollback()
            raise TransientNetworkError(f"Datastore write failed: {e.orig or e}", external_id=external_id)

    async def _commit(self, account_id: Optional[int] = None, external_id: Optional[str] = None) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ValidationError(f"Datastore rejected write: {e.orig or e}", external_id=external_id, account_id=account_id)
        except DBAPIError as e:
            await self.db.rollback()
            raise TransientNetworkError(f"Datastore write failed: {e.orig or e}", external_id=external_id, account_id=account_id)


class StoreSnapshotFetcher:
    """Reads every store account into AccountRecords."""

    def __init__(self, store: AccountStore):
        self.store = store

    async def fetch(self) -> List[AccountRecord]:
        accounts = await self.store.list_accounts()
        return [AccountRecord.from_db(a) for a in accounts]
