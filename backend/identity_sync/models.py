"""
Identity Sync - Database Models

SQLAlchemy models for store-side accounts, the system of record for
authorization, plus the per-write audit trail.
"""

from datetime import datetime, timezone
from typing import Dict, Any
from enum import Enum

from sqlalchemy import (
    Column, String, Boolean, Integer, DateTime, JSON, CheckConstraint, Index, text
)

from database.connection import Base


class AccountRole(str, Enum):
    """Business role stored on an account"""
    ADMINISTRATOR = "administrator"
    STANDARD = "standard"


ROLE_VALUES = tuple(r.value for r in AccountRole)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountDB(Base):
    """
    Account - Store-side user record

    external_id links the account to a provider identity. NULL means the
    account was never linked (or the link was lost) and is an orphan.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "role IN ({})".format(", ".join(f"'{v}'" for v in ROLE_VALUES)),
            name="ck_accounts_role"
        ),
        Index("ix_accounts_orphans", "created_at", postgresql_where=text("external_id IS NULL")),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(255), unique=True, nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    display_name = Column(String(255), nullable=False, default="User")
    role = Column(String(20), nullable=False, default=AccountRole.STANDARD.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def is_linked(self) -> bool:
        return self.external_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "is_active": self.is_active,
            "is_linked": self.is_linked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }


class AccountSyncLogDB(Base):
    """
    Account Sync Log - Audit trail for account writes

    One row per create, profile update, role change, deactivate,
    reactivate and delete, including the orphan reaper's deletions.
    account_id is not a foreign key so rows survive hard deletes.
    """
    __tablename__ = "account_sync_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, index=True)
    external_id = Column(String(255))
    action = Column(String(50), nullable=False)  # create, update_profile, update_role, deactivate, reactivate, delete
    performed_by = Column(String(100))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "external_id": self.external_id,
            "action": self.action,
            "performed_by": self.performed_by,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
