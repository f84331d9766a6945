"""
Account Administration API

- GET    /api/accounts - List accounts (filter by role, link state, active flag)
- GET    /api/accounts/{id} - Get one account
- POST   /api/accounts - Create an account
- PATCH  /api/accounts/{id} - Update profile fields
- PUT    /api/accounts/{id}/role - Change the stored role
- POST   /api/accounts/{id}/deactivate - Soft delete
- POST   /api/accounts/{id}/reactivate - Undo soft delete
- DELETE /api/accounts/{id} - Hard delete (irreversible)

Permissions: administrator
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from identity_sync.audit import SyncAuditEvent, log_sync_event
from identity_sync.endpoints.dependencies import get_account_store
from identity_sync.errors import IdentitySyncError
from identity_sync.models import AccountRole
from identity_sync.storage.account_store import AccountStore
from middleware.auth import OperatorUser, require_administrator
from utils.validation_errors import http_error_for, raise_invalid_parameter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["Accounts"])


# ==================== REQUEST MODELS ====================

class CreateAccountRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email address")
    display_name: Optional[str] = Field(None, max_length=255)
    role: str = Field(AccountRole.STANDARD.value, description="administrator or standard")
    external_id: Optional[str] = Field(None, max_length=255, description="Provider identity to link")


class UpdateProfileRequest(BaseModel):
    email: Optional[EmailStr] = None
    display_name: Optional[str] = Field(None, max_length=255)


class UpdateRoleRequest(BaseModel):
    role: str = Field(..., description="administrator or standard")


def _guard_self(operator: OperatorUser, account_id: int, action: str):
    if operator.id == account_id:
        raise_invalid_parameter("account_id", f"Operators cannot {action} their own account", account_id)


# ==================== ENDPOINTS ====================

@router.get("")
async def list_accounts(
    role: Optional[AccountRole] = Query(None),
    linked: Optional[bool] = Query(None, description="true: has external_id, false: orphaned"),
    is_active: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    try:
        accounts = await store.list_accounts(
            role=role, linked=linked, is_active=is_active, limit=limit, offset=offset
        )
    except IdentitySyncError as e:
        raise http_error_for(e)

    return {
        "accounts": [a.to_dict() for a in accounts],
        "limit": limit,
        "offset": offset,
    }


@router.get("/{account_id}")
async def get_account(
    account_id: int,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    try:
        account = await store.require(account_id)
    except IdentitySyncError as e:
        raise http_error_for(e)
    return account.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    try:
        account = await store.create_account(
            email=request.email,
            display_name=request.display_name,
            role=request.role,
            external_id=request.external_id,
            performed_by=operator.actor
        )
    except IdentitySyncError as e:
        raise http_error_for(e)
    return account.to_dict()


@router.patch("/{account_id}")
async def update_profile(
    account_id: int,
    request: UpdateProfileRequest,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    try:
        account = await store.update_profile(
            account_id,
            email=request.email,
            display_name=request.display_name,
            performed_by=operator.actor
        )
    except IdentitySyncError as e:
        raise http_error_for(e)
    return account.to_dict()


@router.put("/{account_id}/role")
async def update_role(
    account_id: int,
    request: UpdateRoleRequest,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    """
    Change the stored role. The provider copy is corrected by the next
    conflict resolution, not here.
    """
    if request.role != AccountRole.ADMINISTRATOR.value:
        _guard_self(operator, account_id, "demote")
    try:
        account = await store.update_role(account_id, request.role, performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)

    log_sync_event(
        SyncAuditEvent.ACCOUNT_ROLE_CHANGED,
        {"account_id": account_id, "role": account.role},
        actor=operator.actor
    )
    return account.to_dict()


@router.post("/{account_id}/deactivate")
async def deactivate_account(
    account_id: int,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    _guard_self(operator, account_id, "deactivate")
    try:
        account = await store.soft_delete(account_id, performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)

    log_sync_event(SyncAuditEvent.ACCOUNT_DEACTIVATED, {"account_id": account_id}, actor=operator.actor)
    return account.to_dict()


@router.post("/{account_id}/reactivate")
async def reactivate_account(
    account_id: int,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    try:
        account = await store.reactivate(account_id, performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)

    log_sync_event(SyncAuditEvent.ACCOUNT_REACTIVATED, {"account_id": account_id}, actor=operator.actor)
    return account.to_dict()


@router.delete("/{account_id}")
async def delete_account(
    account_id: int,
    operator: OperatorUser = Depends(require_administrator),
    store: AccountStore = Depends(get_account_store)
):
    """Permanently delete an account. **Irreversible.**"""
    _guard_self(operator, account_id, "delete")
    try:
        await store.hard_delete(account_id, performed_by=operator.actor)
    except IdentitySyncError as e:
        raise http_error_for(e)

    log_sync_event(SyncAuditEvent.ACCOUNT_DELETED, {"account_id": account_id}, actor=operator.actor)
    return {"success": True, "deleted_id": account_id}
