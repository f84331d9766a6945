"""
Tests for operator authentication

- Token round trip and rejection of tampered/expired tokens
- Tokens minted by the external sign-in service are accepted
- Roles come from the account store, not the token
- Inactive or non-administrator accounts are refused

Run with: pytest tests/test_auth.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from config import get_settings
from middleware.auth import (
    OperatorUser,
    RoleChecker,
    create_operator_token,
    decode_token,
    get_current_operator,
    require_administrator,
)
from identity_sync.models import AccountDB


def _credentials(token):
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def _db_returning(account):
    db = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = account
    db.execute = AsyncMock(return_value=result)
    return db


class TestTokens:

    def test_round_trip(self):
        token = create_operator_token(7, "ops@example.com")
        payload = decode_token(token)
        assert payload["sub"] == "7"
        assert payload["email"] == "ops@example.com"

    def test_expired_token_rejected(self):
        token = create_operator_token(7, "ops@example.com", expires_minutes=-1)
        assert decode_token(token) is None

    def test_garbage_token_rejected(self):
        assert decode_token("not-a-jwt") is None

    def test_externally_issued_token_accepted(self):
        settings = get_settings()
        claims = {
            "sub": "12",
            "email": "signin@example.com",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        }
        token = jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

        assert decode_token(token)["sub"] == "12"

    def test_token_signed_with_other_secret_rejected(self):
        settings = get_settings()
        claims = {"sub": "12", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
        token = jwt.encode(claims, "x" * 40, algorithm=settings.JWT_ALGORITHM)

        assert decode_token(token) is None

    def test_refresh_token_rejected(self):
        settings = get_settings()
        token = jwt.encode({"sub": "12", "type": "refresh"}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
        assert decode_token(token) is None


class TestGetCurrentOperator:

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_operator(credentials=None, db=_db_returning(None))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_role_read_from_store(self):
        account = AccountDB(id=7, email="ops@example.com", role="standard", is_active=True, external_id="u7")
        token = create_operator_token(7, "ops@example.com")

        operator = await get_current_operator(credentials=_credentials(token), db=_db_returning(account))

        assert operator.id == 7
        assert operator.role == "standard"
        assert operator.actor == "account:7"

    @pytest.mark.asyncio
    async def test_inactive_account_rejected(self):
        account = AccountDB(id=7, email="ops@example.com", role="administrator", is_active=False)
        token = create_operator_token(7, "ops@example.com")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_operator(credentials=_credentials(token), db=_db_returning(account))
        assert exc_info.value.status_code == 401


class TestRoleChecker:

    @pytest.mark.asyncio
    async def test_standard_denied(self):
        operator = OperatorUser(id=2, email="s@example.com", role="standard")
        with pytest.raises(HTTPException) as exc_info:
            await require_administrator(operator)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_administrator_allowed(self):
        operator = OperatorUser(id=1, email="a@example.com", role="administrator")
        assert await require_administrator(operator) is operator

    @pytest.mark.asyncio
    async def test_custom_roles(self):
        checker = RoleChecker(["standard", "administrator"])
        operator = OperatorUser(id=2, email="s@example.com", role="standard")
        assert await checker(operator) is operator
