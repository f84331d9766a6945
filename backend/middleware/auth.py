"""
Authentication Middleware and Dependencies

Provides:
- decode_token: validate operator JWTs
- create_operator_token: mint an operator JWT for scripts and tests
- get_current_operator: extract and validate the operator from a bearer token
- RoleChecker: dependency for role validation against the account store
- get_provider_session: the caller's identity provider session token, if sent

Roles are read from the accounts table on every request, never from the
token, because the store is the system of record for authorization.

Operator tokens are issued by the admin sign-in service that shares
JWT_SECRET_KEY; this service only verifies them.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, List
import logging

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from identity_sync.models import AccountRole
from identity_sync.storage.account_store import AccountStore

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


@dataclass
class OperatorUser:
    """Authenticated operator, as recorded in the store"""
    id: int
    email: str
    role: str
    external_id: Optional[str] = None

    @property
    def actor(self) -> str:
        return f"account:{self.id}"


# ==================== TOKENS ====================

def create_operator_token(account_id: int, email: str, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """
    Create a signed access token for an account.

    Sign-in lives outside this service; this mirrors the claims it issues
    (sub, email, type, exp) for operator scripts and tests.
    """
    settings = get_settings()
    payload = {
        "sub": str(account_id),
        "email": email,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

    if not payload.get("sub") or payload.get("type", "access") != "access":
        return None
    return payload


# ==================== DEPENDENCIES ====================

async def get_current_operator(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> OperatorUser:
    """
    Resolve the bearer token to an active account.
    Raises 401 if no token, an invalid token, or an unknown/inactive account.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject"
        )

    account = await AccountStore(db).get_by_id(account_id)
    if account is None or not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or inactive"
        )

    return OperatorUser(
        id=account.id,
        email=account.email,
        role=account.role,
        external_id=account.external_id
    )


class RoleChecker:
    """
    Dependency class for role-based access control.

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: OperatorUser = Depends(RoleChecker(["administrator"]))):
            ...
    """

    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    async def __call__(self, operator: OperatorUser = Depends(get_current_operator)) -> OperatorUser:
        if operator.role not in self.allowed_roles:
            logger.warning(f"Operator {operator.id} with role {operator.role} denied")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {self.allowed_roles}"
            )
        return operator


require_administrator = RoleChecker([AccountRole.ADMINISTRATOR.value])


async def get_provider_session(
    x_provider_session: Optional[str] = Header(None, alias="X-Provider-Session")
) -> Optional[str]:
    """Caller's own identity provider session token, used on the self-service path."""
    return x_provider_session or None
