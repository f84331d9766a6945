"""
Identity Provider Client

Talks to the external identity provider's REST API (Clerk-style).

Two access paths:
- administrative: provider secret key, can list every user and write any
  user's role metadata
    GET   /v1/users?limit=&offset=
    GET   /v1/users/{id}
    PATCH /v1/users/{id}/metadata
- self-service: the caller's own session token, sees and modifies only
  the caller's identity
    GET   /v1/me
    PATCH /v1/me/metadata

No retries here; callers retry at the batch level.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from dateutil import parser as date_parser

from identity_sync.errors import (
    IdentitySyncError,
    TransientNetworkError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from identity_sync.models import AccountRole
from identity_sync.records import IdentityRecord, ProviderSnapshot, normalize_role, parse_role

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Provider timestamps arrive as epoch milliseconds or ISO-8601 strings."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    parsed = date_parser.isoparse(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _primary_email(payload: Dict[str, Any]) -> str:
    addresses = payload.get("email_addresses") or []
    primary_id = payload.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address", "")
    if addresses:
        return addresses[0].get("email_address", "")
    return payload.get("email", "") or ""


def _display_name(payload: Dict[str, Any]) -> str:
    full_name = " ".join(
        p for p in (payload.get("first_name"), payload.get("last_name")) if p
    ).strip()
    return full_name or payload.get("username") or "User"


def identity_from_payload(payload: Dict[str, Any]) -> IdentityRecord:
    """
    Convert a provider user object into an IdentityRecord.

    Raises:
        IdentitySyncError: payload is not a user object, has no id, or
            carries an unparseable timestamp
    """
    if not isinstance(payload, dict) or not payload.get("id"):
        raise IdentitySyncError("Identity provider returned a user object without an id")

    try:
        public_meta = payload.get("public_metadata") or {}
        private_meta = payload.get("private_metadata") or {}
        raw_role = public_meta.get("role") or private_meta.get("role")

        return IdentityRecord(
            external_id=payload["id"],
            email=_primary_email(payload).strip().lower(),
            display_name=_display_name(payload),
            role=normalize_role(raw_role),
            created_at=_parse_timestamp(payload.get("created_at")),
            last_authenticated_at=_parse_timestamp(payload.get("last_sign_in_at")),
        )
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        raise IdentitySyncError(
            f"Identity provider returned a malformed user object: {e}",
            external_id=str(payload["id"])
        )


class IdentityProviderClient:
    """
    Client for the identity provider.

    Exactly one credential is used per client: the secret key when given
    (administrative path), otherwise the caller's session token.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: Optional[str] = None,
        session_token: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not secret_key and not session_token:
            raise AuthorizationError("Identity provider requires a secret key or a caller session token")

        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key or None
        self.session_token = session_token if not secret_key else None
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport
        self._self_id: Optional[str] = None

    @property
    def has_admin_access(self) -> bool:
        return self.secret_key is not None

    def _headers(self) -> Dict[str, str]:
        token = self.secret_key or self.session_token
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        external_id: Optional[str] = None,
        **kwargs
    ) -> Any:
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException:
            raise TransientNetworkError(f"Identity provider timed out on {method} {path}", external_id=external_id)
        except httpx.RequestError as e:
            raise TransientNetworkError(f"Identity provider request error: {e}", external_id=external_id)

        status = response.status_code
        if 200 <= status < 300:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                raise IdentitySyncError(
                    f"Identity provider returned a non-JSON body for {method} {path}",
                    external_id=external_id
                )

        detail = response.text[:200]
        logger.warning(f"Identity provider returned {status} for {method} {path}: {detail}")

        if status in (401, 403):
            raise AuthorizationError(f"Identity provider denied {method} {path} ({status})", external_id=external_id)
        if status == 404:
            raise NotFoundError(f"Identity {external_id or path} not found at provider", external_id=external_id)
        if status in (400, 422):
            raise ValidationError(f"Identity provider rejected request: {detail}", external_id=external_id)
        if status == 429 or status >= 500:
            raise TransientNetworkError(f"Identity provider unavailable ({status})", external_id=external_id)
        raise IdentitySyncError(f"Unexpected identity provider response {status}", external_id=external_id)

    # ==================== READ ====================

    async def get_current_identity(self) -> IdentityRecord:
        """The caller's own identity (self-service path only)."""
        if self.has_admin_access:
            raise AuthorizationError("Administrative credentials have no caller identity")
        payload = await self._request("GET", "/v1/me")
        identity = identity_from_payload(payload)
        self._self_id = identity.external_id
        return identity

    async def get_identity(self, external_id: str) -> IdentityRecord:
        if not self.has_admin_access:
            current = await self.get_current_identity()
            if current.external_id != external_id:
                raise AuthorizationError(
                    "Caller may only read their own identity without provider admin access",
                    external_id=external_id
                )
            return current
        payload = await self._request("GET", f"/v1/users/{external_id}", external_id=external_id)
        return identity_from_payload(payload)

    async def list_identities(self) -> List[IdentityRecord]:
        """
        Every identity visible to the caller.

        Administrative path pages through the full user list; the
        self-service path returns only the caller's identity.
        """
        if not self.has_admin_access:
            return [await self.get_current_identity()]

        identities: List[IdentityRecord] = []
        seen = set()
        offset = 0
        while True:
            payload = await self._request(
                "GET", "/v1/users",
                params={"limit": self.page_size, "offset": offset, "order_by": "created_at"}
            )
            page = payload.get("data", []) if isinstance(payload, dict) else (payload or [])
            for item in page:
                identity = identity_from_payload(item)
                # Offset paging can repeat a row if users are created mid-listing
                if identity.external_id not in seen:
                    seen.add(identity.external_id)
                    identities.append(identity)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        logger.info(f"Fetched {len(identities)} identities from provider")
        return identities

    # ==================== WRITE ====================

    async def update_role(self, external_id: str, role: AccountRole) -> IdentityRecord:
        """
        Write the role into the identity's public metadata.

        Raises:
            ValidationError: role is not an AccountRole value
            AuthorizationError: self-service caller targeting another identity
        """
        role = parse_role(role)
        body = {"public_metadata": {"role": role.value}}

        if self.has_admin_access:
            payload = await self._request(
                "PATCH", f"/v1/users/{external_id}/metadata",
                external_id=external_id, json=body
            )
        else:
            if self._self_id is None:
                await self.get_current_identity()
            if self._self_id != external_id:
                raise AuthorizationError(
                    "Identity not accessible: provider admin access is required to modify other users",
                    external_id=external_id
                )
            payload = await self._request("PATCH", "/v1/me/metadata", external_id=external_id, json=body)

        logger.info(f"Provider role for {external_id} set to {role.value}")
        return identity_from_payload(payload)


class ProviderSnapshotFetcher:
    """Reads the identities visible to the caller into a ProviderSnapshot."""

    def __init__(self, client: IdentityProviderClient):
        self.client = client

    async def fetch(self) -> ProviderSnapshot:
        identities = await self.client.list_identities()
        return ProviderSnapshot(identities=identities, exhaustive=self.client.has_admin_access)
