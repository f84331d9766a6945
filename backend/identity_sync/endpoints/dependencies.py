"""
FastAPI dependencies for the identity sync endpoints.

A fresh store and provider client are built per request; no client
state is shared between calls.
"""

import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import Settings, get_settings
from database import get_db
from identity_sync.clients.identity_provider import IdentityProviderClient
from identity_sync.services.sync_service import IdentitySyncService
from identity_sync.storage.account_store import AccountStore
from middleware.auth import get_provider_session

logger = logging.getLogger(__name__)


def build_provider_client(
    settings: Settings,
    session_token: Optional[str] = None
) -> Optional[IdentityProviderClient]:
    """
    Administrative client when a provider secret key is configured,
    otherwise a self-service client on the caller's session token,
    otherwise None.
    """
    if not settings.IDENTITY_PROVIDER_SECRET_KEY and not session_token:
        return None
    return IdentityProviderClient(
        base_url=settings.IDENTITY_PROVIDER_URL,
        secret_key=settings.IDENTITY_PROVIDER_SECRET_KEY or None,
        session_token=session_token,
        timeout=settings.IDENTITY_PROVIDER_TIMEOUT,
        page_size=settings.IDENTITY_PROVIDER_PAGE_SIZE,
    )


async def get_account_store(db: AsyncSession = Depends(get_db)) -> AccountStore:
    return AccountStore(db)


async def get_sync_service(
    store: AccountStore = Depends(get_account_store),
    provider_session: Optional[str] = Depends(get_provider_session)
) -> IdentitySyncService:
    settings = get_settings()
    return IdentitySyncService(
        store=store,
        provider=build_provider_client(settings, provider_session),
        resolve_concurrency=settings.SYNC_RESOLVE_CONCURRENCY,
    )
