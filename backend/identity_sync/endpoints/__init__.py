from identity_sync.endpoints.sync_api import router as sync_router
from identity_sync.endpoints.accounts_api import router as accounts_router

__all__ = ['sync_router', 'accounts_router']
