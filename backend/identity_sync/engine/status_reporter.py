"""Status Reporter: aggregate account counts for operators."""

from identity_sync.records import SyncStatus
from identity_sync.storage.account_store import AccountStore


class StatusReporter:

    def __init__(self, store: AccountStore):
        self.store = store

    async def get_status(self) -> SyncStatus:
        return await self.store.count_status()
