from identity_sync.storage.account_store import AccountStore, StoreSnapshotFetcher

__all__ = ['AccountStore', 'StoreSnapshotFetcher']
