from identity_sync.services.sync_service import IdentitySyncService

__all__ = ['IdentitySyncService']
