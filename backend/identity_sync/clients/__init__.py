from identity_sync.clients.identity_provider import (
    IdentityProviderClient,
    ProviderSnapshotFetcher,
    identity_from_payload,
)

__all__ = ['IdentityProviderClient', 'ProviderSnapshotFetcher', 'identity_from_payload']
