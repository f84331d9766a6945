"""
Identity Sync - Error Taxonomy

Batch operations catch IdentitySyncError per record and report it;
single-record operations let it propagate to the endpoint layer.
"""

from typing import Optional


class IdentitySyncError(Exception):
    """Base exception for identity sync failures"""

    def __init__(
        self,
        message: str,
        external_id: Optional[str] = None,
        account_id: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.external_id = external_id
        self.account_id = account_id

    @property
    def error_type(self) -> str:
        return type(self).__name__


class TransientNetworkError(IdentitySyncError):
    """Provider or datastore call failed; safe to retry the batch"""
    pass


class AuthorizationError(IdentitySyncError):
    """Caller lacks rights to read or modify this identity"""
    pass


class NotFoundError(IdentitySyncError):
    """Record vanished between snapshot and write"""
    pass


class ValidationError(IdentitySyncError):
    """Malformed value on write; prior state left untouched"""
    pass
