"""
Configuration and wiring tests

- Settings parsing and production validation
- Provider client selection (admin key vs caller session)
- Error taxonomy to HTTP status mapping

Run with: pytest tests/test_config.py -v
"""

import pytest

from config import Settings
from identity_sync.endpoints.dependencies import build_provider_client
from identity_sync.errors import (
    AuthorizationError,
    IdentitySyncError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from utils.validation_errors import http_error_for


def _settings(**overrides):
    values = {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://u:p@db.internal:5432/storefront",
        "JWT_SECRET_KEY": "x" * 40,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:

    def test_defaults(self):
        settings = _settings()
        assert settings.SYNC_RESOLVE_CONCURRENCY == 5
        assert settings.ORPHAN_RETENTION_DEFAULT_DAYS == 30
        assert settings.provider_has_admin_access is False
        assert settings.validate_production_config() == []

    def test_production_rejects_wildcard_cors_and_debug(self):
        settings = _settings(ENVIRONMENT="production", CORS_ORIGINS="*", DEBUG=True)
        errors = settings.validate_production_config()
        assert "CORS_ORIGINS cannot be '*' in production" in errors
        assert "DEBUG should be False in production" in errors

    def test_short_jwt_secret(self):
        errors = _settings(JWT_SECRET_KEY="short").validate_production_config()
        assert "JWT_SECRET_KEY should be at least 32 characters" in errors

    def test_database_url_from_parts(self):
        settings = _settings(DATABASE_URL="", POSTGRES_HOST="db", POSTGRES_USER="u", POSTGRES_PASSWORD="p")
        assert settings.get_database_url() == "postgresql+asyncpg://u:p@db:5432/storefront"

    def test_missing_database_config(self):
        with pytest.raises(ValueError):
            _settings(DATABASE_URL="").get_database_url()

    def test_dev_cors_origins(self):
        origins = _settings(CORS_ORIGINS="https://admin.shop.test").cors_origins_list
        assert "https://admin.shop.test" in origins
        assert "http://localhost:5173" in origins
        prod = _settings(ENVIRONMENT="production", CORS_ORIGINS="https://admin.shop.test").cors_origins_list
        assert prod == ["https://admin.shop.test"]


class TestProviderClientSelection:

    def test_no_credentials(self):
        assert build_provider_client(_settings()) is None

    def test_session_only(self):
        client = build_provider_client(_settings(), session_token="sess_1")
        assert client.has_admin_access is False

    def test_secret_key_preferred(self):
        client = build_provider_client(_settings(IDENTITY_PROVIDER_SECRET_KEY="sk_live"), session_token="sess_1")
        assert client.has_admin_access is True
        assert client.session_token is None


@pytest.mark.parametrize("error,status_code", [
    (ValidationError("bad role"), 400),
    (AuthorizationError("denied"), 403),
    (NotFoundError("gone", account_id=4), 404),
    (TransientNetworkError("timeout"), 503),
    (IdentitySyncError("odd"), 500),
])
def test_http_error_mapping(error, status_code):
    exc = http_error_for(error)
    assert exc.status_code == status_code
    assert exc.detail["error_type"] == type(error).__name__
    assert exc.detail["message"] == error.message
