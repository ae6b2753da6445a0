"""
Unit Tests for Configuration, Logging and Error Tracking Helpers

Tests:
- Production configuration validation
- CORS origin parsing
- Database URL resolution
- JSON log formatting and request context
- Sentry redaction of contact data

Run with: pytest tests/test_config.py -v
"""

import json
import logging

import pytest

from config import Settings
from logging_config import JSONFormatter, RequestContextFilter
from sentry_integration import redact_dict, filter_sensitive_data


class TestSettings:
    """Settings validation and derived values."""

    def test_production_rejects_unsafe_defaults(self):
        settings = Settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql+asyncpg://u:p@localhost/identity",
            CORS_ORIGINS="*",
            DEBUG=True,
            ADMIN_RESET_ENABLED=True,
        )

        errors = settings.validate_production_config()

        assert "CORS_ORIGINS cannot be '*' in production" in errors
        assert "DATABASE_URL cannot point to localhost in production" in errors
        assert "DEBUG should be False in production" in errors
        assert "ADMIN_RESET_ENABLED must be False in production" in errors

    def test_production_accepts_locked_down_config(self):
        settings = Settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql+asyncpg://u:p@db.internal/identity",
            CORS_ORIGINS="https://app.example.com",
            DEBUG=False,
            ADMIN_RESET_ENABLED=False,
        )

        assert settings.validate_production_config() == []

    def test_missing_database_config(self):
        settings = Settings(ENVIRONMENT="testing", DATABASE_URL="", POSTGRES_HOST="")

        assert "DATABASE_URL or POSTGRES_* variables are required" in settings.validate_production_config()
        assert settings.get_database_url(strict=False) == ""
        with pytest.raises(ValueError):
            settings.get_database_url()

    def test_database_url_from_components(self):
        settings = Settings(
            DATABASE_URL="",
            POSTGRES_HOST="db",
            POSTGRES_USER="svc",
            POSTGRES_PASSWORD="pw",
        )

        assert settings.get_database_url() == "postgresql+asyncpg://svc:pw@db:5432/identity"

    def test_cors_origins_list(self):
        settings = Settings(CORS_ORIGINS="https://a.com/, https://b.com")
        assert settings.cors_origins_list == ["https://a.com", "https://b.com"]

    def test_wildcard_cors_dropped_in_production(self):
        assert Settings(ENVIRONMENT="development", CORS_ORIGINS="*").cors_origins_list == ["*"]
        assert Settings(ENVIRONMENT="production", CORS_ORIGINS="*").cors_origins_list == []

    def test_debug_enabled_in_development(self):
        assert Settings(ENVIRONMENT="development", DEBUG=False).debug_enabled is True
        assert Settings(ENVIRONMENT="testing", DEBUG=False).debug_enabled is False


class TestJSONLogging:
    """Structured log output."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="identity.service",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Identity event: %s",
            args=("identity.resolved",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format_includes_message_and_extra(self):
        formatter = JSONFormatter(service_name="identity-service")
        record = self._record(event="identity.resolved", primary_contact_id=7)

        data = json.loads(formatter.format(record))

        assert data["message"] == "Identity event: identity.resolved"
        assert data["service"] == "identity-service"
        assert data["level"] == "INFO"
        assert data["extra"] == {"event": "identity.resolved", "primary_contact_id": 7}

    def test_request_context_filter(self):
        context = RequestContextFilter()
        record = self._record()

        context.set_request_context("req-1")
        context.filter(record)
        assert record.request_id == "req-1"

        context.clear_request_context()
        context.filter(record)
        assert record.request_id is None

        data = json.loads(JSONFormatter().format(record))
        assert data["request_id"] is None
        assert "extra" not in data


class TestSentryRedaction:
    """Contact data never reaches error tracking."""

    def test_redact_dict_nested(self):
        data = {
            "email": "a@x.com",
            "phoneNumber": "123",
            "nested": {"Authorization": "Bearer x", "count": 2},
            "items": [{"email": "b@x.com"}, "plain"],
        }

        assert redact_dict(data) == {
            "email": "[REDACTED]",
            "phoneNumber": "[REDACTED]",
            "nested": {"Authorization": "[REDACTED]", "count": 2},
            "items": [{"email": "[REDACTED]"}, "plain"],
        }

    def test_filter_sensitive_data_scrubs_request_body(self):
        event = {
            "request": {"data": {"email": "a@x.com", "phoneNumber": "123"}},
            "extra": {"endpoint": "identify"},
        }

        filtered = filter_sensitive_data(event, {})

        assert filtered["request"]["data"] == {"email": "[REDACTED]", "phoneNumber": "[REDACTED]"}
        assert filtered["extra"] == {"endpoint": "identify"}
