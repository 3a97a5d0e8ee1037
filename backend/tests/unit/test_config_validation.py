"""
Unit tests for the startup configuration guards in backend/config.py.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest

from backend.config import (
    _DEV_ENCRYPTION_KEY,
    _INSECURE_DEFAULT,
    _parse_bool_env,
    _parse_list_env,
    validate_production_config,
    validate_security_config,
)

GOOD_KEY = "ab" * 32


def _app(**config):
    return SimpleNamespace(config=config)


def _production(**overrides):
    config = {
        "SQLALCHEMY_DATABASE_URI": "postgresql://db/finance",
        "SECRET_KEY": "s3cret",
        "JWT_SECRET_KEY": "jwt-s3cret",
        "EMAIL_HMAC_KEY": "hmac-s3cret",
        "EMAIL_ENCRYPTION_KEY": GOOD_KEY,
        "SMTP_HOST": "smtp.example.com",
    }
    config.update(overrides)
    return _app(**config)


class TestSecurityConfig:

    def test_valid(self):
        validate_security_config(_app(EMAIL_ENCRYPTION_KEY=GOOD_KEY, SESSION_TTL=timedelta(hours=24)))

    @pytest.mark.parametrize("key", ["not-hex", "ab" * 16, ""])
    def test_bad_encryption_key(self, key):
        with pytest.raises(ValueError, match="EMAIL_ENCRYPTION_KEY"):
            validate_security_config(_app(EMAIL_ENCRYPTION_KEY=key, SESSION_TTL=timedelta(hours=1)))

    def test_non_positive_session_ttl(self):
        with pytest.raises(ValueError, match="SESSION_TTL"):
            validate_security_config(_app(EMAIL_ENCRYPTION_KEY=GOOD_KEY, SESSION_TTL=timedelta(0)))

    def test_negative_proxy_count(self):
        with pytest.raises(ValueError, match="TRUSTED_PROXY_COUNT"):
            validate_security_config(_app(
                EMAIL_ENCRYPTION_KEY=GOOD_KEY,
                SESSION_TTL=timedelta(hours=1),
                TRUSTED_PROXY_COUNT=-1,
            ))


class TestProductionConfig:

    def test_valid(self):
        validate_production_config(_production())

    def test_missing_database_url(self):
        with pytest.raises(ValueError, match="DATABASE_URL"):
            validate_production_config(_production(SQLALCHEMY_DATABASE_URI=""))

    @pytest.mark.parametrize("key", ["SECRET_KEY", "JWT_SECRET_KEY", "EMAIL_HMAC_KEY"])
    def test_placeholder_secret(self, key):
        with pytest.raises(ValueError, match=key):
            validate_production_config(_production(**{key: _INSECURE_DEFAULT}))

    def test_development_encryption_key(self):
        with pytest.raises(ValueError, match="EMAIL_ENCRYPTION_KEY"):
            validate_production_config(_production(EMAIL_ENCRYPTION_KEY=_DEV_ENCRYPTION_KEY))

    def test_missing_smtp_host(self):
        with pytest.raises(ValueError, match="SMTP_HOST"):
            validate_production_config(_production(SMTP_HOST=""))


class TestEnvParsing:

    def test_bool(self, monkeypatch):
        monkeypatch.setenv("FT_FLAG", "Yes")
        assert _parse_bool_env("FT_FLAG", default=False) is True
        monkeypatch.setenv("FT_FLAG", "0")
        assert _parse_bool_env("FT_FLAG", default=True) is False
        monkeypatch.delenv("FT_FLAG")
        assert _parse_bool_env("FT_FLAG", default=True) is True

    def test_list(self, monkeypatch):
        monkeypatch.setenv("FT_ORIGINS", " http://a.test , ,http://b.test")
        assert _parse_list_env("FT_ORIGINS") == ["http://a.test", "http://b.test"]


class TestProxyTrust:

    def test_proxy_fix_wraps_app_when_proxies_trusted(self, monkeypatch):
        from werkzeug.middleware.proxy_fix import ProxyFix

        from backend.config import TestingConfig
        from backend.finance_tracker import create_app

        monkeypatch.setattr(TestingConfig, "TRUSTED_PROXY_COUNT", 2)

        app = create_app("testing")

        assert isinstance(app.wsgi_app, ProxyFix)
        assert app.wsgi_app.x_for == 2

    def test_no_proxy_fix_by_default(self):
        from werkzeug.middleware.proxy_fix import ProxyFix

        from backend.finance_tracker import create_app

        assert not isinstance(create_app("testing").wsgi_app, ProxyFix)
