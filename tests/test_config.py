"""Unit tests for core/config.py -- Settings validation and derived values."""

import pytest
from pydantic import ValidationError

from core.config import Settings

_KEY = "k" * 32


class TestSecretKey:
    def test_debug_generates_key(self):
        s = Settings(debug=True)
        assert len(s.secret_key) >= 32

    def test_production_requires_key(self, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(debug=False, secret_key="")

    def test_short_key_rejected(self):
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(secret_key="short")

    def test_explicit_key_kept(self):
        assert Settings(secret_key=_KEY).secret_key == _KEY


class TestAdmissionPolicy:
    def test_defaults(self):
        s = Settings(secret_key=_KEY)
        assert s.role_limits == {"admin": 20, "user": 10, "guest": 5}
        assert s.rate_limit_window_seconds == 60
        assert s.bot_allowed_categories == ["search_engine"]
        assert s.admission_dry_run is False

    def test_missing_role_rejected(self):
        with pytest.raises(ValidationError, match="missing=\\['guest'\\]"):
            Settings(secret_key=_KEY, role_limits={"admin": 20, "user": 10})

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError, match="unknown=\\['owner'\\]"):
            Settings(secret_key=_KEY, role_limits={"admin": 20, "user": 10, "guest": 5, "owner": 1})

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_rejected(self, limit):
        with pytest.raises(ValidationError, match="positive"):
            Settings(secret_key=_KEY, role_limits={"admin": 20, "user": limit, "guest": 5})

    def test_zero_window_rejected(self):
        with pytest.raises(ValidationError, match="rate_limit_window_seconds"):
            Settings(secret_key=_KEY, rate_limit_window_seconds=0)

    def test_unknown_bot_category_rejected(self):
        with pytest.raises(ValidationError, match="Unknown bot categories"):
            Settings(secret_key=_KEY, bot_allowed_categories=["friendly"])


class TestCredentialPolicy:
    @pytest.mark.parametrize("rounds", [3, 32])
    def test_rounds_out_of_range(self, rounds):
        with pytest.raises(ValidationError, match="bcrypt_rounds"):
            Settings(secret_key=_KEY, bcrypt_rounds=rounds)

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValidationError, match="token_ttl_seconds"):
            Settings(secret_key=_KEY, token_ttl_seconds=0)


class TestEnvironment:
    def test_reads_environment_variables(self, monkeypatch):
        monkeypatch.setenv("SECRET_KEY", _KEY)
        monkeypatch.setenv("ROLE_LIMITS", '{"admin": 50, "user": 25, "guest": 2}')
        monkeypatch.setenv("ADMISSION_DRY_RUN", "true")
        s = Settings()
        assert s.role_limits["guest"] == 2
        assert s.admission_dry_run is True

    @pytest.mark.parametrize("env,secure", [("development", False), ("test", False), ("production", True)])
    def test_cookie_secure_follows_environment(self, env, secure):
        assert Settings(secret_key=_KEY, environment=env).cookie_secure is secure

    def test_explicit_secure_cookies_wins(self):
        assert Settings(secret_key=_KEY, environment="production", secure_cookies=False).cookie_secure is False
