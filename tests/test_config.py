"""Unit tests for core/config.py -- Settings validation and derived values.

Covers:
- parse_duration() units and rejects
- misconfigured TTL, algorithm, short or missing secret raise ConfigError
- debug mode auto-generates a secret
- refresh cookie options default to the access options with the refresh TTL
- cross-field checks (refresh >= access, distinct cookie names, SameSite=None needs Secure)
- nested options from environment variables and camelCase JSON
"""

import json

import pytest
from pydantic import ValidationError

from conftest import TEST_SECRET, make_settings
from core.config import CookieOptions, PasswordPolicy, Settings, load_settings, parse_duration
from core.errors import ConfigError


@pytest.mark.parametrize(
    ("value", "seconds"),
    [("1s", 1), ("15m", 900), ("1h", 3600), ("7d", 604800), ("90s", 90)],
)
def test_parse_duration(value, seconds):
    assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["", "1", "h", "1w", "1.5h", "-1h", "0s", "1 h x"])
def test_parse_duration_rejects(value):
    with pytest.raises(ConfigError):
        parse_duration(value)


def test_defaults(settings):
    assert settings.access_ttl == 3600
    assert settings.refresh_ttl == 7 * 24 * 3600
    assert settings.token_issuer == "AuthKit"
    assert settings.cookie_name == "authkit_token"
    assert settings.refresh_cookie_name == "authkit_refresh"
    assert settings.password_hash_algorithm == "SHA-512"


def test_refresh_cookie_options_default_to_access_options(settings):
    refresh = settings.effective_refresh_cookie_options
    assert refresh.max_age == settings.refresh_ttl
    assert refresh.same_site == settings.cookie_options.same_site
    assert refresh.http_only is True


def test_explicit_refresh_cookie_options_win():
    opts = CookieOptions(secure=False, same_site="Lax", max_age=60, path="/api/v1/auth")
    settings = make_settings(refresh_cookie_options=opts)
    assert settings.effective_refresh_cookie_options == opts


@pytest.mark.parametrize(
    "overrides",
    [
        {"expires_in": "one hour"},
        {"refresh_expires_in": "7w"},
        {"algorithm": "RS256"},
        {"secret_key": "too-short"},
        {"expires_in": "2d", "refresh_expires_in": "1d"},
        {"refresh_cookie_name": "authkit_token"},
        {"password_hash_algorithm": "md5"},
    ],
)
def test_invalid_configuration_raises_config_error(overrides):
    with pytest.raises(ConfigError):
        load_settings(**{"secret_key": TEST_SECRET, **overrides})


def test_missing_secret_outside_debug_raises():
    with pytest.raises(ConfigError, match="SECRET_KEY is required"):
        load_settings(debug=False, secret_key="")


def test_debug_generates_secret():
    settings = load_settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_same_site_none_requires_secure():
    with pytest.raises(ValidationError):
        CookieOptions(same_site="None", secure=False)
    assert CookieOptions(same_site="None", secure=True).same_site == "None"


def test_password_policy_bounds():
    with pytest.raises(ValidationError):
        PasswordPolicy(min_length=20, max_length=10)


def test_settings_are_frozen(settings):
    with pytest.raises(ValidationError):
        settings.expires_in = "2h"


def test_nested_options_from_environment(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", TEST_SECRET)
    monkeypatch.setenv("COOKIE_OPTIONS__SECURE", "false")
    monkeypatch.setenv("COOKIE_OPTIONS__SAME_SITE", "Lax")
    monkeypatch.setenv("PASSWORD_POLICY__MIN_LENGTH", "12")
    settings = Settings()
    assert settings.cookie_options.secure is False
    assert settings.cookie_options.same_site == "Lax"
    assert settings.password_policy.min_length == 12


def test_camel_case_json_file(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.json").write_text(
        json.dumps(
            {
                "secret_key": TEST_SECRET,
                "expires_in": "30m",
                "cookie_options": {"httpOnly": True, "secure": False, "sameSite": "Lax", "maxAge": 1800},
            }
        )
    )
    monkeypatch.chdir(tmp_path)
    settings = Settings()
    assert settings.access_ttl == 1800
    assert settings.cookie_options.max_age == 1800
    assert settings.cookie_options.same_site == "Lax"


def test_camel_case_top_level_keys(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.json").write_text(
        json.dumps(
            {
                "secret": TEST_SECRET,
                "expiresIn": "15m",
                "refreshExpiresIn": "2d",
                "cookieName": "sid",
                "refreshCookieName": "rsid",
                "passwordHashAlgorithm": "bcrypt",
                "passwordPolicy": {"minLength": 12},
                "emailEnumerationProtection": False,
                "enforceVerifiedEmail": True,
            }
        )
    )
    monkeypatch.chdir(tmp_path)
    settings = Settings()
    assert settings.secret_key == TEST_SECRET
    assert settings.access_ttl == 15 * 60
    assert settings.refresh_ttl == 2 * 24 * 60 * 60
    assert (settings.cookie_name, settings.refresh_cookie_name) == ("sid", "rsid")
    assert settings.password_hash_algorithm == "bcrypt"
    assert settings.password_policy.min_length == 12
    assert settings.email_enumeration_protection is False
    assert settings.enforce_verified_email is True


def test_snake_case_keywords_still_accepted():
    settings = Settings(secret_key=TEST_SECRET, cookie_name="sid", enforce_verified_email=True)
    assert settings.cookie_name == "sid"
    assert settings.enforce_verified_email is True
