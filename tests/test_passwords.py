"""Unit tests for auth/passwords.py -- credential hashing, verification and policy.

Covers:
- SHA-512 credentials: tag:salt:digest shape, unique salts, verify true/false
- bcrypt credentials verify, and still verify after switching the configured algorithm
- needs_rehash() reports credentials hashed with the other algorithm
- malformed stored credentials raise InvalidCredentialFormat rather than returning False
- dummy_verify() always returns False
- validate_password() returns the first policy violation
"""

import re

import pytest

from auth.passwords import PasswordHasher, validate_password
from conftest import make_settings
from core.config import PasswordPolicy
from core.errors import InvalidCredentialFormat


@pytest.fixture
def hasher(settings):
    return PasswordHasher(settings)


@pytest.fixture(scope="module")
def bcrypt_hasher():
    return PasswordHasher(make_settings(password_hash_algorithm="bcrypt"))


# ---------------------------------------------------------------------------
# SHA-512
# ---------------------------------------------------------------------------


def test_sha512_credential_shape(hasher):
    tag, salt, digest = hasher.hash("hunter2").split(":")
    assert tag == "512"
    assert re.fullmatch(r"[0-9a-f]{64}", salt)  # 32 random bytes as hex
    assert re.fullmatch(r"[0-9a-f]{128}", digest)


def test_salts_are_unique(hasher):
    assert hasher.hash("same") != hasher.hash("same")


def test_verify_correct_and_wrong_password(hasher):
    stored = hasher.hash("correct horse")
    assert hasher.verify(stored, "correct horse") is True
    assert hasher.verify(stored, "correct horse ") is False
    assert hasher.verify(stored, "") is False


def test_verify_unicode_password(hasher):
    stored = hasher.hash("pässwörd-密码")
    assert hasher.verify(stored, "pässwörd-密码")


def test_salt_length_is_configurable():
    stored = PasswordHasher(make_settings(password_salt_length=16)).hash("x")
    assert len(stored.split(":")[1]) == 32


# ---------------------------------------------------------------------------
# bcrypt and migration
# ---------------------------------------------------------------------------


def test_bcrypt_credential_shape(bcrypt_hasher):
    tag, salt, digest = bcrypt_hasher.hash("hunter2").split(":")
    assert tag == "2b"
    assert len(salt) == 29 and salt.startswith("$2b$")
    assert len(digest) == 31


def test_bcrypt_verify(bcrypt_hasher):
    stored = bcrypt_hasher.hash("hunter2")
    assert bcrypt_hasher.verify(stored, "hunter2")
    assert not bcrypt_hasher.verify(stored, "hunter3")


def test_bcrypt_credential_verifies_under_sha512_config(bcrypt_hasher, hasher):
    stored = bcrypt_hasher.hash("migrate-me")
    assert hasher.verify(stored, "migrate-me")
    assert hasher.needs_rehash(stored)
    assert not bcrypt_hasher.needs_rehash(stored)


def test_sha512_credential_needs_rehash_under_bcrypt_config(bcrypt_hasher, hasher):
    stored = hasher.hash("x")
    assert bcrypt_hasher.verify(stored, "x")
    assert bcrypt_hasher.needs_rehash(stored)
    assert not hasher.needs_rehash(stored)


# ---------------------------------------------------------------------------
# Malformed credentials and dummy verification
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "stored",
    [
        "",
        "plaintext",
        "512:abcd",
        "512:ab:cd:ef",
        "md5:abcd:" + "0" * 128,
        "512:nothex:" + "0" * 128,
        "512:abcd:" + "0" * 127,
        "512:abcd:" + "G" * 128,
        "2b:$2b$12$short:" + "a" * 31,
        "512:abcd:" + "0" * 128 + "\n",
        "512:abcd\n:" + "0" * 128,
    ],
)
def test_malformed_credential_raises(hasher, stored):
    with pytest.raises(InvalidCredentialFormat):
        hasher.verify(stored, "anything")


def test_trailing_newline_on_real_credential_raises(hasher):
    with pytest.raises(InvalidCredentialFormat):
        hasher.verify(hasher.hash("x") + "\n", "x")


def test_needs_rehash_rejects_malformed(hasher):
    with pytest.raises(InvalidCredentialFormat):
        hasher.needs_rehash("garbage")


def test_dummy_verify_is_false(hasher, bcrypt_hasher):
    assert hasher.dummy_verify() is False
    assert bcrypt_hasher.dummy_verify() is False


# ---------------------------------------------------------------------------
# Password policy
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("password", "message"),
    [
        ("Sh0rt!", "Password must be at least 8 characters long"),
        ("A1!" + "a" * 62, "Password must be at most 64 characters long"),
        ("lowercase1!", "Password must contain at least one uppercase letter"),
        ("UPPERCASE1!", "Password must contain at least one lowercase letter"),
        ("NoNumbers!", "Password must contain at least one number"),
        ("NoSpecial1", "Password must contain at least one special character"),
    ],
)
def test_policy_violations(password, message):
    assert validate_password(password, PasswordPolicy()) == message


def test_policy_accepts_compliant_password():
    assert validate_password("Str0ng!Passw0rd", PasswordPolicy()) is None


def test_relaxed_policy():
    policy = PasswordPolicy(
        min_length=4,
        max_length=None,
        require_uppercase=False,
        require_numbers=False,
        require_special_characters=False,
    )
    assert validate_password("abcd" * 50, policy) is None
