"""
auth/passwords.py -- Salted password hashing, verification, and password policy.

Stored credential format: "<tag>:<salt>:<digest>" -- one self-describing
string, so a deployment can switch algorithms without invalidating existing
accounts. verify() dispatches on the stored tag, not on the configured
algorithm; needs_rehash() tells login when to upgrade a credential.

  "512": digest = sha512(password || salt) as 128 hex chars. salt is
         password_salt_length random bytes rendered as hex.
  "2b":  bcrypt. salt is the 29-char "$2b$12$..." prefix bcrypt generates,
         digest is the remaining 31 chars. Passwords are cut to 72 bytes
         first -- bcrypt ignores anything beyond that and bcrypt>=5 refuses
         longer input outright.

A stored value that does not match its tag's shape raises
InvalidCredentialFormat. That is a data-integrity defect, never "wrong
password".

Timing: comparisons use hmac.compare_digest after an equal-length check.
dummy_verify() runs a full hash-and-compare against a fixed bogus credential
so "email not found" costs the same as "wrong password" [email enumeration].

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

import bcrypt

from core.config import PasswordPolicy, Settings
from core.errors import InvalidCredentialFormat

SHA512_TAG = "512"
BCRYPT_TAG = "2b"

_TAG_FOR_ALGORITHM = {"SHA-512": SHA512_TAG, "bcrypt": BCRYPT_TAG}

_SHAPES = {
    SHA512_TAG: (re.compile(r"(?:[0-9a-f]{2})+"), re.compile(r"[0-9a-f]{128}")),
    BCRYPT_TAG: (re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{22}"), re.compile(r"[./A-Za-z0-9]{31}")),
}

_BCRYPT_MAX_BYTES = 72

_DUMMY_PASSWORD = "abcdefghijklmnopqrstuvwxyz"
_DUMMY_ATTEMPT = "zyxwvutsrqponmlkjihgfedcba"


def _timing_safe_equal(a: str, b: str) -> bool:
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a.encode("ascii"), b.encode("ascii"))


def _sha512_digest(password: str, salt: str) -> str:
    return hashlib.sha512(f"{password}{salt}".encode("utf-8")).hexdigest()


def _bcrypt_input(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Hashes and verifies passwords with the algorithm chosen in Settings."""

    def __init__(self, settings: Settings) -> None:
        self._tag = _TAG_FOR_ALGORITHM[settings.password_hash_algorithm]
        self._salt_length = settings.password_salt_length
        # Computed once so the first unknown-email login is not measurably slower.
        self._dummy_credential = self.hash(_DUMMY_PASSWORD)

    def hash(self, password: str) -> str:
        """Return a freshly salted tag:salt:digest credential for password."""
        if self._tag == SHA512_TAG:
            salt = secrets.token_hex(self._salt_length)
            return f"{SHA512_TAG}:{salt}:{_sha512_digest(password, salt)}"
        hashed = bcrypt.hashpw(_bcrypt_input(password), bcrypt.gensalt()).decode("ascii")
        return f"{BCRYPT_TAG}:{hashed[:29]}:{hashed[29:]}"

    def verify(self, stored: str, password: str) -> bool:
        """Return True if password matches the stored credential.

        Raises InvalidCredentialFormat if stored is not a well-formed
        credential for a known tag.
        """
        tag, salt, digest = _split(stored)
        if tag == SHA512_TAG:
            candidate = _sha512_digest(password, salt)
        else:
            candidate = bcrypt.hashpw(_bcrypt_input(password), salt.encode("ascii")).decode("ascii")[29:]
        return _timing_safe_equal(candidate, digest)

    def dummy_verify(self) -> bool:
        """Spend one full verification on a bogus credential. Always False."""
        self.verify(self._dummy_credential, _DUMMY_ATTEMPT)
        return False

    def needs_rehash(self, stored: str) -> bool:
        """True when stored was produced by a different algorithm than the configured one."""
        tag, _salt, _digest = _split(stored)
        return tag != self._tag


def _split(stored: str) -> tuple[str, str, str]:
    parts = stored.split(":") if isinstance(stored, str) else []
    if len(parts) != 3:
        raise InvalidCredentialFormat("Stored credential is not in tag:salt:digest format")
    tag, salt, digest = parts
    shape = _SHAPES.get(tag)
    if shape is None:
        raise InvalidCredentialFormat(f"Unsupported credential tag: {tag!r}")
    salt_re, digest_re = shape
    if not salt_re.fullmatch(salt) or not digest_re.fullmatch(digest):
        raise InvalidCredentialFormat(f"Stored credential has an invalid shape for tag {tag!r}")
    return tag, salt, digest


# ---------------------------------------------------------------------------
# Password policy
# ---------------------------------------------------------------------------

_SPECIAL_RE = re.compile(r"[!@#$%^&*()_\-+={}\[\]\\|;:\"'<>,.?/~`]")


def validate_password(password: str, policy: PasswordPolicy) -> str | None:
    """Return the first policy violation as a user-facing message, or None."""
    if len(password) < policy.min_length:
        return f"Password must be at least {policy.min_length} characters long"
    if policy.max_length is not None and len(password) > policy.max_length:
        return f"Password must be at most {policy.max_length} characters long"
    if policy.require_uppercase and not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if policy.require_lowercase and not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if policy.require_numbers and not re.search(r"\d", password):
        return "Password must contain at least one number"
    if policy.require_special_characters and not _SPECIAL_RE.search(password):
        return "Password must contain at least one special character"
    return None
