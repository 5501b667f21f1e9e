"""
core/errors.py -- Exception taxonomy for AuthKit.

Two families with different handling rules:

  Loud errors (MalformedToken, TokenParseError, InvalidCredentialFormat,
  ConfigError) signal a programming or deployment defect, or input that is
  structurally broken. They propagate to the caller.

  TokenRejected and its subclasses describe WHY a well-formed token was not
  honoured. They never cross the public validation boundary: TokenValidator
  catches them and reports a plain False so a client cannot learn which
  gate failed.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations


class AuthKitError(Exception):
    """Base class for every error raised by AuthKit."""

    code: str = "authkit_error"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# ---------------------------------------------------------------------------
# Codec (loud)
# ---------------------------------------------------------------------------


class MalformedToken(AuthKitError):
    """Token string does not have exactly three dot-separated segments."""

    code = "invalid_jwt_format"


class TokenParseError(AuthKitError):
    """Header or payload segment is not valid base64url JSON of the right shape."""

    code = "jwt_parse_error"


# ---------------------------------------------------------------------------
# Validation gates (normalized to "invalid" at the public boundary)
# ---------------------------------------------------------------------------


class TokenRejected(AuthKitError):
    code = "token_rejected"


class InvalidSignature(TokenRejected):
    code = "invalid_signature"


class Expired(TokenRejected):
    code = "expired"


class NotYetValid(TokenRejected):
    code = "not_yet_valid"


class TypeMismatch(TokenRejected):
    code = "type_mismatch"


class VersionMismatch(TokenRejected):
    """Token was issued before the account's version counter was bumped."""

    code = "version_mismatch"


# ---------------------------------------------------------------------------
# Credentials and configuration (loud)
# ---------------------------------------------------------------------------


class InvalidCredentialFormat(AuthKitError):
    """Stored password hash is not in the tag:salt:digest shape for its tag."""

    code = "hash_invalid_format"


class ConfigError(AuthKitError, ValueError):
    """Configuration is missing or invalid.

    Also a ValueError so pydantic validators can raise it directly and have it
    folded into a ValidationError.
    """

    code = "config_error"


# ---------------------------------------------------------------------------
# Service-level outcomes surfaced to the HTTP layer
# ---------------------------------------------------------------------------


class AuthenticationError(AuthKitError):
    """Login failed. The message is deliberately generic."""

    code = "bad_credentials"


class RegistrationError(AuthKitError):
    """Signup refused (duplicate email, password policy, signup disabled)."""

    code = "registration_failed"
