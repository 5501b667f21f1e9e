"""
auth/codec.py -- Token <-> "header.payload.signature" string conversion.

Wire format:
    base64url(JSON header) "." base64url(JSON payload) "." base64url(HMAC)

JSON is serialized compactly (no whitespace, claim order fixed by the model)
so the signing input is stable. Base64url segments are unpadded; python-jose's
helpers do the padding arithmetic.

decode_token() is NOT authoritative. It only proves that a string has the
right shape -- it never checks the signature. Nothing may make an
authorization decision from its output without TokenValidator.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
from typing import Any

from jose.utils import base64url_decode, base64url_encode

from auth.models import Token, TokenHeader, TokenPayload, UserSnapshot
from core.errors import MalformedToken, TokenParseError


def _b64_json(claims: dict[str, Any]) -> str:
    raw = json.dumps(claims, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64url_encode(raw).decode("ascii")


def signing_input(header: TokenHeader, payload: TokenPayload) -> str:
    """Return the canonical "header.payload" text the signature covers."""
    return f"{_b64_json(header.to_claims())}.{_b64_json(payload.to_claims())}"


def encode_token(token: Token) -> str:
    """Serialize a signed token to its three-segment string form."""
    return f"{signing_input(token.header, token.payload)}.{token.signature}"


def decode_token(value: str) -> Token:
    """Parse a three-segment token string without verifying it.

    Raises:
        MalformedToken:  the string does not split into exactly 3 segments.
        TokenParseError: a JSON segment is not decodable or lacks required claims.
    """
    parts = value.split(".")
    if len(parts) != 3:
        raise MalformedToken("Invalid JWT format")
    header_b64, payload_b64, signature = parts

    header_claims = _parse_segment(header_b64)
    payload_claims = _parse_segment(payload_b64)
    return Token(
        header=_header_from_claims(header_claims),
        payload=_payload_from_claims(payload_claims),
        signature=signature,
        signing_input=f"{header_b64}.{payload_b64}",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_segment(segment: str) -> dict[str, Any]:
    # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueErrors.
    try:
        decoded = json.loads(base64url_decode(segment.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeEncodeError) as exc:
        raise TokenParseError("Failed to parse JWT") from exc
    if not isinstance(decoded, dict):
        raise TokenParseError("Failed to parse JWT")
    return decoded


def _int_claim(claims: dict[str, Any], name: str) -> int:
    value = claims.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise TokenParseError(f"Failed to parse JWT: claim {name!r} must be an integer")
    return value


def _str_claim(claims: dict[str, Any], name: str) -> str:
    value = claims.get(name)
    if not isinstance(value, str):
        raise TokenParseError(f"Failed to parse JWT: claim {name!r} must be a string")
    return value


def _header_from_claims(claims: dict[str, Any]) -> TokenHeader:
    return TokenHeader(alg=_str_claim(claims, "alg"), typ=_str_claim(claims, "typ"))


def _payload_from_claims(claims: dict[str, Any]) -> TokenPayload:
    iat = _int_claim(claims, "iat")
    nbf = _int_claim(claims, "nbf") if "nbf" in claims else iat

    user = None
    if claims.get("user") is not None:
        try:
            user = UserSnapshot.from_claims(claims["user"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenParseError("Failed to parse JWT: malformed user claim") from exc

    return TokenPayload(
        iss=_str_claim(claims, "iss"),
        sub=_int_claim(claims, "sub"),
        iat=iat,
        nbf=nbf,
        exp=_int_claim(claims, "exp"),
        type=_str_claim(claims, "type"),
        ver=_int_claim(claims, "ver"),
        user=user,
    )
