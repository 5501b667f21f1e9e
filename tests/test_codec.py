"""Unit tests for auth/codec.py -- token string encoding and decoding.

Covers:
- encode/decode preserves header, payload and signature
- wire format is three unpadded base64url segments of compact JSON
- wrong segment count raises MalformedToken
- undecodable or incomplete segments raise TokenParseError
- missing nbf defaults to iat
"""

import json

import pytest
from jose.utils import base64url_decode, base64url_encode

from auth.codec import decode_token, encode_token, signing_input
from auth.models import Token, TokenHeader, TokenPayload, UserSnapshot
from core.errors import MalformedToken, TokenParseError


def _b64(obj) -> str:
    return base64url_encode(json.dumps(obj).encode()).decode()


def _payload(**overrides) -> dict:
    claims = {"iss": "AuthKit", "sub": 7, "iat": 100, "nbf": 100, "exp": 200, "type": "refresh", "ver": 0}
    claims.update(overrides)
    return claims


@pytest.fixture
def access_token() -> Token:
    user = UserSnapshot(id=7, email="ada@example.com", name="Ada", surname="Lovelace", created_at="2024-01-01")
    payload = TokenPayload(iss="AuthKit", sub=7, iat=100, nbf=100, exp=3700, type="access", ver=2, user=user)
    return Token(header=TokenHeader(), payload=payload, signature="c2lnbmF0dXJl")


def test_decode_reverses_encode(access_token):
    decoded = decode_token(encode_token(access_token))
    assert decoded == access_token
    assert decoded.payload.user.email == "ada@example.com"
    assert decoded.kind == "access"
    assert decoded.user_id == 7


def test_wire_format_is_unpadded_compact_json(access_token):
    encoded = encode_token(access_token)
    header_b64, payload_b64, signature = encoded.split(".")
    assert "=" not in header_b64 + payload_b64
    assert base64url_decode(header_b64.encode()) == b'{"alg":"HS256","typ":"jwt"}'
    payload = json.loads(base64url_decode(payload_b64.encode()))
    assert payload["user"]["emailVerified"] is False
    assert signature == "c2lnbmF0dXJl"


def test_decoded_token_remembers_raw_signing_input(access_token):
    encoded = encode_token(access_token)
    decoded = decode_token(encoded)
    assert decoded.signing_input == encoded.rsplit(".", 1)[0]
    assert decoded.signing_input == signing_input(access_token.header, access_token.payload)


def test_refresh_token_has_no_user_claim():
    token = decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64(_payload())}.sig")
    assert token.payload.user is None
    assert "user" not in token.payload.to_claims()


@pytest.mark.parametrize("value", ["", "abc", "a.b", "a.b.c.d"])
def test_wrong_segment_count_is_malformed(value):
    with pytest.raises(MalformedToken):
        decode_token(value)


def test_undecodable_segment_is_parse_error():
    with pytest.raises(TokenParseError):
        decode_token("!!!.???.sig")


def test_non_json_segment_is_parse_error():
    not_json = base64url_encode(b"not json").decode()
    with pytest.raises(TokenParseError):
        decode_token(f"{not_json}.{not_json}.sig")


def test_json_array_segment_is_parse_error():
    with pytest.raises(TokenParseError):
        decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64([1, 2])}.sig")


def test_missing_claim_is_parse_error():
    claims = _payload()
    del claims["exp"]
    with pytest.raises(TokenParseError):
        decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64(claims)}.sig")


def test_boolean_is_not_an_integer_claim():
    with pytest.raises(TokenParseError):
        decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64(_payload(ver=True))}.sig")


def test_malformed_user_claim_is_parse_error():
    claims = _payload(type="access", user={"id": 7})
    with pytest.raises(TokenParseError):
        decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64(claims)}.sig")


def test_missing_nbf_defaults_to_iat():
    claims = _payload(iat=123)
    del claims["nbf"]
    token = decode_token(f"{_b64({'alg': 'HS256', 'typ': 'jwt'})}.{_b64(claims)}.sig")
    assert token.payload.nbf == 123
