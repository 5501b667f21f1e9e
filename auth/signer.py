"""
auth/signer.py -- HMAC-SHA256 signatures over the encoded header and payload.

python-jose supplies the HMAC key object (jwk.construct with HS256), so the
MAC is computed the same way jose computes JWS signatures. Comparison is ours:
an explicit length gate followed by hmac.compare_digest, which runs in time
independent of where the two values first differ.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hmac

from jose import jwk
from jose.constants import ALGORITHMS
from jose.utils import base64url_encode

from auth.codec import signing_input
from auth.models import Token, TokenHeader, TokenPayload
from core.config import Settings


class TokenSigner:
    """Signs and re-verifies tokens with the configured server secret."""

    algorithm = ALGORITHMS.HS256

    def __init__(self, settings: Settings) -> None:
        self._key = jwk.construct(settings.secret_key, algorithm=self.algorithm)

    def _mac(self, data: str) -> str:
        return base64url_encode(self._key.sign(data.encode("utf-8"))).decode("ascii")

    def sign(self, header: TokenHeader, payload: TokenPayload) -> str:
        """Return the base64url HMAC of the canonical "header.payload" string."""
        return self._mac(signing_input(header, payload))

    def verify_signature(self, token: Token) -> bool:
        """Recompute the MAC over the token's own signing input and compare."""
        data = token.signing_input or signing_input(token.header, token.payload)
        expected = self._mac(data).encode("ascii")
        try:
            presented = token.signature.encode("ascii")
        except UnicodeEncodeError:
            return False
        if len(presented) != len(expected):
            return False
        return hmac.compare_digest(expected, presented)
