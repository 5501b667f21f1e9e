"""
auth/tokens.py -- Token issuance and validation.

Security design decisions:
  Issuance: every token gets iat = nbf = now and exp = now + TTL, where the
       TTL comes from Settings (expires_in / refresh_expires_in). Access tokens
       embed a UserSnapshot; refresh tokens carry only sub and ver. Both carry
       the account's token_version so a single counter bump revokes them all.

  Validation: four gates, short-circuiting in this order --
       1. signature (and header alg pinned to HS256)
       2. time window (exp exclusive, nbf inclusive)
       3. kind (access vs refresh) -- stops refresh tokens being replayed as
          access tokens and vice versa
       4. version (check_version) -- needs the account row, so the caller
          runs it once the account has been loaded
       Each gate raises a TokenRejected subclass internally. The public entry
       points catch it, log the reason at DEBUG, and return False: callers and
       clients never learn which gate failed.

  Clock: injectable (time.time by default) so tests can move time without
       sleeping.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from auth.models import ACCESS, REFRESH, Token, TokenHeader, TokenKind, TokenPair, TokenPayload, UserSnapshot
from auth.signer import TokenSigner
from core.config import Settings
from core.errors import Expired, InvalidSignature, NotYetValid, TokenRejected, TypeMismatch, VersionMismatch

logger = logging.getLogger("authkit.auth")

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Builds signed access and refresh tokens from an identity and a version."""

    def __init__(self, settings: Settings, signer: TokenSigner, clock: Clock = time.time) -> None:
        self._issuer = settings.token_issuer
        self._access_ttl = settings.access_ttl
        self._refresh_ttl = settings.refresh_ttl
        self._signer = signer
        self._clock = clock

    def _sign(self, payload: TokenPayload) -> Token:
        header = TokenHeader()
        return Token(header=header, payload=payload, signature=self._signer.sign(header, payload))

    def issue_access(self, user: UserSnapshot, version: int) -> Token:
        now = int(self._clock())
        return self._sign(
            TokenPayload(
                iss=self._issuer,
                sub=user.id,
                iat=now,
                nbf=now,
                exp=now + self._access_ttl,
                type=ACCESS,
                ver=version,
                user=user,
            )
        )

    def issue_refresh(self, user_id: int, version: int) -> Token:
        now = int(self._clock())
        return self._sign(
            TokenPayload(
                iss=self._issuer,
                sub=user_id,
                iat=now,
                nbf=now,
                exp=now + self._refresh_ttl,
                type=REFRESH,
                ver=version,
            )
        )

    def issue_pair(self, user: UserSnapshot, version: int) -> TokenPair:
        """Issue an access and a refresh token sharing sub and ver."""
        return TokenPair(access=self.issue_access(user, version), refresh=self.issue_refresh(user.id, version))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TokenValidator:
    """Stateless token checks. Use validate_access / validate_refresh."""

    def __init__(self, signer: TokenSigner, clock: Clock = time.time) -> None:
        self._signer = signer
        self._clock = clock

    def _validate(self, token: Token) -> None:
        """Signature and time gates, without a kind check. Internal only."""
        if token.header.alg != TokenSigner.algorithm or not self._signer.verify_signature(token):
            raise InvalidSignature("signature mismatch")
        now = self._clock()
        if now >= token.payload.exp:
            raise Expired("token expired")
        if now < token.payload.nbf:
            raise NotYetValid("token not yet valid")

    def _check_kind(self, token: Token, expected: TokenKind) -> None:
        if token.payload.type != expected:
            raise TypeMismatch(f"expected {expected} token, got {token.payload.type!r}")

    def _check_version(self, token: Token, current_version: int) -> None:
        if token.payload.ver != current_version:
            raise VersionMismatch(f"token ver={token.payload.ver}, account ver={current_version}")

    def _passes(self, token: Token, *gates: Callable[[], None]) -> bool:
        try:
            for gate in gates:
                gate()
        except TokenRejected as exc:
            logger.debug("Rejected %s token for sub=%s: %s", token.payload.type, token.payload.sub, exc.code)
            return False
        return True

    def validate_access(self, token: Token) -> bool:
        return self._passes(token, lambda: self._validate(token), lambda: self._check_kind(token, ACCESS))

    def validate_refresh(self, token: Token) -> bool:
        return self._passes(token, lambda: self._validate(token), lambda: self._check_kind(token, REFRESH))

    def check_version(self, token: Token, current_version: int) -> bool:
        """Version gate: the token's ver must equal the account's current counter."""
        return self._passes(token, lambda: self._check_version(token, current_version))
