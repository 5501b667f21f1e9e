"""
auth/session.py -- Per-request authentication state machine.

RefreshCoordinator decides, for one request, which of three terminal states
applies:

  AUTHENTICATED    access cookie valid, account active, version current
  REFRESHED        access cookie absent/invalid, refresh cookie valid for an
                   active account at its current version -- a new
                   access+refresh pair has been written to the response
  UNAUTHENTICATED  neither path succeeded

Downstream handlers only ever see "authenticated, possibly with freshly
rotated cookies". Refresh does not invalidate the refresh token that was
presented; only AccountStore.increment_token_version() revokes tokens.

Every acceptance path re-reads the account and runs the version gate, so a
bumped counter takes effect on the very next request.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from auth.cookies import SessionCookieStore
from auth.models import Account, UserSnapshot
from auth.store import AccountStore
from auth.tokens import TokenIssuer, TokenValidator

logger = logging.getLogger("authkit.auth")


class AuthState(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    REFRESHED = "refreshed"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthResult:
    state: AuthState
    account: Account | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state is not AuthState.UNAUTHENTICATED

    @property
    def user_id(self) -> int | None:
        return self.account.id if self.account is not None else None


UNAUTHENTICATED = AuthResult(AuthState.UNAUTHENTICATED)


class RefreshCoordinator:
    def __init__(
        self,
        store: AccountStore,
        issuer: TokenIssuer,
        validator: TokenValidator,
        cookies: SessionCookieStore,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._validator = validator
        self._cookies = cookies

    def authenticate(self, request: Request, response: Response) -> AuthResult:
        """Run the access path, falling back to the refresh path."""
        access = self._cookies.read_access(request)
        if access.valid:
            account = self._store.get_by_id(access.user_id)
            if (
                account is not None
                and account.is_active
                and self._validator.check_version(access.token, account.token_version)
            ):
                return AuthResult(AuthState.AUTHENTICATED, account)
        return self.refresh(request, response)

    def refresh(self, request: Request, response: Response) -> AuthResult:
        """Validate the refresh cookie and, on success, re-issue both tokens."""
        presented = self._cookies.read_refresh(request)
        if not presented.valid:
            return UNAUTHENTICATED

        account = self._store.get_by_id(presented.user_id)
        if account is None or not account.is_active:
            logger.info("Refresh refused: account %s missing or inactive", presented.user_id)
            return UNAUTHENTICATED
        if not self._validator.check_version(presented.token, account.token_version):
            logger.info("Refresh refused: account %s token version revoked", account.id)
            return UNAUTHENTICATED

        pair = self._issuer.issue_pair(UserSnapshot.from_account(account), account.token_version)
        self._cookies.set_pair(response, pair.access, pair.refresh)
        logger.info("Session refreshed for account %d", account.id)
        return AuthResult(AuthState.REFRESHED, account)
