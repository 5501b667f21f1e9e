"""
auth/cookies.py -- Binding the access/refresh token pair to HTTP cookies.

Two cookies, each with its own name and attribute set:
  access  -- Settings.cookie_name          (default "authkit_token")
  refresh -- Settings.refresh_cookie_name  (default "authkit_refresh")
Refresh cookie attributes default to the access cookie's, with max_age
stretched to the refresh token lifetime.

Reading a cookie never raises. An absent cookie, a string that is not a token,
and a token that fails validation all come back as CookieResult(valid=False):
every one of these is an ordinary client condition, not a server fault.

Layer rule: depends on starlette's Request/Response only; no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from starlette.requests import Request
from starlette.responses import Response

from auth.codec import decode_token, encode_token
from auth.models import Token
from auth.tokens import TokenValidator
from core.config import CookieOptions, Settings
from core.errors import MalformedToken, TokenParseError

logger = logging.getLogger("authkit.auth")


@dataclass(frozen=True)
class CookieResult:
    valid: bool
    token: Token | None = None
    user_id: int | None = None


_INVALID = CookieResult(valid=False)


class SessionCookieStore:
    """Writes, clears and reads the access/refresh cookie pair."""

    def __init__(self, settings: Settings, validator: TokenValidator) -> None:
        self.access_name = settings.cookie_name
        self.refresh_name = settings.refresh_cookie_name
        self.access_options = settings.cookie_options
        self.refresh_options = settings.effective_refresh_cookie_options
        self._validator = validator

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def set_pair(self, response: Response, access: Token, refresh: Token) -> None:
        _set_cookie(response, self.access_name, encode_token(access), self.access_options)
        _set_cookie(response, self.refresh_name, encode_token(refresh), self.refresh_options)

    def clear_pair(self, response: Response) -> None:
        _delete_cookie(response, self.access_name, self.access_options)
        _delete_cookie(response, self.refresh_name, self.refresh_options)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def read_access(self, request: Request) -> CookieResult:
        return self._read(request, self.access_name, self._validator.validate_access)

    def read_refresh(self, request: Request) -> CookieResult:
        return self._read(request, self.refresh_name, self._validator.validate_refresh)

    def _read(self, request: Request, name: str, gate: Callable[[Token], bool]) -> CookieResult:
        raw = request.cookies.get(name)
        if not raw:
            return _INVALID
        try:
            token = decode_token(raw)
        except (MalformedToken, TokenParseError) as exc:
            logger.debug("Ignoring undecodable %s cookie: %s", name, exc.code)
            return _INVALID
        if not gate(token):
            return _INVALID
        return CookieResult(valid=True, token=token, user_id=token.user_id)


def _set_cookie(response: Response, name: str, value: str, options: CookieOptions) -> None:
    response.set_cookie(
        name,
        value=value,
        max_age=options.max_age,
        path=options.path,
        domain=options.domain,
        secure=options.secure,
        httponly=options.http_only,
        samesite=options.same_site.lower(),
    )


def _delete_cookie(response: Response, name: str, options: CookieOptions) -> None:
    response.delete_cookie(
        name,
        path=options.path,
        domain=options.domain,
        secure=options.secure,
        httponly=options.http_only,
        samesite=options.same_site.lower(),
    )
