"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Both helpers run the request through RefreshCoordinator (via AuthService):
  1. access cookie -- honoured if valid and the account's version is current
  2. refresh cookie -- fallback; on success a fresh cookie pair is written to
     the injected Response, which FastAPI merges into the route's response

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated, or 403
when Settings.enforce_verified_email is on and the email is not verified.

Routes that depend on these must return a model/dict rather than a Response
object of their own, or rotated cookies set on the injected Response are lost.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, Response

from auth.models import Account
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService the lifespan attached to app.state."""
    return request.app.state.auth


def try_get_current_account(request: Request, response: Response) -> Account | None:
    """Authenticate the request from its cookies. Never raises.

    The AuthResult is also stored on request.state.auth so handlers can tell
    whether the cookies were rotated on this request.
    """
    result = get_auth_service(request).authenticate(request, response)
    request.state.auth = result
    if not result.is_authenticated:
        return None
    return result.account


def get_current_account(request: Request, response: Response) -> Account:
    """Require authentication. Raises HTTP 401 if the request is not authenticated
    and HTTP 403 if verified email is enforced and the account is unverified.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request, response)
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or missing token for authentication."},
        )
    if get_auth_service(request).settings.enforce_verified_email and not account.email_verified:
        raise HTTPException(
            status_code=403,
            detail={"code": "email_not_verified", "message": "Email verification required"},
        )
    return account
