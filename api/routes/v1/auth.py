"""
api/routes/v1/auth.py -- Session REST endpoints.

Routes:
  POST /api/v1/auth/signup    -- create account; sets cookie pair; 201
  POST /api/v1/auth/login     -- password login; sets cookie pair
  POST /api/v1/auth/refresh   -- re-issue cookie pair from the refresh cookie
  POST /api/v1/auth/logout    -- clears both cookies; 200
  GET  /api/v1/auth/me        -- current account (requires auth)
  POST /api/v1/auth/revoke    -- sign out everywhere (requires auth)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  AuthService.login() equalizes timing for unknown emails -- never inline
  a store lookup + verify here.
  Cache-Control: no-store on every response that sets session cookies.

Every handler writes cookies onto the injected Response and returns a model,
so FastAPI merges the Set-Cookie headers into the final response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter, login_rate_limit
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    SignupResponse,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_account
from auth.models import Account
from core.errors import AuthenticationError, RegistrationError

# Auth policy:
# - POST /api/v1/auth/signup:   public -- gated by Settings.self_registration_enabled
# - POST /api/v1/auth/login:    public, rate-limited
# - POST /api/v1/auth/refresh:  public -- the refresh cookie is the credential
# - POST /api/v1/auth/logout:   public -- clearing cookies needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (get_current_account)
# - POST /api/v1/auth/revoke:   requires auth (get_current_account)
router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, response: Response, body: SignupRequest) -> SignupResponse:
    """Register a new account and start a session for it."""
    service = get_auth_service(request)
    try:
        account = service.signup(response, body.email, body.password, body.name, body.surname)
    except RegistrationError as exc:
        status = 403 if exc.code == "registration_disabled" else 400
        raise HTTPException(
            status_code=status,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    _no_store(response)
    return SignupResponse(user_id=account.id)


@limiter.limit(login_rate_limit)  # brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password; set the access and refresh cookies.

    Wrong email and wrong password produce the same 401 body.
    """
    service = get_auth_service(request)
    try:
        account = service.login(
            response,
            body.email,
            body.password,
            source_ip=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent", ""),
        )
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": exc.code, "message": exc.message},
            headers=_NO_STORE,
        ) from exc
    _no_store(response)
    return AuthResponse(user=UserResponse.from_account(account))


@router.post("/auth/refresh", response_model=AuthResponse)
def refresh(request: Request, response: Response) -> AuthResponse:
    """Exchange a valid refresh cookie for a new cookie pair."""
    result = get_auth_service(request).refresh(request, response)
    if not result.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or missing refresh token."},
            headers=_NO_STORE,
        )
    _no_store(response)
    return AuthResponse(user=UserResponse.from_account(result.account))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, response: Response) -> MessageResponse:
    """Clear both session cookies."""
    get_auth_service(request).logout(response)
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=AuthResponse)
def me(response: Response, current: Account = Depends(get_current_account)) -> AuthResponse:
    """Return the authenticated account. May rotate cookies via the refresh path."""
    _no_store(response)
    return AuthResponse(user=UserResponse.from_account(current))


@router.post("/auth/revoke", response_model=MessageResponse)
def revoke(
    request: Request,
    response: Response,
    current: Account = Depends(get_current_account),
) -> MessageResponse:
    """Invalidate every token issued to the current account, on every device.

    The dependency may have just written a rotated pair at the old version;
    clear_pair() runs afterwards so the response ends with deletion cookies.
    """
    service = get_auth_service(request)
    service.revoke_all(current.id)
    service.logout(response)
    return MessageResponse(message="All sessions revoked.")
