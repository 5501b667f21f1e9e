"""
auth/models.py -- Domain dataclasses for accounts and tokens.

Pattern: Data class (pure data container, near-zero logic). Stores, issuers
and validators do the work; these types only own shape and the mapping to and
from the JSON claim dictionaries carried on the wire.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

TokenKind = Literal["access", "refresh"]

ACCESS: TokenKind = "access"
REFRESH: TokenKind = "refresh"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass
class Account:
    """A persisted account row.

    password_hash holds the tag:salt:digest credential string produced by
    PasswordHasher. token_version is the revocation counter: every token
    carries the value current at issuance and is refused once it changes.
    """

    email: str
    name: str
    surname: str
    id: int | None = None
    password_hash: str | None = None
    email_verified: bool = False
    status: str = "active"  # "active", "inactive", "deleted"
    token_version: int = 0
    created_at: str | None = None
    last_login: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class UserSnapshot:
    """Identity snapshot embedded in access tokens and returned by /me."""

    id: int
    email: str
    name: str
    surname: str
    email_verified: bool = False
    created_at: str | None = None
    two_factor_enabled: bool = False

    @classmethod
    def from_account(cls, account: Account) -> UserSnapshot:
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            surname=account.surname,
            email_verified=account.email_verified,
            created_at=account.created_at,
        )

    def to_claims(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "surname": self.surname,
            "emailVerified": self.email_verified,
            "createdAt": self.created_at,
            "twoFactorEnabled": self.two_factor_enabled,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> UserSnapshot:
        return cls(
            id=int(claims["id"]),
            email=str(claims["email"]),
            name=str(claims["name"]),
            surname=str(claims["surname"]),
            email_verified=bool(claims.get("emailVerified", False)),
            created_at=claims.get("createdAt"),
            two_factor_enabled=bool(claims.get("twoFactorEnabled", False)),
        )


@dataclass
class LoginAttempt:
    account_id: int
    source_ip: str
    user_agent: str
    success: bool
    id: int | None = None
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenHeader:
    alg: str = "HS256"
    typ: str = "jwt"

    def to_claims(self) -> dict[str, Any]:
        return {"alg": self.alg, "typ": self.typ}


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by every token.

    Times are integer Unix seconds. user is only present on access tokens.
    """

    iss: str
    sub: int
    iat: int
    nbf: int
    exp: int
    type: TokenKind
    ver: int
    user: UserSnapshot | None = None

    def to_claims(self) -> dict[str, Any]:
        claims: dict[str, Any] = {
            "iss": self.iss,
            "sub": self.sub,
            "iat": self.iat,
            "nbf": self.nbf,
            "exp": self.exp,
            "type": self.type,
            "ver": self.ver,
        }
        if self.user is not None:
            claims["user"] = self.user.to_claims()
        return claims


@dataclass(frozen=True)
class Token:
    """A signed token value.

    signing_input is set by the codec on decode to the exact
    "header.payload" text received, so signature checks run over the bytes
    the client actually sent. It takes no part in equality.
    """

    header: TokenHeader
    payload: TokenPayload
    signature: str
    signing_input: str | None = field(default=None, compare=False, repr=False)

    @property
    def kind(self) -> TokenKind:
        return self.payload.type

    @property
    def user_id(self) -> int:
        return self.payload.sub


@dataclass(frozen=True)
class TokenPair:
    access: Token
    refresh: Token
