"""
auth/service.py -- AuthService: the operations the HTTP layer calls.

AuthService is assembled once by the composition root from a validated
Settings value and an AccountStore, and wires the token components together:

    PasswordHasher
    TokenSigner -> TokenIssuer, TokenValidator
    SessionCookieStore(validator)
    RefreshCoordinator(store, issuer, validator, cookies)

Exposed operations:
  signup / login / refresh / logout  -- cookie-setting flows
  issue_pair_for_user                -- encoded (access, refresh) values
  authenticate                       -- one request through the state machine
  revoke_all                         -- bump the account's version counter

Login timing [email enumeration]: when no active account matches the email,
dummy_verify() runs a full hash-and-compare so response time does not reveal
whether the address is registered. Errors for "unknown email" and "wrong
password" are identical.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError
from starlette.requests import Request
from starlette.responses import Response

from auth.codec import encode_token
from auth.cookies import SessionCookieStore
from auth.models import Account, UserSnapshot
from auth.passwords import PasswordHasher, validate_password
from auth.session import AuthResult, RefreshCoordinator
from auth.signer import TokenSigner
from auth.store import AccountStore
from auth.tokens import Clock, TokenIssuer, TokenValidator
from core.config import Settings
from core.errors import AuthenticationError, RegistrationError

logger = logging.getLogger("authkit.auth")

WRONG_CREDENTIALS = "Wrong email or password"


class AuthService:
    def __init__(self, settings: Settings, store: AccountStore, clock: Clock = time.time) -> None:
        self.settings = settings
        self.store = store
        self.hasher = PasswordHasher(settings)
        signer = TokenSigner(settings)
        self.issuer = TokenIssuer(settings, signer, clock)
        self.validator = TokenValidator(signer, clock)
        self.cookies = SessionCookieStore(settings, self.validator)
        self.coordinator = RefreshCoordinator(store, self.issuer, self.validator, self.cookies)

    # ------------------------------------------------------------------
    # Token pairs
    # ------------------------------------------------------------------

    def issue_pair_for_user(self, account: Account) -> tuple[str, str]:
        """Return encoded (access, refresh) cookie values at the account's current version."""
        pair = self.issuer.issue_pair(UserSnapshot.from_account(account), account.token_version)
        return encode_token(pair.access), encode_token(pair.refresh)

    def _start_session(self, response: Response, account: Account) -> None:
        pair = self.issuer.issue_pair(UserSnapshot.from_account(account), account.token_version)
        self.cookies.set_pair(response, pair.access, pair.refresh)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def signup(self, response: Response, email: str, password: str, name: str, surname: str) -> Account:
        """Create an account, log it in, and return it.

        Raises RegistrationError if signup is disabled, the password violates
        policy, or the email is already in use.
        """
        if not self.settings.self_registration_enabled:
            raise RegistrationError("Self-registration is disabled", "registration_disabled")

        violation = validate_password(password, self.settings.password_policy)
        if violation:
            raise RegistrationError(violation, "password_policy")

        if self.store.get_by_email(email) is not None:
            raise RegistrationError("Email already in use", "email_in_use")

        account = Account(email=email, name=name, surname=surname, password_hash=self.hasher.hash(password))
        try:
            account_id = self.store.create_account(account)
        except IntegrityError as exc:
            # Concurrent signup for the same address won the insert.
            raise RegistrationError("Email already in use", "email_in_use") from exc

        created = self.store.get_by_id(account_id)
        self._start_session(response, created)
        logger.info("New account created with id %d", account_id)
        return created

    def login(self, response: Response, email: str, password: str, source_ip: str, user_agent: str) -> Account:
        """Verify credentials, set the cookie pair, and return the account.

        Raises AuthenticationError with the same message for every failure.
        """
        account = self.store.get_by_email(email)
        if account is None or not account.is_active or not account.password_hash:
            if self.settings.email_enumeration_protection:
                self.hasher.dummy_verify()
            raise AuthenticationError(WRONG_CREDENTIALS)

        valid = self.hasher.verify(account.password_hash, password)
        self.store.record_login_attempt(account.id, source_ip, user_agent, valid)
        if not valid:
            logger.info("Failed login for account %d from %s", account.id, source_ip)
            raise AuthenticationError(WRONG_CREDENTIALS)

        if self.hasher.needs_rehash(account.password_hash):
            self.store.update_password_hash(account.id, self.hasher.hash(password))
            logger.info("Upgraded password hash for account %d", account.id)
        self.store.update_last_login(account.id)

        self._start_session(response, account)
        return account

    def refresh(self, request: Request, response: Response) -> AuthResult:
        """Explicit refresh: re-issue the pair from the refresh cookie alone."""
        return self.coordinator.refresh(request, response)

    def authenticate(self, request: Request, response: Response) -> AuthResult:
        return self.coordinator.authenticate(request, response)

    def logout(self, response: Response) -> None:
        self.cookies.clear_pair(response)

    def revoke_all(self, account_id: int) -> int | None:
        """Invalidate every token issued so far for the account. Returns the new version."""
        return self.store.increment_token_version(account_id)
