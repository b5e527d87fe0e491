"""
auth/service.py -- Registration, login, refresh rotation, logout and profile.

Session model:
  One refresh token per account. Its HMAC lives in accounts.refresh_token_hash;
  NULL means no active session. States:

      Anonymous --login--> Active --refresh--> Active (token rotated)
                              |
                              +--logout--> Revoked --login--> Active

  A rejected refresh (expired, forged, superseded) changes nothing.

  Rotation-on-use: every successful refresh stores the hash of the NEW refresh
  token, so the token just presented can never be used again even though its
  signature and expiry are still valid.

  Logout only clears the stored hash. Access tokens are stateless and stay
  valid until they expire -- keep ACCESS_TOKEN_EXPIRE_SECONDS short.

Concurrency:
  No lock is taken around rotation. Two simultaneous refreshes with the same
  token can both read the old hash, both pass, and both write; the later write
  wins and the other caller holds a refresh token that is already dead.
  tests/test_auth_service.py pins this behaviour.

Error handling:
  Expected failures are returned as Err(ServiceError) -- see core/errors.py.
  Store exceptions other than a duplicate-email IntegrityError propagate.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import Account, AccountProfile, LoginResult, Role, TokenClaims, TokenPair
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenManager
from core.errors import BAD_CREDENTIALS, INVALID_REFRESH, UNKNOWN_PRINCIPAL, ErrorKind, ServiceError
from core.result import Err, Ok, Result

logger = logging.getLogger("accessdesk.auth")

_EMAIL_TAKEN = ServiceError(ErrorKind.CONFLICT, "An account with this email already exists.")


class AuthService:
    """Stateless orchestrator over a credential store, a hasher and a token manager.

    Construct once at startup and share across requests.
    """

    def __init__(self, store: CredentialStore, hasher: PasswordHasher, tokens: TokenManager) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> Result[Account, ServiceError]:
        """Create a role=user account. Err(CONFLICT) if the email is taken.

        The returned Account still carries password_hash; callers project it
        through AccountProfile before exposing it.
        """
        email = email.strip()
        if self.store.get_by_email(email) is not None:
            return Err(_EMAIL_TAKEN)

        account = Account(
            name=name.strip(),
            email=email,
            password_hash=self.hasher.hash(password),
            role=Role.USER,
        )
        try:
            account.id = self.store.create_account(account)
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email.
            return Err(_EMAIL_TAKEN)

        created = self.store.get_by_id(account.id)
        logger.info("Registered account id=%s", account.id)
        return Ok(created if created is not None else account)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> Result[LoginResult, ServiceError]:
        """Verify credentials and open a fresh session.

        Unknown email and wrong password return the same BAD_CREDENTIALS
        instance and both run one bcrypt verification [C1], so neither the
        response body nor its timing reveals whether the email exists.

        A successful login overwrites any previous refresh hash, ending the
        session on whatever device held the old refresh token.
        """
        account = self.store.get_by_email(email.strip())
        if account is None:
            self.hasher.burn(password)
            logger.info("Login rejected: unknown email")
            return Err(BAD_CREDENTIALS)
        if not self.hasher.verify(password, account.password_hash):
            logger.info("Login rejected: bad password for account id=%s", account.id)
            return Err(BAD_CREDENTIALS)

        tokens = self._open_session(account)
        logger.info("Login succeeded for account id=%s", account.id)
        return Ok(LoginResult(tokens=tokens, profile=AccountProfile.from_account(account)))

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, presented_token: str) -> Result[TokenPair, ServiceError]:
        """Exchange a refresh token for a new pair, consuming the old one."""
        verified = self.tokens.verify(presented_token, self.tokens.refresh)
        if isinstance(verified, Err):
            logger.info("Refresh rejected: %s", verified.error.value)
            return Err(INVALID_REFRESH)
        claims = verified.value

        account = self.store.get_by_id(claims.subject)
        if account is None:
            logger.info("Refresh rejected: account id=%s not found", claims.subject)
            return Err(INVALID_REFRESH)
        if account.refresh_token_hash is None:
            logger.info("Refresh rejected: no active session for account id=%s", account.id)
            return Err(INVALID_REFRESH)
        if not self.tokens.refresh_hash_matches(presented_token, account.refresh_token_hash):
            logger.warning("Refresh rejected: superseded token presented for account id=%s", account.id)
            return Err(INVALID_REFRESH)

        # Role and email come from the account, not the old token, so a role
        # change takes effect at the next refresh.
        tokens = self._open_session(account)
        logger.info("Refresh token rotated for account id=%s", account.id)
        return Ok(tokens)

    # ------------------------------------------------------------------
    # Logout / profile
    # ------------------------------------------------------------------

    def logout(self, account_id: int) -> Result[None, ServiceError]:
        """Revoke the account's refresh session. Issued access tokens live on until expiry."""
        if not self.store.update_account(account_id, refresh_token_hash=None):
            return Err(UNKNOWN_PRINCIPAL)
        logger.info("Logged out account id=%s", account_id)
        return Ok(None)

    def get_profile(self, claims: TokenClaims) -> Result[AccountProfile, ServiceError]:
        account = self.store.get_by_id(claims.subject)
        if account is None:
            return Err(UNKNOWN_PRINCIPAL)
        return Ok(AccountProfile.from_account(account))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, account: Account) -> TokenPair:
        """Issue a pair and persist the refresh hash, replacing any prior one."""
        claims = TokenClaims(subject=account.id, email=account.email, role=account.role)
        pair = self.tokens.issue_pair(claims)
        self.store.update_account(account.id, refresh_token_hash=self.tokens.hash_refresh_token(pair.refresh_token))
        return pair
