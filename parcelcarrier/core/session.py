"""Session gate: implements SessionPort.

Authenticates credentials and issues a signed session token carrying the
account's identity and role. Unknown logins and wrong passwords fail with
the same message so callers cannot probe which logins exist.
"""

import logging

from .errors import UnauthorizedError
from .models import Identity, LoginResult, Role
from .ports import PasswordHasherPort, SessionPort, StorePort, TokenPort

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "invalid credentials"
ACCOUNT_DEACTIVATED = "account deactivated"


class SessionGate(SessionPort):
    """Core implementation of SessionPort."""

    def __init__(
        self,
        store: StorePort,
        hasher: PasswordHasherPort,
        tokens: TokenPort,
        token_ttl_seconds: int,
    ):
        """Initialize the session gate.

        Args:
            store: StorePort implementation for account lookup.
            hasher: PasswordHasherPort for credential verification.
            tokens: TokenPort for issuing and verifying tokens.
            token_ttl_seconds: Lifetime of issued tokens.
        """
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.token_ttl_seconds = token_ttl_seconds

    async def authenticate(self, login: str, password: str) -> LoginResult:
        """Authenticate credentials and issue a session token.

        Raises:
            UnauthorizedError: "invalid credentials" for an unknown login or
                wrong password, "account deactivated" for inactive accounts.
        """
        logger.info(f"Authentication attempt for user: {login}", extra={"login": login})

        account = await self.store.get_account_by_login(login)
        if account is None:
            logger.warning(f"Unknown login attempted: {login}", extra={"login": login})
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not account.active:
            logger.warning(f"Inactive user attempted to login: {login}", extra={"login": login})
            raise UnauthorizedError(ACCOUNT_DEACTIVATED)

        if not self.hasher.verify(password, account.password_hash):
            logger.warning(f"Invalid password for user: {login}", extra={"login": login})
            raise UnauthorizedError(INVALID_CREDENTIALS)

        token = self.tokens.issue(
            subject=account.login,
            claims={"userId": account.id, "role": account.role.value},
            ttl_seconds=self.token_ttl_seconds,
        )

        logger.info(
            f"User authenticated: {account.login} with role {account.role.value}",
            extra={"login": account.login, "role": account.role.value},
        )
        return LoginResult(
            token=token, login=account.login, role=account.role, user_id=account.id
        )

    def resolve_identity(self, token: str | None) -> Identity | None:
        """Resolve a bearer token to an identity.

        Any verification failure yields None; the caller proceeds
        unauthenticated and the route's role requirement decides.
        """
        if not token:
            return None

        claims = self.tokens.verify(token)
        if claims is None:
            logger.debug("Rejected session token")
            return None

        try:
            return Identity(
                account_id=str(claims["userId"]),
                login=str(claims["sub"]),
                role=Role(claims["role"]),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Session token missing identity claims: {e}")
            return None
