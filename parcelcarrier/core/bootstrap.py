"""Idempotent one-time setup run by the composition root at start."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from .models import Account, Role, utcnow
from .ports import PasswordHasherPort, StorePort

logger = logging.getLogger(__name__)


async def ensure_admin(
    store: StorePort,
    hasher: PasswordHasherPort,
    login: str,
    password: str,
    clock: Callable[[], datetime] = utcnow,
) -> Account:
    """Create the default administrator unless the login already exists.

    An existing account under that login is returned untouched, so running
    this at every start never duplicates or resets the administrator.

    Returns:
        The existing or newly created account.
    """
    existing = await store.get_account_by_login(login)
    if existing is not None:
        if not existing.is_admin:
            logger.warning(
                f"Bootstrap login {login} belongs to a non-admin account",
                extra={"login": login, "role": existing.role.value},
            )
        else:
            logger.debug(f"Default admin already present: {login}")
        return existing

    now = clock()
    admin = Account(
        id=str(uuid.uuid4()),
        login=login,
        password_hash=hasher.hash(password),
        role=Role.ADMIN,
        active=True,
        created_at=now,
        updated_at=now,
    )
    await store.create_account(admin)
    logger.info(f"Default admin created: {login}", extra={"login": login})
    return admin
