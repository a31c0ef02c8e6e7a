"""Transporter service: implements TransporterManagementPort.

Administrative operations on accounts: create, update and deactivate
transporters, and re-activate any account. Availability is never set
here; new transporters start AVAILABLE and from then on only the
assignment engine and lifecycle manager move it.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from .errors import InvalidArgumentError, NotFoundError
from .models import (
    Account,
    Availability,
    Role,
    TransporterRequest,
    activate,
    deactivate,
    utcnow,
)
from .ports import (
    PasswordHasherPort,
    StorePort,
    StoreTransaction,
    TransporterManagementPort,
)

logger = logging.getLogger(__name__)


class TransporterService(TransporterManagementPort):
    """Core implementation of TransporterManagementPort."""

    def __init__(
        self,
        store: StorePort,
        hasher: PasswordHasherPort,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the transporter service.

        Args:
            store: StorePort implementation for persistence.
            hasher: PasswordHasherPort used for new passwords.
            clock: Source of timestamps.
        """
        self.store = store
        self.hasher = hasher
        self.clock = clock

    async def create_transporter(self, request: TransporterRequest) -> Account:
        """Create an active, available transporter.

        Raises:
            RequestValidationError: Invalid fields.
            InvalidArgumentError: Login already exists.
        """
        request.validate(require_password=True)
        assert request.login is not None and request.password is not None

        logger.info(f"Creating transporter: {request.login}", extra={"login": request.login})
        await self._verify_unique_login(request.login)

        now = self.clock()
        account = Account(
            id=str(uuid.uuid4()),
            login=request.login,
            password_hash=self.hasher.hash(request.password),
            role=Role.TRANSPORTER,
            active=True,
            created_at=now,
            updated_at=now,
            specialty=request.specialty,
            availability=Availability.AVAILABLE,
        )
        await self.store.create_account(account)

        logger.info(
            f"Transporter created: {account.id}",
            extra={"transporter_id": account.id, "specialty": account.specialty},
        )
        return account

    async def update_transporter(
        self, transporter_id: str, request: TransporterRequest
    ) -> Account:
        """Update login, specialty and, when given, password.

        Role, active flag, availability and created_at are preserved. The
        read and the write share one transaction so a concurrent
        assignment or release is never overwritten.

        Raises:
            RequestValidationError: Invalid fields.
            NotFoundError: Account missing.
            InvalidArgumentError: Not a transporter, or login taken.
        """
        request.validate(require_password=False)
        assert request.login is not None

        current = await self._get_transporter(self.store, transporter_id)
        if request.login != current.login:
            await self._verify_unique_login(request.login)

        new_hash = self.hasher.hash(request.password) if request.password else None

        async with self.store.transaction() as tx:
            transporter = await self._get_transporter(tx, transporter_id)
            updated = replace(
                transporter,
                login=request.login,
                password_hash=new_hash or transporter.password_hash,
                specialty=request.specialty,
                updated_at=self.clock(),
            )
            await tx.save_account(updated)

        logger.info(
            f"Transporter updated: {transporter_id}",
            extra={"transporter_id": transporter_id},
        )
        return updated

    async def deactivate_transporter(self, transporter_id: str) -> Account:
        """Soft-delete a transporter.

        Raises:
            NotFoundError: Account missing.
            InvalidArgumentError: Not a transporter.
        """
        async with self.store.transaction() as tx:
            transporter = await self._get_transporter(tx, transporter_id)
            updated = deactivate(transporter, self.clock())
            await tx.save_account(updated)

        logger.info(
            f"Transporter deactivated: {transporter_id}",
            extra={"transporter_id": transporter_id},
        )
        return updated

    async def activate_account(self, account_id: str) -> Account:
        """Re-activate any account.

        Raises:
            NotFoundError: Account missing.
        """
        async with self.store.transaction() as tx:
            account = await tx.get_account(account_id)
            if account is None:
                raise NotFoundError("User", account_id)

            updated = activate(account, self.clock())
            await tx.save_account(updated)

        logger.info(f"User activated: {account_id}", extra={"account_id": account_id})
        return updated

    @staticmethod
    async def _get_transporter(
        source: StorePort | StoreTransaction, transporter_id: str
    ) -> Account:
        account = await source.get_account(transporter_id)
        if account is None:
            raise NotFoundError("User", transporter_id)
        if not account.is_transporter:
            raise InvalidArgumentError(f"User {transporter_id} is not a transporter")
        return account

    async def _verify_unique_login(self, login: str) -> None:
        if await self.store.login_exists(login):
            raise InvalidArgumentError(f"Login already exists: {login}")
