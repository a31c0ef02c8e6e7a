"""Status lifecycle manager: implements LifecyclePort.

Status changes are a permissive setter by default: any status value is
accepted, including re-setting the current one or moving backwards. Only
a missing status is rejected. Strict mode restricts moves to the delivery
graph in models.ALLOWED_TRANSITIONS.

Whenever the resulting status is finished (DELIVERED or CANCELLED) and the
package has a transporter, that transporter is released in the same
transaction. A missing transporter record is skipped, not an error.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from .errors import InvalidArgumentError, NotFoundError
from .models import Package, PackageStatus, change_status, mark_available, utcnow
from .ports import LifecyclePort, StorePort, StoreTransaction

logger = logging.getLogger(__name__)


async def release_transporter(
    tx: StoreTransaction, transporter_id: str, now: datetime
) -> bool:
    """Set a transporter back to AVAILABLE within an open transaction.

    Returns:
        True if the transporter was found and released, False if the
        record is missing.
    """
    transporter = await tx.get_account(transporter_id)
    if transporter is None:
        logger.debug(
            f"Transporter {transporter_id} not found, release skipped",
            extra={"transporter_id": transporter_id},
        )
        return False

    await tx.save_account(mark_available(transporter, now))
    logger.info(
        f"Transporter {transporter_id} released and set to AVAILABLE",
        extra={"transporter_id": transporter_id},
    )
    return True


class StatusLifecycleManager(LifecyclePort):
    """Core implementation of LifecyclePort.

    Both entry points share the same logic; they differ only in the
    ownership check applied before the change.
    """

    def __init__(
        self,
        store: StorePort,
        strict_transitions: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the lifecycle manager.

        Args:
            store: StorePort implementation for persistence.
            strict_transitions: Reject moves outside the delivery graph.
            clock: Source of timestamps for updated_at.
        """
        self.store = store
        self.strict_transitions = strict_transitions
        self.clock = clock

    async def change_status(
        self, package_id: str, new_status: PackageStatus | None
    ) -> Package:
        """Change the status of any package.

        Raises:
            NotFoundError: Package missing.
            InvalidArgumentError: new_status is None.
            ConflictError: Strict mode only, for a move outside the graph.
        """
        logger.info(
            f"Changing status of package {package_id} to {_status_name(new_status)}",
            extra={"package_id": package_id},
        )
        return await self._apply(package_id, new_status, owner_id=None)

    async def change_own_status(
        self, package_id: str, caller_id: str, new_status: PackageStatus | None
    ) -> Package:
        """Change the status of a package assigned to the caller.

        Raises:
            NotFoundError: Package missing.
            InvalidArgumentError: Caller does not own the package, or
                new_status is None.
            ConflictError: Strict mode only, for a move outside the graph.
        """
        logger.info(
            f"Transporter {caller_id} changing status of package {package_id} "
            f"to {_status_name(new_status)}",
            extra={"package_id": package_id, "transporter_id": caller_id},
        )
        return await self._apply(package_id, new_status, owner_id=caller_id)

    async def _apply(
        self,
        package_id: str,
        new_status: PackageStatus | None,
        owner_id: str | None,
    ) -> Package:
        async with self.store.transaction() as tx:
            package = await tx.get_package(package_id)
            if package is None:
                raise NotFoundError("Package", package_id)

            if owner_id is not None and package.transporter_id != owner_id:
                raise InvalidArgumentError("Package does not belong to this transporter")

            previous = package.status
            now = self.clock()
            updated = change_status(package, new_status, now, strict=self.strict_transitions)

            if updated.is_finished and updated.transporter_id:
                await release_transporter(tx, updated.transporter_id, now)

            await tx.save_package(updated)

        logger.info(
            f"Package status changed: {package_id} {previous.value} -> {updated.status.value}",
            extra={
                "package_id": package_id,
                "from_status": previous.value,
                "to_status": updated.status.value,
            },
        )
        return updated


def _status_name(status: PackageStatus | None) -> str:
    return status.value if status is not None else "None"
