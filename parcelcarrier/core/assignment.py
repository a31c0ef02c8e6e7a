"""Assignment engine: implements AssignmentPort.

Decides whether a package can be handed to a transporter and applies the
two-entity state change (package into transit, transporter on delivery)
inside a single store transaction. Checks run inside the transaction so
two concurrent assignments against the same transporter cannot both pass.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from .errors import (
    InvalidArgumentError,
    NotFoundError,
    SpecialtyMismatchError,
    TransporterUnavailableError,
)
from .models import (
    Package,
    assign_to_transporter,
    can_handle,
    can_take_new_package,
    mark_on_delivery,
    utcnow,
)
from .ports import AssignmentPort, StorePort

logger = logging.getLogger(__name__)


class AssignmentEngine(AssignmentPort):
    """Core implementation of AssignmentPort."""

    def __init__(self, store: StorePort, clock: Callable[[], datetime] = utcnow):
        """Initialize the assignment engine.

        Args:
            store: StorePort implementation for persistence.
            clock: Source of timestamps for updated_at.
        """
        self.store = store
        self.clock = clock

    async def assign(self, package_id: str, transporter_id: str) -> Package:
        """Assign a pending package to an available transporter.

        Preconditions are checked in order, each with its own failure:
        package exists, account exists and is a transporter, package is
        PENDING, specialty matches, transporter can take a new package.

        Raises:
            NotFoundError: Package or account missing.
            InvalidArgumentError: Account is not a transporter.
            ConflictError: Package is not PENDING.
            SpecialtyMismatchError: Specialty does not cover the package type.
            TransporterUnavailableError: Transporter inactive or on delivery.
        """
        logger.info(
            f"Assigning package {package_id} to transporter {transporter_id}",
            extra={"package_id": package_id, "transporter_id": transporter_id},
        )

        async with self.store.transaction() as tx:
            package = await tx.get_package(package_id)
            if package is None:
                raise NotFoundError("Package", package_id)

            transporter = await tx.get_account(transporter_id)
            if transporter is None:
                raise NotFoundError("User", transporter_id)
            if not transporter.is_transporter:
                raise InvalidArgumentError(f"User {transporter_id} is not a transporter")

            now = self.clock()
            # Raises ConflictError for non-pending packages
            assigned = assign_to_transporter(package, transporter_id, now)

            if not can_handle(transporter, package.type):
                raise SpecialtyMismatchError(
                    package.type.value,
                    transporter.specialty.value if transporter.specialty else None,
                )

            if not can_take_new_package(transporter):
                raise TransporterUnavailableError(
                    transporter.id,
                    transporter.availability.value if transporter.availability else None,
                    active=transporter.active,
                )

            await tx.save_package(assigned)
            await tx.save_account(mark_on_delivery(transporter, now))

        logger.info(
            f"Package {package_id} assigned to transporter {transporter_id}",
            extra={
                "package_id": package_id,
                "transporter_id": transporter_id,
                "package_type": package.type.value,
            },
        )
        return assigned
