"""Package service: implements PackageManagementPort.

Administrative create/update/delete/fetch for packages. Creation and
update both run the request's business-rule validation. Status and
transporter assignment are never touched here: they belong to the
assignment engine and the lifecycle manager.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from .errors import NotFoundError, RequestValidationError
from .lifecycle import release_transporter
from .models import Package, PackageRequest, PackageStatus, PackageView, utcnow
from .ports import PackageManagementPort, StorePort
from .queries import build_views

logger = logging.getLogger(__name__)


class PackageService(PackageManagementPort):
    """Core implementation of PackageManagementPort."""

    def __init__(self, store: StorePort, clock: Callable[[], datetime] = utcnow):
        """Initialize the package service.

        Args:
            store: StorePort implementation for persistence.
            clock: Source of timestamps.
        """
        self.store = store
        self.clock = clock

    async def create_package(self, request: PackageRequest) -> PackageView:
        """Validate and persist a new PENDING package.

        Raises:
            RequestValidationError: Invalid fields or business rules.
        """
        request.validate()
        assert request.type is not None and request.weight is not None
        assert request.destination_address is not None

        now = self.clock()
        package = Package(
            id=str(uuid.uuid4()),
            type=request.type,
            weight=float(request.weight),
            destination_address=request.destination_address,
            status=PackageStatus.PENDING,
            created_at=now,
            updated_at=now,
            handling_instructions=request.handling_instructions,
            min_temperature=request.min_temperature,
            max_temperature=request.max_temperature,
        )
        await self.store.create_package(package)

        logger.info(
            f"Package created with ID: {package.id}",
            extra={"package_id": package.id, "package_type": package.type.value},
        )
        return PackageView(package=package)

    async def update_package(
        self, package_id: str, request: PackageRequest
    ) -> PackageView:
        """Apply new field values to an existing package.

        The package type cannot change after creation. Status, transporter
        and created_at are preserved; the read and the write share one
        transaction so a concurrent assignment is never overwritten.

        Raises:
            NotFoundError: Package missing.
            RequestValidationError: Invalid fields, or a type change.
        """
        request.validate()
        assert request.weight is not None and request.destination_address is not None

        async with self.store.transaction() as tx:
            package = await tx.get_package(package_id)
            if package is None:
                raise NotFoundError("Package", package_id)

            if request.type is not package.type:
                raise RequestValidationError(
                    "Package type cannot be changed",
                    {"type": f"Package type is {package.type.value} and cannot be changed"},
                )

            updated = replace(
                package,
                weight=float(request.weight),
                destination_address=request.destination_address,
                handling_instructions=request.handling_instructions,
                min_temperature=request.min_temperature,
                max_temperature=request.max_temperature,
                updated_at=self.clock(),
            )
            await tx.save_package(updated)

        logger.info(f"Package updated: {package_id}", extra={"package_id": package_id})
        views = await build_views(self.store, [updated])
        return views[0]

    async def delete_package(self, package_id: str) -> None:
        """Delete a package, releasing its transporter first.

        The release and the delete commit together.

        Raises:
            NotFoundError: Package missing.
        """
        async with self.store.transaction() as tx:
            package = await tx.get_package(package_id)
            if package is None:
                raise NotFoundError("Package", package_id)

            # Finished packages already released their transporter.
            if package.transporter_id and not package.is_finished:
                await release_transporter(tx, package.transporter_id, self.clock())

            await tx.delete_package(package_id)

        logger.info(
            f"Package deleted: {package_id}",
            extra={"package_id": package_id, "transporter_id": package.transporter_id},
        )

    async def get_package(self, package_id: str) -> PackageView:
        """Fetch a single package with its transporter login.

        Raises:
            NotFoundError: Package missing.
        """
        package = await self.store.get_package(package_id)
        if package is None:
            raise NotFoundError("Package", package_id)
        views = await build_views(self.store, [package])
        return views[0]
