"""Entity builders shared by the test suite."""

import itertools
from datetime import UTC, datetime, timedelta

from parcelcarrier.core.models import (
    Account,
    Availability,
    Package,
    PackageStatus,
    PackageType,
    Role,
    Specialty,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

_sequence = itertools.count(1)


def make_package(
    package_id: str | None = None,
    package_type: PackageType = PackageType.STANDARD,
    status: PackageStatus = PackageStatus.PENDING,
    transporter_id: str | None = None,
    destination_address: str = "12 Harbour Street, Lisbon",
    created_at: datetime | None = None,
    **fields,
) -> Package:
    n = next(_sequence)
    created = created_at or BASE_TIME + timedelta(seconds=n)
    if package_type is PackageType.FRAGILE:
        fields.setdefault("handling_instructions", "Keep upright")
    if package_type is PackageType.REFRIGERATED:
        fields.setdefault("min_temperature", 2.0)
        fields.setdefault("max_temperature", 8.0)
    return Package(
        id=package_id or f"pkg-{n}",
        type=package_type,
        weight=fields.pop("weight", 5.0),
        destination_address=destination_address,
        status=status,
        created_at=created,
        updated_at=created,
        transporter_id=transporter_id,
        **fields,
    )


def make_transporter(
    account_id: str | None = None,
    login: str | None = None,
    specialty: Specialty = Specialty.STANDARD,
    availability: Availability = Availability.AVAILABLE,
    active: bool = True,
    password_hash: str = "hashed:secret1",
) -> Account:
    n = next(_sequence)
    created = BASE_TIME + timedelta(seconds=n)
    return Account(
        id=account_id or f"tr-{n}",
        login=login or f"transporter_{n}",
        password_hash=password_hash,
        role=Role.TRANSPORTER,
        active=active,
        created_at=created,
        updated_at=created,
        specialty=specialty,
        availability=availability,
    )


def make_admin(
    account_id: str = "admin-1",
    login: str = "admin",
    password_hash: str = "hashed:admin123",
    active: bool = True,
) -> Account:
    return Account(
        id=account_id,
        login=login,
        password_hash=password_hash,
        role=Role.ADMIN,
        active=active,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
