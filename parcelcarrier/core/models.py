"""Domain models for the Parcel & Carrier logistics system.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.

Entities are frozen dataclasses. State changes are expressed as pure
transition functions that take the current entity and return a new one;
services are responsible for persisting the result.
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Generic, TypeVar

from .errors import ConflictError, InvalidArgumentError, RequestValidationError

T = TypeVar("T")


# ============================================================================
# ENUMERATIONS
# ============================================================================


class PackageType(Enum):
    """Category of a shipment. Immutable once a package is created."""

    STANDARD = "STANDARD"
    FRAGILE = "FRAGILE"
    REFRIGERATED = "REFRIGERATED"


class PackageStatus(Enum):
    """Delivery lifecycle states for a package.

    Intended flow:
    - PENDING → IN_TRANSIT (assignment)
    - PENDING → CANCELLED
    - IN_TRANSIT → DELIVERED
    - IN_TRANSIT → CANCELLED

    DELIVERED and CANCELLED are the "finished" states.
    """

    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Role(Enum):
    """Account roles."""

    ADMIN = "ADMIN"
    TRANSPORTER = "TRANSPORTER"


class Specialty(Enum):
    """Category of package a transporter is permitted to carry."""

    STANDARD = "STANDARD"
    FRAGILE = "FRAGILE"
    REFRIGERATED = "REFRIGERATED"


class Availability(Enum):
    """Capacity state of a transporter."""

    AVAILABLE = "AVAILABLE"
    ON_DELIVERY = "ON_DELIVERY"


# ============================================================================
# LOOKUP TABLES AND PREDICATES
# ============================================================================

# One specialty per package type, no cross-matching.
SPECIALTY_FOR_TYPE: Mapping[PackageType, Specialty] = MappingProxyType(
    {
        PackageType.STANDARD: Specialty.STANDARD,
        PackageType.FRAGILE: Specialty.FRAGILE,
        PackageType.REFRIGERATED: Specialty.REFRIGERATED,
    }
)

FINISHED_STATUSES: frozenset[PackageStatus] = frozenset(
    {PackageStatus.DELIVERED, PackageStatus.CANCELLED}
)

SPECIAL_HANDLING_TYPES: frozenset[PackageType] = frozenset(
    {PackageType.FRAGILE, PackageType.REFRIGERATED}
)

# Edges of the documented delivery graph. Only consulted in strict mode.
ALLOWED_TRANSITIONS: Mapping[PackageStatus, frozenset[PackageStatus]] = MappingProxyType(
    {
        PackageStatus.PENDING: frozenset(
            {PackageStatus.IN_TRANSIT, PackageStatus.CANCELLED}
        ),
        PackageStatus.IN_TRANSIT: frozenset(
            {PackageStatus.DELIVERED, PackageStatus.CANCELLED}
        ),
        PackageStatus.DELIVERED: frozenset(),
        PackageStatus.CANCELLED: frozenset(),
    }
)

MIN_TEMPERATURE = -30.0
MAX_TEMPERATURE = 30.0
MAX_WEIGHT = 1000.0
ADDRESS_MIN_LENGTH = 10
ADDRESS_MAX_LENGTH = 500
HANDLING_INSTRUCTIONS_MAX_LENGTH = 1000
LOGIN_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,50}$")
PASSWORD_MIN_LENGTH = 5
PASSWORD_MAX_LENGTH = 20


def utcnow() -> datetime:
    """Timezone-aware current time used for all entity timestamps."""
    return datetime.now(UTC)


def is_finished(status: PackageStatus) -> bool:
    """Return True for DELIVERED or CANCELLED."""
    return status in FINISHED_STATUSES


def requires_special_handling(package_type: PackageType) -> bool:
    """Return True for fragile and refrigerated packages."""
    return package_type in SPECIAL_HANDLING_TYPES


def specialty_matches(specialty: Specialty | None, package_type: PackageType) -> bool:
    """Check a specialty against the type/specialty table."""
    return specialty is not None and SPECIALTY_FOR_TYPE[package_type] is specialty


def is_allowed_transition(current: PackageStatus, new: PackageStatus) -> bool:
    """Check a status move against the documented delivery graph."""
    return new in ALLOWED_TRANSITIONS[current]


# ============================================================================
# ENTITIES
# ============================================================================


@dataclass(frozen=True)
class Package:
    """A shipment record tracked through a delivery lifecycle.

    `transporter_id` is a weak reference to an Account id. Resolving it to
    an account is always an explicit store lookup.
    """

    id: str
    type: PackageType
    weight: float
    destination_address: str
    status: PackageStatus
    created_at: datetime
    updated_at: datetime
    transporter_id: str | None = None
    handling_instructions: str | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None

    @property
    def is_assigned(self) -> bool:
        return bool(self.transporter_id)

    @property
    def is_pending(self) -> bool:
        return self.status is PackageStatus.PENDING

    @property
    def is_in_transit(self) -> bool:
        return self.status is PackageStatus.IN_TRANSIT

    @property
    def is_delivered(self) -> bool:
        return self.status is PackageStatus.DELIVERED

    @property
    def is_cancelled(self) -> bool:
        return self.status is PackageStatus.CANCELLED

    @property
    def is_finished(self) -> bool:
        return is_finished(self.status)

    @property
    def requires_special_handling(self) -> bool:
        return requires_special_handling(self.type)


@dataclass(frozen=True)
class Account:
    """An administrator or transporter account.

    `specialty` and `availability` are only meaningful for transporters
    and are None for administrators.
    """

    id: str
    login: str
    password_hash: str
    role: Role
    active: bool
    created_at: datetime
    updated_at: datetime
    specialty: Specialty | None = None
    availability: Availability | None = None

    def __repr__(self) -> str:
        return (
            f"Account(id={self.id!r}, login={self.login!r}, role={self.role.value}, "
            f"active={self.active}, specialty={self.specialty}, "
            f"availability={self.availability})"
        )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_transporter(self) -> bool:
        return self.role is Role.TRANSPORTER

    @property
    def is_available(self) -> bool:
        return self.is_transporter and self.availability is Availability.AVAILABLE

    @property
    def is_on_delivery(self) -> bool:
        return self.is_transporter and self.availability is Availability.ON_DELIVERY


def can_be_assigned(package: Package) -> bool:
    """A package can only be handed to a transporter while PENDING."""
    return package.status is PackageStatus.PENDING


def can_handle(account: Account, package_type: PackageType) -> bool:
    """Check whether a transporter's specialty covers a package type."""
    return account.is_transporter and specialty_matches(account.specialty, package_type)


def can_take_new_package(account: Account) -> bool:
    """An active, available transporter may accept a package."""
    return (
        account.is_transporter
        and account.active
        and account.availability is Availability.AVAILABLE
    )


def has_valid_temperature(package: Package) -> bool:
    """Check the temperature range of a refrigerated package.

    Standard and fragile packages are always valid.
    """
    if package.type is not PackageType.REFRIGERATED:
        return True
    return _temperature_range_ok(package.min_temperature, package.max_temperature)


def has_valid_handling_instructions(package: Package) -> bool:
    """Fragile packages need non-blank handling instructions."""
    if package.type is not PackageType.FRAGILE:
        return True
    return bool(package.handling_instructions and package.handling_instructions.strip())


def _temperature_range_ok(low: float | None, high: float | None) -> bool:
    if low is None or high is None:
        return False
    return low < high and low >= MIN_TEMPERATURE and high <= MAX_TEMPERATURE


# ============================================================================
# TRANSITIONS
# ============================================================================


def assign_to_transporter(package: Package, transporter_id: str, now: datetime) -> Package:
    """Move a pending package into transit with the given transporter.

    Raises:
        ConflictError: If the package is not PENDING.
    """
    if not can_be_assigned(package):
        raise ConflictError(
            f"Package {package.id} not in an assignable state: {package.status.value}"
        )
    return replace(
        package,
        transporter_id=transporter_id,
        status=PackageStatus.IN_TRANSIT,
        updated_at=now,
    )


def change_status(
    package: Package,
    new_status: PackageStatus | None,
    now: datetime,
    strict: bool = False,
) -> Package:
    """Set a package's status.

    Any status is accepted, including the current one and backwards moves.
    With `strict=True` the move must follow the delivery graph.

    Raises:
        InvalidArgumentError: If new_status is None.
        ConflictError: In strict mode, for a move outside the graph.
    """
    if new_status is None:
        raise InvalidArgumentError("Status cannot be null")
    if strict and not is_allowed_transition(package.status, new_status):
        raise ConflictError(
            f"Cannot move package {package.id} from "
            f"{package.status.value} to {new_status.value}"
        )
    return replace(package, status=new_status, updated_at=now)


def mark_on_delivery(account: Account, now: datetime) -> Account:
    """Reserve a transporter. No-op for non-transporters."""
    if not account.is_transporter:
        return account
    return replace(account, availability=Availability.ON_DELIVERY, updated_at=now)


def mark_available(account: Account, now: datetime) -> Account:
    """Release a transporter. No-op for non-transporters."""
    if not account.is_transporter:
        return account
    return replace(account, availability=Availability.AVAILABLE, updated_at=now)


def activate(account: Account, now: datetime) -> Account:
    return replace(account, active=True, updated_at=now)


def deactivate(account: Account, now: datetime) -> Account:
    return replace(account, active=False, updated_at=now)


# ============================================================================
# REQUESTS
# ============================================================================


@dataclass(frozen=True)
class PackageRequest:
    """Fields accepted when creating or updating a package."""

    type: PackageType | None
    weight: float | None
    destination_address: str | None
    handling_instructions: str | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None

    def validate(self) -> None:
        """Check field ranges and the fragile/refrigerated business rules.

        Raises:
            RequestValidationError: With one message per offending field.
        """
        errors: dict[str, str] = {}

        if self.type is None:
            errors["type"] = "Package type is required"

        if self.weight is None:
            errors["weight"] = "Weight is required"
        elif not math.isfinite(self.weight) or self.weight <= 0:
            errors["weight"] = "Weight must be positive"
        elif self.weight > MAX_WEIGHT:
            errors["weight"] = f"Weight cannot exceed {MAX_WEIGHT:g}"

        address = self.destination_address
        if address is None or not address.strip():
            errors["destinationAddress"] = "Destination address is required"
        elif not ADDRESS_MIN_LENGTH <= len(address) <= ADDRESS_MAX_LENGTH:
            errors["destinationAddress"] = (
                f"Address must contain between {ADDRESS_MIN_LENGTH} "
                f"and {ADDRESS_MAX_LENGTH} characters"
            )

        if (
            self.handling_instructions is not None
            and len(self.handling_instructions) > HANDLING_INSTRUCTIONS_MAX_LENGTH
        ):
            errors["handlingInstructions"] = (
                f"Handling instructions cannot exceed "
                f"{HANDLING_INSTRUCTIONS_MAX_LENGTH} characters"
            )

        for name, value in (
            ("minTemperature", self.min_temperature),
            ("maxTemperature", self.max_temperature),
        ):
            if value is not None and not MIN_TEMPERATURE <= value <= MAX_TEMPERATURE:
                errors[name] = (
                    f"Temperature must be between {MIN_TEMPERATURE:g} "
                    f"and {MAX_TEMPERATURE:g}"
                )

        if self.type is PackageType.FRAGILE and not (
            self.handling_instructions and self.handling_instructions.strip()
        ):
            errors.setdefault(
                "handlingInstructions",
                "Handling instructions are required for fragile packages",
            )

        if self.type is PackageType.REFRIGERATED:
            if self.min_temperature is None or self.max_temperature is None:
                errors.setdefault(
                    "temperature",
                    "Temperature range is required for refrigerated packages",
                )
            elif not _temperature_range_ok(self.min_temperature, self.max_temperature):
                errors.setdefault(
                    "temperature",
                    "Minimum temperature must be lower than maximum temperature",
                )

        if errors:
            raise RequestValidationError("Package validation failed", errors)


@dataclass(frozen=True)
class TransporterRequest:
    """Fields accepted when creating or updating a transporter account.

    `password` may be omitted on update to keep the current one.
    """

    login: str | None
    password: str | None
    specialty: Specialty | None

    def validate(self, require_password: bool = True) -> None:
        """Check login, password and specialty.

        Raises:
            RequestValidationError: With one message per offending field.
        """
        errors: dict[str, str] = {}

        if not self.login or not self.login.strip():
            errors["login"] = "Login is required"
        elif not LOGIN_PATTERN.match(self.login):
            errors["login"] = (
                "Login must be 3-50 characters of letters, numbers and underscores"
            )

        if self.password:
            if not PASSWORD_MIN_LENGTH <= len(self.password) <= PASSWORD_MAX_LENGTH:
                errors["password"] = (
                    f"Password must contain between {PASSWORD_MIN_LENGTH} "
                    f"and {PASSWORD_MAX_LENGTH} characters"
                )
        elif require_password:
            errors["password"] = "Password is required"

        if self.specialty is None:
            errors["specialty"] = "Specialty is required"

        if errors:
            raise RequestValidationError("Transporter validation failed", errors)


# ============================================================================
# QUERIES
# ============================================================================


@dataclass(frozen=True)
class PackageFilter:
    """Filter over packages. None means unrestricted on that dimension."""

    type: PackageType | None = None
    status: PackageStatus | None = None
    transporter_id: str | None = None
    address_contains: str | None = None
    unassigned: bool = False


@dataclass(frozen=True)
class AccountFilter:
    """Filter over accounts. None means unrestricted on that dimension."""

    role: Role | None = None
    specialty: Specialty | None = None
    availability: Availability | None = None
    active: bool | None = None


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page index and page size."""

    page: int = 0
    size: int = 10

    def __post_init__(self) -> None:
        if self.page < 0:
            raise RequestValidationError(
                "Invalid page request", {"page": "Page index must not be negative"}
            )
        if self.size < 1:
            raise RequestValidationError(
                "Invalid page request", {"size": "Page size must be at least 1"}
            )

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the total match count."""

    items: tuple[T, ...]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return -(-self.total // self.size)


# ============================================================================
# IDENTITY
# ============================================================================


@dataclass(frozen=True)
class Identity:
    """Caller identity resolved by the boundary from a session token."""

    account_id: str
    login: str
    role: Role


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful authentication."""

    token: str
    login: str
    role: Role
    user_id: str


@dataclass(frozen=True)
class PackageView:
    """A package together with its resolved transporter login."""

    package: Package
    transporter_login: str | None = None


__all__ = [
    "Account",
    "AccountFilter",
    "Availability",
    "Identity",
    "LoginResult",
    "Package",
    "PackageFilter",
    "PackageRequest",
    "PackageStatus",
    "PackageType",
    "PackageView",
    "Page",
    "PageRequest",
    "Role",
    "Specialty",
    "TransporterRequest",
]
