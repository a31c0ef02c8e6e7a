"""Core domain logic for the Parcel & Carrier logistics system.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    RequestValidationError,
    SpecialtyMismatchError,
    TransporterUnavailableError,
    UnauthorizedError,
)
from .models import (
    Account,
    Availability,
    Identity,
    LoginResult,
    Package,
    PackageRequest,
    PackageStatus,
    PackageType,
    PackageView,
    Page,
    PageRequest,
    Role,
    Specialty,
    TransporterRequest,
)

__all__ = [
    "Account",
    "Availability",
    "ConflictError",
    "DomainError",
    "ForbiddenError",
    "Identity",
    "InvalidArgumentError",
    "LoginResult",
    "NotFoundError",
    "Package",
    "PackageRequest",
    "PackageStatus",
    "PackageType",
    "PackageView",
    "Page",
    "PageRequest",
    "RequestValidationError",
    "Role",
    "Specialty",
    "SpecialtyMismatchError",
    "TransporterRequest",
    "TransporterUnavailableError",
    "UnauthorizedError",
]
