"""Error taxonomy for the Parcel & Carrier core.

Every failure the core reports is a subclass of DomainError. The HTTP
boundary maps each kind to a status code; the core never deals in
transport concerns.
"""

from collections.abc import Mapping
from types import MappingProxyType


class DomainError(Exception):
    """Base class for all typed core failures."""


class NotFoundError(DomainError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found with id: {entity_id}")


class UnauthorizedError(DomainError):
    """Bad or missing credentials, or a deactivated account."""


class ForbiddenError(DomainError):
    """The caller's role lacks permission for the operation."""


class InvalidArgumentError(DomainError, ValueError):
    """An argument is well-formed but not acceptable in context.

    Raised for a missing status, a non-transporter target, a caller that
    does not own the package, or a duplicate login.
    """


class ConflictError(DomainError):
    """The current state disallows the requested transition."""


class SpecialtyMismatchError(ConflictError):
    """A transporter's specialty does not cover the package type."""

    def __init__(self, package_type: str, specialty: str | None):
        self.package_type = package_type
        self.specialty = specialty
        super().__init__(
            f"Transporter specialty {specialty} is not compatible "
            f"with package type {package_type}"
        )


class TransporterUnavailableError(ConflictError):
    """A transporter cannot take a new package right now."""

    def __init__(self, transporter_id: str, availability: str | None, active: bool = True):
        self.transporter_id = transporter_id
        self.availability = availability
        self.active = active
        reason = availability if active else "deactivated"
        super().__init__(
            f"Transporter {transporter_id} is not available (status: {reason})"
        )


class RequestValidationError(DomainError, ValueError):
    """Malformed or out-of-range input, including business-rule checks.

    `errors` maps a field name to a human-readable message.
    """

    def __init__(self, message: str, errors: Mapping[str, str] | None = None):
        self.errors: Mapping[str, str] = MappingProxyType(dict(errors or {}))
        super().__init__(message)


__all__ = [
    "ConflictError",
    "DomainError",
    "ForbiddenError",
    "InvalidArgumentError",
    "NotFoundError",
    "RequestValidationError",
    "SpecialtyMismatchError",
    "TransporterUnavailableError",
    "UnauthorizedError",
]
