"""Port interfaces for the Parcel & Carrier logistics system.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - StorePort: Persist and query packages and accounts
   - StoreTransaction: Atomic multi-entity read-modify-write
   - PasswordHasherPort: Hash and verify credentials
   - TokenPort: Issue and verify signed session tokens

2. **Driving Ports** (adapters/external systems call into core)
   - AssignmentPort: Hand a package to a transporter
   - LifecyclePort: Change package status
   - QueryPort: Filtered, paginated read views
   - SessionPort: Authenticate and resolve identities
   - PackageManagementPort: Create, update, delete packages
   - TransporterManagementPort: Manage transporter accounts
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from .models import (
    Account,
    AccountFilter,
    Availability,
    Identity,
    LoginResult,
    Package,
    PackageFilter,
    PackageRequest,
    PackageStatus,
    PackageType,
    PackageView,
    Page,
    PageRequest,
    Specialty,
    TransporterRequest,
)


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class StoreTransaction(ABC):
    """Transactional view over the store.

    Obtained from StorePort.transaction(). Reads take whatever lock the
    backend needs so that a read followed by a write of the same entity
    cannot interleave with another transaction. All writes become visible
    together when the transaction commits, or not at all.
    """

    @abstractmethod
    async def get_package(self, package_id: str) -> Package | None:
        """Read a package for update."""

    @abstractmethod
    async def get_account(self, account_id: str) -> Account | None:
        """Read an account for update."""

    @abstractmethod
    async def save_package(self, package: Package) -> None:
        """Write an existing package."""

    @abstractmethod
    async def save_account(self, account: Account) -> None:
        """Write an existing account."""

    @abstractmethod
    async def delete_package(self, package_id: str) -> None:
        """Remove a package."""


class StorePort(ABC):
    """Port for persisting and querying packages and accounts.

    Adapters implementing this port should provide ACID-compliant storage
    with support for filtered, paginated queries.

    Implementations must handle:
    - Concurrent read/write access
    - Transaction support (for atomic multi-entity updates)
    - Stable ordering for pagination (created_at, then id)
    - Unique logins
    """

    @abstractmethod
    async def get_package(self, package_id: str) -> Package | None:
        """Retrieve a package by ID.

        Returns:
            Package if found, None otherwise.

        Raises:
            Exception: If the database is unavailable.
        """

    @abstractmethod
    async def get_account(self, account_id: str) -> Account | None:
        """Retrieve an account by ID.

        Returns:
            Account if found, None otherwise.
        """

    @abstractmethod
    async def get_account_by_login(self, login: str) -> Account | None:
        """Retrieve an account by its unique login."""

    @abstractmethod
    async def login_exists(self, login: str) -> bool:
        """Check whether a login is already taken."""

    @abstractmethod
    async def create_package(self, package: Package) -> None:
        """Persist a new package.

        Raises:
            Exception: If a package with the same ID exists.
        """

    @abstractmethod
    async def create_account(self, account: Account) -> None:
        """Persist a new account.

        Raises:
            InvalidArgumentError: If the login is already taken.
        """

    @abstractmethod
    async def save_package(self, package: Package) -> None:
        """Overwrite an existing package."""

    @abstractmethod
    async def save_account(self, account: Account) -> None:
        """Overwrite an existing account.

        Raises:
            InvalidArgumentError: If the new login collides with another account.
        """

    @abstractmethod
    async def delete_package(self, package_id: str) -> None:
        """Delete a package by ID."""

    @abstractmethod
    async def query_packages(
        self, package_filter: PackageFilter, page: PageRequest
    ) -> tuple[list[Package], int]:
        """Query packages with optional filters.

        Args:
            package_filter: Restrictions to apply. `address_contains` is a
                case-insensitive substring match; `unassigned` restricts to
                packages without a transporter.
            page: Page index and size.

        Returns:
            Tuple of (package_list, total_count). total_count is the number
            of matches before pagination.
        """

    @abstractmethod
    async def query_accounts(
        self, account_filter: AccountFilter, page: PageRequest
    ) -> tuple[list[Account], int]:
        """Query accounts with optional filters.

        Returns:
            Tuple of (account_list, total_count).
        """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a transaction.

        Usage::

            async with store.transaction() as tx:
                package = await tx.get_package(package_id)
                ...
                await tx.save_package(updated)

        Commits when the block exits normally and rolls back when it
        raises. The exception is re-raised.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release connections held by the store."""


class PasswordHasherPort(ABC):
    """Port for one-way credential hashing."""

    @abstractmethod
    def hash(self, plaintext: str) -> str:
        """Return a self-describing digest of the plaintext."""

    @abstractmethod
    def verify(self, plaintext: str, digest: str) -> bool:
        """Check plaintext against a digest produced by hash().

        Returns False for malformed digests rather than raising.
        """


class TokenPort(ABC):
    """Port for issuing and verifying signed session tokens."""

    @abstractmethod
    def issue(self, subject: str, claims: dict[str, Any], ttl_seconds: int) -> str:
        """Issue a signed token.

        Args:
            subject: Token subject (the account login).
            claims: Additional claims to embed.
            ttl_seconds: Lifetime of the token.
        """

    @abstractmethod
    def verify(self, token: str) -> dict[str, Any] | None:
        """Verify signature, issuer and expiry.

        Returns:
            The decoded claims, or None if the token is invalid for any reason.
        """


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class AssignmentPort(ABC):
    """Port for assigning packages to transporters."""

    @abstractmethod
    async def assign(self, package_id: str, transporter_id: str) -> Package:
        """Assign a pending package to an available transporter.

        Raises:
            NotFoundError: Package or account missing.
            InvalidArgumentError: Account is not a transporter.
            ConflictError: Package is not PENDING.
            SpecialtyMismatchError: Specialty does not cover the package type.
            TransporterUnavailableError: Transporter inactive or on delivery.
        """


class LifecyclePort(ABC):
    """Port for package status changes."""

    @abstractmethod
    async def change_status(
        self, package_id: str, new_status: PackageStatus | None
    ) -> Package:
        """Change the status of any package (privileged).

        Raises:
            NotFoundError: Package missing.
            InvalidArgumentError: new_status is None.
        """

    @abstractmethod
    async def change_own_status(
        self, package_id: str, caller_id: str, new_status: PackageStatus | None
    ) -> Package:
        """Change the status of a package assigned to the caller.

        Raises:
            NotFoundError: Package missing.
            InvalidArgumentError: Caller is not the assigned transporter,
                or new_status is None.
        """


class QueryPort(ABC):
    """Port for read-only, paginated views."""

    @abstractmethod
    async def list_packages(
        self,
        page: PageRequest,
        package_type: PackageType | None = None,
        status: PackageStatus | None = None,
    ) -> Page[PackageView]:
        """All packages, filtered by type and/or status."""

    @abstractmethod
    async def search_packages_by_address(
        self, address: str, page: PageRequest
    ) -> Page[PackageView]:
        """Packages whose destination contains `address`, case-insensitively."""

    @abstractmethod
    async def list_transporter_packages(
        self,
        transporter_id: str,
        page: PageRequest,
        status: PackageStatus | None = None,
    ) -> Page[PackageView]:
        """Packages assigned to a transporter, optionally by status."""

    @abstractmethod
    async def search_transporter_packages(
        self, transporter_id: str, address: str, page: PageRequest
    ) -> Page[PackageView]:
        """A transporter's packages filtered by address substring."""

    @abstractmethod
    async def list_unassigned_packages(
        self, page: PageRequest, status: PackageStatus | None = None
    ) -> Page[PackageView]:
        """Packages with no transporter, optionally by status."""

    @abstractmethod
    async def list_users(
        self, page: PageRequest, active: bool | None = None
    ) -> Page[Account]:
        """All accounts, optionally by active flag."""

    @abstractmethod
    async def list_transporters(
        self,
        page: PageRequest,
        specialty: Specialty | None = None,
        availability: Availability | None = None,
        active: bool | None = None,
    ) -> Page[Account]:
        """Transporter accounts filtered by specialty/availability/active."""


class SessionPort(ABC):
    """Port for authentication and identity resolution."""

    @abstractmethod
    async def authenticate(self, login: str, password: str) -> LoginResult:
        """Authenticate credentials and issue a session token.

        Raises:
            UnauthorizedError: Unknown login, wrong password, or
                deactivated account.
        """

    @abstractmethod
    def resolve_identity(self, token: str | None) -> Identity | None:
        """Resolve a bearer token to an identity, or None if invalid."""


class PackageManagementPort(ABC):
    """Port for administrative package operations."""

    @abstractmethod
    async def create_package(self, request: PackageRequest) -> PackageView:
        """Validate and persist a new PENDING package.

        Raises:
            RequestValidationError: Invalid fields or business rules.
        """

    @abstractmethod
    async def update_package(
        self, package_id: str, request: PackageRequest
    ) -> PackageView:
        """Validate and apply new field values; status and assignment are kept.

        Raises:
            NotFoundError: Package missing.
            RequestValidationError: Invalid fields, or an attempt to change type.
        """

    @abstractmethod
    async def delete_package(self, package_id: str) -> None:
        """Delete a package, releasing its transporter first.

        Raises:
            NotFoundError: Package missing.
        """

    @abstractmethod
    async def get_package(self, package_id: str) -> PackageView:
        """Fetch a single package.

        Raises:
            NotFoundError: Package missing.
        """


class TransporterManagementPort(ABC):
    """Port for administrative account operations."""

    @abstractmethod
    async def create_transporter(self, request: TransporterRequest) -> Account:
        """Create an active, available transporter.

        Raises:
            RequestValidationError: Invalid fields.
            InvalidArgumentError: Login already exists.
        """

    @abstractmethod
    async def update_transporter(
        self, transporter_id: str, request: TransporterRequest
    ) -> Account:
        """Update login, specialty and (optionally) password.

        Raises:
            NotFoundError: Account missing.
            InvalidArgumentError: Not a transporter, or login taken.
        """

    @abstractmethod
    async def deactivate_transporter(self, transporter_id: str) -> Account:
        """Soft-delete a transporter.

        Raises:
            NotFoundError: Account missing.
            InvalidArgumentError: Not a transporter.
        """

    @abstractmethod
    async def activate_account(self, account_id: str) -> Account:
        """Re-activate any account.

        Raises:
            NotFoundError: Account missing.
        """
