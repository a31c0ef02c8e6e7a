"""PostgreSQL store adapter.

Implements StorePort using PostgreSQL with asyncpg for async access.
Provides ACID guarantees with scalability for production use.

Transactions read rows with `SELECT ... FOR UPDATE`, so two transactions
touching the same package or transporter are serialized on the row lock
and the second sees the first's committed writes.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import asyncpg

from parcelcarrier.core.errors import InvalidArgumentError
from parcelcarrier.core.models import (
    Account,
    AccountFilter,
    Availability,
    Package,
    PackageFilter,
    PackageStatus,
    PackageType,
    PageRequest,
    Role,
    Specialty,
)
from parcelcarrier.core.ports import StorePort, StoreTransaction

logger = logging.getLogger(__name__)

PACKAGE_COLUMNS = (
    "id, type, weight, destination_address, status, transporter_id, "
    "handling_instructions, min_temperature, max_temperature, created_at, updated_at"
)
ACCOUNT_COLUMNS = (
    "id, login, password_hash, role, active, specialty, availability, "
    "created_at, updated_at"
)


class PostgreSQLStoreTransaction(StoreTransaction):
    """Transactional view bound to one pooled connection."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def get_package(self, package_id: str) -> Package | None:
        row = await self._conn.fetchrow(
            f"SELECT {PACKAGE_COLUMNS} FROM packages WHERE id = $1 FOR UPDATE",
            package_id,
        )
        return _row_to_package(row) if row is not None else None

    async def get_account(self, account_id: str) -> Account | None:
        row = await self._conn.fetchrow(
            f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = $1 FOR UPDATE",
            account_id,
        )
        return _row_to_account(row) if row is not None else None

    async def save_package(self, package: Package) -> None:
        await _write_package(self._conn, package)

    async def save_account(self, account: Account) -> None:
        await _write_account(self._conn, account)

    async def delete_package(self, package_id: str) -> None:
        await self._conn.execute("DELETE FROM packages WHERE id = $1", package_id)


class PostgreSQLStore(StorePort):
    """PostgreSQL-backed store with connection pooling and async access."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "parcelcarrier",
        user: str = "parcelcarrier",
        password: str = "",
        pool_size: int = 10,
    ):
        """Initialize PostgreSQL store with connection pooling.

        Args:
            host: PostgreSQL server hostname.
            port: PostgreSQL server port.
            database: Database name.
            user: Database user.
            password: Database password.
            pool_size: Number of connections to maintain in the pool.
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self._pool: asyncpg.Pool | None = None
        self._pool_size = pool_size
        self._schema_lock = asyncio.Lock()
        self._schema_initialized = False

    async def _init_pool(self) -> None:
        """Initialize the connection pool on first use."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=1,
            max_size=self._pool_size,
        )

    async def close(self) -> None:
        """Close all pooled connections."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _init_schema(self) -> None:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        Uses dedicated _schema_lock to avoid contention with pool operations.
        """
        # Check first without lock to avoid unnecessary locking
        if self._schema_initialized:
            return

        async with self._schema_lock:
            # Check again after acquiring lock to prevent race
            if self._schema_initialized:
                return

            await self._init_pool()
            assert self._pool is not None

            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS accounts (
                        id TEXT PRIMARY KEY,
                        login TEXT UNIQUE NOT NULL,
                        password_hash TEXT NOT NULL,
                        role TEXT NOT NULL,
                        active BOOLEAN NOT NULL DEFAULT TRUE,
                        specialty TEXT,
                        availability TEXT,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS packages (
                        id TEXT PRIMARY KEY,
                        type TEXT NOT NULL,
                        weight DOUBLE PRECISION NOT NULL,
                        destination_address TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'PENDING',
                        transporter_id TEXT,
                        handling_instructions TEXT,
                        min_temperature DOUBLE PRECISION,
                        max_temperature DOUBLE PRECISION,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )

                # Create indexes
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_packages_status ON packages(status)"
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_packages_type ON packages(type)"
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_packages_transporter "
                    "ON packages(transporter_id)"
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_accounts_role ON accounts(role)"
                )

                self._schema_initialized = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        await self._init_schema()
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        """Open a transaction on a dedicated pooled connection."""
        async with self._connection() as conn:
            async with conn.transaction():
                yield PostgreSQLStoreTransaction(conn)

    async def get_package(self, package_id: str) -> Package | None:
        """Look up a package by its ID."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {PACKAGE_COLUMNS} FROM packages WHERE id = $1", package_id
            )
            return _row_to_package(row) if row is not None else None

    async def get_account(self, account_id: str) -> Account | None:
        """Look up an account by its ID."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = $1", account_id
            )
            return _row_to_account(row) if row is not None else None

    async def get_account_by_login(self, login: str) -> Account | None:
        """Look up an account by its login."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE login = $1", login
            )
            return _row_to_account(row) if row is not None else None

    async def login_exists(self, login: str) -> bool:
        async with self._connection() as conn:
            return await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM accounts WHERE login = $1)", login
            )

    async def create_package(self, package: Package) -> None:
        async with self._connection() as conn:
            await conn.execute(
                f"INSERT INTO packages ({PACKAGE_COLUMNS}) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)",
                *_package_params(package),
            )

    async def create_account(self, account: Account) -> None:
        async with self._connection() as conn:
            try:
                await conn.execute(
                    f"INSERT INTO accounts ({ACCOUNT_COLUMNS}) "
                    "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)",
                    *_account_params(account),
                )
            except asyncpg.UniqueViolationError as e:
                raise InvalidArgumentError(f"Login already exists: {account.login}") from e

    async def save_package(self, package: Package) -> None:
        async with self._connection() as conn:
            await _write_package(conn, package)

    async def save_account(self, account: Account) -> None:
        async with self._connection() as conn:
            await _write_account(conn, account)

    async def delete_package(self, package_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute("DELETE FROM packages WHERE id = $1", package_id)

    async def query_packages(
        self, package_filter: PackageFilter, page: PageRequest
    ) -> tuple[list[Package], int]:
        """Filtered, paginated packages ordered by created_at then id."""
        clauses: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if package_filter.type is not None:
            clauses.append(f"type = {bind(package_filter.type.value)}")
        if package_filter.status is not None:
            clauses.append(f"status = {bind(package_filter.status.value)}")
        if package_filter.transporter_id is not None:
            clauses.append(f"transporter_id = {bind(package_filter.transporter_id)}")
        if package_filter.unassigned:
            clauses.append("(transporter_id IS NULL OR transporter_id = '')")
        if package_filter.address_contains:
            clauses.append(
                f"strpos(lower(destination_address), "
                f"lower({bind(package_filter.address_contains)})) > 0"
            )

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM packages {where}", *params)
            rows = await conn.fetch(
                f"SELECT {PACKAGE_COLUMNS} FROM packages {where} "
                f"ORDER BY created_at, id LIMIT {bind(page.size)} OFFSET {bind(page.offset)}",
                *params,
            )
            return [_row_to_package(row) for row in rows], total

    async def query_accounts(
        self, account_filter: AccountFilter, page: PageRequest
    ) -> tuple[list[Account], int]:
        """Filtered, paginated accounts ordered by created_at then id."""
        clauses: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if account_filter.role is not None:
            clauses.append(f"role = {bind(account_filter.role.value)}")
        if account_filter.specialty is not None:
            clauses.append(f"specialty = {bind(account_filter.specialty.value)}")
        if account_filter.availability is not None:
            clauses.append(f"availability = {bind(account_filter.availability.value)}")
        if account_filter.active is not None:
            clauses.append(f"active = {bind(account_filter.active)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM accounts {where}", *params)
            rows = await conn.fetch(
                f"SELECT {ACCOUNT_COLUMNS} FROM accounts {where} "
                f"ORDER BY created_at, id LIMIT {bind(page.size)} OFFSET {bind(page.offset)}",
                *params,
            )
            return [_row_to_account(row) for row in rows], total


async def _write_package(conn: asyncpg.Connection, package: Package) -> None:
    await conn.execute(
        """
        UPDATE packages SET
            type = $2, weight = $3, destination_address = $4, status = $5,
            transporter_id = $6, handling_instructions = $7, min_temperature = $8,
            max_temperature = $9, created_at = $10, updated_at = $11
        WHERE id = $1
        """,
        *_package_params(package),
    )


async def _write_account(conn: asyncpg.Connection, account: Account) -> None:
    try:
        await conn.execute(
            """
            UPDATE accounts SET
                login = $2, password_hash = $3, role = $4, active = $5, specialty = $6,
                availability = $7, created_at = $8, updated_at = $9
            WHERE id = $1
            """,
            *_account_params(account),
        )
    except asyncpg.UniqueViolationError as e:
        raise InvalidArgumentError(f"Login already exists: {account.login}") from e


def _package_params(package: Package) -> tuple[Any, ...]:
    return (
        package.id,
        package.type.value,
        package.weight,
        package.destination_address,
        package.status.value,
        package.transporter_id,
        package.handling_instructions,
        package.min_temperature,
        package.max_temperature,
        package.created_at,
        package.updated_at,
    )


def _account_params(account: Account) -> tuple[Any, ...]:
    return (
        account.id,
        account.login,
        account.password_hash,
        account.role.value,
        account.active,
        account.specialty.value if account.specialty else None,
        account.availability.value if account.availability else None,
        account.created_at,
        account.updated_at,
    )


def _row_to_package(row: Mapping[str, Any]) -> Package:
    """Convert an asyncpg record to a Package.

    Raises:
        ValueError: If the record contains invalid data.
    """
    try:
        return Package(
            id=row["id"],
            type=PackageType(row["type"]),
            weight=float(row["weight"]),
            destination_address=row["destination_address"],
            status=PackageStatus(row["status"]),
            transporter_id=row["transporter_id"] or None,
            handling_instructions=row["handling_instructions"],
            min_temperature=row["min_temperature"],
            max_temperature=row["max_temperature"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
    except (KeyError, ValueError, TypeError) as e:
        logger.error(f"Failed to parse package row: {e}")
        raise ValueError(f"Row parsing failed: {e}") from e


def _row_to_account(row: Mapping[str, Any]) -> Account:
    """Convert an asyncpg record to an Account.

    Raises:
        ValueError: If the record contains invalid data.
    """
    try:
        return Account(
            id=row["id"],
            login=row["login"],
            password_hash=row["password_hash"],
            role=Role(row["role"]),
            active=bool(row["active"]),
            specialty=Specialty(row["specialty"]) if row["specialty"] else None,
            availability=(
                Availability(row["availability"]) if row["availability"] else None
            ),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
    except (KeyError, ValueError, TypeError) as e:
        logger.error(f"Failed to parse account row: {e}")
        raise ValueError(f"Row parsing failed: {e}") from e
