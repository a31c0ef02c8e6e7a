"""SQLite store adapter.

Implements StorePort using SQLite with aiosqlite for async access.
Provides ACID guarantees for package and account state with zero
operational overhead.

Connections run in autocommit mode; multi-entity updates open an explicit
`BEGIN IMMEDIATE` transaction, which takes the database write lock up
front. A second transaction waits for the first to commit and then reads
the committed state, so check-then-write sequences cannot interleave.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

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


class SQLiteStoreTransaction(StoreTransaction):
    """Transactional view bound to one connection inside BEGIN IMMEDIATE."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def get_package(self, package_id: str) -> Package | None:
        return await _fetch_package(self._conn, package_id)

    async def get_account(self, account_id: str) -> Account | None:
        return await _fetch_account(self._conn, account_id)

    async def save_package(self, package: Package) -> None:
        await _write_package(self._conn, package)

    async def save_account(self, account: Account) -> None:
        await _write_account(self._conn, account)

    async def delete_package(self, package_id: str) -> None:
        await self._conn.execute("DELETE FROM packages WHERE id = ?", (package_id,))


class SQLiteStore(StorePort):
    """SQLite-backed store with connection pooling and async access."""

    def __init__(self, db_path: str, pool_size: int = 5, busy_timeout: float = 30.0):
        """Initialize SQLite store with connection pooling.

        Args:
            db_path: Path to SQLite database file.
            pool_size: Number of connections to maintain in the pool.
            busy_timeout: Seconds a connection waits for the write lock.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool: list[aiosqlite.Connection] = []
        self._pool_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()
        self._pool_size = pool_size
        self._busy_timeout = busy_timeout
        self._schema_initialized = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        conn = await aiosqlite.connect(
            str(self.db_path), timeout=self._busy_timeout, isolation_level=None
        )
        await conn.execute("PRAGMA journal_mode = WAL")
        return conn

    async def _return_connection(self, conn: aiosqlite.Connection) -> None:
        """Return a connection to the pool."""
        async with self._pool_lock:
            if len(self._pool) < self._pool_size:
                self._pool.append(conn)
                return
        await conn.close()

    async def close(self) -> None:
        """Close all pooled connections."""
        async with self._pool_lock:
            for conn in self._pool:
                await conn.close()
            self._pool.clear()

    async def _init_schema(self) -> None:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        """
        if self._schema_initialized:
            return

        async with self._schema_lock:
            # Check again after acquiring lock to prevent race
            if self._schema_initialized:
                return

            conn = await self._get_connection()
            try:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS accounts (
                        id TEXT PRIMARY KEY,
                        login TEXT UNIQUE NOT NULL,
                        password_hash TEXT NOT NULL,
                        role TEXT NOT NULL,
                        active INTEGER NOT NULL DEFAULT 1,
                        specialty TEXT,
                        availability TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS packages (
                        id TEXT PRIMARY KEY,
                        type TEXT NOT NULL,
                        weight REAL NOT NULL,
                        destination_address TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'PENDING',
                        transporter_id TEXT,
                        handling_instructions TEXT,
                        min_temperature REAL,
                        max_temperature REAL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                # Index for common queries
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
            finally:
                await self._return_connection(conn)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self._init_schema()
        conn = await self._get_connection()
        try:
            yield conn
        finally:
            await self._return_connection(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        """Open a BEGIN IMMEDIATE transaction on a dedicated connection."""
        async with self._connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield SQLiteStoreTransaction(conn)
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    async def get_package(self, package_id: str) -> Package | None:
        """Look up a package by its ID."""
        async with self._connection() as conn:
            return await _fetch_package(conn, package_id)

    async def get_account(self, account_id: str) -> Account | None:
        """Look up an account by its ID."""
        async with self._connection() as conn:
            return await _fetch_account(conn, account_id)

    async def get_account_by_login(self, login: str) -> Account | None:
        """Look up an account by its login."""
        async with self._connection() as conn:
            cursor = await conn.execute(
                f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE login = ?", (login,)
            )
            row = await cursor.fetchone()
            return _row_to_account(row) if row is not None else None

    async def login_exists(self, login: str) -> bool:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT 1 FROM accounts WHERE login = ?", (login,)
            )
            return await cursor.fetchone() is not None

    async def create_package(self, package: Package) -> None:
        async with self._connection() as conn:
            await conn.execute(
                f"INSERT INTO packages ({PACKAGE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _package_params(package),
            )

    async def create_account(self, account: Account) -> None:
        async with self._connection() as conn:
            try:
                await conn.execute(
                    f"INSERT INTO accounts ({ACCOUNT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    _account_params(account),
                )
            except aiosqlite.IntegrityError as e:
                raise InvalidArgumentError(f"Login already exists: {account.login}") from e

    async def save_package(self, package: Package) -> None:
        async with self._connection() as conn:
            await _write_package(conn, package)

    async def save_account(self, account: Account) -> None:
        async with self._connection() as conn:
            await _write_account(conn, account)

    async def delete_package(self, package_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute("DELETE FROM packages WHERE id = ?", (package_id,))

    async def query_packages(
        self, package_filter: PackageFilter, page: PageRequest
    ) -> tuple[list[Package], int]:
        """Filtered, paginated packages ordered by created_at then id."""
        clauses: list[str] = []
        params: list[Any] = []
        if package_filter.type is not None:
            clauses.append("type = ?")
            params.append(package_filter.type.value)
        if package_filter.status is not None:
            clauses.append("status = ?")
            params.append(package_filter.status.value)
        if package_filter.transporter_id is not None:
            clauses.append("transporter_id = ?")
            params.append(package_filter.transporter_id)
        if package_filter.unassigned:
            clauses.append("(transporter_id IS NULL OR transporter_id = '')")
        if package_filter.address_contains:
            clauses.append("instr(lower(destination_address), lower(?)) > 0")
            params.append(package_filter.address_contains)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM packages {where}", params)
            total = (await cursor.fetchone())[0]

            cursor = await conn.execute(
                f"SELECT {PACKAGE_COLUMNS} FROM packages {where} "
                "ORDER BY created_at, id LIMIT ? OFFSET ?",
                [*params, page.size, page.offset],
            )
            rows = await cursor.fetchall()
            return [_row_to_package(row) for row in rows], total

    async def query_accounts(
        self, account_filter: AccountFilter, page: PageRequest
    ) -> tuple[list[Account], int]:
        """Filtered, paginated accounts ordered by created_at then id."""
        clauses: list[str] = []
        params: list[Any] = []
        if account_filter.role is not None:
            clauses.append("role = ?")
            params.append(account_filter.role.value)
        if account_filter.specialty is not None:
            clauses.append("specialty = ?")
            params.append(account_filter.specialty.value)
        if account_filter.availability is not None:
            clauses.append("availability = ?")
            params.append(account_filter.availability.value)
        if account_filter.active is not None:
            clauses.append("active = ?")
            params.append(1 if account_filter.active else 0)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM accounts {where}", params)
            total = (await cursor.fetchone())[0]

            cursor = await conn.execute(
                f"SELECT {ACCOUNT_COLUMNS} FROM accounts {where} "
                "ORDER BY created_at, id LIMIT ? OFFSET ?",
                [*params, page.size, page.offset],
            )
            rows = await cursor.fetchall()
            return [_row_to_account(row) for row in rows], total


# ============================================================================
# Row helpers (shared by the store and its transactions)
# ============================================================================


async def _fetch_package(conn: aiosqlite.Connection, package_id: str) -> Package | None:
    cursor = await conn.execute(
        f"SELECT {PACKAGE_COLUMNS} FROM packages WHERE id = ?", (package_id,)
    )
    row = await cursor.fetchone()
    return _row_to_package(row) if row is not None else None


async def _fetch_account(conn: aiosqlite.Connection, account_id: str) -> Account | None:
    cursor = await conn.execute(
        f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = ?", (account_id,)
    )
    row = await cursor.fetchone()
    return _row_to_account(row) if row is not None else None


async def _write_package(conn: aiosqlite.Connection, package: Package) -> None:
    params = _package_params(package)
    await conn.execute(
        """
        UPDATE packages SET
            type = ?, weight = ?, destination_address = ?, status = ?,
            transporter_id = ?, handling_instructions = ?, min_temperature = ?,
            max_temperature = ?, created_at = ?, updated_at = ?
        WHERE id = ?
        """,
        (*params[1:], params[0]),
    )


async def _write_account(conn: aiosqlite.Connection, account: Account) -> None:
    params = _account_params(account)
    try:
        await conn.execute(
            """
            UPDATE accounts SET
                login = ?, password_hash = ?, role = ?, active = ?, specialty = ?,
                availability = ?, created_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (*params[1:], params[0]),
        )
    except aiosqlite.IntegrityError as e:
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
        package.created_at.isoformat(),
        package.updated_at.isoformat(),
    )


def _account_params(account: Account) -> tuple[Any, ...]:
    return (
        account.id,
        account.login,
        account.password_hash,
        account.role.value,
        1 if account.active else 0,
        account.specialty.value if account.specialty else None,
        account.availability.value if account.availability else None,
        account.created_at.isoformat(),
        account.updated_at.isoformat(),
    )


def _row_to_package(row: tuple[Any, ...]) -> Package:
    """Convert a database row to a Package.

    Raises:
        ValueError: If the row is malformed or contains invalid data.
    """
    try:
        (
            package_id,
            package_type,
            weight,
            destination_address,
            status,
            transporter_id,
            handling_instructions,
            min_temperature,
            max_temperature,
            created_at,
            updated_at,
        ) = row
        return Package(
            id=package_id,
            type=PackageType(package_type),
            weight=float(weight),
            destination_address=destination_address,
            status=PackageStatus(status),
            transporter_id=transporter_id or None,
            handling_instructions=handling_instructions,
            min_temperature=min_temperature,
            max_temperature=max_temperature,
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )
    except (ValueError, TypeError) as e:
        logger.error(f"Failed to parse package row: {e}")
        raise ValueError(f"Row parsing failed: {e}") from e


def _row_to_account(row: tuple[Any, ...]) -> Account:
    """Convert a database row to an Account.

    Raises:
        ValueError: If the row is malformed or contains invalid data.
    """
    try:
        (
            account_id,
            login,
            password_hash,
            role,
            active,
            specialty,
            availability,
            created_at,
            updated_at,
        ) = row
        return Account(
            id=account_id,
            login=login,
            password_hash=password_hash,
            role=Role(role),
            active=bool(active),
            specialty=Specialty(specialty) if specialty else None,
            availability=Availability(availability) if availability else None,
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )
    except (ValueError, TypeError) as e:
        logger.error(f"Failed to parse account row: {e}")
        raise ValueError(f"Row parsing failed: {e}") from e
