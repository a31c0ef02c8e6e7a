"""Query service: implements QueryPort.

Read-only, paginated projections over packages and accounts. No query
mutates state. Package results carry the login of their transporter,
resolved with an explicit lookup per distinct transporter id.
"""

import logging
from collections.abc import Iterable

from .models import (
    Account,
    AccountFilter,
    Availability,
    Package,
    PackageFilter,
    PackageStatus,
    PackageType,
    PackageView,
    Page,
    PageRequest,
    Role,
    Specialty,
)
from .ports import QueryPort, StorePort

logger = logging.getLogger(__name__)


async def build_views(store: StorePort, packages: Iterable[Package]) -> list[PackageView]:
    """Attach transporter logins to packages.

    A transporter id that no longer resolves yields a view without a login.
    """
    packages = list(packages)
    logins: dict[str, str | None] = {}
    for package in packages:
        tid = package.transporter_id
        if tid and tid not in logins:
            account = await store.get_account(tid)
            logins[tid] = account.login if account else None

    return [
        PackageView(
            package=package,
            transporter_login=logins.get(package.transporter_id) if package.transporter_id else None,
        )
        for package in packages
    ]


class QueryService(QueryPort):
    """Core implementation of QueryPort."""

    def __init__(self, store: StorePort, max_page_size: int = 100):
        """Initialize the query service.

        Args:
            store: StorePort implementation for persistence.
            max_page_size: Upper bound applied to every requested page size.
        """
        self.store = store
        self.max_page_size = max_page_size

    def _clamp(self, page: PageRequest) -> PageRequest:
        if page.size > self.max_page_size:
            return PageRequest(page=page.page, size=self.max_page_size)
        return page

    async def _packages(
        self, package_filter: PackageFilter, page: PageRequest
    ) -> Page[PackageView]:
        page = self._clamp(page)
        packages, total = await self.store.query_packages(package_filter, page)
        views = await build_views(self.store, packages)
        logger.debug(
            "Queried packages",
            extra={"filter": package_filter, "page": page.page, "total": total},
        )
        return Page(items=tuple(views), page=page.page, size=page.size, total=total)

    async def _accounts(
        self, account_filter: AccountFilter, page: PageRequest
    ) -> Page[Account]:
        page = self._clamp(page)
        accounts, total = await self.store.query_accounts(account_filter, page)
        logger.debug(
            "Queried accounts",
            extra={"filter": account_filter, "page": page.page, "total": total},
        )
        return Page(items=tuple(accounts), page=page.page, size=page.size, total=total)

    async def list_packages(
        self,
        page: PageRequest,
        package_type: PackageType | None = None,
        status: PackageStatus | None = None,
    ) -> Page[PackageView]:
        return await self._packages(PackageFilter(type=package_type, status=status), page)

    async def search_packages_by_address(
        self, address: str, page: PageRequest
    ) -> Page[PackageView]:
        return await self._packages(PackageFilter(address_contains=address), page)

    async def list_transporter_packages(
        self,
        transporter_id: str,
        page: PageRequest,
        status: PackageStatus | None = None,
    ) -> Page[PackageView]:
        return await self._packages(
            PackageFilter(transporter_id=transporter_id, status=status), page
        )

    async def search_transporter_packages(
        self, transporter_id: str, address: str, page: PageRequest
    ) -> Page[PackageView]:
        return await self._packages(
            PackageFilter(transporter_id=transporter_id, address_contains=address), page
        )

    async def list_unassigned_packages(
        self, page: PageRequest, status: PackageStatus | None = None
    ) -> Page[PackageView]:
        return await self._packages(PackageFilter(unassigned=True, status=status), page)

    async def list_users(
        self, page: PageRequest, active: bool | None = None
    ) -> Page[Account]:
        return await self._accounts(AccountFilter(active=active), page)

    async def list_transporters(
        self,
        page: PageRequest,
        specialty: Specialty | None = None,
        availability: Availability | None = None,
        active: bool | None = None,
    ) -> Page[Account]:
        return await self._accounts(
            AccountFilter(
                role=Role.TRANSPORTER,
                specialty=specialty,
                availability=availability,
                active=active,
            ),
            page,
        )
