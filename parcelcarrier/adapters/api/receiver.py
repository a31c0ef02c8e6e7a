"""HTTP API receiver.

Transport-independent request dispatcher: resolves the caller identity
from the bearer token, enforces each route's role requirement, parses
path/query/body values into core types, invokes the driving ports, and
serializes the result.

Every DomainError is mapped to a status code and a uniform error body:
    {"status", "error", "message", "timestamp", "path", ["errors"]}
"""

import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from http import HTTPStatus
from typing import Any, TypeVar

from parcelcarrier.core.errors import (
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
from parcelcarrier.core.models import (
    Account,
    Availability,
    Identity,
    LoginResult,
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
from parcelcarrier.core.ports import (
    AssignmentPort,
    LifecyclePort,
    PackageManagementPort,
    QueryPort,
    SessionPort,
    TransporterManagementPort,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class ApiRequest:
    """A parsed HTTP request."""

    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    body: Any = None
    authorization: str | None = None


@dataclass(frozen=True)
class ApiResponse:
    """Status code and JSON-serializable body (None for no content)."""

    status: int
    body: Any = None


@dataclass(frozen=True)
class _Call:
    request: ApiRequest
    params: dict[str, str]
    identity: Identity | None


Handler = Callable[[_Call], Awaitable[ApiResponse]]


# ============================================================================
# Serialization
# ============================================================================


def _iso(value: datetime) -> str:
    return value.isoformat()


def package_to_dict(view: PackageView) -> dict[str, Any]:
    """PackageResponse fields."""
    package = view.package
    return {
        "id": package.id,
        "type": package.type.value,
        "weight": package.weight,
        "destinationAddress": package.destination_address,
        "status": package.status.value,
        "transporterId": package.transporter_id,
        "transporterLogin": view.transporter_login,
        "handlingInstructions": package.handling_instructions,
        "minTemperature": package.min_temperature,
        "maxTemperature": package.max_temperature,
        "createdAt": _iso(package.created_at),
        "updatedAt": _iso(package.updated_at),
    }


def account_to_dict(account: Account) -> dict[str, Any]:
    """UserResponse fields. The password hash is never included."""
    return {
        "id": account.id,
        "login": account.login,
        "role": account.role.value,
        "active": account.active,
        "specialty": account.specialty.value if account.specialty else None,
        "status": account.availability.value if account.availability else None,
        "createdAt": _iso(account.created_at),
        "updatedAt": _iso(account.updated_at),
    }


def login_to_dict(result: LoginResult) -> dict[str, Any]:
    """LoginResponse fields."""
    return {
        "token": result.token,
        "login": result.login,
        "role": result.role.value,
        "userId": result.user_id,
    }


def page_to_dict(page: Page, item_to_dict: Callable[[Any], dict[str, Any]]) -> dict[str, Any]:
    return {
        "content": [item_to_dict(item) for item in page.items],
        "page": page.page,
        "size": page.size,
        "totalElements": page.total,
        "totalPages": page.total_pages,
    }


# ============================================================================
# Parsing
# ============================================================================


def _parse_enum(enum_type: type[E], value: Any, name: str) -> E | None:
    if value is None or value == "":
        return None
    try:
        return enum_type(str(value).upper())
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_type)
        raise RequestValidationError(
            f"Invalid value for {name}", {name: f"Must be one of: {allowed}"}
        ) from e


def _parse_bool(value: str | None, name: str) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise RequestValidationError(f"Invalid value for {name}", {name: "Must be true or false"})


def _parse_int(value: str | None, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise RequestValidationError(
            f"Invalid value for {name}", {name: "Must be an integer"}
        ) from e


def _parse_number(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise RequestValidationError(f"Invalid value for {name}", {name: "Must be a number"})
    if not math.isfinite(value):
        raise RequestValidationError(f"Invalid value for {name}", {name: "Must be finite"})
    return float(value)


def _parse_text(value: Any, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise RequestValidationError(f"Invalid value for {name}", {name: "Must be a string"})
    return value


def _body(request: ApiRequest) -> dict[str, Any]:
    if request.body is None:
        return {}
    if not isinstance(request.body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return request.body


def _package_request(body: dict[str, Any]) -> PackageRequest:
    return PackageRequest(
        type=_parse_enum(PackageType, body.get("type"), "type"),
        weight=_parse_number(body.get("weight"), "weight"),
        destination_address=_parse_text(body.get("destinationAddress"), "destinationAddress"),
        handling_instructions=_parse_text(
            body.get("handlingInstructions"), "handlingInstructions"
        ),
        min_temperature=_parse_number(body.get("minTemperature"), "minTemperature"),
        max_temperature=_parse_number(body.get("maxTemperature"), "maxTemperature"),
    )


def _transporter_request(body: dict[str, Any]) -> TransporterRequest:
    return TransporterRequest(
        login=_parse_text(body.get("login"), "login"),
        password=_parse_text(body.get("password"), "password"),
        specialty=_parse_enum(Specialty, body.get("specialty"), "specialty"),
    )


def _required_query(request: ApiRequest, name: str) -> str:
    value = request.query.get(name)
    if not value:
        raise RequestValidationError(
            f"Missing required parameter: {name}", {name: "Parameter is required"}
        )
    return value


# ============================================================================
# Receiver
# ============================================================================


class ApiReceiver:
    """Dispatches API requests to the core driving ports."""

    def __init__(
        self,
        sessions: SessionPort,
        assignment: AssignmentPort,
        lifecycle: LifecyclePort,
        queries: QueryPort,
        packages: PackageManagementPort,
        transporters: TransporterManagementPort,
        default_page_size: int = 10,
    ):
        """Initialize the receiver.

        Args:
            sessions: SessionPort for login and token resolution.
            assignment: AssignmentPort for package assignment.
            lifecycle: LifecyclePort for status changes.
            queries: QueryPort for read views.
            packages: PackageManagementPort for package CRUD.
            transporters: TransporterManagementPort for account management.
            default_page_size: Page size when the request gives none.
        """
        self.sessions = sessions
        self.assignment = assignment
        self.lifecycle = lifecycle
        self.queries = queries
        self.packages = packages
        self.transporters = transporters
        self.default_page_size = default_page_size

        admin, transporter = Role.ADMIN, Role.TRANSPORTER
        self._routes: list[tuple[str, re.Pattern[str], Role | None, Handler]] = [
            ("GET", re.compile(r"^/health$"), None, self._health),
            ("POST", re.compile(r"^/api/auth/login$"), None, self._login),
            ("POST", re.compile(r"^/api/admin/packages$"), admin, self._create_package),
            ("GET", re.compile(r"^/api/admin/packages$"), admin, self._list_packages),
            ("GET", re.compile(r"^/api/admin/packages/search$"), admin, self._search_packages),
            ("GET", re.compile(r"^/api/admin/packages/(?P<id>[^/]+)$"), admin, self._get_package),
            ("PUT", re.compile(r"^/api/admin/packages/(?P<id>[^/]+)$"), admin, self._update_package),
            ("DELETE", re.compile(r"^/api/admin/packages/(?P<id>[^/]+)$"), admin, self._delete_package),
            (
                "PATCH",
                re.compile(r"^/api/admin/packages/(?P<id>[^/]+)/assign/(?P<transporter_id>[^/]+)$"),
                admin,
                self._assign_package,
            ),
            ("PATCH", re.compile(r"^/api/admin/packages/(?P<id>[^/]+)/status$"), admin, self._change_status),
            ("GET", re.compile(r"^/api/admin/users$"), admin, self._list_users),
            ("PATCH", re.compile(r"^/api/admin/users/(?P<id>[^/]+)/activate$"), admin, self._activate_user),
            ("GET", re.compile(r"^/api/admin/transporters$"), admin, self._list_transporters),
            ("POST", re.compile(r"^/api/admin/transporters$"), admin, self._create_transporter),
            ("PUT", re.compile(r"^/api/admin/transporters/(?P<id>[^/]+)$"), admin, self._update_transporter),
            ("DELETE", re.compile(r"^/api/admin/transporters/(?P<id>[^/]+)$"), admin, self._deactivate_transporter),
            ("GET", re.compile(r"^/api/transporter/packages$"), transporter, self._my_packages),
            ("GET", re.compile(r"^/api/transporter/packages/search$"), transporter, self._search_my_packages),
            (
                "PATCH",
                re.compile(r"^/api/transporter/packages/(?P<id>[^/]+)/status$"),
                transporter,
                self._change_my_status,
            ),
        ]

    async def handle(self, request: ApiRequest) -> ApiResponse:
        """Route a request and convert failures to error responses."""
        try:
            return await self._dispatch(request)
        except DomainError as e:
            return self._domain_error(request, e)
        except Exception as e:
            logger.error(
                f"Unhandled error for {request.method} {request.path}: {e}",
                exc_info=True,
            )
            return _error(request, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")

    async def _dispatch(self, request: ApiRequest) -> ApiResponse:
        path_matched = False
        for method, pattern, role, handler in self._routes:
            match = pattern.match(request.path)
            if match is None:
                continue
            path_matched = True
            if method != request.method:
                continue

            identity = None
            if role is not None:
                identity = self.sessions.resolve_identity(_bearer(request.authorization))
                if identity is None:
                    raise UnauthorizedError("Authentication required")
                if identity.role is not role:
                    raise ForbiddenError("Access denied")

            return await handler(_Call(request, match.groupdict(), identity))

        if path_matched:
            return _error(request, HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")
        return _error(request, HTTPStatus.NOT_FOUND, "Not found")

    def _domain_error(self, request: ApiRequest, error: DomainError) -> ApiResponse:
        extra: dict[str, Any] = {}
        if isinstance(error, NotFoundError):
            status = HTTPStatus.NOT_FOUND
        elif isinstance(error, UnauthorizedError):
            status = HTTPStatus.UNAUTHORIZED
        elif isinstance(error, ForbiddenError):
            status = HTTPStatus.FORBIDDEN
        elif isinstance(error, SpecialtyMismatchError):
            status = HTTPStatus.CONFLICT
            extra = {"packageType": error.package_type, "specialty": error.specialty}
        elif isinstance(error, TransporterUnavailableError):
            status = HTTPStatus.CONFLICT
            extra = {"transporterId": error.transporter_id, "transporterStatus": error.availability}
        elif isinstance(error, ConflictError):
            status = HTTPStatus.CONFLICT
        elif isinstance(error, RequestValidationError):
            status = HTTPStatus.BAD_REQUEST
            if error.errors:
                extra = {"errors": dict(error.errors)}
        elif isinstance(error, InvalidArgumentError):
            status = HTTPStatus.BAD_REQUEST
        else:
            status = HTTPStatus.INTERNAL_SERVER_ERROR

        logger.debug(
            f"{request.method} {request.path} failed: {error}",
            extra={"status": int(status), "error_type": type(error).__name__},
        )
        return _error(request, status, str(error), **extra)

    def _page(self, request: ApiRequest) -> PageRequest:
        return PageRequest(
            page=_parse_int(request.query.get("page"), "page", 0),
            size=_parse_int(request.query.get("size"), "size", self.default_page_size),
        )

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def _health(self, call: _Call) -> ApiResponse:
        return ApiResponse(HTTPStatus.OK, {"status": "healthy"})

    async def _login(self, call: _Call) -> ApiResponse:
        body = _body(call.request)
        login = _parse_text(body.get("login"), "login")
        password = _parse_text(body.get("password"), "password")
        errors = {}
        if not login:
            errors["login"] = "Login is required"
        if not password:
            errors["password"] = "Password is required"
        if errors:
            raise RequestValidationError("Login validation failed", errors)
        assert login is not None and password is not None

        result = await self.sessions.authenticate(login, password)
        return ApiResponse(HTTPStatus.OK, login_to_dict(result))

    # ------------------------------------------------------------------
    # Admin: packages
    # ------------------------------------------------------------------

    async def _create_package(self, call: _Call) -> ApiResponse:
        view = await self.packages.create_package(_package_request(_body(call.request)))
        return ApiResponse(HTTPStatus.CREATED, package_to_dict(view))

    async def _list_packages(self, call: _Call) -> ApiResponse:
        request = call.request
        page = self._page(request)
        package_type = _parse_enum(PackageType, request.query.get("type"), "type")
        status = _parse_enum(PackageStatus, request.query.get("status"), "status")
        transporter_id = request.query.get("transporterId")

        if _parse_bool(request.query.get("unassigned"), "unassigned"):
            result = await self.queries.list_unassigned_packages(page, status=status)
        elif transporter_id:
            result = await self.queries.list_transporter_packages(
                transporter_id, page, status=status
            )
        else:
            result = await self.queries.list_packages(
                page, package_type=package_type, status=status
            )
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, package_to_dict))

    async def _search_packages(self, call: _Call) -> ApiResponse:
        request = call.request
        address = _required_query(request, "address")
        page = self._page(request)
        transporter_id = request.query.get("transporterId")
        if transporter_id:
            result = await self.queries.search_transporter_packages(transporter_id, address, page)
        else:
            result = await self.queries.search_packages_by_address(address, page)
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, package_to_dict))

    async def _get_package(self, call: _Call) -> ApiResponse:
        view = await self.packages.get_package(call.params["id"])
        return ApiResponse(HTTPStatus.OK, package_to_dict(view))

    async def _update_package(self, call: _Call) -> ApiResponse:
        view = await self.packages.update_package(
            call.params["id"], _package_request(_body(call.request))
        )
        return ApiResponse(HTTPStatus.OK, package_to_dict(view))

    async def _delete_package(self, call: _Call) -> ApiResponse:
        await self.packages.delete_package(call.params["id"])
        return ApiResponse(HTTPStatus.NO_CONTENT)

    async def _assign_package(self, call: _Call) -> ApiResponse:
        await self.assignment.assign(call.params["id"], call.params["transporter_id"])
        view = await self.packages.get_package(call.params["id"])
        return ApiResponse(HTTPStatus.OK, package_to_dict(view))

    async def _change_status(self, call: _Call) -> ApiResponse:
        status = _parse_enum(PackageStatus, _body(call.request).get("status"), "status")
        await self.lifecycle.change_status(call.params["id"], status)
        view = await self.packages.get_package(call.params["id"])
        return ApiResponse(HTTPStatus.OK, package_to_dict(view))

    # ------------------------------------------------------------------
    # Admin: accounts
    # ------------------------------------------------------------------

    async def _list_users(self, call: _Call) -> ApiResponse:
        request = call.request
        result = await self.queries.list_users(
            self._page(request), active=_parse_bool(request.query.get("active"), "active")
        )
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, account_to_dict))

    async def _list_transporters(self, call: _Call) -> ApiResponse:
        request = call.request
        result = await self.queries.list_transporters(
            self._page(request),
            specialty=_parse_enum(Specialty, request.query.get("specialty"), "specialty"),
            availability=_parse_enum(Availability, request.query.get("status"), "status"),
            active=_parse_bool(request.query.get("active"), "active"),
        )
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, account_to_dict))

    async def _create_transporter(self, call: _Call) -> ApiResponse:
        account = await self.transporters.create_transporter(
            _transporter_request(_body(call.request))
        )
        return ApiResponse(HTTPStatus.CREATED, account_to_dict(account))

    async def _update_transporter(self, call: _Call) -> ApiResponse:
        account = await self.transporters.update_transporter(
            call.params["id"], _transporter_request(_body(call.request))
        )
        return ApiResponse(HTTPStatus.OK, account_to_dict(account))

    async def _deactivate_transporter(self, call: _Call) -> ApiResponse:
        await self.transporters.deactivate_transporter(call.params["id"])
        return ApiResponse(HTTPStatus.NO_CONTENT)

    async def _activate_user(self, call: _Call) -> ApiResponse:
        account = await self.transporters.activate_account(call.params["id"])
        return ApiResponse(HTTPStatus.OK, account_to_dict(account))

    # ------------------------------------------------------------------
    # Transporter self-service
    # ------------------------------------------------------------------

    async def _my_packages(self, call: _Call) -> ApiResponse:
        assert call.identity is not None
        request = call.request
        result = await self.queries.list_transporter_packages(
            call.identity.account_id,
            self._page(request),
            status=_parse_enum(PackageStatus, request.query.get("status"), "status"),
        )
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, package_to_dict))

    async def _search_my_packages(self, call: _Call) -> ApiResponse:
        assert call.identity is not None
        request = call.request
        result = await self.queries.search_transporter_packages(
            call.identity.account_id, _required_query(request, "address"), self._page(request)
        )
        return ApiResponse(HTTPStatus.OK, page_to_dict(result, package_to_dict))

    async def _change_my_status(self, call: _Call) -> ApiResponse:
        assert call.identity is not None
        status = _parse_enum(PackageStatus, _body(call.request).get("status"), "status")
        await self.lifecycle.change_own_status(
            call.params["id"], call.identity.account_id, status
        )
        view = await self.packages.get_package(call.params["id"])
        return ApiResponse(HTTPStatus.OK, package_to_dict(view))


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


def _error(request: ApiRequest, status: HTTPStatus, message: str, **extra: Any) -> ApiResponse:
    body = {
        "status": int(status),
        "error": status.phrase,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
        "path": request.path,
        **extra,
    }
    return ApiResponse(int(status), body)
