"""Tests for the HTTP API receiver.

The receiver is exercised directly with ApiRequest objects, wired to the
real core services over in-memory fakes.
"""

import pytest

from parcelcarrier.adapters.api.receiver import ApiReceiver, ApiRequest
from parcelcarrier.core.assignment import AssignmentEngine
from parcelcarrier.core.lifecycle import StatusLifecycleManager
from parcelcarrier.core.models import Availability, PackageStatus, PackageType, Specialty
from parcelcarrier.core.package_service import PackageService
from parcelcarrier.core.queries import QueryService
from parcelcarrier.core.session import SessionGate
from parcelcarrier.core.transporter_service import TransporterService
from parcelcarrier.tests.fakes import (
    FakePasswordHasher,
    FakeStorePort,
    FakeTokenPort,
    make_admin,
    make_package,
    make_transporter,
)


@pytest.fixture
def store() -> FakeStorePort:
    store = FakeStorePort()
    store.add_account(make_admin())
    return store


@pytest.fixture
def receiver(store: FakeStorePort) -> ApiReceiver:
    hasher = FakePasswordHasher()
    return ApiReceiver(
        sessions=SessionGate(store, hasher, FakeTokenPort(), token_ttl_seconds=3600),
        assignment=AssignmentEngine(store),
        lifecycle=StatusLifecycleManager(store),
        queries=QueryService(store, max_page_size=50),
        packages=PackageService(store),
        transporters=TransporterService(store, hasher),
        default_page_size=10,
    )


async def _login(receiver: ApiReceiver, login: str, password: str) -> str:
    response = await receiver.handle(
        ApiRequest("POST", "/api/auth/login", body={"login": login, "password": password})
    )
    assert response.status == 200, response.body
    return f"Bearer {response.body['token']}"


@pytest.fixture
async def admin_auth(receiver: ApiReceiver) -> str:
    return await _login(receiver, "admin", "admin123")


# ============================================================================
# Authentication and authorization
# ============================================================================


@pytest.mark.asyncio
async def test_health_is_public(receiver: ApiReceiver) -> None:
    response = await receiver.handle(ApiRequest("GET", "/health"))

    assert response.status == 200
    assert response.body == {"status": "healthy"}


@pytest.mark.asyncio
async def test_login_response_shape(receiver: ApiReceiver) -> None:
    response = await receiver.handle(
        ApiRequest("POST", "/api/auth/login", body={"login": "admin", "password": "admin123"})
    )

    assert response.status == 200
    assert set(response.body) == {"token", "login", "role", "userId"}
    assert response.body["role"] == "ADMIN"
    assert response.body["userId"] == "admin-1"


@pytest.mark.asyncio
async def test_bad_credentials_are_401(receiver: ApiReceiver) -> None:
    response = await receiver.handle(
        ApiRequest("POST", "/api/auth/login", body={"login": "admin", "password": "nope1"})
    )

    assert response.status == 401
    assert response.body["message"] == "invalid credentials"
    assert response.body["path"] == "/api/auth/login"
    assert response.body["error"] == "Unauthorized"


@pytest.mark.asyncio
async def test_login_requires_both_fields(receiver: ApiReceiver) -> None:
    response = await receiver.handle(ApiRequest("POST", "/api/auth/login", body={}))

    assert response.status == 400
    assert set(response.body["errors"]) == {"login", "password"}


@pytest.mark.asyncio
async def test_missing_token_is_401(receiver: ApiReceiver) -> None:
    response = await receiver.handle(ApiRequest("GET", "/api/admin/packages"))

    assert response.status == 401


@pytest.mark.asyncio
async def test_transporter_cannot_use_admin_routes(
    store: FakeStorePort, receiver: ApiReceiver
) -> None:
    store.add_account(make_transporter(login="maria_f"))
    auth = await _login(receiver, "maria_f", "secret1")

    response = await receiver.handle(
        ApiRequest("GET", "/api/admin/packages", authorization=auth)
    )

    assert response.status == 403


@pytest.mark.asyncio
async def test_admin_cannot_use_transporter_routes(
    receiver: ApiReceiver, admin_auth: str
) -> None:
    response = await receiver.handle(
        ApiRequest("GET", "/api/transporter/packages", authorization=admin_auth)
    )

    assert response.status == 403


@pytest.mark.asyncio
async def test_unknown_route_and_method(receiver: ApiReceiver, admin_auth: str) -> None:
    missing = await receiver.handle(ApiRequest("GET", "/api/nowhere", authorization=admin_auth))
    wrong_method = await receiver.handle(
        ApiRequest("POST", "/api/admin/users", authorization=admin_auth)
    )

    assert missing.status == 404
    assert wrong_method.status == 405


# ============================================================================
# Packages
# ============================================================================


@pytest.mark.asyncio
async def test_create_package(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/packages",
            body={
                "type": "refrigerated",
                "weight": 4,
                "destinationAddress": "Rua do Ouro 88, Lisboa",
                "minTemperature": 2,
                "maxTemperature": 6,
            },
            authorization=admin_auth,
        )
    )

    assert response.status == 201
    body = response.body
    assert body["type"] == "REFRIGERATED"
    assert body["status"] == "PENDING"
    assert body["weight"] == 4.0
    assert body["transporterId"] is None
    assert body["transporterLogin"] is None
    assert body["minTemperature"] == 2.0
    assert {"id", "createdAt", "updatedAt", "handlingInstructions"} <= set(body)


@pytest.mark.asyncio
async def test_create_package_validation_errors(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/packages",
            body={"type": "FRAGILE", "weight": 1.5, "destinationAddress": "Rua do Ouro 88, Lisboa"},
            authorization=admin_auth,
        )
    )

    assert response.status == 400
    assert "handlingInstructions" in response.body["errors"]


@pytest.mark.asyncio
async def test_bad_enum_and_number_are_400(receiver: ApiReceiver, admin_auth: str) -> None:
    bad_type = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/packages",
            body={"type": "BOXED", "weight": 1, "destinationAddress": "Rua do Ouro 88, Lisboa"},
            authorization=admin_auth,
        )
    )
    bad_weight = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/packages",
            body={"type": "STANDARD", "weight": "heavy", "destinationAddress": "Rua do Ouro 88"},
            authorization=admin_auth,
        )
    )

    assert bad_type.status == 400
    assert "type" in bad_type.body["errors"]
    assert bad_weight.status == 400
    assert "weight" in bad_weight.body["errors"]


@pytest.mark.asyncio
async def test_list_packages_page_shape(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    for _ in range(3):
        store.add_package(make_package())
    store.add_package(make_package(package_type=PackageType.FRAGILE))

    response = await receiver.handle(
        ApiRequest(
            "GET",
            "/api/admin/packages",
            query={"type": "STANDARD", "page": "0", "size": "2"},
            authorization=admin_auth,
        )
    )

    assert response.status == 200
    assert response.body["totalElements"] == 3
    assert response.body["totalPages"] == 2
    assert response.body["size"] == 2
    assert response.body["page"] == 0
    assert len(response.body["content"]) == 2


@pytest.mark.asyncio
async def test_negative_page_is_400(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest("GET", "/api/admin/packages", query={"page": "-1"}, authorization=admin_auth)
    )

    assert response.status == 400


@pytest.mark.asyncio
async def test_search_requires_address(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest("GET", "/api/admin/packages/search", authorization=admin_auth)
    )

    assert response.status == 400
    assert "address" in response.body["errors"]


@pytest.mark.asyncio
async def test_get_missing_package_is_404(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest("GET", "/api/admin/packages/nope", authorization=admin_auth)
    )

    assert response.status == 404
    assert response.body["message"] == "Package not found with id: nope"


@pytest.mark.asyncio
async def test_assign_then_specialty_mismatch(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    fragile = store.add_package(make_package(package_type=PackageType.FRAGILE))
    standard = store.add_package(make_package())
    transporter = store.add_account(
        make_transporter(login="maria_f", specialty=Specialty.FRAGILE)
    )

    assigned = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/admin/packages/{fragile.id}/assign/{transporter.id}",
            authorization=admin_auth,
        )
    )
    mismatch = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/admin/packages/{standard.id}/assign/{transporter.id}",
            authorization=admin_auth,
        )
    )

    assert assigned.status == 200
    assert assigned.body["status"] == "IN_TRANSIT"
    assert assigned.body["transporterLogin"] == "maria_f"
    assert mismatch.status == 409
    assert mismatch.body["packageType"] == "STANDARD"


@pytest.mark.asyncio
async def test_busy_transporter_is_409(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    package = store.add_package(make_package())
    transporter = store.add_account(make_transporter(availability=Availability.ON_DELIVERY))

    response = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/admin/packages/{package.id}/assign/{transporter.id}",
            authorization=admin_auth,
        )
    )

    assert response.status == 409
    assert response.body["transporterStatus"] == "ON_DELIVERY"


@pytest.mark.asyncio
async def test_admin_status_change_requires_status(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    package = store.add_package(make_package())

    response = await receiver.handle(
        ApiRequest(
            "PATCH", f"/api/admin/packages/{package.id}/status", body={}, authorization=admin_auth
        )
    )

    assert response.status == 400
    assert response.body["message"] == "Status cannot be null"


@pytest.mark.asyncio
async def test_delete_package_is_204(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    package = store.add_package(make_package())

    response = await receiver.handle(
        ApiRequest("DELETE", f"/api/admin/packages/{package.id}", authorization=admin_auth)
    )

    assert response.status == 204
    assert response.body is None
    assert package.id not in store.packages


# ============================================================================
# Transporters
# ============================================================================


@pytest.mark.asyncio
async def test_create_transporter_hides_password(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/transporters",
            body={"login": "joao_01", "password": "secret1", "specialty": "STANDARD"},
            authorization=admin_auth,
        )
    )

    assert response.status == 201
    assert response.body["role"] == "TRANSPORTER"
    assert response.body["status"] == "AVAILABLE"
    assert response.body["active"] is True
    assert "password" not in response.body
    assert "passwordHash" not in response.body


@pytest.mark.asyncio
async def test_duplicate_transporter_login_is_400(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    store.add_account(make_transporter(login="joao_01"))

    response = await receiver.handle(
        ApiRequest(
            "POST",
            "/api/admin/transporters",
            body={"login": "joao_01", "password": "secret1", "specialty": "STANDARD"},
            authorization=admin_auth,
        )
    )

    assert response.status == 400


@pytest.mark.asyncio
async def test_deactivate_blocks_login_and_activate_restores(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    transporter = store.add_account(make_transporter(login="maria_f"))

    deactivated = await receiver.handle(
        ApiRequest("DELETE", f"/api/admin/transporters/{transporter.id}", authorization=admin_auth)
    )
    blocked = await receiver.handle(
        ApiRequest("POST", "/api/auth/login", body={"login": "maria_f", "password": "secret1"})
    )
    activated = await receiver.handle(
        ApiRequest(
            "PATCH", f"/api/admin/users/{transporter.id}/activate", authorization=admin_auth
        )
    )

    assert deactivated.status == 204
    assert blocked.status == 401
    assert blocked.body["message"] == "account deactivated"
    assert activated.status == 200
    assert activated.body["active"] is True


@pytest.mark.asyncio
async def test_list_transporters_filters(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    store.add_account(make_transporter(specialty=Specialty.FRAGILE))
    store.add_account(make_transporter(specialty=Specialty.STANDARD))

    response = await receiver.handle(
        ApiRequest(
            "GET",
            "/api/admin/transporters",
            query={"specialty": "FRAGILE", "active": "true"},
            authorization=admin_auth,
        )
    )

    assert response.status == 200
    assert response.body["totalElements"] == 1
    assert response.body["content"][0]["specialty"] == "FRAGILE"


@pytest.mark.asyncio
async def test_list_users_includes_admin(receiver: ApiReceiver, admin_auth: str) -> None:
    response = await receiver.handle(
        ApiRequest("GET", "/api/admin/users", authorization=admin_auth)
    )

    assert response.status == 200
    assert [u["login"] for u in response.body["content"]] == ["admin"]


# ============================================================================
# Transporter self-service
# ============================================================================


@pytest.mark.asyncio
async def test_transporter_sees_and_delivers_own_packages(
    store: FakeStorePort, receiver: ApiReceiver
) -> None:
    me = store.add_account(make_transporter(login="maria_f", availability=Availability.ON_DELIVERY))
    mine = store.add_package(
        make_package(status=PackageStatus.IN_TRANSIT, transporter_id=me.id)
    )
    store.add_package(make_package())
    auth = await _login(receiver, "maria_f", "secret1")

    listed = await receiver.handle(
        ApiRequest("GET", "/api/transporter/packages", authorization=auth)
    )
    delivered = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/transporter/packages/{mine.id}/status",
            body={"status": "DELIVERED"},
            authorization=auth,
        )
    )

    assert [p["id"] for p in listed.body["content"]] == [mine.id]
    assert delivered.status == 200
    assert delivered.body["status"] == "DELIVERED"
    assert store.accounts[me.id].availability is Availability.AVAILABLE


@pytest.mark.asyncio
async def test_transporter_cannot_touch_other_packages(
    store: FakeStorePort, receiver: ApiReceiver
) -> None:
    store.add_account(make_transporter(login="maria_f"))
    other = store.add_package(
        make_package(status=PackageStatus.IN_TRANSIT, transporter_id="someone-else")
    )
    auth = await _login(receiver, "maria_f", "secret1")

    response = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/transporter/packages/{other.id}/status",
            body={"status": "DELIVERED"},
            authorization=auth,
        )
    )

    assert response.status == 400
    assert store.packages[other.id].status is PackageStatus.IN_TRANSIT


@pytest.mark.asyncio
async def test_unexpected_errors_are_500(
    store: FakeStorePort, receiver: ApiReceiver, admin_auth: str
) -> None:
    package = store.add_package(make_package())
    transporter = store.add_account(make_transporter())
    store.fail_account_saves = True

    response = await receiver.handle(
        ApiRequest(
            "PATCH",
            f"/api/admin/packages/{package.id}/assign/{transporter.id}",
            authorization=admin_auth,
        )
    )

    assert response.status == 500
    assert response.body["message"] == "Internal server error"
