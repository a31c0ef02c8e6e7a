"""Unit tests for the session gate."""

import pytest

from parcelcarrier.core.errors import UnauthorizedError
from parcelcarrier.core.models import Role
from parcelcarrier.core.session import ACCOUNT_DEACTIVATED, INVALID_CREDENTIALS, SessionGate
from parcelcarrier.tests.fakes import (
    FakePasswordHasher,
    FakeStorePort,
    FakeTokenPort,
    make_admin,
    make_transporter,
)


@pytest.fixture
def store() -> FakeStorePort:
    return FakeStorePort()


@pytest.fixture
def tokens() -> FakeTokenPort:
    return FakeTokenPort()


@pytest.fixture
def gate(store: FakeStorePort, tokens: FakeTokenPort) -> SessionGate:
    return SessionGate(store, FakePasswordHasher(), tokens, token_ttl_seconds=3600)


@pytest.mark.asyncio
async def test_successful_login_issues_token(
    store: FakeStorePort, tokens: FakeTokenPort, gate: SessionGate
) -> None:
    admin = store.add_account(make_admin())

    result = await gate.authenticate("admin", "admin123")

    assert result.login == "admin"
    assert result.role is Role.ADMIN
    assert result.user_id == admin.id
    assert tokens.issued[result.token] == {
        "userId": admin.id,
        "role": "ADMIN",
        "sub": "admin",
    }
    assert tokens.last_ttl == 3600


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_login_look_identical(
    store: FakeStorePort, gate: SessionGate
) -> None:
    store.add_account(make_admin())

    with pytest.raises(UnauthorizedError) as wrong_password:
        await gate.authenticate("admin", "not-it")
    with pytest.raises(UnauthorizedError) as unknown_login:
        await gate.authenticate("nobody", "admin123")

    assert str(wrong_password.value) == INVALID_CREDENTIALS
    assert str(unknown_login.value) == INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_deactivated_account_rejected(store: FakeStorePort, gate: SessionGate) -> None:
    store.add_account(make_transporter(login="old_driver", active=False))

    with pytest.raises(UnauthorizedError, match=ACCOUNT_DEACTIVATED):
        await gate.authenticate("old_driver", "secret1")


@pytest.mark.asyncio
async def test_resolve_identity_round_trip(store: FakeStorePort, gate: SessionGate) -> None:
    transporter = store.add_account(make_transporter(login="maria_f"))
    result = await gate.authenticate("maria_f", "secret1")

    identity = gate.resolve_identity(result.token)

    assert identity is not None
    assert identity.account_id == transporter.id
    assert identity.login == "maria_f"
    assert identity.role is Role.TRANSPORTER


def test_resolve_identity_rejects_missing_and_unknown_tokens(gate: SessionGate) -> None:
    assert gate.resolve_identity(None) is None
    assert gate.resolve_identity("") is None
    assert gate.resolve_identity("forged") is None


def test_resolve_identity_rejects_incomplete_claims(
    tokens: FakeTokenPort, gate: SessionGate
) -> None:
    token = tokens.issue("someone", {"role": "ADMIN"}, ttl_seconds=60)
    bad_role = tokens.issue("someone", {"userId": "u-1", "role": "ROOT"}, ttl_seconds=60)

    assert gate.resolve_identity(token) is None
    assert gate.resolve_identity(bad_role) is None
