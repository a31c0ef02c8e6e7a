"""Tests for the HS256 session token issuer."""

import base64
import json

import pytest

from parcelcarrier.adapters.security.token import HMACTokenIssuer


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> HMACTokenIssuer:
    return HMACTokenIssuer("test-secret", "parcel-and-carrier-api", clock=clock)


def _segment(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def test_issue_and_verify(issuer: HMACTokenIssuer) -> None:
    token = issuer.issue("admin", {"userId": "u-1", "role": "ADMIN"}, ttl_seconds=60)

    claims = issuer.verify(token)

    assert claims is not None
    assert claims["sub"] == "admin"
    assert claims["userId"] == "u-1"
    assert claims["role"] == "ADMIN"
    assert claims["iss"] == "parcel-and-carrier-api"
    assert claims["exp"] - claims["iat"] == 60
    assert token.count(".") == 2


def test_expired_token_rejected(issuer: HMACTokenIssuer, clock: FakeClock) -> None:
    token = issuer.issue("admin", {}, ttl_seconds=60)

    clock.now += 61

    assert issuer.verify(token) is None


def test_tampered_payload_rejected(issuer: HMACTokenIssuer) -> None:
    token = issuer.issue("maria_f", {"userId": "u-2", "role": "TRANSPORTER"}, ttl_seconds=60)
    header, payload, signature = token.split(".")
    claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    claims["role"] = "ADMIN"

    forged = f"{header}.{_segment(claims)}.{signature}"

    assert issuer.verify(forged) is None


def test_other_secret_rejected(clock: FakeClock, issuer: HMACTokenIssuer) -> None:
    other = HMACTokenIssuer("another-secret", "parcel-and-carrier-api", clock=clock)

    assert issuer.verify(other.issue("admin", {}, ttl_seconds=60)) is None


def test_foreign_issuer_rejected(clock: FakeClock, issuer: HMACTokenIssuer) -> None:
    foreign = HMACTokenIssuer("test-secret", "someone-else", clock=clock)

    assert issuer.verify(foreign.issue("admin", {}, ttl_seconds=60)) is None


def test_unsigned_algorithm_rejected(issuer: HMACTokenIssuer) -> None:
    token = issuer.issue("admin", {}, ttl_seconds=60)
    _, payload, signature = token.split(".")
    none_header = _segment({"alg": "none", "typ": "JWT"})

    assert issuer.verify(f"{none_header}.{payload}.{signature}") is None
    assert issuer.verify(f"{none_header}.{payload}.") is None


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "!!!.???.***"])
def test_malformed_tokens_rejected(issuer: HMACTokenIssuer, token: str) -> None:
    assert issuer.verify(token) is None


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        HMACTokenIssuer("", "parcel-and-carrier-api")
