"""Fake PasswordHasherPort and TokenPort implementations for testing."""

from typing import Any

from parcelcarrier.core.ports import PasswordHasherPort, TokenPort


class FakePasswordHasher(PasswordHasherPort):
    """Prefixes plaintext so hashes are recognizable in assertions."""

    PREFIX = "hashed:"

    def __init__(self):
        self.verify_calls: list[tuple[str, str]] = []

    def hash(self, plaintext: str) -> str:
        return f"{self.PREFIX}{plaintext}"

    def verify(self, plaintext: str, digest: str) -> bool:
        self.verify_calls.append((plaintext, digest))
        return digest == f"{self.PREFIX}{plaintext}"


class FakeTokenPort(TokenPort):
    """Issues sequential opaque tokens and remembers their claims."""

    def __init__(self):
        self.issued: dict[str, dict[str, Any]] = {}
        self.last_ttl: int | None = None

    def issue(self, subject: str, claims: dict[str, Any], ttl_seconds: int) -> str:
        token = f"token-{len(self.issued) + 1}"
        self.issued[token] = {**claims, "sub": subject}
        self.last_ttl = ttl_seconds
        return token

    def verify(self, token: str) -> dict[str, Any] | None:
        return self.issued.get(token)

    def revoke(self, token: str) -> None:
        self.issued.pop(token, None)
