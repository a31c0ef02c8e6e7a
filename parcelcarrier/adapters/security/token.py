"""HS256 session token adapter.

Implements TokenPort as a compact JSON Web Token signed with
HMAC-SHA256. Issued tokens carry `iss`, `sub`, `iat` and `exp` plus the
caller-supplied claims. Verification rejects any token with the wrong
algorithm, a bad signature, a foreign issuer, or an expiry in the past.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from parcelcarrier.core.ports import TokenPort

logger = logging.getLogger(__name__)

HEADER = {"alg": "HS256", "typ": "JWT"}


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


class HMACTokenIssuer(TokenPort):
    """Issues and verifies HS256 tokens with a shared secret."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token issuer.

        Args:
            secret: HMAC signing secret.
            issuer: Value written to and required in the `iss` claim.
            clock: Source of the current UNIX time.
        """
        if not secret:
            raise ValueError("Token secret must be non-empty")
        self._key = secret.encode("utf-8")
        self.issuer = issuer
        self.clock = clock

    def issue(self, subject: str, claims: dict[str, Any], ttl_seconds: int) -> str:
        now = int(self.clock())
        payload = {
            **claims,
            "iss": self.issuer,
            "sub": subject,
            "iat": now,
            "exp": now + ttl_seconds,
        }
        signing_input = ".".join(
            (
                _b64encode(json.dumps(HEADER, separators=(",", ":")).encode()),
                _b64encode(json.dumps(payload, separators=(",", ":")).encode()),
            )
        )
        return f"{signing_input}.{_b64encode(self._sign(signing_input))}"

    def verify(self, token: str) -> dict[str, Any] | None:
        """Return the payload of a valid token, or None."""
        try:
            header_segment, payload_segment, signature_segment = token.split(".")
            header = json.loads(_b64decode(header_segment))
            payload = json.loads(_b64decode(payload_segment))
            signature = _b64decode(signature_segment)
        except (AttributeError, ValueError, binascii.Error, UnicodeDecodeError) as e:
            logger.debug(f"Malformed token: {e}")
            return None

        if not isinstance(header, dict) or header.get("alg") != HEADER["alg"]:
            logger.debug("Token rejected: unexpected algorithm")
            return None

        expected = self._sign(f"{header_segment}.{payload_segment}")
        if not hmac.compare_digest(signature, expected):
            logger.debug("Token rejected: bad signature")
            return None

        if not isinstance(payload, dict) or payload.get("iss") != self.issuer:
            logger.debug("Token rejected: wrong issuer")
            return None

        exp = payload.get("exp")
        if not isinstance(exp, int | float) or exp <= self.clock():
            logger.debug("Token rejected: expired")
            return None

        return payload

    def _sign(self, signing_input: str) -> bytes:
        return hmac.new(self._key, signing_input.encode("ascii"), hashlib.sha256).digest()
