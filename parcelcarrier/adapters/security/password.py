"""PBKDF2 password hasher.

Implements PasswordHasherPort with PBKDF2-HMAC-SHA256. Digests are
self-describing so the iteration count can be raised without
invalidating existing hashes:

    pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>
"""

import hashlib
import hmac
import logging
import secrets

from parcelcarrier.core.ports import PasswordHasherPort

logger = logging.getLogger(__name__)

ALGORITHM = "pbkdf2_sha256"


class PBKDF2PasswordHasher(PasswordHasherPort):
    """Salted PBKDF2-HMAC-SHA256 hasher."""

    def __init__(self, iterations: int = 260000, salt_bytes: int = 16):
        """Initialize the hasher.

        Args:
            iterations: Work factor for new hashes.
            salt_bytes: Length of the random salt.
        """
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def hash(self, plaintext: str) -> str:
        salt = secrets.token_hex(self.salt_bytes)
        digest = self._derive(plaintext, salt, self.iterations)
        return f"{ALGORITHM}${self.iterations}${salt}${digest}"

    def verify(self, plaintext: str, digest: str) -> bool:
        """Check plaintext against a stored digest in constant time."""
        try:
            algorithm, iterations, salt, expected = digest.split("$")
            work_factor = int(iterations)
        except (AttributeError, ValueError):
            logger.warning("Malformed password digest")
            return False

        if algorithm != ALGORITHM or work_factor < 1:
            logger.warning(f"Unsupported password digest algorithm: {algorithm}")
            return False

        actual = self._derive(plaintext, salt, work_factor)
        return hmac.compare_digest(actual, expected)

    @staticmethod
    def _derive(plaintext: str, salt: str, iterations: int) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256", plaintext.encode("utf-8"), salt.encode("utf-8"), iterations
        ).hex()
