"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakeStorePort: In-memory package and account persistence with
  serialized, all-or-nothing transactions
- FakePasswordHasher: Reversible "hash" for credential checks
- FakeTokenPort: Opaque tokens mapped to their claims
- make_package, make_transporter, make_admin: entity builders
"""

from .factories import make_admin, make_package, make_transporter
from .security import FakePasswordHasher, FakeTokenPort
from .store import FakeStorePort

__all__ = [
    "FakePasswordHasher",
    "FakeStorePort",
    "FakeTokenPort",
    "make_admin",
    "make_package",
    "make_transporter",
]
