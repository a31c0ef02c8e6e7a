"""Test suite for the Parcel & Carrier logistics system.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - Tests against real SQLite files and the in-process API receiver
   - Validates adapter behavior and error handling

3. fakes/: Port implementations for testing
   - In-memory implementations of StorePort, PasswordHasherPort, TokenPort
   - Used by core unit tests
"""
