"""External adapters for the Parcel & Carrier logistics system.

This package contains all external dependencies (SQLite, PostgreSQL,
credential hashing, HTTP server) and provides implementations of the
core port interfaces.

Adapter Organization:

- store/: Adapters for package and account persistence (SQLite, PostgreSQL)
- security/: Password hashing and signed session tokens
- api/: HTTP API receiver and server
"""
