"""Credential and session token adapters.

- password: PBKDF2 password hasher (PasswordHasherPort)
- token: HS256 session tokens (TokenPort)
"""
