"""Parcel & Carrier: package assignment and delivery tracking backend.

Administrators register packages and transporter accounts; packages are
handed to transporters whose specialty matches the package type, and
transporters report delivery progress. The core/ package holds the
domain logic; adapters/ holds storage, security, and HTTP adapters.
"""

__version__ = "0.1.0"
