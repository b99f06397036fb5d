"""
Database models - dataclasses for database entities.
"""

from dataclasses import dataclass


@dataclass
class CredentialFields:
    """Token material written by a single code exchange."""
    access_token: str
    expiry: int  # epoch ms
    scopes: str | None = None
    refresh_token: str | None = None  # stored, never used for renewal


@dataclass
class DBCredential:
    user_id: str
    access_token: str
    refresh_token: str | None
    expiry: int  # epoch ms
    scopes: str | None
    created_at: int  # epoch ms
    updated_at: int  # epoch ms
