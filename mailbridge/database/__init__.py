"""
Database module - SQLite storage for OAuth credentials.

Uses repository pattern for better separation of concerns.
"""

from pathlib import Path

from .connection import DatabaseConnection
from .models import CredentialFields, DBCredential
from .token_repository import TokenRepository, now_ms


def open_token_store(db_path: Path) -> TokenRepository:
    """Open (creating if needed) the token database at db_path."""
    return TokenRepository(DatabaseConnection(db_path))


__all__ = [
    "DatabaseConnection",
    "CredentialFields",
    "DBCredential",
    "TokenRepository",
    "now_ms",
    "open_token_store",
]
