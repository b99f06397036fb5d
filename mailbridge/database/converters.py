"""
Database row converters - convert SQLite rows to dataclasses.
"""

import sqlite3

from .models import DBCredential


def row_to_credential(row: sqlite3.Row) -> DBCredential:
    """Convert a database row to a DBCredential."""
    return DBCredential(
        user_id=row["user_id"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        expiry=int(row["expiry"]),
        scopes=row["scopes"],
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
    )
