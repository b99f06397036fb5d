"""
Token repository - one OAuth credential record per identity key.

Keeps a strict 1:1 mapping of user_id to tokens. Tokens are never refreshed
here; an expired record stays addressable but callers treat it as absent
until the same user_id logs in again.
"""

import threading
import time
import zlib

from .connection import DatabaseConnection
from .converters import row_to_credential
from .models import CredentialFields, DBCredential

# Writes for one key always land on the same shard
LOCK_SHARDS = 64


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenRepository:
    """Repository for per-identity OAuth credentials."""

    def __init__(self, db: DatabaseConnection):
        self._db = db
        # Fixed pool: memory stays bounded however many keys are seen
        self._locks = [threading.Lock() for _ in range(LOCK_SHARDS)]

    def _lock_for(self, user_id: str) -> threading.Lock:
        """Return the write lock shard for one identity key."""
        return self._locks[zlib.crc32(user_id.encode("utf-8")) % LOCK_SHARDS]

    def put(
        self,
        user_id: str,
        credential: CredentialFields,
        now: int | None = None,
    ) -> None:
        """
        Insert or fully replace the credential for user_id.

        Every token field is overwritten (a missing refresh token clears the
        stored one). created_at is kept from the first insert.
        """
        ts = now if now is not None else now_ms()
        with self._lock_for(user_id), self._db.conn() as conn:
            conn.execute(
                """INSERT INTO tokens
                   (user_id, access_token, refresh_token, expiry, scopes, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       access_token = excluded.access_token,
                       refresh_token = excluded.refresh_token,
                       expiry = excluded.expiry,
                       scopes = excluded.scopes,
                       updated_at = excluded.updated_at""",
                (user_id, credential.access_token, credential.refresh_token,
                 credential.expiry, credential.scopes, ts, ts)
            )

    def get(self, user_id: str) -> DBCredential | None:
        """Get the credential for user_id, expired or not."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row_to_credential(row) if row else None

    def delete(self, user_id: str) -> bool:
        """Remove the credential for user_id. Returns True if one existed."""
        with self._lock_for(user_id), self._db.conn() as conn:
            cursor = conn.execute("DELETE FROM tokens WHERE user_id = ?", (user_id,))
            return cursor.rowcount > 0

    def sweep_expired(self, now: int | None = None) -> int:
        """Delete every credential whose expiry is at or before now. Returns count removed."""
        cutoff = now if now is not None else now_ms()
        with self._db.conn() as conn:
            cursor = conn.execute("DELETE FROM tokens WHERE expiry <= ?", (cutoff,))
            return cursor.rowcount

    def count(self) -> int:
        """Number of stored credentials."""
        with self._db.conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM tokens").fetchone()[0]
