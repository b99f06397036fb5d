"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    import httpx

    from .database import TokenRepository
    from .graph import CollectionFetcher
    from .scheduler import TokenSweepScheduler

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    # Static key tool callers present as "Authorization: Bearer <key>"
    API_KEY: str = os.getenv("API_KEY", "")

    # Microsoft identity platform application registration
    CLIENT_ID: str = os.getenv("CLIENT_ID", "")
    CLIENT_SECRET: str = os.getenv("CLIENT_SECRET", "")  # empty for public clients
    TENANT_ID: str = os.getenv("TENANT_ID", "common")
    SCOPES: str = os.getenv("SCOPES", "Mail.ReadWrite").strip()

    PORT: int = int(os.getenv("PORT", "3001"))
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}")
    REDIRECT_URI: str = os.getenv("REDIRECT_URI", f"http://localhost:{PORT}/auth/callback")

    GRAPH_BASE_URL: str = os.getenv("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0")

    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/tokens.db"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Require callers to send a UUID-shaped user_id
    STRICT_USER_ID: bool = _parse_bool(os.getenv("STRICT_USER_ID"), default=True)
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "America/Chicago")

    # 0 disables inbound rate limiting
    RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "0"))
    # 0 disables the periodic sweep (expired tokens are still swept on boot)
    TOKEN_SWEEP_INTERVAL_MINUTES: int = int(os.getenv("TOKEN_SWEEP_INTERVAL_MINUTES", "60"))

    def authority_url(self) -> str:
        """Base URL of the tenant's OAuth 2.0 v2 endpoints."""
        return f"https://login.microsoftonline.com/{self.TENANT_ID}/oauth2/v2.0"

    def login_url(self, user_id: str) -> str:
        """Public login link handed back to tool callers."""
        return f"{self.PUBLIC_BASE_URL}/login?user_id={quote(user_id, safe='')}"


config = Config()


class AppState:
    """Shared application state."""
    tokens: "TokenRepository | None" = None
    http_client: "httpx.AsyncClient | None" = None
    fetcher: "CollectionFetcher | None" = None
    sweeper: "TokenSweepScheduler | None" = None


state = AppState()


def get_token_store() -> "TokenRepository":
    """Dependency to get the token store."""
    if not state.tokens:
        raise HTTPException(status_code=500, detail="Token store not initialized")
    return state.tokens


def get_fetcher() -> "CollectionFetcher":
    """Dependency to get the Graph collection fetcher."""
    if not state.fetcher:
        raise HTTPException(status_code=500, detail="Fetcher not initialized")
    return state.fetcher
