"""
Authentication module for tool access control.

Tool callers authenticate with a static API key sent as
"Authorization: Bearer <API_KEY>". Mailbox access additionally needs a
stored OAuth credential for the caller's user_id (see graph.oauth).
"""

import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import config

# Bearer scheme for the static API key
API_KEY_BEARER = HTTPBearer(auto_error=False)


def api_key_matches(provided: str | None) -> bool:
    """Constant-time comparison against the configured API key."""
    if not provided or not config.API_KEY:
        return False
    return secrets.compare_digest(provided, config.API_KEY)


def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Security(API_KEY_BEARER),
) -> str:
    """
    Verify the API key from the Authorization header.

    Unlike the tool endpoint, which answers with a login hint, this dependency
    simply rejects the request.

    Raises:
        HTTPException: 401 if the key is missing or invalid
    """
    provided = credentials.credentials if credentials else None
    if not api_key_matches(provided):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return provided


def generate_api_key() -> str:
    """Generate a secure random API key."""
    return secrets.token_urlsafe(32)
