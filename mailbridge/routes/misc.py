"""
Miscellaneous routes: health check.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import config, state

router = APIRouter(tags=["misc"])


@router.get("/status")
async def health_check() -> dict:
    """API health check."""
    return {
        "status": "ok",
        "version": __version__,
        "oauth_configured": bool(config.CLIENT_ID),
        "stored_credentials": state.tokens.count() if state.tokens else 0,
    }
