"""
Rate limiting middleware for API protection.

Uses slowapi to limit requests per IP address, so a runaway tool loop cannot
burn through the Graph throttling budget of every signed-in user.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import config


def get_rate_limit() -> str:
    """Get rate limit from config."""
    limit = config.RATE_LIMIT_PER_MINUTE
    if limit <= 0:
        # Rate limiting disabled
        return "1000000/minute"  # Effectively unlimited
    return f"{limit}/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Custom handler for rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Rate limit exceeded: {exc.detail}",
            "retry_after": getattr(exc, "retry_after", 60),
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


def setup_rate_limiting(app) -> bool:
    """
    Configure rate limiting for a FastAPI app.

    Does nothing when RATE_LIMIT_PER_MINUTE is 0. Returns whether limiting
    was enabled.
    """
    if config.RATE_LIMIT_PER_MINUTE <= 0:
        return False

    # Create limiter with IP-based key
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[get_rate_limit()],
        storage_uri="memory://",  # In-memory storage (resets on restart)
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    return True
