"""
API route modules.
"""

from .auth import router as auth_router
from .misc import router as misc_router
from .tools import router as tools_router

__all__ = [
    "auth_router",
    "misc_router",
    "tools_router",
]
