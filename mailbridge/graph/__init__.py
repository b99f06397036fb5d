"""
Microsoft Graph Integration Module.

Provides delegated mailbox access:
- OAuth 2.0 authorization code flow bound to a caller identity key
- Paged collection fetcher with retry/backoff
- Named mailbox read and search queries
"""

from .oauth import (
    TokenSet,
    EXPIRY_SKEW_MS,
    get_auth_url,
    exchange_code_for_tokens,
    complete_authorization,
    is_usable,
    get_valid_access_token,
    authorization_state,
)

from .fetcher import (
    CollectionFetcher,
    backoff_decision,
    is_transient_status,
    collect,
)

from .models import MailItem

from .queries import MailboxQueries

__all__ = [
    # OAuth
    "TokenSet",
    "EXPIRY_SKEW_MS",
    "get_auth_url",
    "exchange_code_for_tokens",
    "complete_authorization",
    "is_usable",
    "get_valid_access_token",
    "authorization_state",
    # Fetcher
    "CollectionFetcher",
    "backoff_decision",
    "is_transient_status",
    "collect",
    # Queries
    "MailItem",
    "MailboxQueries",
]
