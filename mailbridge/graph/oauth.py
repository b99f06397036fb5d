"""
Microsoft identity platform OAuth 2.0 code flow.

The caller supplies the identity key (user_id) to /login; it travels through
the provider as the opaque `state` and the resulting tokens are stored under
it. Tokens are not refreshed: once expired the caller is asked to log in
again with the same user_id.
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import httpx

from ..config import config
from ..database import CredentialFields, now_ms
from ..exceptions import (
    ExchangeFailed,
    MissingIdentity,
    MissingParameters,
    NoCredential,
    OAuthNotConfigured,
    ProviderError,
)
from .fetcher import REQUEST_TIMEOUT

if TYPE_CHECKING:
    from ..database import DBCredential, TokenRepository


logger = logging.getLogger(__name__)

# Treat a token as expired when less than this much lifetime remains
EXPIRY_SKEW_MS = 60 * 1000

AWAITING_CALLBACK = "awaiting_callback"
BOUND = "bound"


@dataclass
class TokenSet:
    """Tokens returned by a successful code exchange."""
    access_token: str
    refresh_token: str | None
    expires_in: int  # seconds
    scopes: str


def authorize_endpoint() -> str:
    return f"{config.authority_url()}/authorize"


def token_endpoint() -> str:
    return f"{config.authority_url()}/token"


def get_auth_url(user_id: str | None) -> str:
    """
    Build the provider authorization URL for an identity key.

    Args:
        user_id: Caller-chosen identity key, echoed back as `state`

    Returns:
        Authorization URL to redirect the user to

    Raises:
        MissingIdentity: If no key was supplied. A key is never minted here,
            since the redirect would be unlinkable to any caller session.
    """
    user_id = (user_id or "").strip()
    if not user_id:
        raise MissingIdentity(
            "Missing user_id. Call /execute_tool first to get login_url + user_id."
        )
    if not config.CLIENT_ID:
        raise OAuthNotConfigured("CLIENT_ID not configured")

    params = {
        "client_id": config.CLIENT_ID,
        "response_type": "code",
        "redirect_uri": config.REDIRECT_URI,
        "response_mode": "query",
        "scope": config.SCOPES,
        "state": user_id,
        "prompt": "select_account",
    }
    return f"{authorize_endpoint()}?{urlencode(params)}"


async def exchange_code_for_tokens(
    code: str,
    client: httpx.AsyncClient | None = None,
) -> TokenSet:
    """
    Exchange an authorization code for tokens with one form-encoded POST.

    Raises:
        ExchangeFailed: If the token endpoint rejects the code or cannot be reached
    """
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as own_client:
            return await exchange_code_for_tokens(code, own_client)

    data = {
        "client_id": config.CLIENT_ID,
        "scope": config.SCOPES,
        "code": code,
        "redirect_uri": config.REDIRECT_URI,
        "grant_type": "authorization_code",
    }
    if config.CLIENT_SECRET:
        data["client_secret"] = config.CLIENT_SECRET

    try:
        response = await client.post(token_endpoint(), data=data, timeout=REQUEST_TIMEOUT)
    except httpx.HTTPError as e:
        raise ExchangeFailed(str(e) or e.__class__.__name__) from e

    try:
        body = response.json()
    except ValueError:
        body = response.text

    if response.status_code != 200:
        raise ExchangeFailed(body, status=response.status_code)

    if not isinstance(body, dict) or not body.get("access_token"):
        raise ExchangeFailed(body, status=response.status_code)

    return TokenSet(
        access_token=body["access_token"],
        refresh_token=body.get("refresh_token"),
        expires_in=int(body.get("expires_in", 3600)),
        scopes=config.SCOPES,
    )


async def complete_authorization(
    store: "TokenRepository",
    code: str | None,
    state: str | None,
    error: str | None = None,
    error_description: str | None = None,
    client: httpx.AsyncClient | None = None,
    now: int | None = None,
) -> TokenSet:
    """
    Finish the code flow and bind the tokens to the identity key in `state`.

    Nothing is written unless the exchange succeeds.

    Raises:
        ProviderError: The provider reported an error (e.g. user cancelled)
        MissingParameters: code or state is absent
        ExchangeFailed: The token endpoint rejected the code
    """
    if error:
        raise ProviderError(error, error_description)
    if not code or not state:
        raise MissingParameters("Missing authorization code or state (user_id).")

    tokens = await exchange_code_for_tokens(code, client)

    issued_at = now if now is not None else now_ms()
    store.put(
        state,
        CredentialFields(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expiry=issued_at + tokens.expires_in * 1000,
            scopes=tokens.scopes,
        ),
        now=issued_at,
    )
    logger.info(f"Stored credential for user_id {state} (expires in {tokens.expires_in}s)")
    return tokens


def is_usable(record: "DBCredential | None", now: int | None = None) -> bool:
    """A credential is usable only if more than the skew window remains."""
    if record is None:
        return False
    current = now if now is not None else now_ms()
    return record.expiry - EXPIRY_SKEW_MS > current


def get_valid_access_token(
    store: "TokenRepository",
    user_id: str,
    now: int | None = None,
) -> str:
    """
    Return the stored access token for user_id if it is still usable.

    Raises:
        NoCredential: If there is no record or it is expired / about to expire
    """
    record = store.get(user_id)
    if not is_usable(record, now):
        raise NoCredential(user_id)
    return record.access_token


def authorization_state(
    store: "TokenRepository",
    user_id: str,
    now: int | None = None,
) -> str:
    """`bound` when a usable credential exists, otherwise `awaiting_callback`."""
    return BOUND if is_usable(store.get(user_id), now) else AWAITING_CALLBACK
