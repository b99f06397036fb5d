"""
OAuth routes.

/login sends the browser to Microsoft with the caller's user_id as state;
/auth/callback exchanges the code and stores the tokens under that user_id.
"""

import html
import json
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from ..auth import verify_api_key
from ..config import config, state, get_token_store
from ..database import TokenRepository
from ..exceptions import (
    ExchangeFailed,
    MissingIdentity,
    MissingParameters,
    OAuthNotConfigured,
    ProviderError,
)
from ..graph import authorization_state, complete_authorization, get_auth_url, is_usable
from ..schemas import AuthStatusResponse, CallbackResponse


logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/login", response_model=None)
async def login(user_id: str | None = Query(default=None)) -> RedirectResponse | JSONResponse:
    """Open the Microsoft sign-in page for the given user_id."""
    try:
        auth_url = get_auth_url(user_id)
    except MissingIdentity as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except OAuthNotConfigured as e:
        return JSONResponse(status_code=500, content={"error": str(e)})

    return RedirectResponse(auth_url)


@router.get("/auth/callback", response_model=None)
async def auth_callback(
    code: str | None = Query(default=None),
    state_param: str | None = Query(default=None, alias="state"),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    format: str | None = Query(default=None),
    store: TokenRepository = Depends(get_token_store),
) -> HTMLResponse | JSONResponse:
    """
    OAuth callback endpoint.

    Microsoft redirects here after sign-in. Exchanges the code for tokens and
    stores them under `state` (the user_id). Returns a small HTML page the
    user can close, or JSON when format=json.
    """
    want_json = (format or "").lower() == "json"

    try:
        tokens = await complete_authorization(
            store,
            code=code,
            state=state_param,
            error=error,
            error_description=error_description,
            client=state.http_client,
        )
    except (ProviderError, MissingParameters) as e:
        logger.warning(f"OAuth callback rejected: {e}")
        return _error_response(str(e), want_json)
    except ExchangeFailed as e:
        logger.error(f"OAuth callback error: {e.body}")
        return _error_response(e.body, want_json)

    if want_json:
        return JSONResponse(
            content=CallbackResponse(
                status="logged_in",
                user_id=state_param,
                expires_in=tokens.expires_in,
            ).model_dump()
        )

    return HTMLResponse(content=_success_page(state_param, tokens.expires_in), status_code=200)


@router.get("/auth/status")
async def auth_status(
    user_id: str = Query(..., min_length=1),
    store: TokenRepository = Depends(get_token_store),
) -> AuthStatusResponse:
    """Whether user_id currently has a usable credential."""
    record = store.get(user_id)
    return AuthStatusResponse(
        user_id=user_id,
        state=authorization_state(store, user_id),
        expires_at=record.expiry if is_usable(record) else None,
    )


@router.post("/logout", dependencies=[Depends(verify_api_key)])
async def logout(
    user_id: str = Query(..., min_length=1),
    store: TokenRepository = Depends(get_token_store),
) -> dict:
    """Revoke (delete) the stored credential for user_id."""
    removed = store.delete(user_id)
    if removed:
        logger.info(f"Credential revoked for user_id {user_id}")
    return {"user_id": user_id, "revoked": removed}


def _error_response(error, want_json: bool) -> HTMLResponse | JSONResponse:
    if want_json:
        return JSONResponse(status_code=400, content={"error": error})
    text = error if isinstance(error, str) else json.dumps(error)
    return HTMLResponse(content=_error_page(text), status_code=400)


# ─────────────────────────────────────────────────────────────
# HTML Templates for OAuth Callback
# ─────────────────────────────────────────────────────────────

def _success_page(user_id: str, expires_in: int) -> str:
    """Generate success HTML page for OAuth callback."""
    minutes = max(1, expires_in // 60)
    plural = "" if minutes == 1 else "s"
    message = json.dumps({"type": "oauth_success", "user_id": user_id, "expires_in": expires_in})
    # Keep "</" out of the inline script
    message = message.replace("</", "<\\/")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <title>Signed in</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
        body {{
            font-family: system-ui, -apple-system, "Segoe UI", Roboto, sans-serif;
            background: #0b1220;
            color: #e6edf3;
            display: flex;
            align-items: center;
            justify-content: center;
            height: 100vh;
            margin: 0;
        }}
        .card {{
            background: #111827;
            border: 1px solid #1f2937;
            border-radius: 14px;
            padding: 24px;
            max-width: 540px;
            box-shadow: 0 10px 30px rgba(0,0,0,.35);
        }}
        .title {{
            font-size: 20px;
            font-weight: 700;
            margin-bottom: 8px;
        }}
        .sub {{
            color: #9ca3af;
            margin-bottom: 16px;
        }}
        code {{
            background: #0b1220;
            border: 1px solid #1f2937;
            padding: 2px 6px;
            border-radius: 8px;
            font-size: 12px;
        }}
    </style>
</head>
<body>
    <div class="card">
        <div class="title">You're signed in</div>
        <div class="sub">You can close this tab now.</div>
        <div>Session <code>{html.escape(user_id)}</code> is active for about
        <strong>{minutes} minute{plural}</strong>. After that you may need to sign in again.</div>
    </div>
    <script>
        try {{
            if (window.opener) {{
                window.opener.postMessage({message}, "*");
            }}
        }} catch (e) {{}}
    </script>
</body>
</html>
"""


def _error_page(error: str) -> str:
    """Generate error HTML page for OAuth callback."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <title>Sign-in Failed</title>
    <style>
        body {{
            font-family: system-ui, -apple-system, "Segoe UI", Roboto, sans-serif;
            background: #0b1220;
            color: #e6edf3;
            display: flex;
            align-items: center;
            justify-content: center;
            height: 100vh;
            margin: 0;
        }}
        .card {{
            background: #111827;
            border: 1px solid #7f1d1d;
            border-radius: 14px;
            padding: 24px;
            max-width: 540px;
        }}
        .error {{
            color: #fca5a5;
            font-size: 14px;
            margin: 12px 0;
            white-space: pre-wrap;
        }}
    </style>
</head>
<body>
    <div class="card">
        <div>Sign-in failed</div>
        <div class="error">{html.escape(error)}</div>
        <div>Please close this window and try again.</div>
    </div>
</body>
</html>
"""
