"""
Tool invocation route.

A single action-dispatch endpoint for LLM tools. Every response carries the
user_id actually used so the caller can keep sending it.
"""

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Request, Security
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError

from ..auth import API_KEY_BEARER, api_key_matches
from ..config import config, get_fetcher, get_token_store
from ..database import TokenRepository
from ..date_ranges import compute_range
from ..exceptions import InvalidInput, NoCredential, RemoteError
from ..graph import CollectionFetcher, MailboxQueries, get_valid_access_token
from ..schemas import (
    ActionInputs,
    DateWindowInputs,
    FolderIdInputs,
    FolderNameInputs,
    LoginRequiredResponse,
    MaxInputs,
    NoInputs,
    RelativeRangeInputs,
    SearchAllInputs,
    SearchInputs,
    SenderEmailInputs,
    SenderNameInputs,
    ToolRequest,
    TopInputs,
)
from ..validators import is_valid_identity_key, mint_identity_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tools"])

Handler = Callable[[MailboxQueries, Any], Awaitable[dict[str, Any]]]


# ─────────────────────────────────────────────────────────────
# Action handlers
# ─────────────────────────────────────────────────────────────

async def _list_folders(q: MailboxQueries, _: NoInputs) -> dict[str, Any]:
    return {"folders": await q.list_folders()}


async def _list_search_folders(q: MailboxQueries, _: NoInputs) -> dict[str, Any]:
    return {"folders": await q.list_search_folders()}


async def _read_relative(q: MailboxQueries, inputs: RelativeRangeInputs) -> dict[str, Any]:
    start_iso, end_iso, tz = compute_range(
        tz=inputs.tz or config.DEFAULT_TIMEZONE,
        intent=inputs.intent,
        n=inputs.n,
        on=inputs.on,
        since=inputs.since,
        start=inputs.start,
        end=inputs.end,
    )
    data = await q.filter_by_date(start_iso, end_iso, top=inputs.top)
    return {"range": {"startIso": start_iso, "endIso": end_iso, "tz": tz}, **data}


ACTIONS: dict[str, tuple[type[ActionInputs], Handler]] = {
    "read": (TopInputs, lambda q, i: q.read_latest(i.top)),
    "read_sent": (TopInputs, lambda q, i: q.read_sent_latest(i.top)),
    "read_all": (MaxInputs, lambda q, i: q.read_all(max=i.max)),
    "list_folders": (NoInputs, _list_folders),
    "read_folder_all": (FolderNameInputs, lambda q, i: q.read_folder_by_name(i.folder, max=i.max)),
    "read_folder_id_all": (FolderIdInputs, lambda q, i: q.read_folder_by_id(i.folder_id, max=i.max)),
    "list_search_folders": (NoInputs, _list_search_folders),
    "read_search_folder_id_all": (
        FolderIdInputs, lambda q, i: q.read_search_folder_by_id(i.folder_id, max=i.max)
    ),
    "read_relative": (RelativeRangeInputs, _read_relative),
    "search": (SearchInputs, lambda q, i: q.search(i.q, top=i.top)),
    "search_all": (SearchAllInputs, lambda q, i: q.search_all_pages(i.q, max=i.max)),
    "search_by_date": (
        DateWindowInputs, lambda q, i: q.filter_by_date(i.start_iso, i.end_iso, top=i.top)
    ),
    "search_sender_email": (
        SenderEmailInputs,
        lambda q, i: q.search_by_sender_email(
            i.email, limit=i.limit, start_iso=i.start_iso, end_iso=i.end_iso
        ),
    ),
    "search_sender_name_bootstrap": (
        SenderNameInputs,
        lambda q, i: q.search_sender_by_name(
            i.name, max_sample=i.max_aqs, per_sender_limit=i.per_sender_limit
        ),
    ),
}


def parse_inputs(model: type[ActionInputs], raw: Any) -> ActionInputs:
    """Validate raw action inputs, mapping pydantic errors to InvalidInput."""
    try:
        return model.model_validate(raw if raw is not None else {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" if err["loc"] else err["msg"]
            for err in e.errors()
        )
        raise InvalidInput(problems) from e


def parse_envelope(raw: Any) -> ToolRequest:
    """
    Leniently read the request envelope.

    Fields of the wrong type are dropped instead of failing the whole body, so
    a bad user_id is handled by the identity check and bad inputs by the
    action's own validation.
    """
    fields = raw if isinstance(raw, dict) else {}
    try:
        return ToolRequest.model_validate(fields)
    except ValidationError as e:
        rejected = {err["loc"][0] for err in e.errors() if err["loc"]}
        return ToolRequest.model_validate(
            {key: value for key, value in fields.items() if key not in rejected}
        )


def tool_request_schema() -> dict[str, Any]:
    """OpenAPI body schema: one variant per action with its input model."""
    variants = []
    for name, (model, _) in ACTIONS.items():
        variants.append({
            "type": "object",
            "title": name,
            "properties": {
                "user_id": {"type": "string", "format": "uuid"},
                "action": {"type": "string", "enum": [name]},
                "inputs": model.model_json_schema(by_alias=True),
            },
            "required": ["user_id", "action"],
        })
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": {"oneOf": variants}}},
        }
    }


# ─────────────────────────────────────────────────────────────
# Endpoint
# ─────────────────────────────────────────────────────────────

@router.post("/execute_tool", openapi_extra=tool_request_schema())
async def execute_tool(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(API_KEY_BEARER),
    store: TokenRepository = Depends(get_token_store),
    fetcher: CollectionFetcher = Depends(get_fetcher),
) -> JSONResponse:
    """
    Run one mailbox action for the caller's user_id.

    1. API key check
    2. user_id check (a fresh one is minted and returned if missing or malformed)
    3. Credential check (requires_login with the same user_id if none is usable)
    4. Action dispatch
    """
    if not api_key_matches(credentials.credentials if credentials else None):
        return JSONResponse(
            status_code=401,
            content=LoginRequiredResponse(
                error="Invalid API key",
                login_url=config.login_url("temp"),
            ).model_dump(exclude_none=True),
        )

    try:
        raw = await request.json()
    except ValueError:
        raw = None
    body = parse_envelope(raw)

    user_id = (body.user_id or "").strip()
    if not is_valid_identity_key(user_id, strict=config.STRICT_USER_ID):
        minted = mint_identity_key()
        return JSONResponse(
            status_code=400,
            content=LoginRequiredResponse(
                error="user_id_required",
                message=(
                    "Always send the SAME `user_id` you previously received as `user_id_used`. "
                    "Use the `user_id` below to login, then reuse it on every request."
                ),
                user_id=minted,
                login_url=config.login_url(minted),
            ).model_dump(exclude_none=True),
        )

    try:
        access_token = get_valid_access_token(store, user_id)
    except NoCredential:
        # Missing or expired: ask for a login but keep the same user_id
        return JSONResponse(
            content=LoginRequiredResponse(
                user_id=user_id,
                login_url=config.login_url(user_id),
            ).model_dump(exclude_none=True),
        )

    headers = {"X-User-Id-Used": user_id}

    def fail(status_code: int, error: Any, **extra: Any) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"user_id_used": user_id, "error": error, **extra},
            headers=headers,
        )

    action = (body.action or "").strip()
    if action not in ACTIONS:
        return fail(400, "Invalid action")

    model, handler = ACTIONS[action]
    queries = MailboxQueries(fetcher, access_token)

    try:
        inputs = parse_inputs(model, body.inputs)
        data = await handler(queries, inputs)
    except InvalidInput as e:
        return fail(400, str(e))
    except RemoteError as e:
        logger.error(f"execute_tool {action} failed: {e.status} {e.body}")
        # Only error statuses pass through; an unreadable 2xx page maps to 502
        status = e.status if e.status and e.status >= 400 else 502
        return fail(status, e.body, remote_status=e.status)

    return JSONResponse(content={"user_id_used": user_id, **data}, headers=headers)
