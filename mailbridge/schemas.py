"""
Pydantic models for API request/response validation.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────
# Tool Request Schemas
# ─────────────────────────────────────────────────────────────

class ToolRequest(BaseModel):
    """Body of POST /execute_tool."""
    user_id: str | None = None
    action: str | None = None
    inputs: Any = None  # validated per action


class ActionInputs(BaseModel):
    """Base for per-action inputs. Accepts the camelCase names tools send."""
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class NoInputs(ActionInputs):
    pass


class TopInputs(ActionInputs):
    top: int = Field(default=10, ge=1)


class MaxInputs(ActionInputs):
    max: int = Field(default=1000, ge=1)


class FolderNameInputs(ActionInputs):
    folder: str = Field(default="Inbox", min_length=1)
    max: int = Field(default=1000, ge=1)


class FolderIdInputs(ActionInputs):
    folder_id: str = Field(alias="folderId", min_length=1)
    max: int = Field(default=1000, ge=1)


class RelativeRangeInputs(ActionInputs):
    tz: str | None = None
    intent: str | None = None
    n: int | None = Field(default=None, ge=1)
    on: str | None = None
    since: str | None = None
    start: str | None = None
    end: str | None = None
    top: int = Field(default=5000, ge=1)


class SearchInputs(ActionInputs):
    q: str = Field(min_length=1)
    top: int = Field(default=50, ge=1)


class SearchAllInputs(ActionInputs):
    q: str = Field(min_length=1)
    max: int = Field(default=1000, ge=1)


class DateWindowInputs(ActionInputs):
    start_iso: str = Field(alias="startIso", min_length=1)
    end_iso: str = Field(alias="endIso", min_length=1)
    top: int = Field(default=200, ge=1)


class SenderEmailInputs(ActionInputs):
    email: str = Field(min_length=1)
    limit: int = Field(default=2000, ge=1)
    # Optional window, applied only when both ends are given
    start_iso: str | None = Field(default=None, alias="startIso")
    end_iso: str | None = Field(default=None, alias="endIso")


class SenderNameInputs(ActionInputs):
    name: str = Field(min_length=1)
    max_aqs: int = Field(default=300, alias="maxAqs", ge=1)
    per_sender_limit: int = Field(default=2000, alias="perSenderLimit", ge=1)


# ─────────────────────────────────────────────────────────────
# Response Schemas
# ─────────────────────────────────────────────────────────────

class LoginRequiredResponse(BaseModel):
    """Returned whenever the caller has to (re)authenticate."""
    requires_login: bool = True
    user_id: str | None = None
    login_url: str
    error: str | None = None
    message: str | None = None


class AuthStatusResponse(BaseModel):
    """Authorization state for one identity key."""
    user_id: str
    state: str  # "bound" or "awaiting_callback"
    expires_at: int | None = None  # epoch ms


class CallbackResponse(BaseModel):
    """Machine-readable OAuth callback result (format=json)."""
    status: str
    user_id: str
    expires_in: int
