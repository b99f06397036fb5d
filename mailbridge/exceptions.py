"""
Error taxonomy shared by the token store, OAuth flow, Graph fetcher and routes.
"""

from typing import Any


class MailBridgeError(Exception):
    """Base class for all mail bridge errors."""
    pass


class MissingIdentity(MailBridgeError):
    """No identity key was supplied where one is required."""
    pass


class ProviderError(MailBridgeError):
    """The identity provider declined the request or the user cancelled."""

    def __init__(self, error: str, description: str | None = None):
        self.error = error
        self.description = description
        message = f"OAuth error: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)


class ExchangeFailed(MailBridgeError):
    """The token endpoint rejected the authorization code."""

    def __init__(self, body: Any, status: int | None = None):
        self.body = body
        self.status = status
        super().__init__(f"Token exchange failed: {body}")


class RemoteError(MailBridgeError):
    """
    The remote collection API returned an error.

    Carries the remote status and body unchanged. `status` is None when the
    request never produced a response (timeout, connection failure).
    """

    def __init__(self, status: int | None, body: Any, retry_after: str | None = None):
        self.status = status
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"Remote API error {status}: {body}")


class InvalidInput(MailBridgeError):
    """Malformed action parameters."""
    pass


class MissingParameters(InvalidInput):
    """The OAuth callback arrived without a code or state."""
    pass


class NoCredential(MailBridgeError):
    """No usable, non-expired credential exists for the identity key."""

    def __init__(self, identity_key: str):
        self.identity_key = identity_key
        super().__init__(f"No usable credential for {identity_key}")


class OAuthNotConfigured(MailBridgeError):
    """CLIENT_ID is not set, so no authorization request can be built."""
    pass
