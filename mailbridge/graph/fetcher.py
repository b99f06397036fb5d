"""
Graph Collection Fetcher - paged GETs with retry/backoff.

Handles:
- One GET per page with a fixed timeout
- Retry on 429 and 5xx, honoring Retry-After when the server sends it
- Lazy iteration over @odata.nextLink pages
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from ..exceptions import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUEST_TIMEOUT = 30.0  # seconds, per network call
MAX_RETRIES = 4  # 5 attempts in total
BACKOFF_CAP = 16  # seconds

NEXT_LINK = "@odata.nextLink"


def is_transient_status(status: int | None) -> bool:
    """429 and any 5xx are worth retrying; everything else fails immediately."""
    if status is None:
        return False
    return status == 429 or status >= 500


def parse_retry_after(value: str | None) -> float | None:
    """Return a positive Retry-After delay in seconds, or None if absent or unusable."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def backoff_decision(
    attempt: int,
    status: int | None,
    retry_after: str | None = None,
    max_retries: int = MAX_RETRIES,
    cap: int = BACKOFF_CAP,
) -> tuple[bool, float]:
    """
    Decide whether a failed request should be retried and how long to wait.

    Args:
        attempt: Number of retries already made for this request (0 on first failure)
        status: HTTP status of the failed response
        retry_after: Raw Retry-After header value, if any
        max_retries: Retries allowed after the first attempt
        cap: Upper bound for the exponential delay

    Returns:
        (should_retry, delay_seconds). The delay is Retry-After when present,
        otherwise min(2 ** attempt, cap): 1, 2, 4, 8, 16 ...
    """
    if not is_transient_status(status) or attempt >= max_retries:
        return False, 0.0

    delay = parse_retry_after(retry_after)
    if delay is None:
        delay = float(min(2 ** attempt, cap))
    return True, delay


class CollectionFetcher:
    """Fetches paged Graph collections with bounded exponential backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.timeout = timeout
        self.max_retries = max_retries
        self._sleep = sleep

    async def fetch_page(self, url: str, headers: dict[str, str]) -> dict[str, Any]:
        """
        GET one page, retrying transient failures.

        Raises:
            RemoteError: On a non-retryable status, a transport failure, or
                once retries are exhausted (the last error, unchanged)
        """
        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=retry_if_exception(
                lambda e: isinstance(e, RemoteError) and is_transient_status(e.status)
            ),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            before_sleep=self._log_retry,
            reraise=True,
        )

        page: dict[str, Any] = {}
        async for attempt in retrying:
            with attempt:
                page = await self._get(url, headers)
        return page

    async def iterate_collection(
        self,
        url: str,
        headers: dict[str, str],
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Yield every item of a paged collection in server order.

        The next page is only requested once the consumer has taken every
        item of the current one, so stopping early never fetches unused pages.
        """
        next_url: str | None = url
        while next_url:
            page = await self.fetch_page(next_url, headers)
            for item in page.get("value") or []:
                yield item
            next_url = page.get(NEXT_LINK)

    async def _get(self, url: str, headers: dict[str, str]) -> dict[str, Any]:
        try:
            response = await self.client.get(url, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise RemoteError(None, str(e) or e.__class__.__name__) from e

        if response.status_code >= 400:
            raise RemoteError(
                response.status_code,
                _response_body(response),
                retry_after=response.headers.get("Retry-After"),
            )

        page = _response_body(response)
        if not isinstance(page, dict):
            # Not a collection page (e.g. an HTML page from a proxy)
            raise RemoteError(response.status_code, page)
        return page

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if not isinstance(error, RemoteError):
            return 0.0
        _, delay = backoff_decision(
            retry_state.attempt_number - 1,
            error.status,
            error.retry_after,
            max_retries=self.max_retries,
        )
        return delay

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        status = getattr(error, "status", None)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Graph request returned {status}, retry {retry_state.attempt_number}"
            f"/{self.max_retries} in {delay:g}s"
        )


async def collect(
    items: AsyncIterator[Any],
    limit: int,
    shape: Callable[[Any], T] | None = None,
) -> list[T]:
    """
    Consume at most `limit` items from an async iterator.

    The iterator is closed as soon as the limit is reached.
    """
    out: list = []
    if limit <= 0:
        return out

    async with aclosing(items) as it:
        async for item in it:
            out.append(shape(item) if shape else item)
            if len(out) >= limit:
                break
    return out


def _response_body(response: httpx.Response) -> Any:
    """Decoded JSON error body when possible, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text
