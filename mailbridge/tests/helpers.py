"""
Shared test doubles and Graph payload builders.
"""

import httpx

GRAPH_BASE = "https://graph.test/v1.0"
API_KEY = "test-api-key-12345"
USER_ID = "3f2b8c1e-4d5a-4b6c-9d7e-0123456789ab"


class FakeGraph:
    """
    Programmable stand-in for Graph and the token endpoint.

    Routes match on a path suffix plus optional query parameter substrings.
    Each route replays its responses in order and repeats the last one.
    """

    def __init__(self):
        self.routes: list[tuple[str, dict[str, str], list[httpx.Response]]] = []
        self.requests: list[httpx.Request] = []

    def add(self, path: str, *responses: httpx.Response, where: dict[str, str] | None = None):
        self.routes.append((path, where or {}, list(responses)))

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, where, responses in self.routes:
            if not request.url.path.endswith(path):
                continue
            params = request.url.params
            if all(value in params.get(key, "") for key, value in where.items()):
                canned = responses.pop(0) if len(responses) > 1 else responses[0]
                # Fresh copy so a repeated response is never shared between requests
                return httpx.Response(
                    canned.status_code,
                    headers=canned.headers,
                    content=canned.content,
                )
        return httpx.Response(404, json={"error": {"code": "ItemNotFound", "message": str(request.url)}})


class SleepRecorder:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def page(items: list[dict], next_link: str | None = None) -> httpx.Response:
    body: dict = {"value": items}
    if next_link:
        body["@odata.nextLink"] = next_link
    return httpx.Response(200, json=body)


def message(
    id: str,
    received: str,
    sender: str = "someone@example.com",
    subject: str = "Hello",
) -> dict:
    return {
        "id": id,
        "receivedDateTime": received,
        "subject": subject,
        "bodyPreview": f"Preview of {subject}",
        "from": {"emailAddress": {"address": sender, "name": sender.split("@")[0]}},
        "parentFolderId": "inbox-id",
    }
