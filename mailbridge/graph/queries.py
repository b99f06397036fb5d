"""
Mailbox queries built on the collection fetcher.

Each operation builds a Graph query URL, drives it through the fetcher,
caps the number of consumed items and shapes them into MailItems.
"""

import logging
from typing import Any
from urllib.parse import quote, urlencode

from ..config import config
from ..exceptions import InvalidInput, RemoteError
from .fetcher import CollectionFetcher, collect
from .models import MailItem, sort_by_received

logger = logging.getLogger(__name__)

MESSAGE_FIELDS = "id,receivedDateTime,sentDateTime,createdDateTime,subject,bodyPreview,from,parentFolderId"
SEARCH_FIELDS = "id,receivedDateTime,subject,bodyPreview,from,parentFolderId"
FOLDER_FIELDS = "id,displayName,childFolderCount,totalItemCount,unreadItemCount"

PAGE_SIZE = 100
SEARCH_FOLDERS_PATH = "/me/mailFolders('searchfolders')/childFolders"


def build_url(path: str, params: dict[str, str]) -> str:
    """Graph URL with OData query options (spaces as %20, not +)."""
    return f"{config.GRAPH_BASE_URL}{path}?{urlencode(params, quote_via=quote)}"


def escape_odata(value: str) -> str:
    """Escape a string literal for an OData $filter."""
    return value.replace("'", "''")


def _result(items: list[MailItem], **extra: Any) -> dict[str, Any]:
    return {"results": [m.to_dict() for m in items], "count": len(items), **extra}


def _sort_folders(folders: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(folders, key=lambda f: (f.get("displayName") or "").casefold())


class MailboxQueries:
    """Named read/search operations against the signed-in user's mailbox."""

    def __init__(self, fetcher: CollectionFetcher, access_token: str):
        self.fetcher = fetcher
        self.access_token = access_token

    def _headers(self, text_body: bool = True, eventual: bool = False) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if text_body:
            headers["Prefer"] = 'outlook.body-content-type="text"'
        if eventual:
            # Required by Graph for $search on messages
            headers["ConsistencyLevel"] = "eventual"
        return headers

    async def _messages(self, url: str, limit: int, eventual: bool = False) -> list[MailItem]:
        items = self.fetcher.iterate_collection(url, self._headers(eventual=eventual))
        return await collect(items, limit, MailItem.from_graph)

    # ─────────────────────────────────────────────────────────────
    # Readers
    # ─────────────────────────────────────────────────────────────

    async def read_latest(self, top: int = 10) -> dict[str, Any]:
        """Latest messages across all folders."""
        url = build_url("/me/messages", {
            "$orderby": "receivedDateTime desc",
            "$top": str(top),
            "$select": MESSAGE_FIELDS,
        })
        return _result(await self._messages(url, top))

    async def read_sent_latest(self, top: int = 10) -> dict[str, Any]:
        """Latest messages from Sent Items."""
        url = build_url("/me/mailFolders/SentItems/messages", {
            "$orderby": "sentDateTime desc",
            "$top": str(top),
            "$select": MESSAGE_FIELDS,
        })
        return _result(await self._messages(url, top))

    async def read_all(self, max: int = 1000) -> dict[str, Any]:
        """Deep scan of the whole mailbox, newest first, up to max."""
        url = build_url("/me/messages", {
            "$orderby": "receivedDateTime desc",
            "$top": str(PAGE_SIZE),
            "$select": MESSAGE_FIELDS,
        })
        return _result(await self._messages(url, max))

    async def read_folder_by_name(self, folder: str = "Inbox", max: int = 1000) -> dict[str, Any]:
        """
        Messages in a folder addressed by display name or well-known name.

        Display names are localized; prefer read_folder_by_id.
        """
        url = build_url(f"/me/mailFolders/{quote(folder, safe='')}/messages", {
            "$orderby": "receivedDateTime desc",
            "$top": str(PAGE_SIZE),
            "$select": MESSAGE_FIELDS,
        })
        return _result(await self._messages(url, max), folder=folder)

    async def read_folder_by_id(self, folder_id: str, max: int = 1000) -> dict[str, Any]:
        """Messages in a folder addressed by its opaque id."""
        if not folder_id:
            raise InvalidInput("folderId is required")

        url = build_url(f"/me/mailFolders/{quote(folder_id, safe='')}/messages", {
            "$orderby": "receivedDateTime desc",
            "$top": str(PAGE_SIZE),
            "$select": MESSAGE_FIELDS,
        })
        return _result(await self._messages(url, max), folderId=folder_id)

    async def read_search_folder_by_id(self, folder_id: str, max: int = 1000) -> dict[str, Any]:
        """Search folders are read like any other folder."""
        return await self.read_folder_by_id(folder_id, max)

    # ─────────────────────────────────────────────────────────────
    # Folders
    # ─────────────────────────────────────────────────────────────

    async def list_folders(self) -> list[dict[str, Any]]:
        """Every top-level mail folder, sorted by display name."""
        url = build_url("/me/mailFolders", {"$top": str(PAGE_SIZE), "$select": FOLDER_FIELDS})
        headers = self._headers(text_body=False)
        folders = [f async for f in self.fetcher.iterate_collection(url, headers)]
        return _sort_folders(folders)

    async def list_search_folders(self) -> list[dict[str, Any]]:
        """
        Search folders (virtual folders).

        Tries the well-known container first; if that fails or is empty, scans
        all folders for names containing both "search" and "folder".
        """
        url = build_url(SEARCH_FOLDERS_PATH, {"$top": str(PAGE_SIZE), "$select": FOLDER_FIELDS})
        headers = self._headers(text_body=False)

        folders: list[dict[str, Any]] = []
        try:
            folders = [f async for f in self.fetcher.iterate_collection(url, headers)]
        except RemoteError as e:
            logger.info(f"Search folder container unavailable ({e.status}), falling back to name scan")

        if folders:
            return _sort_folders(folders)

        candidates = []
        for folder in await self.list_folders():
            name = (folder.get("displayName") or "").lower()
            if "search" in name and "folder" in name:
                candidates.append(folder)
        return candidates

    # ─────────────────────────────────────────────────────────────
    # Search
    # ─────────────────────────────────────────────────────────────

    async def search(self, query: str, top: int = 50) -> dict[str, Any]:
        """Keyword (KQL) search across all folders, first `top` hits."""
        url = build_url("/me/messages", {
            "$search": f'"{query}"',
            "$top": str(min(top, PAGE_SIZE)),
            "$select": SEARCH_FIELDS,
        })
        items = await self._messages(url, top, eventual=True)
        return _result(sort_by_received(items))

    async def search_all_pages(self, query: str, max: int = 1000) -> dict[str, Any]:
        """Keyword search following every page up to max."""
        url = build_url("/me/messages", {
            "$search": f'"{query}"',
            "$top": str(PAGE_SIZE),
            "$select": SEARCH_FIELDS,
        })
        items = await self._messages(url, max, eventual=True)
        return _result(sort_by_received(items))

    async def filter_by_date(self, start_iso: str, end_iso: str, top: int = 200) -> dict[str, Any]:
        """Messages received inside an absolute window, all folders."""
        if not start_iso or not end_iso:
            raise InvalidInput("startIso and endIso are required (ISO 8601)")

        url = build_url("/me/messages", {
            "$filter": f"receivedDateTime ge {start_iso} and receivedDateTime le {end_iso}",
            "$orderby": "receivedDateTime desc",
            "$top": str(min(top, PAGE_SIZE)),
            "$select": SEARCH_FIELDS,
        })
        return _result(await self._messages(url, top))

    # ─────────────────────────────────────────────────────────────
    # Sender
    # ─────────────────────────────────────────────────────────────

    async def search_by_sender_email(
        self,
        email: str,
        limit: int = 2000,
        start_iso: str | None = None,
        end_iso: str | None = None,
    ) -> dict[str, Any]:
        """Exhaustive crawl of messages from one exact sender address."""
        if not email:
            raise InvalidInput("email is required")

        odata_filter = f"from/emailAddress/address eq '{escape_odata(email)}'"
        if start_iso and end_iso:
            odata_filter += f" and receivedDateTime ge {start_iso} and receivedDateTime le {end_iso}"

        url = build_url("/me/messages", {
            "$filter": odata_filter,
            "$select": SEARCH_FIELDS,
            "$top": str(PAGE_SIZE),
        })
        items = await self._messages(url, limit)
        return _result(sort_by_received(items), email=email)

    async def search_sender_by_name(
        self,
        name: str,
        max_sample: int = 300,
        per_sender_limit: int = 2000,
    ) -> dict[str, Any]:
        """
        Resolve a sender name to addresses, then crawl each address.

        1. Keyword search for "from:<name>", sampling up to max_sample hits
        2. Collect the distinct lowercase sender addresses seen
        3. Run the exact-email crawl for each address
        4. Dedupe by message id (first wins) and sort newest first

        Addresses that never show up in the sample are missed.
        """
        if not name:
            raise InvalidInput("name is required")

        sample = await self.search_all_pages(f"from:{name}", max=max_sample)

        senders: list[str] = []
        for message in sample["results"]:
            address = (message.get("from") or "").strip().lower()
            if address and address not in senders:
                senders.append(address)

        if not senders:
            return {"results": [], "count": 0, "discoveredSenders": []}

        logger.info(f"Sender bootstrap for {name!r} discovered {len(senders)} address(es)")

        combined: list[dict[str, Any]] = []
        for address in senders:
            crawl = await self.search_by_sender_email(address, limit=per_sender_limit)
            combined.extend(crawl["results"])

        seen: set[str] = set()
        unique = []
        for message in combined:
            if message["id"] in seen:
                continue
            seen.add(message["id"])
            unique.append(message)

        unique.sort(key=lambda m: m.get("received") or "", reverse=True)
        return {"results": unique, "count": len(unique), "discoveredSenders": senders}
