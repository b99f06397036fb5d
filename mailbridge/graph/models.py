"""
Compact shapes returned to tool callers.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class MailItem:
    """Lossy projection of a Graph message."""
    id: str
    received: str | None
    sent: str | None
    sender: str | None
    subject: str | None
    preview: str | None
    folder_id: str | None

    @classmethod
    def from_graph(cls, message: dict[str, Any]) -> "MailItem":
        from_field = message.get("from") or {}
        email_address = from_field.get("emailAddress") or {}
        return cls(
            id=message.get("id", ""),
            received=message.get("receivedDateTime"),
            sent=message.get("sentDateTime") or message.get("createdDateTime"),
            sender=email_address.get("address"),
            subject=message.get("subject"),
            preview=message.get("bodyPreview"),
            folder_id=message.get("parentFolderId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "received": self.received,
            "sent": self.sent,
            "from": self.sender,
            "subject": self.subject,
            "preview": self.preview,
            "folderId": self.folder_id,
        }


def sort_by_received(items: list[MailItem]) -> list[MailItem]:
    """Newest first; items without a timestamp sink to the end. Stable for ties."""
    return sorted(items, key=lambda m: m.received or "", reverse=True)
