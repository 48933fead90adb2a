"""Data models for messages retrieved from a mail provider."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class MessageFilter:
    """Predicate applied by a provider when fetching messages.

    Attributes:
        from_domain: Substring the sender address must contain
            (case-insensitive, not an exact host match)
        has_attachments: Only return messages carrying attachments
        unread_only: Only return unread messages, where the backend
            query language supports it
    """

    from_domain: str
    has_attachments: bool = False
    unread_only: bool = False

    def matches_sender(self, sender: str) -> bool:
        return self.from_domain.lower() in sender.lower()


@dataclass
class Attachment:
    """Attachment descriptor.

    Gmail only reports metadata here (data stays empty and
    attachment_id can be used to fetch the bytes); IMAP messages are
    fetched whole so data holds the decoded payload.
    """

    filename: str
    content_type: str
    size: int
    data: bytes = b""
    attachment_id: Optional[str] = None


@dataclass
class WorkoutEmail:
    """One retrieved email that may reference a workout file.

    Attributes:
        id: Provider-assigned message ID (Gmail ID or IMAP UID)
        sender: Raw From header value
        sender_email: Bare sender address parsed from the From header
        subject: Email subject line
        date: Parsed datetime of when the email was sent
        attachments: Attachment descriptors found in the MIME tree
        download_links: Workout file URLs scraped from the body
    """

    id: str
    sender: str
    sender_email: str
    subject: str
    date: Optional[datetime]
    attachments: list[Attachment] = field(default_factory=list)
    download_links: list[str] = field(default_factory=list)

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    def to_dict(self) -> dict[str, Any]:
        """Summarize the email for logging (attachment bytes omitted)."""
        return {
            "id": self.id,
            "from": self.sender,
            "subject": self.subject,
            "date": self.date.isoformat() if self.date else None,
            "attachment_count": len(self.attachments),
            "attachments": [
                {
                    "filename": att.filename,
                    "content_type": att.content_type,
                    "size": att.size,
                }
                for att in self.attachments
            ],
            "download_links": list(self.download_links),
        }
