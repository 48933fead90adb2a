"""Body parsing utilities for Gmail payloads and raw RFC 822 messages."""

import base64
import email
import email.policy
import html
import re
from email.message import EmailMessage
from typing import Optional

from .models import Attachment

# Anchors pointing at a TCX export, e.g. href="https://host/export/123.tcx?sig=..."
_WORKOUT_LINK_PATTERN = re.compile(r"""href\s*=\s*["']([^"']*\.tcx[^"']*)["']""", re.IGNORECASE)


def decode_base64_bytes(data: str) -> bytes:
    """Decode Gmail's URL-safe base64 encoded data to raw bytes.

    Gmail uses URL-safe base64 encoding (RFC 4648) which replaces
    '+' with '-' and '/' with '_', and often drops the padding.
    """
    # Add padding if necessary (base64 requires length divisible by 4)
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding

    return base64.urlsafe_b64decode(data)


def decode_base64(data: str) -> str:
    """Decode Gmail's URL-safe base64 encoded data to a UTF-8 string."""
    return decode_base64_bytes(data).decode("utf-8", errors="replace")


def extract_body(payload: dict) -> tuple[str, Optional[str]]:
    """Extract plain text and HTML body from Gmail message payload.

    Gmail messages can have various structures:
    - Simple: body.data directly in payload
    - Multipart: parts array with different MIME types
    - Nested multipart: parts containing more parts

    Args:
        payload: Gmail message payload dictionary

    Returns:
        Tuple of (plain_text_body, html_body). HTML may be None.
    """
    plain_text = ""
    html_body = None

    def extract_from_parts(parts: list) -> None:
        nonlocal plain_text, html_body

        for part in parts:
            mime_type = part.get("mimeType", "")
            body_data = part.get("body", {}).get("data")

            if mime_type == "text/plain" and body_data and not plain_text:
                plain_text = decode_base64(body_data)
            elif mime_type == "text/html" and body_data and not html_body:
                html_body = decode_base64(body_data)
            elif mime_type.startswith("multipart/"):
                nested_parts = part.get("parts", [])
                if nested_parts:
                    extract_from_parts(nested_parts)

    # Check for simple message (body directly in payload)
    body_data = payload.get("body", {}).get("data")
    mime_type = payload.get("mimeType", "")

    if body_data:
        decoded = decode_base64(body_data)
        if mime_type == "text/html":
            html_body = decoded
        else:
            plain_text = decoded
    elif "parts" in payload:
        extract_from_parts(payload["parts"])

    return plain_text, html_body


def extract_attachments(payload: dict) -> list[Attachment]:
    """Collect attachment descriptors from a Gmail payload tree.

    Only parts with both a filename and an attachmentId count; the
    bytes themselves are fetched separately on demand.
    """
    attachments: list[Attachment] = []

    def walk(part: dict) -> None:
        body = part.get("body", {})
        if part.get("filename") and body.get("attachmentId"):
            attachments.append(
                Attachment(
                    filename=part["filename"],
                    content_type=part.get("mimeType", "application/octet-stream"),
                    size=body.get("size", 0),
                    attachment_id=body["attachmentId"],
                )
            )
        for child in part.get("parts", []):
            walk(child)

    walk(payload)
    return attachments


def extract_email_address(header_value: str) -> tuple[str, str]:
    """Parse email header to extract display name and email address.

    Handles formats like:
    - "John Doe <john@example.com>"
    - "<john@example.com>"
    - "john@example.com"

    Args:
        header_value: Raw From/To header value

    Returns:
        Tuple of (display_name, email_address). Display name may equal
        email address if no name is present.
    """
    match = re.match(r'^"?([^"<]*)"?\s*<([^>]+)>$', header_value.strip())
    if match:
        name = match.group(1).strip()
        address = match.group(2).strip()
        return (name if name else address, address)

    address = header_value.strip()
    return (address, address)


def extract_download_links(*bodies: Optional[str]) -> list[str]:
    """Scrape workout file links from one or more message bodies.

    Best effort: bodies without a matching anchor contribute nothing.
    Entities such as ``&amp;`` are unescaped and duplicates are dropped
    while keeping first-seen order.
    """
    links: list[str] = []
    for body in bodies:
        if not body:
            continue
        for match in _WORKOUT_LINK_PATTERN.finditer(body):
            url = html.unescape(match.group(1)).strip()
            if url and url not in links:
                links.append(url)
    return links


def parse_mime(raw_bytes: bytes) -> EmailMessage:
    """Parse raw RFC 822 bytes into a message object."""
    return email.message_from_bytes(raw_bytes, policy=email.policy.default)


def extract_mime_bodies(msg: EmailMessage) -> tuple[Optional[str], Optional[str]]:
    """Walk MIME parts and return (plain_text, html_text)."""
    body_text: Optional[str] = None
    body_html: Optional[str] = None

    for part in msg.walk():
        # Skip multipart containers, they have no content of their own
        if part.get_content_maintype() == "multipart":
            continue
        if "attachment" in str(part.get("Content-Disposition", "")):
            continue

        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue

        payload = part.get_content()
        if not isinstance(payload, str):
            continue
        if content_type == "text/plain" and body_text is None:
            body_text = payload
        elif content_type == "text/html" and body_html is None:
            body_html = payload

    return body_text, body_html


def extract_mime_attachments(msg: EmailMessage) -> list[Attachment]:
    """Walk MIME parts and collect attachments with their decoded bytes."""
    attachments: list[Attachment] = []

    for part in msg.walk():
        if part.get_content_maintype() == "multipart":
            continue

        disposition = str(part.get("Content-Disposition", ""))
        filename = part.get_filename()
        if "attachment" not in disposition and not filename:
            continue

        payload = part.get_payload(decode=True)
        if payload is None:
            continue

        attachments.append(
            Attachment(
                filename=filename or "unnamed",
                content_type=part.get_content_type(),
                size=len(payload),
                data=payload,
            )
        )

    return attachments
