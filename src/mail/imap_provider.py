"""ImapProvider - message fetching from a generic IMAP server."""

import imaplib
import logging
import ssl
from email.utils import parsedate_to_datetime
from typing import Optional

from src.config import ConfigurationMissingError, ProviderConfig
from src.downloader import FileFetcher

from .body_parser import (
    extract_download_links,
    extract_email_address,
    extract_mime_attachments,
    extract_mime_bodies,
    parse_mime,
)
from .exceptions import NotConnectedError
from .models import MessageFilter, WorkoutEmail
from .provider import MessageProvider

logger = logging.getLogger(__name__)


class ImapProvider(MessageProvider):
    """Fetches unseen workout emails over IMAP with TLS.

    The configured refresh token is used as the login password (an
    app password). The mailbox is opened read-only and bodies are
    fetched with BODY.PEEK[], so polling never marks mail as seen.
    """

    name = "IMAP"

    def __init__(self, config: ProviderConfig, file_fetcher: Optional[FileFetcher] = None):
        super().__init__(config, file_fetcher)
        self._conn: Optional[imaplib.IMAP4_SSL] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        """Open the TLS connection and log in.

        Raises:
            ConfigurationMissingError: If no auth block is configured
            imaplib.IMAP4.error: If the server rejects the login
            OSError: If the server cannot be reached
        """
        if self._config.auth is None:
            raise ConfigurationMissingError("IMAP authentication settings are required")

        conn = imaplib.IMAP4_SSL(
            self._config.imap_host,
            self._config.imap_port,
            ssl_context=ssl.create_default_context(),
        )
        try:
            conn.login(self._config.email, self._config.auth.refresh_token)
        except imaplib.IMAP4.error:
            logger.error("IMAP login rejected for %s", self._config.email)
            conn.shutdown()
            raise

        self._conn = conn
        logger.info(
            "Connected to IMAP server %s:%d successfully",
            self._config.imap_host,
            self._config.imap_port,
        )

    def disconnect(self) -> None:
        """Close mailbox and logout."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except (imaplib.IMAP4.error, OSError):
            pass
        try:
            self._conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass
        self._conn = None
        logger.info("Disconnected from IMAP server")

    def _require_connection(self) -> imaplib.IMAP4_SSL:
        if self._conn is None:
            raise NotConnectedError(self.name)
        return self._conn

    def get_messages(self, message_filter: MessageFilter) -> list[WorkoutEmail]:
        """Search for unseen messages from the sender domain and parse each hit."""
        conn = self._require_connection()

        status, data = conn.select(self._config.imap_mailbox, readonly=True)
        if status != "OK":
            raise imaplib.IMAP4.error(
                f"Cannot open mailbox {self._config.imap_mailbox}: {data!r}"
            )

        status, data = conn.uid("SEARCH", None, "UNSEEN", "FROM", f'"{message_filter.from_domain}"')
        if status != "OK":
            raise imaplib.IMAP4.error(f"IMAP search failed: {data!r}")
        if not data or not data[0]:
            logger.info("Retrieved 0 messages from IMAP")
            return []

        messages: list[WorkoutEmail] = []
        for uid_bytes in data[0].split():
            uid = uid_bytes.decode()
            status, msg_data = conn.uid("FETCH", uid, "(BODY.PEEK[])")
            if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                logger.warning("Skipping IMAP message %s: fetch returned %s", uid, status)
                continue

            message = self._parse_message(uid, msg_data[0][1])
            if not message_filter.matches_sender(message.sender):
                continue
            if message_filter.has_attachments and not message.has_attachments:
                continue
            messages.append(message)

        logger.info("Retrieved %d messages from IMAP", len(messages))
        return messages

    def _parse_message(self, uid: str, raw_bytes: bytes) -> WorkoutEmail:
        msg = parse_mime(raw_bytes)

        sender = str(msg.get("From", ""))
        _, sender_email = extract_email_address(sender)

        try:
            date = parsedate_to_datetime(str(msg.get("Date", "")))
        except (ValueError, TypeError):
            date = None

        body_text, body_html = extract_mime_bodies(msg)

        return WorkoutEmail(
            id=uid,
            sender=sender,
            sender_email=sender_email,
            subject=str(msg.get("Subject", "")),
            date=date,
            attachments=extract_mime_attachments(msg),
            download_links=extract_download_links(body_html, body_text),
        )
