"""GmailProvider - message fetching through the Gmail API."""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from src.config import ProviderConfig
from src.downloader import FileFetcher

from .body_parser import (
    decode_base64_bytes,
    extract_attachments,
    extract_body,
    extract_download_links,
    extract_email_address,
)
from .exceptions import NotConnectedError
from .gmail_auth import GmailAuthenticator
from .models import MessageFilter, WorkoutEmail
from .provider import MessageProvider

logger = logging.getLogger(__name__)


def build_query(message_filter: MessageFilter) -> str:
    """Translate a MessageFilter into a Gmail search query."""
    terms = [f"from:{message_filter.from_domain}"]
    if message_filter.has_attachments:
        terms.append("has:attachment")
    if message_filter.unread_only:
        terms.append("is:unread")
    return " ".join(terms)


class GmailProvider(MessageProvider):
    """Fetches workout emails from Gmail.

    The API client handle belongs to this instance; several providers
    can coexist in one process.

    Example usage:
        provider = GmailProvider(config)
        provider.connect()
        for message in provider.get_messages(config.to_filter()):
            print(message.subject, message.download_links)
    """

    name = "Gmail"

    def __init__(
        self,
        config: ProviderConfig,
        authenticator: Optional[GmailAuthenticator] = None,
        service: Optional[Resource] = None,
        file_fetcher: Optional[FileFetcher] = None,
    ):
        """Initialize the provider.

        Args:
            config: Provider settings (mailbox, domain, page size).
            authenticator: Gmail authenticator instance.
                Defaults to GmailAuthenticator with default paths.
            service: Pre-built Gmail API service (for testing).
                If provided, authenticator is ignored.
            file_fetcher: Downloader for workout files.
        """
        super().__init__(config, file_fetcher)
        self._auth = authenticator
        self._prebuilt_service = service
        self._service: Optional[Resource] = None
        self._history_id: Optional[str] = None

    @property
    def history_id(self) -> Optional[str]:
        """Mailbox history cursor from the last connect() or get_messages_since()."""
        return self._history_id

    def connect(self) -> None:
        """Authenticate and verify access with a profile lookup."""
        service = self._prebuilt_service
        if service is None:
            if self._auth is None:
                self._auth = GmailAuthenticator()
            service = self._auth.get_service()

        try:
            profile = service.users().getProfile(userId="me").execute()
        except Exception:
            logger.exception("Failed to connect to Gmail")
            raise

        self._service = service
        self._history_id = profile.get("historyId")
        logger.info(
            "Connected to Gmail successfully as %s",
            profile.get("emailAddress", self._config.email),
        )

    def disconnect(self) -> None:
        # The API client holds no session; dropping the handle is enough
        self._service = None
        logger.info("Disconnected from Gmail")

    def _require_service(self) -> Resource:
        if self._service is None:
            raise NotConnectedError(self.name)
        return self._service

    def _parse_message(self, message: dict) -> WorkoutEmail:
        """Parse Gmail API message into a WorkoutEmail.

        Args:
            message: Full Gmail message from API (format='full')
        """
        payload = message.get("payload", {})
        headers = payload.get("headers", [])
        header_map = {h["name"].lower(): h["value"] for h in headers}

        sender = header_map.get("from", "")
        _, sender_email = extract_email_address(sender)

        date_str = header_map.get("date", "")
        try:
            date = parsedate_to_datetime(date_str)
        except (ValueError, TypeError):
            # Fallback to internal timestamp (milliseconds since epoch)
            internal_date = message.get("internalDate")
            date = (
                datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
                if internal_date
                else None
            )

        plain_text, html_body = extract_body(payload)

        return WorkoutEmail(
            id=message["id"],
            sender=sender,
            sender_email=sender_email,
            subject=header_map.get("subject", ""),
            date=date,
            attachments=extract_attachments(payload),
            download_links=extract_download_links(html_body, plain_text),
        )

    def get_messages(self, message_filter: MessageFilter) -> list[WorkoutEmail]:
        """Fetch messages matching the filter with a server-side query.

        Errors from the Gmail API (googleapiclient.errors.HttpError)
        propagate unchanged.
        """
        service = self._require_service()
        query = build_query(message_filter)

        results = (
            service.users()
            .messages()
            .list(
                userId="me",
                q=query,
                maxResults=self._config.max_results,
            )
            .execute()
        )

        messages: list[WorkoutEmail] = []
        for msg_ref in results.get("messages", []):
            if not msg_ref.get("id"):
                continue
            message = (
                service.users()
                .messages()
                .get(
                    userId="me",
                    id=msg_ref["id"],
                    format="full",
                )
                .execute()
            )
            messages.append(self._parse_message(message))

        logger.info("Retrieved %d messages from Gmail (query=%r)", len(messages), query)
        return messages

    def download_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Fetch the bytes of a Gmail attachment.

        Raises:
            NotConnectedError: If connect() has not succeeded
            googleapiclient.errors.HttpError: If the attachment is not found
        """
        service = self._require_service()
        response = (
            service.users()
            .messages()
            .attachments()
            .get(userId="me", messageId=message_id, id=attachment_id)
            .execute()
        )
        return decode_base64_bytes(response.get("data", ""))

    def _is_from_domain(self, service: Resource, message_id: str, domain: str) -> bool:
        """Check the From header with a metadata-only fetch."""
        try:
            message = (
                service.users()
                .messages()
                .get(
                    userId="me",
                    id=message_id,
                    format="metadata",
                    metadataHeaders=["From"],
                )
                .execute()
            )
        except HttpError as e:
            # History can reference messages deleted since
            if e.resp.status == 404:
                logger.warning("Message %s from history no longer exists", message_id)
                return False
            raise

        headers = message.get("payload", {}).get("headers", [])
        sender = next((h["value"] for h in headers if h["name"].lower() == "from"), "")
        return MessageFilter(from_domain=domain).matches_sender(sender)

    def get_messages_since(
        self, history_id: str, message_filter: MessageFilter
    ) -> tuple[list[WorkoutEmail], Optional[str]]:
        """Fetch messages added to the mailbox after a history cursor.

        Walks every page of users.history.list for added messages, keeps
        the ones whose From header contains the filter's domain, and
        parses those in full. The attachment requirement is applied to
        the parsed messages.

        Args:
            history_id: Cursor from a previous call, or history_id
                after connect()
            message_filter: Filter the results must match

        Returns:
            Tuple of (messages, next_history_id). Pass next_history_id
            to the following call so each message is reported once.

        Raises:
            NotConnectedError: If connect() has not succeeded
            googleapiclient.errors.HttpError: If the cursor is too old
                (404) or the API call fails
        """
        service = self._require_service()

        message_ids: list[str] = []
        latest_history_id: Optional[str] = history_id
        page_token: Optional[str] = None
        while True:
            response = (
                service.users()
                .history()
                .list(
                    userId="me",
                    startHistoryId=history_id,
                    historyTypes=["messageAdded"],
                    pageToken=page_token,
                )
                .execute()
            )
            for item in response.get("history", []):
                for ref in item.get("messages", []):
                    if ref.get("id") and ref["id"] not in message_ids:
                        message_ids.append(ref["id"])
            latest_history_id = response.get("historyId", latest_history_id)
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        messages: list[WorkoutEmail] = []
        for message_id in message_ids:
            if not self._is_from_domain(service, message_id, message_filter.from_domain):
                continue
            full = (
                service.users()
                .messages()
                .get(userId="me", id=message_id, format="full")
                .execute()
            )
            message = self._parse_message(full)
            if message_filter.has_attachments and not message.has_attachments:
                continue
            messages.append(message)

        self._history_id = latest_history_id
        logger.info(
            "Retrieved %d of %d new messages from Gmail history since %s",
            len(messages),
            len(message_ids),
            history_id,
        )
        return messages, latest_history_id
