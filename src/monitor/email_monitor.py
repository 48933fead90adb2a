"""EmailMonitor - drives one MessageProvider through its lifecycle."""

import logging
from typing import Optional

from src.config import ProviderConfig
from src.downloader import DEFAULT_TIMEOUT_MS, DownloadResult
from src.mail import MessageFilter, MessageProvider, WorkoutEmail, create_provider

from .exceptions import MonitorNotRunningError, NoDownloadLinkError

logger = logging.getLogger(__name__)


class EmailMonitor:
    """Stopped/Running state machine around a MessageProvider.

    start() connects the provider, stop() disconnects it. Checking for
    mail and processing a message are only allowed while running. The
    filter is built once and passed to every fetch; the monitor adds no
    filtering of its own.

    Example:
        monitor = EmailMonitor.from_config(config.provider)
        monitor.start()
        for message in monitor.check_for_new_emails():
            monitor.process_workout_email(message)
        monitor.stop()
    """

    def __init__(
        self,
        provider: MessageProvider,
        message_filter: MessageFilter,
        download_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self._provider = provider
        self._filter = message_filter
        self._download_timeout_ms = download_timeout_ms
        self._running = False

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "EmailMonitor":
        return cls(create_provider(config), config.to_filter())

    @property
    def provider(self) -> MessageProvider:
        return self._provider

    @property
    def message_filter(self) -> MessageFilter:
        return self._filter

    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Connect the provider and enter the Running state.

        A second call while running is a no-op. Connection errors
        propagate and leave the monitor stopped.
        """
        if self._running:
            logger.warning("Email monitor is already running")
            return

        try:
            self._provider.connect()
        except Exception:
            logger.exception("Failed to start email monitor")
            raise

        self._running = True
        logger.info(
            "Email monitor started successfully",
            extra={"provider": self._provider.name},
        )

    def stop(self) -> None:
        if not self._running:
            logger.warning("Email monitor is not running")
            return

        self._provider.disconnect()
        self._running = False
        logger.info("Email monitor stopped")

    def check_for_new_emails(self) -> list[WorkoutEmail]:
        """Fetch messages matching the filter.

        Raises:
            MonitorNotRunningError: If the monitor is stopped (the
                provider is not called)
        """
        if not self._running:
            raise MonitorNotRunningError()

        logger.info("Checking for new emails from %s...", self._filter.from_domain)
        messages = self._provider.get_messages(self._filter)

        if messages:
            logger.info("Found %d workout emails", len(messages))
            for message in messages:
                logger.info("Workout email details: %s", message.to_dict())
        else:
            logger.info("No new workout emails found")

        return messages

    def process_workout_email(self, message: WorkoutEmail) -> DownloadResult:
        """Download the workout file behind the message's first link.

        The message ID is used as the filename hint. The downloaded
        file is returned to the caller and not stored anywhere else.

        Raises:
            MonitorNotRunningError: If the monitor is stopped
            NoDownloadLinkError: If the message has no download link
            DownloadError: If the download fails
        """
        if not self._running:
            raise MonitorNotRunningError()

        logger.info(
            "Processing workout email: %s",
            message.subject,
            extra={"message_id": message.id},
        )

        link: Optional[str] = message.download_links[0] if message.download_links else None
        if not link:
            raise NoDownloadLinkError(message.id, message.subject)

        result = self._provider.download_workout_file(
            link, self._download_timeout_ms, message.id
        )
        logger.info(
            "Downloaded workout file: %s (%d bytes)",
            result.filename,
            result.size,
            extra={"message_id": message.id},
        )
        return result
