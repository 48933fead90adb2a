"""MessageProvider - the capability every mail backend implements."""

from abc import ABC, abstractmethod
from typing import Optional

from src.config import ProviderConfig
from src.downloader import DEFAULT_TIMEOUT_MS, DownloadResult, FileFetcher

from .models import MessageFilter, WorkoutEmail


class MessageProvider(ABC):
    """Connects to a mail backend and returns messages matching a filter.

    Subclasses implement connect/disconnect/get_messages. Downloading
    the referenced workout file is shared by all backends and goes
    through the provider's own FileFetcher.
    """

    name = "mail"

    def __init__(self, config: ProviderConfig, file_fetcher: Optional[FileFetcher] = None):
        self._config = config
        self._file_fetcher = file_fetcher or FileFetcher()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @abstractmethod
    def connect(self) -> None:
        """Establish and authenticate a session with the backend."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Tear the session down. Never raises."""
        pass

    @abstractmethod
    def get_messages(self, message_filter: MessageFilter) -> list[WorkoutEmail]:
        """Return freshly parsed messages matching the filter.

        Raises:
            NotConnectedError: If connect() has not succeeded
        """
        pass

    def download_workout_file(
        self,
        url: Optional[str],
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        filename_hint: Optional[str] = None,
    ) -> DownloadResult:
        """Download a workout file referenced by a message."""
        return self._file_fetcher.fetch(url, timeout_ms=timeout_ms, filename_hint=filename_hint)
