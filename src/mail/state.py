"""Ledger of processed workout emails."""

from abc import ABC, abstractmethod
from typing import Set


class StateRepository(ABC):
    """Interface for tracking processed emails by message ID.

    The scheduler consults it before processing a message and records
    a message only after its workout file was downloaded.
    """

    @abstractmethod
    def is_processed(self, message_id: str) -> bool:
        """Check if a message has already been processed."""
        pass

    @abstractmethod
    def mark_processed(self, message_id: str) -> None:
        """Record a message as processed."""
        pass

    @abstractmethod
    def get_processed_ids(self) -> Set[str]:
        """Get all processed message IDs."""
        pass


class InMemoryStateRepository(StateRepository):
    """Process-lifetime ledger.

    Nothing is persisted: after a restart every matching message is
    eligible again.
    """

    def __init__(self) -> None:
        self._processed: Set[str] = set()

    def is_processed(self, message_id: str) -> bool:
        return message_id in self._processed

    def mark_processed(self, message_id: str) -> None:
        self._processed.add(message_id)

    def get_processed_ids(self) -> Set[str]:
        return self._processed.copy()
