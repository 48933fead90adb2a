"""Data models for monitoring pass results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass
class PassResult:
    """Outcome of one check-and-process pass."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    messages_found: int = 0
    files_downloaded: int = 0
    duplicates_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return round((self.finished_at - self.started_at).total_seconds(), 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages_found": self.messages_found,
            "files_downloaded": self.files_downloaded,
            "duplicates_skipped": self.duplicates_skipped,
            "errors": list(self.errors),
            "duration_seconds": self.duration_seconds,
        }
