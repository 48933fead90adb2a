"""Data model for downloaded workout files."""

from dataclasses import dataclass


@dataclass
class DownloadResult:
    """A downloaded file, owned by the caller."""

    filename: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
