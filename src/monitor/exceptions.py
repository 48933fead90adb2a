"""Exceptions for the monitor module."""


class MonitorError(Exception):
    """Base exception for monitor failures."""

    pass


class MonitorNotRunningError(MonitorError):
    """Raised when checking or processing mail while the monitor is stopped."""

    def __init__(self):
        super().__init__("Email monitor is not running")


class NoDownloadLinkError(MonitorError, ValueError):
    """Raised when a workout email carries no download link."""

    def __init__(self, message_id: str, subject: str = ""):
        self.message_id = message_id
        self.subject = subject
        super().__init__(
            f"Email {message_id} ({subject!r}) has no workout download link"
        )
