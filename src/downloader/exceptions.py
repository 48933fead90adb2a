"""Exceptions for the workout file downloader."""


class DownloadError(Exception):
    """Base exception for all download failures raised by this package."""

    pass


class MissingUrlError(DownloadError, ValueError):
    """Raised when a download is requested without a URL."""

    def __init__(self):
        super().__init__("A download URL is required")


class DownloadHTTPStatusError(DownloadError):
    """Raised when the server answers with a non-200, non-redirect status."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} while downloading {url}")


class DownloadTimeoutError(DownloadError):
    """Raised when a request exceeds its wall-clock budget."""

    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Download timeout after {timeout_ms}ms: {url}")


class TooManyRedirectsError(DownloadError):
    """Raised when a redirect chain exceeds the configured hop limit."""

    def __init__(self, url: str, max_redirects: int):
        self.url = url
        self.max_redirects = max_redirects
        super().__init__(f"Exceeded {max_redirects} redirects starting from {url}")


class RedirectLoopError(DownloadError):
    """Raised when a redirect points back at a URL already visited."""

    def __init__(self, chain: list[str]):
        self.chain = chain
        super().__init__(f"Redirect loop detected: {' -> '.join(chain)}")
