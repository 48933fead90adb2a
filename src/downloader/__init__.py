"""Workout file downloader.

Fetches files referenced from workout emails over HTTP(S), following
redirects under a hop limit and enforcing a per-request time budget.

Public API:
    - FileFetcher: Downloads a URL into a DownloadResult
    - DownloadResult: Resolved filename plus raw bytes
    - resolve_filename: Filename precedence rules
    - DownloadError and subclasses
"""

from .exceptions import (
    DownloadError,
    DownloadHTTPStatusError,
    DownloadTimeoutError,
    MissingUrlError,
    RedirectLoopError,
    TooManyRedirectsError,
)
from .file_fetcher import DEFAULT_TIMEOUT_MS, FileFetcher, resolve_filename
from .models import DownloadResult

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "FileFetcher",
    "DownloadResult",
    "resolve_filename",
    "DownloadError",
    "DownloadHTTPStatusError",
    "DownloadTimeoutError",
    "MissingUrlError",
    "RedirectLoopError",
    "TooManyRedirectsError",
]
