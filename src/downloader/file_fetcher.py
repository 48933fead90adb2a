"""FileFetcher - downloads workout files referenced from emails."""

import logging
import re
import time
from typing import Callable, Optional
from urllib.parse import unquote, urljoin, urlparse

import httpx

from .exceptions import (
    DownloadHTTPStatusError,
    DownloadTimeoutError,
    MissingUrlError,
    RedirectLoopError,
    TooManyRedirectsError,
)
from .models import DownloadResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_REDIRECTS = 10
DEFAULT_FILENAME = "workout.tcx"
WORKOUT_SUFFIX = ".tcx"
REDIRECT_STATUSES = (301, 302)

_CONTENT_DISPOSITION_FILENAME = re.compile(r"filename\s*=\s*([^;]+)", re.IGNORECASE)


def _filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    match = _CONTENT_DISPOSITION_FILENAME.search(header)
    if not match:
        return None
    name = match.group(1).strip().strip("\"'")
    return name or None


def _filename_from_url(url: str) -> str:
    segment = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    return segment or DEFAULT_FILENAME


def resolve_filename(
    url: str,
    content_disposition: Optional[str] = None,
    filename_hint: Optional[str] = None,
) -> str:
    """Pick the output filename for a download.

    Precedence: explicit hint, then the Content-Disposition filename,
    then the last path segment of the URL (``workout.tcx`` when empty).
    A ``.tcx`` suffix is appended when missing.

    Args:
        url: Final URL the body was served from
        content_disposition: Raw Content-Disposition header, if any
        filename_hint: Caller-supplied name that overrides everything else

    Returns:
        Resolved filename ending in .tcx
    """
    name = (
        filename_hint
        or _filename_from_content_disposition(content_disposition)
        or _filename_from_url(url)
    )
    if not name.lower().endswith(WORKOUT_SUFFIX):
        name += WORKOUT_SUFFIX
    return name


class FileFetcher:
    """Downloads a URL fully into memory.

    Redirects (301/302 with a Location header) are followed in an
    explicit loop capped at ``max_redirects`` hops; revisiting a URL is
    reported as a loop instead of spinning until the hop limit. Every
    hop gets its own ``timeout_ms`` wall-clock budget covering headers and body.

    Example:
        fetcher = FileFetcher()
        result = fetcher.fetch("https://example.com/export/42.tcx")
        print(result.filename, result.size)
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the fetcher.

        Args:
            client: Pre-built httpx client (for testing). Must not follow
                redirects itself. Created lazily when omitted.
            max_redirects: Maximum number of redirect hops per download.
            clock: Monotonic clock in seconds, used for the wall-clock budget.
        """
        self._client = client
        self._owns_client = client is None
        self._max_redirects = max_redirects
        self._clock = clock

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(follow_redirects=False)
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _remaining(
        self, response: httpx.Response, deadline: float, url: str, timeout_ms: int
    ) -> float:
        """Seconds left in the budget; aborts the response once it is spent."""
        remaining = deadline - self._clock()
        if remaining <= 0:
            response.close()
            raise DownloadTimeoutError(url, timeout_ms)
        return remaining

    def _request(
        self, url: str, timeout_ms: int
    ) -> tuple[Optional[httpx.Headers], bytes, Optional[str]]:
        """Issue one GET within a wall-clock budget of ``timeout_ms``.

        The budget covers the whole exchange, not each socket operation:
        it is checked as soon as headers arrive and after every chunk,
        and body reads may only block for what is left of it.

        Returns:
            (headers, body, None) for a 200 response, or
            (None, b"", redirect_target) for a followable redirect.
        """
        client = self._get_client()
        deadline = self._clock() + timeout_ms / 1000

        try:
            with client.stream("GET", url, timeout=httpx.Timeout(timeout_ms / 1000)) as response:
                remaining = self._remaining(response, deadline, url, timeout_ms)

                location = response.headers.get("location")
                if response.status_code in REDIRECT_STATUSES and location:
                    return None, b"", urljoin(url, location)

                if response.status_code != 200:
                    raise DownloadHTTPStatusError(response.status_code, url)

                # The transport reads the body read timeout from the request
                # extensions when body iteration starts
                response.request.extensions["timeout"]["read"] = remaining

                chunks: list[bytes] = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    self._remaining(response, deadline, url, timeout_ms)

                return response.headers, b"".join(chunks), None
        except httpx.TimeoutException as exc:
            raise DownloadTimeoutError(url, timeout_ms) from exc

    def fetch(
        self,
        url: Optional[str],
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        filename_hint: Optional[str] = None,
    ) -> DownloadResult:
        """Download a workout file.

        Args:
            url: File URL. Must be non-empty.
            timeout_ms: Wall-clock budget per request, in milliseconds.
            filename_hint: Name to use instead of the server-provided one.

        Returns:
            DownloadResult with the resolved filename and body bytes

        Raises:
            MissingUrlError: If url is empty (no request is made)
            DownloadHTTPStatusError: On a non-200, non-redirect response
            DownloadTimeoutError: If a request exceeds timeout_ms
            RedirectLoopError: If a redirect revisits a URL
            TooManyRedirectsError: If more than max_redirects hops are needed
            httpx.HTTPError: Network failures, propagated unchanged
        """
        if not url:
            raise MissingUrlError()

        chain = [url]
        current = url
        while True:
            headers, data, redirect_to = self._request(current, timeout_ms)
            if redirect_to is None:
                break

            if redirect_to in chain:
                raise RedirectLoopError(chain + [redirect_to])
            if len(chain) - 1 >= self._max_redirects:
                raise TooManyRedirectsError(url, self._max_redirects)

            logger.debug("Following redirect %s -> %s", current, redirect_to)
            chain.append(redirect_to)
            current = redirect_to

        filename = resolve_filename(
            current,
            headers.get("content-disposition") if headers is not None else None,
            filename_hint,
        )
        logger.info("Downloaded %s (%d bytes) from %s", filename, len(data), current)
        return DownloadResult(filename=filename, data=data)
