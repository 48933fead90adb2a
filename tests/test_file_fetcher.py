"""Unit tests for the workout file downloader."""

import socket
import threading
import time
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from src.downloader import (
    DownloadHTTPStatusError,
    DownloadTimeoutError,
    FileFetcher,
    MissingUrlError,
    RedirectLoopError,
    TooManyRedirectsError,
    resolve_filename,
)

TCX = b"<?xml version='1.0'?><TrainingCenterDatabase/>"


@pytest.fixture
def fetcher():
    fetcher = FileFetcher()
    yield fetcher
    fetcher.close()


class TestResolveFilename:
    def test_hint_wins(self):
        name = resolve_filename(
            "https://host/export/42.tcx",
            content_disposition='attachment; filename="server.tcx"',
            filename_hint="msg-1",
        )
        assert name == "msg-1.tcx"

    def test_content_disposition(self):
        name = resolve_filename(
            "https://host/export/42", content_disposition='attachment; filename="run.tcx"'
        )
        assert name == "run.tcx"

    def test_url_segment(self):
        assert resolve_filename("https://host/export/42.tcx?sig=abc") == "42.tcx"

    def test_empty_path_uses_default(self):
        assert resolve_filename("https://host/") == "workout.tcx"

    def test_suffix_check_is_case_insensitive(self):
        assert resolve_filename("https://host/RUN.TCX") == "RUN.TCX"

    def test_appends_suffix(self):
        assert resolve_filename("https://host/download/123") == "123.tcx"


class TestFetch:
    def test_missing_url_makes_no_request(self):
        client = MagicMock()
        with pytest.raises(MissingUrlError, match="A download URL is required"):
            FileFetcher(client=client).fetch("")
        client.stream.assert_not_called()

    @respx.mock
    def test_downloads_body(self, fetcher):
        respx.get("https://www.mywellness.com/export/42.tcx").mock(
            return_value=httpx.Response(200, content=TCX)
        )

        result = fetcher.fetch("https://www.mywellness.com/export/42.tcx")

        assert result.filename == "42.tcx"
        assert result.data == TCX
        assert result.size == len(TCX)

    @respx.mock
    def test_filename_hint(self, fetcher):
        respx.get("https://host/export/42.tcx").mock(
            return_value=httpx.Response(
                200, content=TCX, headers={"Content-Disposition": 'attachment; filename="x.tcx"'}
            )
        )

        result = fetcher.fetch("https://host/export/42.tcx", filename_hint="msg-9")
        assert result.filename == "msg-9.tcx"

    @respx.mock
    def test_follows_redirects_to_final_url(self, fetcher):
        respx.get("https://host/start").mock(
            return_value=httpx.Response(302, headers={"Location": "https://cdn.host/files/7.tcx"})
        )
        respx.get("https://cdn.host/files/7.tcx").mock(
            return_value=httpx.Response(200, content=TCX)
        )

        result = fetcher.fetch("https://host/start")

        assert result.filename == "7.tcx"
        assert result.data == TCX

    @respx.mock
    def test_relative_redirect(self, fetcher):
        respx.get("https://host/a/start").mock(
            return_value=httpx.Response(301, headers={"Location": "/files/8.tcx"})
        )
        respx.get("https://host/files/8.tcx").mock(return_value=httpx.Response(200, content=TCX))

        assert fetcher.fetch("https://host/a/start").filename == "8.tcx"

    @respx.mock
    def test_redirect_loop(self, fetcher):
        respx.get("https://host/a").mock(
            return_value=httpx.Response(302, headers={"Location": "https://host/b"})
        )
        respx.get("https://host/b").mock(
            return_value=httpx.Response(302, headers={"Location": "https://host/a"})
        )

        with pytest.raises(RedirectLoopError) as exc_info:
            fetcher.fetch("https://host/a")
        assert exc_info.value.chain == ["https://host/a", "https://host/b", "https://host/a"]

    @respx.mock(assert_all_called=False)
    def test_too_many_redirects(self, respx_mock):
        for hop in range(5):
            respx_mock.get(f"https://host/{hop}").mock(
                return_value=httpx.Response(302, headers={"Location": f"https://host/{hop + 1}"})
            )

        fetcher = FileFetcher(max_redirects=2)
        with pytest.raises(TooManyRedirectsError):
            fetcher.fetch("https://host/0")
        fetcher.close()

    @respx.mock
    def test_http_error_status(self, fetcher):
        respx.get("https://host/missing.tcx").mock(return_value=httpx.Response(404))

        with pytest.raises(DownloadHTTPStatusError, match="HTTP 404") as exc_info:
            fetcher.fetch("https://host/missing.tcx")
        assert exc_info.value.status_code == 404

    @respx.mock
    def test_redirect_without_location_is_an_error(self, fetcher):
        respx.get("https://host/odd").mock(return_value=httpx.Response(302))

        with pytest.raises(DownloadHTTPStatusError):
            fetcher.fetch("https://host/odd")

    @respx.mock
    def test_transport_timeout(self, fetcher):
        respx.get("https://host/slow.tcx").mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(DownloadTimeoutError, match="Download timeout after 250ms"):
            fetcher.fetch("https://host/slow.tcx", timeout_ms=250)

    @respx.mock
    def test_network_error_propagates(self, fetcher):
        respx.get("https://host/down.tcx").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(httpx.ConnectError):
            fetcher.fetch("https://host/down.tcx")


def _streaming_response(chunks: list[bytes]) -> MagicMock:
    response = MagicMock(status_code=200, headers=httpx.Headers())
    response.iter_bytes.return_value = iter(chunks)
    response.request.extensions = {"timeout": {"read": 1.0}}
    return response


def _client_for(response: MagicMock) -> MagicMock:
    client = MagicMock()
    client.stream.return_value.__enter__.return_value = response
    return client


class TestWallClockBudget:
    """The timeout bounds the whole request, not each socket operation."""

    def test_slow_body_is_aborted(self):
        response = _streaming_response([b"a", b"b", b"c"])
        # Deadline computed at t=0 with a 1s budget; second chunk arrives at t=2
        ticks = iter([0.0, 0.5, 0.6, 2.0])
        fetcher = FileFetcher(client=_client_for(response), clock=lambda: next(ticks))

        with pytest.raises(DownloadTimeoutError):
            fetcher.fetch("https://host/slow.tcx", timeout_ms=1000)
        response.close.assert_called_once()

    def test_late_headers_are_aborted_before_reading_body(self):
        response = _streaming_response([b"a"])
        ticks = iter([0.0, 1.5])
        fetcher = FileFetcher(client=_client_for(response), clock=lambda: next(ticks))

        with pytest.raises(DownloadTimeoutError, match="1000ms"):
            fetcher.fetch("https://host/slow.tcx", timeout_ms=1000)
        response.close.assert_called_once()
        response.iter_bytes.assert_not_called()

    def test_body_reads_get_only_the_remaining_budget(self):
        response = _streaming_response([TCX])
        ticks = iter([0.0, 0.25, 0.5])
        fetcher = FileFetcher(client=_client_for(response), clock=lambda: next(ticks))

        result = fetcher.fetch("https://host/run.tcx", timeout_ms=1000)

        assert result.data == TCX
        assert response.request.extensions["timeout"]["read"] == pytest.approx(0.75)

    def test_trickling_server_is_cut_off_near_the_budget(self):
        """Headers arrive just inside the budget, then the body stalls."""
        listener = socket.socket()
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        port = listener.getsockname()[1]

        def serve():
            conn, _ = listener.accept()
            try:
                conn.recv(4096)
                time.sleep(0.3)
                conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\n")
                for byte in b"<tcx>":
                    time.sleep(0.3)
                    conn.sendall(bytes([byte]))
            except OSError:
                pass
            finally:
                conn.close()

        server = threading.Thread(target=serve, daemon=True)
        server.start()
        fetcher = FileFetcher()
        started = time.monotonic()
        try:
            with pytest.raises(DownloadTimeoutError):
                fetcher.fetch(f"http://127.0.0.1:{port}/run.tcx", timeout_ms=500)
            elapsed = time.monotonic() - started
        finally:
            fetcher.close()
            listener.close()
            server.join(timeout=5)

        assert elapsed < 0.8
