"""Tests for the run_monitor CLI entry point."""

import signal
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

import run_monitor
from src.config import (
    AppConfig,
    ConfigurationMissingError,
    ProviderConfig,
    ProviderType,
    RunMode,
)
from src.monitor import PassResult

# Captured before the autouse fixture patches it out of run_monitor
install_signal_handlers = run_monitor._install_signal_handlers


def _config(mode: RunMode) -> AppConfig:
    return AppConfig(
        provider=ProviderConfig(provider=ProviderType.GMAIL, email="me@gmail.com"),
        interval_minutes=5,
        mode=mode,
    )


@pytest.fixture(autouse=True)
def _no_side_effects():
    """Keep the CLI from reading .env, reconfiguring logging or installing handlers."""
    with patch("run_monitor.load_dotenv"), patch("run_monitor.configure_logging"), patch(
        "run_monitor._install_signal_handlers"
    ):
        yield


@pytest.fixture
def scheduler():
    scheduler = MagicMock()
    scheduler.run_once.return_value = PassResult(
        started_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
        finished_at=datetime(2024, 1, 15, 0, 0, 2, tzinfo=timezone.utc),
        messages_found=2,
        files_downloaded=2,
    )
    with patch("run_monitor.build_scheduler", return_value=scheduler):
        yield scheduler


class TestMain:
    def test_once_mode(self, scheduler, capsys):
        with patch("run_monitor.load_config", return_value=_config(RunMode.ONCE)) as load:
            assert run_monitor.main(["once"]) == 0

        load.assert_called_once_with(mode="once", interval_minutes=None)
        scheduler.run_once.assert_called_once()
        output = capsys.readouterr().out
        assert "files_downloaded: 2" in output
        assert "Result: SUCCESS" in output

    def test_scheduled_mode_waits(self, scheduler):
        with patch("run_monitor.load_config", return_value=_config(RunMode.SCHEDULED)):
            assert run_monitor.main([]) == 0

        scheduler.start_scheduled_monitoring.assert_called_once()
        scheduler.wait.assert_called_once()

    def test_continuous_mode(self, scheduler):
        with patch("run_monitor.load_config", return_value=_config(RunMode.CONTINUOUS)):
            assert run_monitor.main(["continuous", "--interval", "2"]) == 0

        scheduler.start_continuous_monitoring.assert_called_once()

    def test_interval_flag_is_forwarded(self, scheduler):
        with patch("run_monitor.load_config", return_value=_config(RunMode.ONCE)) as load:
            run_monitor.main(["once", "--interval", "15"])

        load.assert_called_once_with(mode="once", interval_minutes=15)

    def test_startup_error_returns_one(self, scheduler):
        scheduler.run_once.side_effect = ConnectionError("refused")

        with patch("run_monitor.load_config", return_value=_config(RunMode.ONCE)):
            assert run_monitor.main(["once"]) == 1

    def test_configuration_error_returns_one(self, scheduler):
        with patch(
            "run_monitor.load_config",
            side_effect=ConfigurationMissingError("EMAIL_ADDRESS is required"),
        ):
            assert run_monitor.main([]) == 1
        scheduler.run_once.assert_not_called()

    def test_invalid_mode_returns_one(self, scheduler):
        env = {"EMAIL_PROVIDER": "gmail", "EMAIL_ADDRESS": "me@gmail.com"}
        with patch.dict("os.environ", env, clear=True):
            assert run_monitor.main(["hourly"]) == 1
        scheduler.start_scheduled_monitoring.assert_not_called()

    def test_setup_auth(self, scheduler):
        with patch(
            "run_monitor.load_config", return_value=_config(RunMode.SCHEDULED)
        ), patch("run_monitor.create_provider") as create:
            assert run_monitor.main(["--setup-auth"]) == 0

        create.return_value.connect.assert_called_once()
        create.return_value.disconnect.assert_called_once()
        scheduler.start_scheduled_monitoring.assert_not_called()


@pytest.fixture
def restore_signal_handlers():
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in previous.items():
        signal.signal(sig, handler)


class TestSignalHandlers:
    @pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
    def test_signal_stops_scheduler_and_exits_zero(self, sig, restore_signal_handlers):
        scheduler = MagicMock()
        install_signal_handlers(scheduler)

        with pytest.raises(SystemExit) as exc_info:
            signal.getsignal(sig)(sig, None)

        scheduler.stop.assert_called_once()
        assert exc_info.value.code == 0

    def test_both_signals_are_handled(self, restore_signal_handlers):
        install_signal_handlers(MagicMock())

        assert signal.getsignal(signal.SIGTERM) is signal.getsignal(signal.SIGINT)
        assert callable(signal.getsignal(signal.SIGTERM))
