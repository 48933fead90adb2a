"""CLI entry point for the workout mail monitor."""

import argparse
import logging
import signal
import sys

from dotenv import load_dotenv

from src.config import AppConfig, RunMode, load_config
from src.logging_config import configure_logging
from src.mail import create_provider
from src.monitor import EmailMonitor, EmailScheduler, PassResult

logger = logging.getLogger("run_monitor")


def build_scheduler(config: AppConfig) -> EmailScheduler:
    """Wire provider, monitor and scheduler from configuration."""
    monitor = EmailMonitor.from_config(config.provider)
    return EmailScheduler(monitor, interval_minutes=config.interval_minutes)


def setup_auth(config: AppConfig) -> None:
    """Connect once so the OAuth exchange runs and the token gets cached."""
    provider = create_provider(config.provider)
    provider.connect()
    provider.disconnect()


def _install_signal_handlers(scheduler: EmailScheduler) -> None:
    def _handle(signum, frame) -> None:
        logger.info(
            "Received %s, shutting down gracefully...", signal.Signals(signum).name
        )
        scheduler.stop()
        sys.exit(0)

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handle)


def _print_summary(result: PassResult) -> None:
    print("\n--- Pass Summary ---")
    for key, value in result.to_dict().items():
        print(f"  {key}: {value}")
    print(f"\nResult: {'SUCCESS' if result.success else 'FAILURE'}")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Monitor a mailbox for workout emails")
    parser.add_argument(
        "mode",
        nargs="?",
        default=None,
        help="Run mode: scheduled (default), continuous, or once "
        "(overrides MONITOR_MODE env var)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Poll interval in minutes (overrides MONITOR_INTERVAL_MINUTES, default: 5)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set logging level (overrides LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--setup-auth",
        action="store_true",
        help="Authenticate with the mail provider, cache the token, and exit",
    )
    args = parser.parse_args(argv)
    configure_logging(level_override=args.log_level)

    logger.info("Starting workout email monitor")

    try:
        config = load_config(mode=args.mode, interval_minutes=args.interval)

        if args.setup_auth:
            setup_auth(config)
            logger.info("Mail provider authentication setup complete")
            return 0

        scheduler = build_scheduler(config)
        _install_signal_handlers(scheduler)

        if config.mode is RunMode.ONCE:
            result = scheduler.run_once()
            _print_summary(result)
            return 0

        if config.mode is RunMode.CONTINUOUS:
            scheduler.start_continuous_monitoring()
            return 0

        scheduler.start_scheduled_monitoring()
        scheduler.wait()
        return 0
    except Exception:
        logger.exception("Failed to run email monitor")
        return 1


if __name__ == "__main__":
    sys.exit(main())
