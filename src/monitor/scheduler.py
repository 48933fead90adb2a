"""EmailScheduler - runs an EmailMonitor on a chosen cadence."""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from src.mail import InMemoryStateRepository, StateRepository

from .email_monitor import EmailMonitor
from .exceptions import NoDownloadLinkError
from .models import PassResult
from .trigger import PeriodicTrigger

logger = logging.getLogger(__name__)

TriggerFactory = Callable[[int, Callable[[], None]], PeriodicTrigger]


class EmailScheduler:
    """Drives one EmailMonitor in scheduled, continuous or run-once mode.

    Pick exactly one mode per process:
    - start_scheduled_monitoring(): register a */N minute trigger and return
    - start_continuous_monitoring(): pass, sleep N minutes, repeat; blocks
      the calling thread until stop()
    - run_once(): one pass, then stop the monitor

    Scheduled and continuous passes log and swallow per-message errors so
    polling survives; run_once lets the first error propagate.

    Messages processed successfully are recorded in the state repository
    and skipped by later passes in the same process. So are messages
    without a download link, since retrying them cannot succeed.

    stop() never interrupts a pass in flight. The provider is
    disconnected once the current pass has finished.
    """

    def __init__(
        self,
        monitor: EmailMonitor,
        interval_minutes: int = 5,
        state_repository: Optional[StateRepository] = None,
        trigger_factory: TriggerFactory = PeriodicTrigger,
        waiter: Optional[Callable[[float], bool]] = None,
    ):
        """Initialize the scheduler.

        Args:
            monitor: Monitor to drive.
            interval_minutes: Minutes between passes.
            state_repository: Processed-message ledger.
                Defaults to an in-memory ledger.
            trigger_factory: Builds the periodic trigger for scheduled mode.
            waiter: Sleeps between continuous passes; receives the delay in
                seconds and returns True once stop() was requested.
                Defaults to waiting on the stop event.
        """
        self._monitor = monitor
        self._interval_minutes = interval_minutes
        self._state = state_repository or InMemoryStateRepository()
        self._trigger_factory = trigger_factory
        self._trigger: Optional[PeriodicTrigger] = None
        self._stop_event = threading.Event()
        self._waiter = waiter or self._stop_event.wait
        # Guards the handoff of monitor shutdown between stop() and the continuous loop
        self._lock = threading.RLock()
        self._continuous_active = False

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def state(self) -> StateRepository:
        return self._state

    def _run_pass(self, raise_errors: bool) -> PassResult:
        """Check for mail and process every message not yet handled."""
        result = PassResult(started_at=datetime.now(timezone.utc))

        try:
            messages = self._monitor.check_for_new_emails()
        except Exception as e:
            if raise_errors:
                raise
            logger.exception("Error checking for new emails")
            result.errors.append(str(e))
            result.finished_at = datetime.now(timezone.utc)
            return result

        result.messages_found = len(messages)
        for message in messages:
            if self._state.is_processed(message.id):
                result.duplicates_skipped += 1
                logger.debug("Skipping already processed email %s", message.id)
                continue

            try:
                self._monitor.process_workout_email(message)
            except NoDownloadLinkError as e:
                if raise_errors:
                    raise
                logger.warning("%s; it will not be retried", e)
                result.errors.append(f"{message.id}: {e}")
                self._state.mark_processed(message.id)
                continue
            except Exception as e:
                if raise_errors:
                    raise
                logger.exception(
                    "Failed to process email %s (%s)", message.id, message.subject
                )
                result.errors.append(f"{message.id}: {e}")
                continue

            self._state.mark_processed(message.id)
            result.files_downloaded += 1

        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Pass finished: %d found, %d downloaded, %d duplicates skipped (%d errors), "
            "%d emails in ledger",
            result.messages_found,
            result.files_downloaded,
            result.duplicates_skipped,
            len(result.errors),
            len(self._state.get_processed_ids()),
            extra={"pass_result": result.to_dict()},
        )
        return result

    def _scheduled_check(self) -> None:
        logger.info("Scheduled email check starting...")
        self._run_pass(raise_errors=False)
        logger.info("Scheduled email check completed")

    def start_scheduled_monitoring(self) -> None:
        """Start the monitor and register the periodic trigger.

        Returns once the trigger is registered; checks then run on the
        trigger's thread. Startup errors propagate.
        """
        try:
            self._monitor.start()
        except Exception:
            logger.error("Failed to start scheduled monitoring")
            raise

        self._stop_event.clear()
        self._trigger = self._trigger_factory(self._interval_minutes, self._scheduled_check)
        self._trigger.start()
        logger.info("Email monitoring scheduled every %s minutes", self._interval_minutes)

    def start_continuous_monitoring(self) -> None:
        """Start the monitor and poll until stop() is called.

        Runs one pass immediately, then waits the interval before the
        next. Pass errors are logged and polling continues. The monitor
        is stopped here, after the last pass, rather than by stop().
        """
        try:
            self._monitor.start()
        except Exception:
            logger.error("Failed to start continuous monitoring")
            raise

        logger.info("Starting continuous email monitoring...")
        self._stop_event.clear()
        interval_seconds = self._interval_minutes * 60
        with self._lock:
            self._continuous_active = True

        try:
            while not self._stop_event.is_set():
                try:
                    self._run_pass(raise_errors=False)
                except Exception:
                    logger.exception("Error during continuous monitoring")
                if self._waiter(interval_seconds):
                    break
        finally:
            with self._lock:
                self._continuous_active = False
                if self._monitor.is_running():
                    self._monitor.stop()

        logger.info("Continuous email monitoring stopped")

    def run_once(self) -> PassResult:
        """Run a single pass and stop the monitor.

        Errors propagate; the monitor is only stopped after a pass that
        completed without raising.
        """
        self._monitor.start()

        logger.info("Running one-time email check...")
        result = self._run_pass(raise_errors=True)

        self._monitor.stop()
        logger.info("One-time email check completed")
        return result

    def stop(self) -> None:
        """Cancel any cadence and stop the monitor. Safe when idle.

        A scheduled pass in flight is waited for. A continuous loop is
        only signalled; it stops the monitor itself after its pass.
        """
        self._stop_event.set()

        if self._trigger is not None:
            self._trigger.cancel()
            self._trigger = None
            logger.info("Stopped scheduled monitoring")

        with self._lock:
            if self._continuous_active:
                logger.info("Continuous monitoring will stop after the current pass")
                return
            if self._monitor.is_running():
                self._monitor.stop()

    def is_running(self) -> bool:
        """True while a periodic trigger is registered."""
        return self._trigger is not None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called. Returns False on timeout."""
        return self._stop_event.wait(timeout)
