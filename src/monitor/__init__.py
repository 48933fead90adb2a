"""Monitoring pipeline for workout emails.

Connects a MessageProvider, an EmailMonitor state machine, and an
EmailScheduler that runs check-and-process passes on a cadence.
"""

from .email_monitor import EmailMonitor
from .exceptions import MonitorError, MonitorNotRunningError, NoDownloadLinkError
from .models import PassResult
from .scheduler import EmailScheduler
from .trigger import PeriodicTrigger, next_fire_time

__all__ = [
    "EmailMonitor",
    "EmailScheduler",
    "PeriodicTrigger",
    "PassResult",
    "next_fire_time",
    "MonitorError",
    "MonitorNotRunningError",
    "NoDownloadLinkError",
]
