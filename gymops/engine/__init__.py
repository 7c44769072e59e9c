"""
Membership and billing lifecycle.

`decisions` holds the pure state-transition rules, `notifications` turns their
intents into stored notifications, and `orchestrator.LifecycleService` is the
read-decide-write wrapper the bot and scheduler call.
"""

from .errors import ErrorKind, LifecycleError
from .orchestrator import LifecycleService, SweepResult, TransitionResult, get_lifecycle_service
from .stats import LedgerStats

__all__ = [
    "ErrorKind",
    "LedgerStats",
    "LifecycleError",
    "LifecycleService",
    "SweepResult",
    "TransitionResult",
    "get_lifecycle_service",
]
