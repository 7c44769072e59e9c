from .clock import Clock, FrozenClock, SystemClock
from .config import Settings, get_settings

__all__ = ["Clock", "FrozenClock", "Settings", "SystemClock", "get_settings"]
