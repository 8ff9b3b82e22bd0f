from .change_bus import ChangeBus
from .long_press_timers import LongPressTimers

__all__ = ["ChangeBus", "LongPressTimers"]
