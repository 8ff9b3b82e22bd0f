from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

_LOGGER = logging.getLogger("ControlLayout.ChangeBus")

STORAGE_EVENT = "storage"
POSITIONS_CHANGED = "buttonPositionsChanged"
POSITION_GROUPS_CHANGED = "positionGroupsChanged"
UI_GROUPS_CHANGED = "uiGroupsChanged"
MAGNETIC_POINTS_CHANGED = "magneticPointsChanged"
HIDDEN_BUTTONS_CHANGED = "hiddenButtonsChanged"
BUTTON_PRESETS_CHANGED = "buttonPresetsChanged"
LAYOUT_PRESETS_CHANGED = "layoutPresetsChanged"
BUTTON_CONFIG_APPLIED = "buttonConfigApplied"

Listener = Callable[[str, Any], None]


class ChangeBus:
    """Synchronous observer list for storage and named change events.

    ``subscribe(None, fn)`` listens to every event. Listener failures are logged
    and swallowed so a broken display never interrupts a store write.
    """

    def __init__(self) -> None:
        self._listeners: Dict[Optional[str], List[Listener]] = {}

    def subscribe(self, event: Optional[str], listener: Listener) -> Callable[[], None]:
        bucket = self._listeners.setdefault(event, [])
        bucket.append(listener)

        def _unsubscribe() -> None:
            try:
                bucket.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def publish(self, event: str, value: Any = None) -> None:
        targets = list(self._listeners.get(event, ())) + list(self._listeners.get(None, ()))
        for listener in targets:
            try:
                listener(event, value)
            except Exception as exc:
                _LOGGER.debug("Change listener failed for %s: %s", event, exc, exc_info=exc)

    def notify_storage(self, key: str) -> None:
        self.publish(STORAGE_EVENT, key)

    def listener_count(self, event: Optional[str] = None) -> int:
        return len(self._listeners.get(event, ()))
