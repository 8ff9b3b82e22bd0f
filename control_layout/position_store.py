from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from control_layout.geometry import Position
from control_layout.services.change_bus import POSITIONS_CHANGED
from control_layout.storage import POSITIONS_KEY, NamespacedStore, is_mapping

_LOGGER = logging.getLogger("ControlLayout.Positions")


class PositionStore:
    """Durable mapping from control id to its saved center position."""

    def __init__(self, store: NamespacedStore) -> None:
        self._store = store

    def get(self, control_id: str) -> Optional[Position]:
        return self.get_all().get(control_id)

    def get_all(self) -> Dict[str, Position]:
        raw = self._store.read(POSITIONS_KEY, {}, is_mapping)
        positions: Dict[str, Position] = {}
        for control_id, entry in raw.items():
            position = Position.from_mapping(entry)
            if position is None:
                _LOGGER.debug("Skipping malformed stored position for %s: %r", control_id, entry)
                continue
            positions[str(control_id)] = position
        return positions

    def set(self, control_id: str, position: Position) -> bool:
        positions = self.get_all()
        positions[control_id] = position
        return self.set_all(positions)

    def set_all(self, positions: Mapping[str, Position]) -> bool:
        payload = {control_id: position.to_dict() for control_id, position in positions.items()}
        return self._store.write(POSITIONS_KEY, payload, event=POSITIONS_CHANGED)

    def remove(self, control_id: str) -> bool:
        positions = self.get_all()
        if control_id not in positions:
            return False
        positions.pop(control_id)
        return self.set_all(positions)

    def clear_all(self) -> bool:
        return self._store.delete(POSITIONS_KEY, event=POSITIONS_CHANGED, empty_value={})

    def repositioned_count(self) -> int:
        return len(self.get_all())

    def to_payload(self) -> Dict[str, Dict[str, float]]:
        return {control_id: position.to_dict() for control_id, position in self.get_all().items()}
