from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from control_layout.geometry import Position
from control_layout.services.change_bus import MAGNETIC_POINTS_CHANGED
from control_layout.storage import MAGNETIC_POINTS_KEY, NamespacedStore, is_list

_LOGGER = logging.getLogger("ControlLayout.MagneticPoints")


@dataclass(frozen=True)
class MagneticSnapPoint:
    id: str
    position: Position
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "position": self.position.to_dict(), "name": self.name}

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["MagneticSnapPoint"]:
        if not isinstance(raw, Mapping):
            return None
        point_id = raw.get("id")
        position = Position.from_mapping(raw.get("position"))
        if not isinstance(point_id, str) or not point_id or position is None:
            return None
        name = raw.get("name")
        return cls(point_id, position, name if isinstance(name, str) else point_id)


def default_point_id() -> str:
    return f"snap-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class MagneticPointStore:
    """User-placed attractor points; insertion order is kept for display only."""

    def __init__(
        self,
        store: NamespacedStore,
        *,
        id_factory: Callable[[], str] = default_point_id,
    ) -> None:
        self._store = store
        self._id_factory = id_factory

    def points(self) -> List[MagneticSnapPoint]:
        raw = self._store.read(MAGNETIC_POINTS_KEY, [], is_list)
        points: List[MagneticSnapPoint] = []
        for entry in raw:
            point = MagneticSnapPoint.from_mapping(entry)
            if point is None:
                _LOGGER.debug("Skipping malformed magnetic point: %r", entry)
                continue
            points.append(point)
        return points

    def replace_all(self, points: List[MagneticSnapPoint]) -> bool:
        payload = [point.to_dict() for point in points]
        return self._store.write(MAGNETIC_POINTS_KEY, payload, event=MAGNETIC_POINTS_CHANGED)

    def add(self, position: Position, name: Optional[str] = None) -> MagneticSnapPoint:
        current = self.points()
        label = name.strip() if isinstance(name, str) and name.strip() else f"Snap Point {len(current) + 1}"
        point = MagneticSnapPoint(self._id_factory(), position, label)
        current.append(point)
        self.replace_all(current)
        _LOGGER.debug("Magnetic point added: id=%s at (%.1f, %.1f)", point.id, position.x, position.y)
        return point

    def remove(self, point_id: str) -> bool:
        current = self.points()
        remaining = [point for point in current if point.id != point_id]
        if len(remaining) == len(current):
            return False
        return self.replace_all(remaining)

    def rename(self, point_id: str, name: str) -> bool:
        current = self.points()
        updated = False
        for index, point in enumerate(current):
            if point.id == point_id:
                current[index] = MagneticSnapPoint(point.id, point.position, name)
                updated = True
        return self.replace_all(current) if updated else False

    def clear_all(self) -> bool:
        return self._store.delete(MAGNETIC_POINTS_KEY, event=MAGNETIC_POINTS_CHANGED, empty_value=[])
