"""Small value types shared by the layout engine (pure, no Qt)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Position:
    """Viewport pixel coordinate of a control's center."""

    x: float
    y: float

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def delta_to(self, other: "Position") -> "Position":
        return Position(other.x - self.x, other.y - self.y)

    def distance_to(self, other: "Position") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["Position"]:
        """Return a Position from ``{"x": .., "y": ..}`` or None when malformed."""

        if not isinstance(raw, Mapping):
            return None
        x = _finite_float(raw.get("x"))
        y = _finite_float(raw.get("y"))
        if x is None or y is None:
            return None
        return cls(x, y)


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    @property
    def center(self) -> Position:
        return Position(self.width / 2.0, self.height / 2.0)

    def clamp(self, point: Position, padding: float) -> Position:
        """Clamp ``point`` into the viewport shrunk by ``padding`` on every side."""

        return Position(
            _clamp(point.x, padding, self.width - padding),
            _clamp(point.y, padding, self.height - padding),
        )


def _clamp(value: float, low: float, high: float) -> float:
    if high < low:
        # Viewport narrower than twice the padding; pin to the middle.
        return (low + high) / 2.0
    return max(low, min(high, value))


def _finite_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number
