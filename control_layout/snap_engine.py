"""Snap resolution for dragged controls (pure, no Qt).

Priority for edge mode: magnetic point, then per-axis edge, then per-axis center.
Grid mode only rounds to the grid and never consults edges or magnetic points.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from control_layout.geometry import Position, Viewport
from control_layout.magnetic_points import MagneticSnapPoint

MAGNETIC_RADIUS = 50.0
EDGE_THRESHOLD = 40.0
EDGE_PADDING = 16.0
ELEMENT_SIZE = 48.0
GRID_SIZE = 40.0


class SnapMode(Enum):
    EDGE = "edge"
    GRID = "grid"
    NONE = "none"

    @classmethod
    def parse(cls, value: object, fallback: Optional["SnapMode"] = None) -> "SnapMode":
        token = str(value or "").strip().lower()
        for member in cls:
            if member.value == token:
                return member
        return fallback if fallback is not None else cls.EDGE


@dataclass(frozen=True)
class SnapResult:
    position: Position
    snapped: bool
    kind: str = "none"
    point_id: Optional[str] = None


def nearest_magnetic_point(
    raw: Position,
    points: Sequence[MagneticSnapPoint],
    radius: float = MAGNETIC_RADIUS,
) -> Optional[MagneticSnapPoint]:
    best: Optional[MagneticSnapPoint] = None
    best_distance = radius
    for point in points:
        distance = raw.distance_to(point.position)
        # Strictly closer only, so the earlier point wins a tie.
        if distance < best_distance:
            best = point
            best_distance = distance
    return best


def _snap_axis(
    value: float,
    extent: float,
    half: float,
    edge_padding: float,
    edge_threshold: float,
) -> Tuple[float, Optional[str]]:
    snapped = value
    kind: Optional[str] = None
    if value < edge_threshold + half:
        snapped = edge_padding + half
        kind = "edge"
    elif value > extent - edge_threshold - half:
        snapped = extent - edge_padding - half
        kind = "edge"
    if abs(value - extent / 2.0) < edge_threshold:
        snapped = extent / 2.0
        kind = "center"
    return snapped, kind


def resolve(
    raw: Position,
    viewport: Viewport,
    magnetic_points: Sequence[MagneticSnapPoint] = (),
    element_half_size: float = ELEMENT_SIZE / 2.0,
    edge_padding: float = EDGE_PADDING,
    edge_threshold: float = EDGE_THRESHOLD,
    magnetic_radius: float = MAGNETIC_RADIUS,
) -> SnapResult:
    """Resolve ``raw`` to its snapped position.

    A magnetic point within ``magnetic_radius`` replaces both coordinates and
    short-circuits everything else. Otherwise x and y snap independently to the
    nearest edge (``edge_padding + half`` inside the viewport) or to the viewport
    center line, with center taking precedence on an axis where both apply.
    """

    point = nearest_magnetic_point(raw, magnetic_points, magnetic_radius)
    if point is not None:
        return SnapResult(point.position, True, "magnetic", point.id)

    x, x_kind = _snap_axis(raw.x, viewport.width, element_half_size, edge_padding, edge_threshold)
    y, y_kind = _snap_axis(raw.y, viewport.height, element_half_size, edge_padding, edge_threshold)
    kinds = [kind for kind in ("edge", "center") if kind in (x_kind, y_kind)]
    if not kinds:
        return SnapResult(raw, False, "none")
    return SnapResult(Position(x, y), True, "+".join(kinds))


def _round_half_up(value: float, grid_size: float) -> float:
    return math.floor(value / grid_size + 0.5) * grid_size


def snap_to_grid(raw: Position, grid_size: float = GRID_SIZE) -> SnapResult:
    """Round both coordinates to the nearest multiple of ``grid_size``."""

    if grid_size <= 0:
        return SnapResult(raw, False, "none")
    snapped = Position(_round_half_up(raw.x, grid_size), _round_half_up(raw.y, grid_size))
    if snapped == raw:
        return SnapResult(raw, False, "none")
    return SnapResult(snapped, True, "grid")


@dataclass(frozen=True)
class SnapSettings:
    """Per call-site snapping configuration; edge and grid modes never combine."""

    mode: SnapMode = SnapMode.EDGE
    element_size: float = ELEMENT_SIZE
    edge_padding: float = EDGE_PADDING
    edge_threshold: float = EDGE_THRESHOLD
    magnetic_radius: float = MAGNETIC_RADIUS
    grid_size: float = GRID_SIZE

    def apply(
        self,
        raw: Position,
        viewport: Viewport,
        magnetic_points: Sequence[MagneticSnapPoint] = (),
    ) -> SnapResult:
        if self.mode is SnapMode.GRID:
            return snap_to_grid(raw, self.grid_size)
        if self.mode is SnapMode.NONE:
            return SnapResult(raw, False, "none")
        return resolve(
            raw,
            viewport,
            magnetic_points,
            element_half_size=self.element_size / 2.0,
            edge_padding=self.edge_padding,
            edge_threshold=self.edge_threshold,
            magnetic_radius=self.magnetic_radius,
        )
