"""Settings loader for the layout engine."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from control_layout.drag_controller import DragCoordinator
from control_layout.layout_history import DEFAULT_HISTORY_LIMIT
from control_layout.magnetic_points import MagneticPointStore
from control_layout.position_store import PositionStore
from control_layout.services.long_press_timers import LongPressTimers
from control_layout.snap_engine import SnapMode, SnapSettings

_LOGGER = logging.getLogger("ControlLayout.Config")

ENV_PREFIX = "CONTROL_LAYOUT_"
LONG_PRESS_MIN_MS = 200
LONG_PRESS_MAX_MS = 5000


@dataclass(frozen=True)
class EngineSettings:
    long_press_ms: int = 1000
    move_threshold_px: float = 10.0
    drag_padding_px: float = 24.0
    edge_padding_px: float = 16.0
    edge_threshold_px: float = 40.0
    element_size_px: float = 48.0
    magnetic_radius_px: float = 50.0
    grid_size_px: float = 40.0
    snap_mode: SnapMode = SnapMode.EDGE
    history_limit: int = DEFAULT_HISTORY_LIMIT
    debug: bool = False

    def snap_settings(self) -> SnapSettings:
        return SnapSettings(
            mode=self.snap_mode,
            element_size=self.element_size_px,
            edge_padding=self.edge_padding_px,
            edge_threshold=self.edge_threshold_px,
            magnetic_radius=self.magnetic_radius_px,
            grid_size=self.grid_size_px,
        )

    def build_coordinator(
        self,
        *,
        positions: PositionStore,
        timers: LongPressTimers,
        viewport,
        magnetic_points: Optional[MagneticPointStore] = None,
        **kwargs: Any,
    ) -> DragCoordinator:
        """Construct a DragCoordinator wired with these settings."""

        return DragCoordinator(
            positions=positions,
            timers=timers,
            viewport=viewport,
            magnetic_points=magnetic_points,
            snap=self.snap_settings(),
            long_press_ms=self.long_press_ms,
            move_threshold=self.move_threshold_px,
            drag_padding=self.drag_padding_px,
            **kwargs,
        )


_DEFAULTS = EngineSettings()


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in {"1", "true", "yes", "on"}:
            return True
        if token in {"0", "false", "no", "off"}:
            return False
    return fallback


def _coerce_int(value: Any, fallback: int, *, minimum: int, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = int(float(value))
    except (TypeError, ValueError):
        return fallback
    if numeric < minimum:
        numeric = minimum
    if maximum is not None and numeric > maximum:
        numeric = maximum
    return numeric


def _coerce_float(value: Any, fallback: float, *, minimum: float = 0.0) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return fallback
    if numeric != numeric or numeric < minimum:
        return fallback
    return numeric


def settings_from_mapping(data: Mapping[str, Any], base: EngineSettings = _DEFAULTS) -> EngineSettings:
    """Overlay recognised keys of ``data`` onto ``base``; bad values keep the base value."""

    updates: dict[str, Any] = {}
    if "long_press_ms" in data:
        updates["long_press_ms"] = _coerce_int(
            data["long_press_ms"], base.long_press_ms, minimum=LONG_PRESS_MIN_MS, maximum=LONG_PRESS_MAX_MS
        )
    for name in (
        "move_threshold_px",
        "drag_padding_px",
        "edge_padding_px",
        "edge_threshold_px",
        "element_size_px",
        "magnetic_radius_px",
        "grid_size_px",
    ):
        if name in data:
            updates[name] = _coerce_float(data[name], getattr(base, name))
    if "snap_mode" in data:
        updates["snap_mode"] = SnapMode.parse(data["snap_mode"], base.snap_mode)
    if "history_limit" in data:
        updates["history_limit"] = _coerce_int(data["history_limit"], base.history_limit, minimum=1)
    if "debug" in data:
        updates["debug"] = _coerce_bool(data["debug"], base.debug)
    return replace(base, **updates)


def load_settings(path: Optional[Path]) -> EngineSettings:
    """Read settings JSON, returning defaults when the file is missing or invalid."""

    if path is None:
        return EngineSettings()
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return EngineSettings()
    except OSError as exc:
        _LOGGER.warning("Failed to read settings %s: %s", path, exc)
        return EngineSettings()
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Ignoring malformed settings %s: %s", path, exc)
        return EngineSettings()
    if not isinstance(data, dict):
        return EngineSettings()
    return settings_from_mapping(data)


def apply_env_overrides(settings: EngineSettings, env: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Apply ``CONTROL_LAYOUT_<FIELD>`` environment overrides on top of ``settings``."""

    source = os.environ if env is None else env
    overrides: dict[str, Any] = {}
    for name in EngineSettings.__dataclass_fields__:
        value = source.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    if not overrides:
        return settings
    _LOGGER.debug("Applied env overrides: %s", ", ".join(f"{k}={v}" for k, v in sorted(overrides.items())))
    return settings_from_mapping(overrides, base=settings)
