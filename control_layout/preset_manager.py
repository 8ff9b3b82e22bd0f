"""Capture, apply, export and import complete control layouts.

A snapshot is a plain JSON-compatible dict with the flat keys written by
``export_as_text``. Applying one is a destructive replace of every store the
snapshot covers; the layout keys (``positionGroups``, ``magneticPoints``,
``uiGroups``) are only touched when they are present.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from control_layout.attribute_store import CATEGORIES, AttributeStore
from control_layout.geometry import Position
from control_layout.group_registry import GroupRegistry, PositionGroup, UIGroup
from control_layout.layout_history import LayoutHistory
from control_layout.magnetic_points import MagneticPointStore, MagneticSnapPoint
from control_layout.position_store import PositionStore
from control_layout.services.change_bus import (
    BUTTON_CONFIG_APPLIED,
    BUTTON_PRESETS_CHANGED,
    LAYOUT_PRESETS_CHANGED,
)
from control_layout.storage import BUTTON_PRESETS_KEY, LAYOUT_PRESETS_KEY, NamespacedStore, is_list

_LOGGER = logging.getLogger("ControlLayout.Presets")

ATTRIBUTE_FIELDS = tuple(CATEGORIES)
BUTTON_FIELDS = ("positions",) + ATTRIBUTE_FIELDS + ("hidden", "actions")
LAYOUT_FIELDS = ("positionGroups", "magneticPoints", "uiGroups")

PRESET_KINDS = {
    "button": (BUTTON_PRESETS_KEY, BUTTON_PRESETS_CHANGED),
    "layout": (LAYOUT_PRESETS_KEY, LAYOUT_PRESETS_CHANGED),
}


class PresetValidationError(ValueError):
    """Raised when imported layout data does not have the expected shape."""


@dataclass(frozen=True)
class ImportResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class Preset:
    id: str
    name: str
    created_at: str
    data: Dict[str, Any]
    kind: str = "button"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "createdAt": self.created_at, "data": self.data}

    @classmethod
    def from_mapping(cls, raw: Any, kind: str) -> Optional["Preset"]:
        if not isinstance(raw, Mapping):
            return None
        preset_id = raw.get("id")
        data = raw.get("data")
        if not isinstance(preset_id, str) or not preset_id or not isinstance(data, Mapping):
            return None
        name = raw.get("name")
        created_at = raw.get("createdAt")
        return cls(
            id=preset_id,
            name=name if isinstance(name, str) else preset_id,
            created_at=created_at if isinstance(created_at, str) else "",
            data=dict(data),
            kind=kind,
        )


def validate_config(data: Any) -> Dict[str, Any]:
    """Return a normalized copy of ``data`` or raise :class:`PresetValidationError`.

    Every field is optional. Present fields must have the exact container type and
    every entry must be valid; nothing is silently dropped.
    """

    if not isinstance(data, Mapping):
        raise PresetValidationError("Layout data must be a JSON object")
    normalized: Dict[str, Any] = {}

    if "positions" in data:
        positions = _require_mapping(data["positions"], "positions")
        parsed: Dict[str, Dict[str, float]] = {}
        for control_id, entry in positions.items():
            position = Position.from_mapping(entry)
            if position is None:
                raise PresetValidationError(f"positions.{control_id}: expected {{x, y}} numbers")
            parsed[str(control_id)] = position.to_dict()
        normalized["positions"] = parsed

    for name in ATTRIBUTE_FIELDS:
        if name not in data:
            continue
        values = _require_mapping(data[name], name)
        coerce = CATEGORIES[name].coerce
        parsed_values: Dict[str, Any] = {}
        for control_id, value in values.items():
            coerced = coerce(value)
            if coerced is None:
                raise PresetValidationError(f"{name}.{control_id}: invalid value {value!r}")
            parsed_values[str(control_id)] = coerced
        normalized[name] = parsed_values

    if "hidden" in data:
        hidden = data["hidden"]
        if not isinstance(hidden, list) or not all(isinstance(entry, str) for entry in hidden):
            raise PresetValidationError("hidden: expected a list of control ids")
        normalized["hidden"] = list(dict.fromkeys(hidden))

    if "actions" in data:
        actions = _require_mapping(data["actions"], "actions")
        if not all(isinstance(value, str) for value in actions.values()):
            raise PresetValidationError("actions: expected string values")
        normalized["actions"] = {str(key): value for key, value in actions.items()}

    if "positionGroups" in data:
        _require_member_ids(data["positionGroups"], "positionGroups")
        normalized["positionGroups"] = [
            group.to_dict() for group in _require_entries(data["positionGroups"], "positionGroups", PositionGroup.from_mapping)
        ]
        _require_exclusive(normalized["positionGroups"], "positionGroups")
    if "magneticPoints" in data:
        normalized["magneticPoints"] = [
            point.to_dict() for point in _require_entries(data["magneticPoints"], "magneticPoints", MagneticSnapPoint.from_mapping)
        ]
    if "uiGroups" in data:
        _require_member_ids(data["uiGroups"], "uiGroups")
        normalized["uiGroups"] = [group.to_dict() for group in _require_entries(data["uiGroups"], "uiGroups", UIGroup.from_mapping)]
        _require_exclusive(normalized["uiGroups"], "uiGroups")
    return normalized


def _require_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise PresetValidationError(f"{field_name}: expected an object")
    return value


def _require_entries(value: Any, field_name: str, parse: Callable[[Any], Any]) -> List[Any]:
    if not isinstance(value, list):
        raise PresetValidationError(f"{field_name}: expected a list")
    parsed = []
    for index, entry in enumerate(value):
        item = parse(entry)
        if item is None:
            raise PresetValidationError(f"{field_name}[{index}]: malformed entry")
        parsed.append(item)
    return parsed


def _require_member_ids(value: Any, field_name: str) -> None:
    if not isinstance(value, list):
        return
    for index, entry in enumerate(value):
        members = entry.get("buttonIds") if isinstance(entry, Mapping) else None
        if not isinstance(members, list):
            continue
        if not all(isinstance(member, str) and member for member in members):
            raise PresetValidationError(f"{field_name}[{index}].buttonIds: expected non-empty control ids")
        if len(set(members)) != len(members):
            raise PresetValidationError(f"{field_name}[{index}].buttonIds: duplicate control id")


def _require_exclusive(groups: List[Dict[str, Any]], field_name: str) -> None:
    seen: set[str] = set()
    for group in groups:
        for member in group["buttonIds"]:
            if member in seen:
                raise PresetValidationError(f"{field_name}: {member} belongs to more than one group")
            seen.add(member)


def _utc_timestamp(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class PresetManager:
    """Snapshots, applies and persists layouts across every layout store."""

    def __init__(
        self,
        store: NamespacedStore,
        *,
        positions: PositionStore,
        attributes: AttributeStore,
        groups: GroupRegistry,
        magnetic_points: MagneticPointStore,
        history: Optional[LayoutHistory] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._positions = positions
        self._attributes = attributes
        self._groups = groups
        self._magnetic_points = magnetic_points
        self._history = history
        self._clock = clock

    @property
    def history(self) -> Optional[LayoutHistory]:
        return self._history

    @history.setter
    def history(self, history: Optional[LayoutHistory]) -> None:
        self._history = history

    # Snapshot / apply ------------------------------------------------------

    def snapshot(self, include_layout: bool = False, include_ui_groups: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {"positions": self._positions.to_payload()}
        for name in ATTRIBUTE_FIELDS:
            data[name] = self._attributes.get_map(name)
        data["hidden"] = self._attributes.hidden()
        data["actions"] = self._attributes.actions()
        if include_layout:
            data["positionGroups"] = [group.to_dict() for group in self._groups.position_groups()]
            data["magneticPoints"] = [point.to_dict() for point in self._magnetic_points.points()]
            if include_ui_groups:
                data["uiGroups"] = [group.to_dict() for group in self._groups.ui_groups()]
        return data

    def apply(self, data: Mapping[str, Any], *, action: str = "Apply preset") -> bool:
        """Overwrite the covered stores with ``data``; absent button fields become empty.

        Entries that fail validation are dropped rather than raising, so stored
        presets written by older versions still load.
        """

        if not isinstance(data, Mapping):
            _LOGGER.warning("Ignoring layout apply: data is %s, not an object", type(data).__name__)
            return False
        cleaned = self._lenient(data)
        ok = self._positions.set_all(
            {control_id: Position(entry["x"], entry["y"]) for control_id, entry in cleaned.get("positions", {}).items()}
        )
        for name in ATTRIBUTE_FIELDS:
            ok = self._attributes.replace_map(name, cleaned.get(name, {})) and ok
        ok = self._attributes.set_hidden(cleaned.get("hidden", [])) and ok
        ok = self._attributes.set_actions(cleaned.get("actions", {})) and ok
        if "positionGroups" in cleaned:
            groups = [PositionGroup.from_mapping(entry) for entry in cleaned["positionGroups"]]
            ok = self._groups.replace_position_groups([g for g in groups if g is not None]) and ok
        if "magneticPoints" in cleaned:
            points = [MagneticSnapPoint.from_mapping(entry) for entry in cleaned["magneticPoints"]]
            ok = self._magnetic_points.replace_all([p for p in points if p is not None]) and ok
        if "uiGroups" in cleaned:
            ui_groups = [UIGroup.from_mapping(entry) for entry in cleaned["uiGroups"]]
            ok = self._groups.replace_ui_groups([g for g in ui_groups if g is not None]) and ok
        self._store.bus.publish(BUTTON_CONFIG_APPLIED, None)
        _LOGGER.debug("Applied layout (%s): fields=%s ok=%s", action, ",".join(sorted(cleaned)), ok)
        self._record(action)
        return ok

    def _lenient(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        cleaned: Dict[str, Any] = {}
        for name in BUTTON_FIELDS + LAYOUT_FIELDS:
            if name not in data:
                continue
            try:
                cleaned.update(validate_config({name: data[name]}))
            except PresetValidationError as exc:
                _LOGGER.debug("Dropping invalid field during apply: %s", exc)
                cleaned.update(self._salvage(name, data[name]))
        return cleaned

    @staticmethod
    def _salvage(name: str, value: Any) -> Dict[str, Any]:
        """Keep the valid entries of a field that failed strict validation."""

        if isinstance(value, Mapping):
            kept: Dict[str, Any] = {}
            for key, entry in value.items():
                try:
                    kept.update(validate_config({name: {key: entry}})[name])
                except PresetValidationError:
                    continue
            return {name: kept}
        if isinstance(value, list):
            if name == "hidden":
                return {name: list(dict.fromkeys(entry for entry in value if isinstance(entry, str)))}
            entries: List[Any] = []
            claimed: set[str] = set()
            for entry in value:
                try:
                    parsed = validate_config({name: [entry]})[name][0]
                except PresetValidationError:
                    continue
                members = parsed.get("buttonIds")
                if members is not None:
                    if claimed.intersection(members):
                        continue
                    claimed.update(members)
                entries.append(parsed)
            return {name: entries}
        return {}

    # Text export / import --------------------------------------------------

    def export_as_text(self, include_layout: bool = False, include_ui_groups: bool = False) -> str:
        return json.dumps(self.snapshot(include_layout, include_ui_groups), indent=2)

    def import_from_text(self, text: str) -> ImportResult:
        """Validate ``text`` completely, then apply it. Nothing is written on failure."""

        if not isinstance(text, str) or not text.strip():
            return self._reject("Please paste a valid JSON configuration")
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            return self._reject(f"Invalid JSON configuration: {exc}")
        try:
            normalized = validate_config(data)
        except PresetValidationError as exc:
            return self._reject(str(exc))
        if not self.apply(normalized, action="Import"):
            return ImportResult(False, "Failed to write imported layout")
        return ImportResult(True)

    @staticmethod
    def _reject(error: str) -> ImportResult:
        _LOGGER.warning("Layout import rejected: %s", error)
        return ImportResult(False, error)

    # Named presets ---------------------------------------------------------

    def presets(self, kind: str = "button") -> List[Preset]:
        key, _event = self._kind(kind)
        raw = self._store.read(key, [], is_list)
        presets: List[Preset] = []
        for entry in raw:
            preset = Preset.from_mapping(entry, kind)
            if preset is None:
                _LOGGER.debug("Skipping malformed %s preset: %r", kind, entry)
                continue
            presets.append(preset)
        return presets

    def get_preset(self, preset_id: str, kind: Optional[str] = None) -> Optional[Preset]:
        kinds = [kind] if kind is not None else list(PRESET_KINDS)
        for candidate in kinds:
            for preset in self.presets(candidate):
                if preset.id == preset_id:
                    return preset
        return None

    def create_preset(self, name: str, kind: str = "button") -> Preset:
        self._kind(kind)
        now = self._clock()
        existing = self.presets(kind)
        taken = {preset.id for preset in existing}
        preset_id = f"preset-{int(now * 1000)}"
        suffix = 1
        while preset_id in taken:
            suffix += 1
            preset_id = f"preset-{int(now * 1000)}-{suffix}"
        include_layout = kind == "layout"
        preset = Preset(
            id=preset_id,
            name=name.strip() or preset_id,
            created_at=_utc_timestamp(now),
            data=self.snapshot(include_layout=include_layout, include_ui_groups=include_layout),
            kind=kind,
        )
        existing.append(preset)
        self._save_presets(kind, existing)
        _LOGGER.debug("Saved %s preset %s (%s)", kind, preset.id, preset.name)
        return preset

    def apply_preset(self, preset_id: str, kind: Optional[str] = None) -> bool:
        preset = self.get_preset(preset_id, kind)
        if preset is None:
            _LOGGER.warning("Preset %s not found", preset_id)
            return False
        return self.apply(preset.data, action=f"Apply preset {preset.name}")

    def delete_preset(self, preset_id: str, kind: str = "button") -> bool:
        existing = self.presets(kind)
        remaining = [preset for preset in existing if preset.id != preset_id]
        if len(remaining) == len(existing):
            return False
        return self._save_presets(kind, remaining)

    def rename_preset(self, preset_id: str, name: str, kind: str = "button") -> bool:
        existing = self.presets(kind)
        for index, preset in enumerate(existing):
            if preset.id == preset_id:
                existing[index] = Preset(preset.id, name, preset.created_at, preset.data, kind)
                return self._save_presets(kind, existing)
        return False

    def _save_presets(self, kind: str, presets: List[Preset]) -> bool:
        key, event = self._kind(kind)
        return self._store.write(key, [preset.to_dict() for preset in presets], event=event)

    @staticmethod
    def _kind(kind: str):
        try:
            return PRESET_KINDS[kind]
        except KeyError:
            raise ValueError(f"Unknown preset kind: {kind!r}") from None

    # Reset / history -------------------------------------------------------

    def reset_all(self) -> bool:
        """Return every control to default placement and drop all groups and snap points."""

        ok = self._positions.clear_all()
        ok = self._groups.clear_position_groups() and ok
        ok = self._groups.clear_ui_groups() and ok
        ok = self._magnetic_points.clear_all() and ok
        _LOGGER.debug("Layout reset (ok=%s)", ok)
        self._record("Reset layout")
        return ok

    def undo(self) -> bool:
        return self._restore(self._history.undo() if self._history is not None else None)

    def redo(self) -> bool:
        return self._restore(self._history.redo() if self._history is not None else None)

    def record(self, action: str) -> None:
        """Push the current layout onto the history (no-op without a history)."""

        self._record(action)

    def _record(self, action: str) -> None:
        if self._history is None:
            return
        self._history.push(self.snapshot(include_layout=True, include_ui_groups=True), action)

    def _restore(self, snapshot: Optional[Dict[str, Any]]) -> bool:
        if snapshot is None:
            return False
        history, self._history = self._history, None
        try:
            return self.apply(snapshot, action="History")
        finally:
            self._history = history

