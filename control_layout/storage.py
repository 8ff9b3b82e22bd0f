"""Key-value persistence for layout state.

The engine never talks to a concrete backend directly: everything goes through a
``KeyValueStore`` (string keys, string values) wrapped by ``NamespacedStore``, which
handles JSON encoding, failure containment and change broadcast.
"""
from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from control_layout.services.change_bus import ChangeBus

_LOGGER = logging.getLogger("ControlLayout.Storage")

POSITIONS_KEY = "visuai-button-positions"
SIZES_KEY = "visuai-button-sizes"
ICONS_KEY = "visuai-button-icons"
COLORS_KEY = "visuai-button-colors"
ANIMATIONS_KEY = "visuai-button-animations"
OPACITIES_KEY = "visuai-button-opacity"
BORDERS_KEY = "visuai-button-borders"
SHADOWS_KEY = "visuai-button-shadows"
HIDDEN_KEY = "visuai-hidden-buttons"
ACTIONS_KEY = "visuai-button-actions"
POSITION_GROUPS_KEY = "visuai-button-groups"
UI_GROUPS_KEY = "visuai-button-ui-groups"
MAGNETIC_POINTS_KEY = "visuai-magnetic-snap-points"
BUTTON_PRESETS_KEY = "visuai-button-presets"
LAYOUT_PRESETS_KEY = "visuai-layout-presets"

ALL_KEYS = (
    POSITIONS_KEY,
    SIZES_KEY,
    ICONS_KEY,
    COLORS_KEY,
    ANIMATIONS_KEY,
    OPACITIES_KEY,
    BORDERS_KEY,
    SHADOWS_KEY,
    HIDDEN_KEY,
    ACTIONS_KEY,
    POSITION_GROUPS_KEY,
    UI_GROUPS_KEY,
    MAGNETIC_POINTS_KEY,
    BUTTON_PRESETS_KEY,
    LAYOUT_PRESETS_KEY,
)


class StoreError(Exception):
    """Raised by a backend when it cannot read or persist a value."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStore:
    """Dict-backed store used by tests and headless hosts."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def dump(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStore:
    """Keeps every key in one JSON document and rewrites it atomically on change."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self._load_existing()

    @property
    def path(self) -> Path:
        return self._path

    def _load_existing(self) -> None:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Failed to load layout store %s: %s", self._path, exc)
            return
        if not isinstance(raw, dict):
            _LOGGER.warning("Ignoring layout store %s: top level is not an object", self._path)
            return
        self._data = {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            snapshot = dict(self._data)
        self._write_snapshot(snapshot)

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            self._data.pop(key, None)
            snapshot = dict(self._data)
        self._write_snapshot(snapshot)

    def _write_snapshot(self, snapshot: Dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(snapshot, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StoreError(f"Failed to write {self._path}: {exc}") from exc


class NamespacedStore:
    """JSON view over a ``KeyValueStore`` with failure containment and notifications."""

    def __init__(self, backend: KeyValueStore, bus: Optional[ChangeBus] = None) -> None:
        self._backend = backend
        self._bus = bus if bus is not None else ChangeBus()

    @property
    def bus(self) -> ChangeBus:
        return self._bus

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    def read(
        self,
        key: str,
        default: Any,
        validator: Optional[Callable[[Any], bool]] = None,
    ) -> Any:
        """Return the decoded value for ``key`` or a copy of ``default``.

        Malformed JSON, a failing backend or a value rejected by ``validator`` all
        degrade to the default; none of them is an error for callers.
        """

        try:
            raw = self._backend.get(key)
        except (StoreError, OSError) as exc:
            _LOGGER.warning("Store read failed for %s: %s", key, exc)
            return copy.deepcopy(default)
        if raw is None:
            return copy.deepcopy(default)
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            _LOGGER.debug("Discarding malformed value under %s", key)
            return copy.deepcopy(default)
        if validator is not None and not validator(value):
            _LOGGER.debug("Discarding value of unexpected shape under %s", key)
            return copy.deepcopy(default)
        return value

    def write(self, key: str, value: Any, *, event: Optional[str] = None) -> bool:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            _LOGGER.warning("Refusing to store non-serialisable value under %s: %s", key, exc)
            return False
        try:
            self._backend.set(key, encoded)
        except (StoreError, OSError) as exc:
            _LOGGER.warning("Store write failed for %s: %s", key, exc)
            return False
        self._bus.notify_storage(key)
        if event:
            self._bus.publish(event, value)
        return True

    def delete(self, key: str, *, event: Optional[str] = None, empty_value: Any = None) -> bool:
        try:
            self._backend.delete(key)
        except (StoreError, OSError) as exc:
            _LOGGER.warning("Store delete failed for %s: %s", key, exc)
            return False
        self._bus.notify_storage(key)
        if event:
            self._bus.publish(event, empty_value)
        return True

    def raw_snapshot(self, keys=ALL_KEYS) -> Dict[str, Optional[str]]:
        """Return the undecoded values for ``keys`` (used to verify atomic imports)."""

        snapshot: Dict[str, Optional[str]] = {}
        for key in keys:
            try:
                snapshot[key] = self._backend.get(key)
            except (StoreError, OSError):
                snapshot[key] = None
        return snapshot


def is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def is_list(value: Any) -> bool:
    return isinstance(value, list)
