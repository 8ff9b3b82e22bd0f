"""Per-control visual attributes, hidden controls and action overrides."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from control_layout.services.change_bus import HIDDEN_BUTTONS_CHANGED
from control_layout.storage import (
    ACTIONS_KEY,
    ANIMATIONS_KEY,
    BORDERS_KEY,
    COLORS_KEY,
    HIDDEN_KEY,
    ICONS_KEY,
    OPACITIES_KEY,
    SHADOWS_KEY,
    SIZES_KEY,
    NamespacedStore,
    is_list,
    is_mapping,
)

_LOGGER = logging.getLogger("ControlLayout.Attributes")

SIZE_OPTIONS = frozenset({"xs", "sm", "md", "lg", "xl"})
ANIMATION_OPTIONS = frozenset({"none", "pulse", "bounce", "glow", "shake", "spin"})
BORDER_OPTIONS = frozenset({"none", "solid", "dashed", "dotted", "double", "glow"})
SHADOW_OPTIONS = frozenset({"none", "sm", "md", "lg", "glow", "neon"})
OPACITY_MIN = 0.1
OPACITY_MAX = 1.0


def _choice(options: frozenset[str]) -> Callable[[Any], Optional[str]]:
    def _coerce(value: Any) -> Optional[str]:
        if isinstance(value, str) and value in options:
            return value
        return None

    return _coerce


def _free_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _opacity(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:
        return None
    return max(OPACITY_MIN, min(OPACITY_MAX, number))


@dataclass(frozen=True)
class AttributeCategory:
    name: str
    key: str
    coerce: Callable[[Any], Any]


CATEGORIES: Dict[str, AttributeCategory] = {
    "sizes": AttributeCategory("sizes", SIZES_KEY, _choice(SIZE_OPTIONS)),
    "icons": AttributeCategory("icons", ICONS_KEY, _free_text),
    "colors": AttributeCategory("colors", COLORS_KEY, _free_text),
    "animations": AttributeCategory("animations", ANIMATIONS_KEY, _choice(ANIMATION_OPTIONS)),
    "opacities": AttributeCategory("opacities", OPACITIES_KEY, _opacity),
    "borders": AttributeCategory("borders", BORDERS_KEY, _choice(BORDER_OPTIONS)),
    "shadows": AttributeCategory("shadows", SHADOWS_KEY, _choice(SHADOW_OPTIONS)),
}


class AttributeStore:
    """Reads and writes the attribute maps, the hidden set and action overrides."""

    def __init__(self, store: NamespacedStore) -> None:
        self._store = store

    # Attribute maps --------------------------------------------------------

    def get_map(self, category: str) -> Dict[str, Any]:
        category_def = self._category(category)
        raw = self._store.read(category_def.key, {}, is_mapping)
        cleaned: Dict[str, Any] = {}
        for control_id, value in raw.items():
            coerced = category_def.coerce(value)
            if coerced is None:
                continue
            cleaned[str(control_id)] = coerced
        return cleaned

    def replace_map(self, category: str, values: Mapping[str, Any]) -> bool:
        category_def = self._category(category)
        return self._store.write(category_def.key, dict(values))

    def set_value(self, category: str, control_id: str, value: Any) -> bool:
        category_def = self._category(category)
        coerced = category_def.coerce(value)
        if coerced is None:
            _LOGGER.debug("Rejected %s value for %s: %r", category, control_id, value)
            return False
        current = self.get_map(category)
        current[control_id] = coerced
        return self._store.write(category_def.key, current)

    def clear_value(self, category: str, control_id: str) -> bool:
        current = self.get_map(category)
        if control_id not in current:
            return False
        current.pop(control_id)
        return self.replace_map(category, current)

    def attributes_for(self, control_id: str) -> Dict[str, Any]:
        """Return ``{category: value}`` for every attribute set on ``control_id``."""

        result: Dict[str, Any] = {}
        for name in CATEGORIES:
            value = self.get_map(name).get(control_id)
            if value is not None:
                result[name] = value
        return result

    # Hidden controls -------------------------------------------------------

    def hidden(self) -> List[str]:
        raw = self._store.read(HIDDEN_KEY, [], is_list)
        seen: List[str] = []
        for entry in raw:
            if isinstance(entry, str) and entry not in seen:
                seen.append(entry)
        return seen

    def set_hidden(self, control_ids: Iterable[str]) -> bool:
        unique: List[str] = []
        for control_id in control_ids:
            if control_id not in unique:
                unique.append(control_id)
        return self._store.write(HIDDEN_KEY, unique, event=HIDDEN_BUTTONS_CHANGED)

    def hide(self, control_id: str) -> bool:
        current = self.hidden()
        if control_id in current:
            return False
        current.append(control_id)
        return self.set_hidden(current)

    def show(self, control_id: str) -> bool:
        current = self.hidden()
        if control_id not in current:
            return False
        return self.set_hidden([entry for entry in current if entry != control_id])

    def restore_all(self) -> bool:
        return self.set_hidden([])

    def is_hidden(self, control_id: str) -> bool:
        return control_id in self.hidden()

    # Action overrides ------------------------------------------------------

    def actions(self) -> Dict[str, str]:
        raw = self._store.read(ACTIONS_KEY, {}, is_mapping)
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def set_actions(self, actions: Mapping[str, str]) -> bool:
        return self._store.write(ACTIONS_KEY, dict(actions))

    def set_action(self, control_id: str, action: str) -> bool:
        if not isinstance(action, str) or not action.strip():
            return False
        current = self.actions()
        current[control_id] = action
        return self.set_actions(current)

    def clear_action(self, control_id: str) -> bool:
        current = self.actions()
        if control_id not in current:
            return False
        current.pop(control_id)
        return self.set_actions(current)

    @staticmethod
    def _category(name: str) -> AttributeCategory:
        try:
            return CATEGORIES[name]
        except KeyError:
            raise KeyError(f"Unknown attribute category: {name}") from None
