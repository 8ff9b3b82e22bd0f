from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from control_layout.attribute_store import AttributeStore
from control_layout.group_registry import GroupRegistry
from control_layout.layout_history import LayoutHistory
from control_layout.magnetic_points import MagneticPointStore
from control_layout.position_store import PositionStore
from control_layout.preset_manager import PresetManager
from control_layout.services.change_bus import ChangeBus
from control_layout.storage import KeyValueStore, NamespacedStore


@dataclass
class LayoutState:
    """Every store of one layout surface, sharing a backend and a ChangeBus."""

    store: NamespacedStore
    positions: PositionStore
    attributes: AttributeStore
    magnetic_points: MagneticPointStore
    groups: GroupRegistry
    presets: PresetManager

    @property
    def bus(self) -> ChangeBus:
        return self.store.bus


def open_layout(
    backend: KeyValueStore,
    *,
    bus: Optional[ChangeBus] = None,
    history_limit: Optional[int] = None,
) -> LayoutState:
    """Wire the layout stores over ``backend``; ``history_limit`` enables undo/redo."""

    store = NamespacedStore(backend, bus)
    positions = PositionStore(store)
    attributes = AttributeStore(store)
    magnetic_points = MagneticPointStore(store)
    groups = GroupRegistry(store, positions)
    presets = PresetManager(
        store,
        positions=positions,
        attributes=attributes,
        groups=groups,
        magnetic_points=magnetic_points,
    )
    if history_limit is not None:
        initial = presets.snapshot(include_layout=True, include_ui_groups=True)
        presets.history = LayoutHistory(initial, limit=history_limit)
    return LayoutState(store, positions, attributes, magnetic_points, groups, presets)
