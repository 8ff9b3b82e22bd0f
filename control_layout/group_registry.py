"""Position groups (move together) and UI groups (collapse/order/hover effect).

The two kinds are separate types in separate collections. Position groups
dissolve below two members; UI groups may hold any number of members, including
none, until explicitly deleted. A control belongs to at most one group of each
kind.

Group ids can go stale (another window may have deleted the group), so mutating
calls never raise: a rejected call returns None or False and writes nothing.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from control_layout.geometry import Position
from control_layout.group_templates import get_template
from control_layout.position_store import PositionStore
from control_layout.services.change_bus import POSITION_GROUPS_CHANGED, UI_GROUPS_CHANGED
from control_layout.storage import POSITION_GROUPS_KEY, UI_GROUPS_KEY, NamespacedStore, is_list

_LOGGER = logging.getLogger("ControlLayout.Groups")

MIN_POSITION_GROUP_SIZE = 2


class HoverEffect(Enum):
    NONE = "none"
    GLOW = "glow"
    SCALE = "scale"
    LIFT = "lift"
    PULSE = "pulse"
    SHIMMER = "shimmer"


@dataclass(frozen=True)
class PositionGroup:
    id: str
    button_ids: Tuple[str, ...]
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "buttonIds": list(self.button_ids), "name": self.name}

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["PositionGroup"]:
        if not isinstance(raw, Mapping):
            return None
        group_id = raw.get("id")
        members = _member_list(raw.get("buttonIds"))
        if not isinstance(group_id, str) or not group_id or members is None:
            return None
        if len(members) < MIN_POSITION_GROUP_SIZE:
            return None
        name = raw.get("name")
        return cls(group_id, tuple(members), name if isinstance(name, str) else group_id)


@dataclass(frozen=True)
class UIGroup:
    id: str
    button_ids: Tuple[str, ...]
    name: str
    icon: Optional[str] = None
    is_collapsed: bool = False
    hover_effect: HoverEffect = HoverEffect.NONE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "buttonIds": list(self.button_ids),
            "name": self.name,
            "isCollapsed": self.is_collapsed,
            "hoverEffect": self.hover_effect.value,
        }
        if self.icon is not None:
            data["icon"] = self.icon
        return data

    @classmethod
    def from_mapping(cls, raw: Any) -> Optional["UIGroup"]:
        if not isinstance(raw, Mapping):
            return None
        group_id = raw.get("id")
        members = _member_list(raw.get("buttonIds"))
        if not isinstance(group_id, str) or not group_id or members is None:
            return None
        name = raw.get("name")
        icon = raw.get("icon")
        try:
            effect = HoverEffect(raw.get("hoverEffect", HoverEffect.NONE.value))
        except ValueError:
            effect = HoverEffect.NONE
        return cls(
            id=group_id,
            button_ids=tuple(members),
            name=name if isinstance(name, str) else group_id,
            icon=icon if isinstance(icon, str) else None,
            is_collapsed=bool(raw.get("isCollapsed", False)),
            hover_effect=effect,
        )


def _member_list(raw: Any) -> Optional[List[str]]:
    if not isinstance(raw, list):
        return None
    members: List[str] = []
    for entry in raw:
        if isinstance(entry, str) and entry and entry not in members:
            members.append(entry)
    return members


def default_group_id(prefix: str = "group") -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


@dataclass
class _RegistryCache:
    position_groups: List[PositionGroup] = field(default_factory=list)
    ui_groups: List[UIGroup] = field(default_factory=list)


class GroupRegistry:
    """Owns both group kinds and their membership invariants."""

    def __init__(
        self,
        store: NamespacedStore,
        positions: PositionStore,
        *,
        id_factory: Callable[[str], str] = default_group_id,
    ) -> None:
        self._store = store
        self._positions = positions
        self._id_factory = id_factory

    # Position groups -------------------------------------------------------

    def position_groups(self) -> List[PositionGroup]:
        raw = self._store.read(POSITION_GROUPS_KEY, [], is_list)
        groups: List[PositionGroup] = []
        claimed: set[str] = set()
        for entry in raw:
            group = PositionGroup.from_mapping(entry)
            if group is None:
                _LOGGER.debug("Dropping malformed or undersized position group: %r", entry)
                continue
            if claimed.intersection(group.button_ids):
                # Stored data violating exclusivity: first group keeps the control.
                members = tuple(member for member in group.button_ids if member not in claimed)
                if len(members) < MIN_POSITION_GROUP_SIZE:
                    continue
                group = replace(group, button_ids=members)
            claimed.update(group.button_ids)
            groups.append(group)
        return groups

    def replace_position_groups(self, groups: Sequence[PositionGroup]) -> bool:
        payload = [group.to_dict() for group in groups]
        return self._store.write(POSITION_GROUPS_KEY, payload, event=POSITION_GROUPS_CHANGED)

    def get_position_group(self, group_id: str) -> Optional[PositionGroup]:
        return next((group for group in self.position_groups() if group.id == group_id), None)

    def group_for(self, control_id: str) -> Optional[PositionGroup]:
        return next((group for group in self.position_groups() if control_id in group.button_ids), None)

    def create_position_group(self, control_ids: Iterable[str], name: Optional[str] = None) -> Optional[PositionGroup]:
        members = _unique(control_ids)
        if len(members) < MIN_POSITION_GROUP_SIZE:
            _LOGGER.debug("Position group rejected: needs two controls, got %r", members)
            return None
        groups = self._detach_from_position_groups(self.position_groups(), members)
        label = name.strip() if isinstance(name, str) and name.strip() else f"Group {len(groups) + 1}"
        group = PositionGroup(self._id_factory("group"), tuple(members), label)
        groups.append(group)
        self.replace_position_groups(groups)
        _LOGGER.debug("Position group created: id=%s members=%s", group.id, ",".join(members))
        return group

    def add_member(self, group_id: str, control_id: str) -> Optional[PositionGroup]:
        groups = self.position_groups()
        target = self._find(groups, group_id)
        if target is None:
            return None
        if control_id in target.button_ids:
            return target
        groups = self._detach_from_position_groups(groups, [control_id])
        index = self._index(groups, group_id)
        if index is None:
            return None
        updated = replace(groups[index], button_ids=groups[index].button_ids + (control_id,))
        groups[index] = updated
        self.replace_position_groups(groups)
        return updated

    def remove_member(self, group_id: str, control_id: str) -> bool:
        """Remove ``control_id`` from the group, dissolving it below two members.

        Returns False when the group is unknown or ``control_id`` is not in it.
        Stored member positions are left untouched.
        """

        groups = self.position_groups()
        index = self._index(groups, group_id)
        if index is None:
            return False
        group = groups[index]
        if control_id not in group.button_ids:
            return False
        members = tuple(member for member in group.button_ids if member != control_id)
        if len(members) < MIN_POSITION_GROUP_SIZE:
            groups.pop(index)
            _LOGGER.debug("Position group %s dissolved after removing %s", group_id, control_id)
        else:
            groups[index] = replace(group, button_ids=members)
        return self.replace_position_groups(groups)

    def delete_position_group(self, group_id: str) -> bool:
        groups = self.position_groups()
        remaining = [group for group in groups if group.id != group_id]
        if len(remaining) == len(groups):
            return False
        return self.replace_position_groups(remaining)

    def rename_position_group(self, group_id: str, name: str) -> Optional[PositionGroup]:
        groups = self.position_groups()
        index = self._index(groups, group_id)
        if index is None:
            return None
        groups[index] = replace(groups[index], name=name)
        self.replace_position_groups(groups)
        return groups[index]

    def clear_position_groups(self) -> bool:
        return self._store.delete(POSITION_GROUPS_KEY, event=POSITION_GROUPS_CHANGED, empty_value=[])

    def connection_pairs(self, group_id: str) -> List[Tuple[str, str]]:
        group = self.get_position_group(group_id)
        if group is None:
            return []
        members = group.button_ids
        return [(members[i], members[i + 1]) for i in range(len(members) - 1)]

    def move_group_together(self, anchor_id: str, delta: Position) -> bool:
        """Translate every stored member position of ``anchor_id``'s group by ``delta``.

        Members that have never been placed keep their default layout. Returns
        False when the anchor is ungrouped.
        """

        group = self.group_for(anchor_id)
        if group is None:
            return False
        positions = self._positions.get_all()
        for member in group.button_ids:
            current = positions.get(member)
            if current is None:
                continue
            positions[member] = current.offset(delta.x, delta.y)
        _LOGGER.debug("Moved group %s by (%.1f, %.1f)", group.id, delta.x, delta.y)
        return self._positions.set_all(positions)

    def commit_group_move(self, anchor_id: str, anchor_position: Position, delta: Position) -> bool:
        """Store the anchor's committed position and shift its placed group mates by ``delta``.

        Everything lands in one write. Returns False (and writes nothing) when the
        anchor has no position group.
        """

        group = self.group_for(anchor_id)
        if group is None:
            return False
        positions = self._positions.get_all()
        for member in group.button_ids:
            if member == anchor_id:
                continue
            current = positions.get(member)
            if current is None:
                continue
            positions[member] = current.offset(delta.x, delta.y)
        positions[anchor_id] = anchor_position
        return self._positions.set_all(positions)

    # UI groups -------------------------------------------------------------

    def ui_groups(self) -> List[UIGroup]:
        raw = self._store.read(UI_GROUPS_KEY, [], is_list)
        groups: List[UIGroup] = []
        claimed: set[str] = set()
        for entry in raw:
            group = UIGroup.from_mapping(entry)
            if group is None:
                _LOGGER.debug("Dropping malformed UI group: %r", entry)
                continue
            if claimed.intersection(group.button_ids):
                group = replace(group, button_ids=tuple(m for m in group.button_ids if m not in claimed))
            claimed.update(group.button_ids)
            groups.append(group)
        return groups

    def replace_ui_groups(self, groups: Sequence[UIGroup]) -> bool:
        payload = [group.to_dict() for group in groups]
        return self._store.write(UI_GROUPS_KEY, payload, event=UI_GROUPS_CHANGED)

    def get_ui_group(self, group_id: str) -> Optional[UIGroup]:
        return next((group for group in self.ui_groups() if group.id == group_id), None)

    def ui_group_for(self, control_id: str) -> Optional[UIGroup]:
        return next((group for group in self.ui_groups() if control_id in group.button_ids), None)

    def create_ui_group(
        self,
        control_ids: Iterable[str] = (),
        name: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> UIGroup:
        members = _unique(control_ids)
        groups = self._detach_from_ui_groups(self.ui_groups(), members)
        label = name.strip() if isinstance(name, str) and name.strip() else f"Group {len(groups) + 1}"
        group = UIGroup(self._id_factory("uigroup"), tuple(members), label, icon=icon)
        groups.append(group)
        self.replace_ui_groups(groups)
        _LOGGER.debug("UI group created: id=%s members=%s", group.id, ",".join(members))
        return group

    def delete_ui_group(self, group_id: str) -> bool:
        groups = self.ui_groups()
        remaining = [group for group in groups if group.id != group_id]
        if len(remaining) == len(groups):
            return False
        return self.replace_ui_groups(remaining)

    def toggle_collapse(self, group_id: str) -> Optional[UIGroup]:
        return self._update_ui_group(group_id, lambda group: replace(group, is_collapsed=not group.is_collapsed))

    def set_hover_effect(self, group_id: str, effect: Any) -> Optional[UIGroup]:
        try:
            resolved = effect if isinstance(effect, HoverEffect) else HoverEffect(effect)
        except ValueError:
            _LOGGER.debug("Unknown hover effect %r for UI group %s", effect, group_id)
            return None
        return self._update_ui_group(group_id, lambda group: replace(group, hover_effect=resolved))

    def rename_ui_group(self, group_id: str, name: str) -> Optional[UIGroup]:
        return self._update_ui_group(group_id, lambda group: replace(group, name=name))

    def add_to_ui_group(self, group_id: str, control_id: str) -> Optional[UIGroup]:
        groups = self.ui_groups()
        target = self._find(groups, group_id)
        if target is None:
            return None
        if control_id in target.button_ids:
            return target
        groups = self._detach_from_ui_groups(groups, [control_id])
        index = self._index(groups, group_id)
        if index is None:
            return None
        groups[index] = replace(groups[index], button_ids=groups[index].button_ids + (control_id,))
        self.replace_ui_groups(groups)
        return groups[index]

    def remove_from_ui_group(self, group_id: str, control_id: str) -> Optional[UIGroup]:
        return self._update_ui_group(
            group_id,
            lambda group: replace(group, button_ids=tuple(m for m in group.button_ids if m != control_id)),
        )

    def reorder_within_group(self, group_id: str, from_index: int, to_index: int) -> Optional[UIGroup]:
        """Splice a member from ``from_index`` to ``to_index``; out-of-range indices are rejected."""

        groups = self.ui_groups()
        index = self._index(groups, group_id)
        if index is None:
            return None
        members = list(groups[index].button_ids)
        size = len(members)
        if not (0 <= from_index < size) or not (0 <= to_index < size):
            _LOGGER.debug("Reorder in %s rejected: %d -> %d (size %d)", group_id, from_index, to_index, size)
            return None
        moved = members.pop(from_index)
        members.insert(to_index, moved)
        groups[index] = replace(groups[index], button_ids=tuple(members))
        self.replace_ui_groups(groups)
        return groups[index]

    def move_between_groups(
        self,
        source_group_id: str,
        target_group_id: str,
        control_id: str,
        target_index: int,
    ) -> Optional[Tuple[UIGroup, UIGroup]]:
        """Move ``control_id`` from one UI group into another at ``target_index``.

        The source group is kept even when this empties it. Returns None when
        either group is unknown, the control is not in the source, or the index
        falls outside ``[0, len(target)]``.
        """

        groups = self.ui_groups()
        source_index = self._index(groups, source_group_id)
        target_index_in_list = self._index(groups, target_group_id)
        if source_index is None or target_index_in_list is None:
            return None
        source = groups[source_index]
        if control_id not in source.button_ids:
            _LOGGER.debug("Move rejected: %s is not a member of %s", control_id, source_group_id)
            return None
        if source_group_id == target_group_id:
            current = source.button_ids.index(control_id)
            updated = self.reorder_within_group(source_group_id, current, target_index)
            return None if updated is None else (updated, updated)
        target_members = list(groups[target_index_in_list].button_ids)
        if not (0 <= target_index <= len(target_members)):
            _LOGGER.debug("Move rejected: index %d outside %s (size %d)", target_index, target_group_id, len(target_members))
            return None
        target_members.insert(target_index, control_id)
        groups[source_index] = replace(source, button_ids=tuple(m for m in source.button_ids if m != control_id))
        groups[target_index_in_list] = replace(groups[target_index_in_list], button_ids=tuple(target_members))
        self.replace_ui_groups(groups)
        return groups[source_index], groups[target_index_in_list]

    def ungrouped(self, available_ids: Iterable[str]) -> List[str]:
        grouped = {member for group in self.ui_groups() for member in group.button_ids}
        return [control_id for control_id in _unique(available_ids) if control_id not in grouped]

    def instantiate_template(self, template_id: str, available_ids: Iterable[str]) -> Optional[UIGroup]:
        """Create a UI group from a template, limited to currently ungrouped controls."""

        template = get_template(template_id)
        if template is None:
            _LOGGER.debug("Unknown template: %s", template_id)
            return None
        free = set(self.ungrouped(available_ids))
        members = [control_id for control_id in template.button_ids if control_id in free]
        if not members:
            _LOGGER.debug("Template %s matched no ungrouped controls", template_id)
            return None
        return self.create_ui_group(members, name=template.name, icon=template.icon)

    def clear_ui_groups(self) -> bool:
        return self._store.delete(UI_GROUPS_KEY, event=UI_GROUPS_CHANGED, empty_value=[])

    # Helpers ---------------------------------------------------------------

    def _update_ui_group(self, group_id: str, mutate: Callable[[UIGroup], UIGroup]) -> Optional[UIGroup]:
        groups = self.ui_groups()
        index = self._index(groups, group_id)
        if index is None:
            return None
        groups[index] = mutate(groups[index])
        self.replace_ui_groups(groups)
        return groups[index]

    @staticmethod
    def _index(groups: Sequence[Any], group_id: str) -> Optional[int]:
        for index, group in enumerate(groups):
            if group.id == group_id:
                return index
        _LOGGER.debug("No such group: %s", group_id)
        return None

    def _find(self, groups: Sequence[Any], group_id: str) -> Any:
        index = self._index(groups, group_id)
        return None if index is None else groups[index]

    @staticmethod
    def _detach_from_position_groups(groups: List[PositionGroup], control_ids: Sequence[str]) -> List[PositionGroup]:
        leaving = set(control_ids)
        result: List[PositionGroup] = []
        for group in groups:
            members = tuple(member for member in group.button_ids if member not in leaving)
            if len(members) == len(group.button_ids):
                result.append(group)
            elif len(members) >= MIN_POSITION_GROUP_SIZE:
                result.append(replace(group, button_ids=members))
            else:
                _LOGGER.debug("Position group %s dissolved: members moved to another group", group.id)
        return result

    @staticmethod
    def _detach_from_ui_groups(groups: List[UIGroup], control_ids: Sequence[str]) -> List[UIGroup]:
        leaving = set(control_ids)
        return [
            replace(group, button_ids=tuple(member for member in group.button_ids if member not in leaving))
            for group in groups
        ]


def _unique(control_ids: Iterable[str]) -> List[str]:
    members: List[str] = []
    for control_id in control_ids:
        if isinstance(control_id, str) and control_id and control_id not in members:
            members.append(control_id)
    return members
