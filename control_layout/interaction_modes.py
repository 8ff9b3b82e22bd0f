from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional

from control_layout.drag_controller import PointerDown
from control_layout.geometry import Position
from control_layout.group_registry import GroupRegistry, PositionGroup
from control_layout.magnetic_points import MagneticPointStore, MagneticSnapPoint


class InteractionMode(str, Enum):
    NORMAL = "normal"
    GROUPING = "grouping"
    SNAP_POINT = "snap_point"


class InteractionModeTracker:
    """Tracks which pointer-down interceptor is active.

    Grouping mode turns presses into selection toggles and snap-point mode turns
    them into magnetic point placement. In either mode the press never reaches the
    long-press state machine. Only one mode is active at a time; entering one
    leaves the other.
    """

    def __init__(
        self,
        *,
        groups: GroupRegistry,
        magnetic_points: MagneticPointStore,
        on_state_change: Optional[Callable[[str, str], None]] = None,
        on_selection_change: Optional[Callable[[List[str]], None]] = None,
        logger: Optional[Callable[..., None]] = None,
    ) -> None:
        self._groups = groups
        self._magnetic_points = magnetic_points
        self._on_state_change = on_state_change
        self._on_selection_change = on_selection_change
        self._logger = logger
        self._mode = InteractionMode.NORMAL
        self._selection: List[str] = []

    @property
    def mode(self) -> InteractionMode:
        return self._mode

    @property
    def selection(self) -> List[str]:
        return list(self._selection)

    def enter_grouping(self) -> None:
        self._set_mode(InteractionMode.GROUPING)

    def enter_snap_point_placement(self) -> None:
        self._set_mode(InteractionMode.SNAP_POINT)

    def exit(self) -> None:
        self._set_mode(InteractionMode.NORMAL)

    def toggle_selection(self, control_id: str) -> bool:
        """Flip ``control_id`` in the transient selection; returns True when now selected."""

        if control_id in self._selection:
            self._selection.remove(control_id)
            selected = False
        else:
            self._selection.append(control_id)
            selected = True
        self._emit_selection()
        return selected

    def finish_grouping(self, name: Optional[str] = None) -> Optional[PositionGroup]:
        """Turn the current selection into a position group and leave grouping mode.

        A selection of fewer than two controls creates nothing.
        """

        selection = list(self._selection)
        group: Optional[PositionGroup] = None
        if len(selection) >= 2:
            group = self._groups.create_position_group(selection, name=name)
            if group is None:
                self._log("Grouping selection rejected: %s", ",".join(selection))
        else:
            self._log("Grouping finished with %d selected; nothing created", len(selection))
        self.exit()
        return group

    def place_snap_point(self, point: Position, name: Optional[str] = None) -> MagneticSnapPoint:
        created = self._magnetic_points.add(point, name=name)
        self._log("Snap point placed at (%.1f, %.1f)", point.x, point.y)
        return created

    def intercept(self, control_id: str, event: PointerDown) -> bool:
        """Pointer-down hook for DragController; True means the press was consumed."""

        if self._mode is InteractionMode.GROUPING:
            self.toggle_selection(control_id)
            return True
        if self._mode is InteractionMode.SNAP_POINT:
            self.place_snap_point(event.point)
            return True
        return False

    def surface_pressed(self, point: Position) -> bool:
        """Press on the empty surface (not on a control)."""

        if self._mode is InteractionMode.SNAP_POINT:
            self.place_snap_point(point)
            return True
        return False

    def _set_mode(self, mode: InteractionMode) -> None:
        previous = self._mode
        if previous is mode:
            return
        self._mode = mode
        if self._selection:
            self._selection.clear()
            self._emit_selection()
        self._log("Interaction mode %s -> %s", previous.value, mode.value)
        if self._on_state_change is not None:
            try:
                self._on_state_change(previous.value, mode.value)
            except Exception as exc:
                self._log("Mode change callback failed: %s", exc)

    def _emit_selection(self) -> None:
        if self._on_selection_change is None:
            return
        try:
            self._on_selection_change(list(self._selection))
        except Exception as exc:
            self._log("Selection callback failed: %s", exc)

    def _log(self, message: str, *args: object) -> None:
        logger = self._logger
        if logger is None:
            return
        try:
            logger(message, *args)
        except Exception:
            pass
