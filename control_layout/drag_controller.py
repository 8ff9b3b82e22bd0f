"""Long-press drag state machine for repositionable controls.

The gesture logic lives in :func:`transition`, a pure function from
``(session, event, environment)`` to ``(session, effects)``. ``DragController``
feeds pointer and timer events through it and performs the effects (timer
scheduling, store writes, callbacks) at the boundary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from control_layout.geometry import Position, Viewport
from control_layout.magnetic_points import MagneticPointStore, MagneticSnapPoint
from control_layout.position_store import PositionStore
from control_layout.services.long_press_timers import LongPressTimers
from control_layout.snap_engine import SnapSettings

_LOGGER = logging.getLogger("ControlLayout.Drag")

DEFAULT_LONG_PRESS_MS = 1000
MOVE_THRESHOLD_PX = 10.0
DRAG_PADDING_PX = 24.0


class DragState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    DRAGGING = "dragging"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


# Events -------------------------------------------------------------------


@dataclass(frozen=True)
class PointerDown:
    point: Position
    # Rendered center of the control when the press starts.
    element_center: Position


@dataclass(frozen=True)
class PointerMove:
    point: Position


@dataclass(frozen=True)
class PointerUp:
    point: Optional[Position] = None


@dataclass(frozen=True)
class PointerCancel:
    pass


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class TimerFired:
    pass


DragEvent = Union[PointerDown, PointerMove, PointerUp, PointerCancel, PointerLeave, TimerFired]


# Effects ------------------------------------------------------------------


@dataclass(frozen=True)
class StartTimer:
    delay_ms: int


@dataclass(frozen=True)
class CancelTimer:
    pass


@dataclass(frozen=True)
class DragStarted:
    position: Position


@dataclass(frozen=True)
class UpdatePreview:
    position: Position
    snapped: bool
    kind: str


@dataclass(frozen=True)
class SnapChanged:
    snapped: bool
    kind: str


@dataclass(frozen=True)
class CommitPosition:
    position: Position
    drag_start: Position
    snapped: bool


@dataclass(frozen=True)
class DiscardPreview:
    revert_to: Optional[Position]


@dataclass(frozen=True)
class PassThrough:
    reason: str


DragEffect = Union[StartTimer, CancelTimer, DragStarted, UpdatePreview, SnapChanged, CommitPosition, DiscardPreview, PassThrough]


@dataclass(frozen=True)
class DragSession:
    state: DragState = DragState.IDLE
    start: Optional[Position] = None
    element_center: Optional[Position] = None
    grab_offset: Position = Position(0.0, 0.0)
    drag_start: Optional[Position] = None
    preview: Optional[Position] = None
    snapped: bool = False
    snap_kind: str = "none"


@dataclass(frozen=True)
class DragEnvironment:
    viewport: Viewport
    stored_position: Optional[Position] = None
    magnetic_points: Sequence[MagneticSnapPoint] = ()
    snap: SnapSettings = field(default_factory=SnapSettings)
    long_press_ms: int = DEFAULT_LONG_PRESS_MS
    move_threshold: float = MOVE_THRESHOLD_PX
    drag_padding: float = DRAG_PADDING_PX


def _moved_past_threshold(start: Position, point: Position, threshold: float) -> bool:
    return abs(point.x - start.x) > threshold or abs(point.y - start.y) > threshold


def transition(
    session: DragSession,
    event: DragEvent,
    env: DragEnvironment,
) -> Tuple[DragSession, List[DragEffect]]:
    """Advance one control's gesture by one event. Pure: no I/O, no clocks."""

    state = session.state
    if state in (DragState.COMMITTED, DragState.CANCELLED):
        session = DragSession()
        state = DragState.IDLE

    if state is DragState.IDLE:
        if isinstance(event, PointerDown):
            pending = DragSession(
                state=DragState.PENDING,
                start=event.point,
                element_center=event.element_center,
            )
            return pending, [StartTimer(env.long_press_ms)]
        return session, []

    if state is DragState.PENDING:
        if isinstance(event, TimerFired):
            if session.start is None or session.element_center is None:
                return session, []
            grab_offset = session.element_center.delta_to(session.start)
            drag_start = env.stored_position or session.element_center
            dragging = replace(
                session,
                state=DragState.DRAGGING,
                grab_offset=grab_offset,
                drag_start=drag_start,
                preview=drag_start,
                snapped=False,
                snap_kind="none",
            )
            return dragging, [DragStarted(drag_start)]
        if isinstance(event, PointerMove):
            if session.start is None:
                return session, []
            if _moved_past_threshold(session.start, event.point, env.move_threshold):
                return DragSession(), [CancelTimer(), PassThrough("moved")]
            return session, []
        if isinstance(event, PointerUp):
            return DragSession(), [CancelTimer(), PassThrough("tap")]
        if isinstance(event, (PointerCancel, PointerLeave)):
            return DragSession(), [CancelTimer()]
        return session, []

    if state is DragState.DRAGGING:
        if isinstance(event, PointerMove):
            target = event.point.offset(-session.grab_offset.x, -session.grab_offset.y)
            clamped = env.viewport.clamp(target, env.drag_padding)
            result = env.snap.apply(clamped, env.viewport, env.magnetic_points)
            effects: List[DragEffect] = [UpdatePreview(result.position, result.snapped, result.kind)]
            if result.snapped != session.snapped:
                effects.append(SnapChanged(result.snapped, result.kind))
            updated = replace(session, preview=result.position, snapped=result.snapped, snap_kind=result.kind)
            return updated, effects
        if isinstance(event, PointerUp):
            if session.drag_start is None:
                return session, []
            final = session.preview or session.drag_start
            committed = replace(session, state=DragState.COMMITTED, preview=final)
            return committed, [CommitPosition(final, session.drag_start, session.snapped)]
        if isinstance(event, (PointerCancel, PointerLeave)):
            cancelled = replace(session, state=DragState.CANCELLED, preview=None)
            return cancelled, [DiscardPreview(env.stored_position)]
        return session, []

    return session, []


class GroupMover(Protocol):
    """What the controller needs from the group registry."""

    def commit_group_move(self, anchor_id: str, anchor_position: Position, delta: Position) -> bool: ...


@dataclass
class DragCallbacks:
    on_commit: Optional[Callable[[str, Position], None]] = None
    on_preview: Optional[Callable[[str, Position, bool], None]] = None
    on_snap_change: Optional[Callable[[str, bool, str], None]] = None
    on_drag_start: Optional[Callable[[str, Position], None]] = None
    on_drag_end: Optional[Callable[[str, bool], None]] = None
    on_pass_through: Optional[Callable[[str, str], None]] = None


class DragController:
    """Runs :func:`transition` for a single control and executes its effects."""

    def __init__(
        self,
        control_id: str,
        *,
        positions: PositionStore,
        timers: LongPressTimers,
        viewport: Callable[[], Viewport],
        magnetic_points: Optional[MagneticPointStore] = None,
        groups: Optional[GroupMover] = None,
        snap: Optional[SnapSettings] = None,
        long_press_ms: int = DEFAULT_LONG_PRESS_MS,
        move_threshold: float = MOVE_THRESHOLD_PX,
        drag_padding: float = DRAG_PADDING_PX,
        interceptor: Optional[Callable[[str, PointerDown], bool]] = None,
        callbacks: Optional[DragCallbacks] = None,
    ) -> None:
        self.control_id = control_id
        self._positions = positions
        self._timers = timers
        self._viewport = viewport
        self._magnetic_points = magnetic_points
        self._groups = groups
        self._snap = snap or SnapSettings()
        self._long_press_ms = int(long_press_ms)
        self._move_threshold = float(move_threshold)
        self._drag_padding = float(drag_padding)
        self._interceptor = interceptor
        self._callbacks = callbacks or DragCallbacks()
        self._session = DragSession()

    @property
    def state(self) -> DragState:
        return self._session.state

    @property
    def session(self) -> DragSession:
        return self._session

    @property
    def preview_position(self) -> Optional[Position]:
        if self._session.state is DragState.DRAGGING:
            return self._session.preview
        return None

    @property
    def is_dragging(self) -> bool:
        return self._session.state is DragState.DRAGGING

    def pointer_down(self, point: Position, element_center: Position) -> None:
        event = PointerDown(point, element_center)
        if self._session.state is DragState.IDLE and self._interceptor is not None:
            if self._interceptor(self.control_id, event):
                _LOGGER.debug("Pointer down on %s intercepted by selection mode", self.control_id)
                return
        self.dispatch(event)

    def pointer_move(self, point: Position) -> None:
        self.dispatch(PointerMove(point))

    def pointer_up(self, point: Optional[Position] = None) -> None:
        self.dispatch(PointerUp(point))

    def pointer_cancel(self) -> None:
        self.dispatch(PointerCancel())

    def pointer_leave(self) -> None:
        self.dispatch(PointerLeave())

    def reset_position(self) -> bool:
        """Forget the saved position so the control returns to its default placement."""

        removed = self._positions.remove(self.control_id)
        if removed:
            _LOGGER.debug("Position reset for %s", self.control_id)
        return removed

    def dispose(self) -> None:
        self._timers.cancel(self.control_id)
        self._session = DragSession()

    def dispatch(self, event: DragEvent) -> None:
        previous = self._session.state
        env = self._environment(event)
        session, effects = transition(self._session, event, env)
        self._session = session
        if session.state is not previous:
            _LOGGER.debug("Drag %s: %s -> %s on %s", self.control_id, previous.value, session.state.value, type(event).__name__)
        for effect in effects:
            self._run_effect(effect)
        if session.state in (DragState.COMMITTED, DragState.CANCELLED):
            self._session = DragSession()

    def _environment(self, event: DragEvent) -> DragEnvironment:
        stored: Optional[Position] = None
        points: Sequence[MagneticSnapPoint] = ()
        # Store reads only where the transition consults them.
        if isinstance(event, (TimerFired, PointerCancel, PointerLeave)):
            stored = self._positions.get(self.control_id)
        if isinstance(event, PointerMove) and self._session.state is DragState.DRAGGING:
            if self._magnetic_points is not None:
                points = self._magnetic_points.points()
        return DragEnvironment(
            viewport=self._viewport(),
            stored_position=stored,
            magnetic_points=points,
            snap=self._snap,
            long_press_ms=self._long_press_ms,
            move_threshold=self._move_threshold,
            drag_padding=self._drag_padding,
        )

    def _run_effect(self, effect: DragEffect) -> None:
        callbacks = self._callbacks
        if isinstance(effect, StartTimer):
            self._timers.start(self.control_id, effect.delay_ms, lambda: self.dispatch(TimerFired()))
        elif isinstance(effect, CancelTimer):
            self._timers.cancel(self.control_id)
        elif isinstance(effect, DragStarted):
            self._notify(callbacks.on_drag_start, self.control_id, effect.position)
        elif isinstance(effect, UpdatePreview):
            self._notify(callbacks.on_preview, self.control_id, effect.position, effect.snapped)
        elif isinstance(effect, SnapChanged):
            self._notify(callbacks.on_snap_change, self.control_id, effect.snapped, effect.kind)
        elif isinstance(effect, CommitPosition):
            self._commit(effect)
            self._notify(callbacks.on_drag_end, self.control_id, True)
        elif isinstance(effect, DiscardPreview):
            _LOGGER.debug("Drag cancelled for %s; reverting to %s", self.control_id, effect.revert_to)
            self._notify(callbacks.on_drag_end, self.control_id, False)
        elif isinstance(effect, PassThrough):
            self._notify(callbacks.on_pass_through, self.control_id, effect.reason)

    def _commit(self, effect: CommitPosition) -> None:
        delta = effect.drag_start.delta_to(effect.position)
        moved_group = False
        if self._groups is not None:
            moved_group = self._groups.commit_group_move(self.control_id, effect.position, delta)
        if not moved_group:
            self._positions.set(self.control_id, effect.position)
        _LOGGER.debug(
            "Committed %s at (%.1f, %.1f) snapped=%s group=%s",
            self.control_id,
            effect.position.x,
            effect.position.y,
            effect.snapped,
            moved_group,
        )
        self._notify(self._callbacks.on_commit, self.control_id, effect.position)

    @staticmethod
    def _notify(callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            _LOGGER.debug("Drag callback failed: %s", exc, exc_info=exc)


class DragCoordinator:
    """Creates one DragController per control and tracks whether any drag is live."""

    def __init__(
        self,
        *,
        positions: PositionStore,
        timers: LongPressTimers,
        viewport: Callable[[], Viewport],
        magnetic_points: Optional[MagneticPointStore] = None,
        groups: Optional[GroupMover] = None,
        snap: Optional[SnapSettings] = None,
        long_press_ms: int = DEFAULT_LONG_PRESS_MS,
        move_threshold: float = MOVE_THRESHOLD_PX,
        drag_padding: float = DRAG_PADDING_PX,
        interceptor: Optional[Callable[[str, PointerDown], bool]] = None,
        callbacks: Optional[DragCallbacks] = None,
        on_any_dragging: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._factory_kwargs = dict(
            positions=positions,
            timers=timers,
            viewport=viewport,
            magnetic_points=magnetic_points,
            groups=groups,
            snap=snap,
            long_press_ms=long_press_ms,
            move_threshold=move_threshold,
            drag_padding=drag_padding,
            interceptor=interceptor,
        )
        self._user_callbacks = callbacks or DragCallbacks()
        self._on_any_dragging = on_any_dragging
        self._controllers: Dict[str, DragController] = {}
        self._dragging: set[str] = set()

    def controller(self, control_id: str, *, long_press_ms: Optional[int] = None) -> DragController:
        existing = self._controllers.get(control_id)
        if existing is not None:
            return existing
        kwargs = dict(self._factory_kwargs)
        if long_press_ms is not None:
            kwargs["long_press_ms"] = long_press_ms
        user = self._user_callbacks
        callbacks = DragCallbacks(
            on_commit=user.on_commit,
            on_preview=user.on_preview,
            on_snap_change=user.on_snap_change,
            on_drag_start=self._wrap_start(user.on_drag_start),
            on_drag_end=self._wrap_end(user.on_drag_end),
            on_pass_through=user.on_pass_through,
        )
        controller = DragController(control_id, callbacks=callbacks, **kwargs)  # type: ignore[arg-type]
        self._controllers[control_id] = controller
        return controller

    def release(self, control_id: str) -> None:
        controller = self._controllers.pop(control_id, None)
        if controller is not None:
            controller.dispose()
            self._mark(control_id, False)

    @property
    def any_dragging(self) -> bool:
        return bool(self._dragging)

    def _wrap_start(self, user_cb: Optional[Callable[[str, Position], None]]) -> Callable[[str, Position], None]:
        def _on_start(control_id: str, position: Position) -> None:
            self._mark(control_id, True)
            if user_cb is not None:
                user_cb(control_id, position)

        return _on_start

    def _wrap_end(self, user_cb: Optional[Callable[[str, bool], None]]) -> Callable[[str, bool], None]:
        def _on_end(control_id: str, committed: bool) -> None:
            self._mark(control_id, False)
            if user_cb is not None:
                user_cb(control_id, committed)

        return _on_end

    def _mark(self, control_id: str, active: bool) -> None:
        before = bool(self._dragging)
        if active:
            self._dragging.add(control_id)
        else:
            self._dragging.discard(control_id)
        after = bool(self._dragging)
        if before != after and self._on_any_dragging is not None:
            try:
                self._on_any_dragging(after)
            except Exception as exc:
                _LOGGER.debug("Drag overlay callback failed: %s", exc, exc_info=exc)
