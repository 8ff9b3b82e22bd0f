"""PyQt6 glue: timers, change signals and mouse-event routing for DragController."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from PyQt6.QtCore import QEvent, QObject, QPointF, Qt, QTimer, pyqtSignal
from PyQt6.QtWidgets import QWidget

from control_layout.drag_controller import DragController
from control_layout.geometry import Position, Viewport
from control_layout.services.change_bus import ChangeBus

_LOGGER = logging.getLogger("ControlLayout.Qt")


class QtTimerScheduler(QObject):
    """``after``/``after_cancel`` pair backed by single-shot QTimers."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._timers: Dict[int, QTimer] = {}
        self._next_handle = 0

    def after(self, delay_ms: int, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        handle = self._next_handle
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(max(0, int(delay_ms)))
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start()
        return handle

    def after_cancel(self, handle: object) -> None:
        timer = self._timers.pop(handle, None)  # type: ignore[arg-type]
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

    def pending(self) -> int:
        return len(self._timers)

    def _fire(self, handle: int, callback: Callable[[], None]) -> None:
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        callback()


class QtChangeNotifier(QObject):
    """Re-emits every ChangeBus event on the Qt signal ``changed(event, value)``."""

    changed = pyqtSignal(str, object)

    def __init__(self, bus: ChangeBus, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._unsubscribe = bus.subscribe(None, self._forward)

    def _forward(self, event: str, value: Any) -> None:
        self.changed.emit(event, value)

    def detach(self) -> None:
        self._unsubscribe()


def _to_position(point: QPointF) -> Position:
    return Position(float(point.x()), float(point.y()))


def surface_viewport(surface: QWidget) -> Callable[[], Viewport]:
    """Viewport provider that tracks ``surface``'s current size."""

    def _viewport() -> Viewport:
        size = surface.size()
        return Viewport(float(max(size.width(), 1)), float(max(size.height(), 1)))

    return _viewport


class LongPressEventFilter(QObject):
    """Feeds a control widget's mouse events into its DragController.

    Coordinates are translated into the widget's parent (the layout surface).
    While a drag is live the filter consumes the events so the control does not
    also react to them; a pass-through tap is left to the widget.
    """

    def __init__(self, widget: QWidget, controller: DragController, parent: Optional[QObject] = None) -> None:
        super().__init__(parent if parent is not None else widget)
        self._widget = widget
        self._controller = controller
        widget.setMouseTracking(True)
        widget.installEventFilter(self)

    @property
    def controller(self) -> DragController:
        return self._controller

    def remove(self) -> None:
        self._widget.removeEventFilter(self)
        self._controller.dispose()

    def eventFilter(self, obj, event) -> bool:  # type: ignore[override]
        if obj is not self._widget:
            return False
        etype = event.type()
        if etype == QEvent.Type.MouseButtonPress:
            if event.button() != Qt.MouseButton.LeftButton:
                return False
            center = self._widget.geometry().center()
            self._controller.pointer_down(
                self._surface_point(event),
                Position(float(center.x()), float(center.y())),
            )
            return False
        if etype == QEvent.Type.MouseMove:
            was_dragging = self._controller.is_dragging
            self._controller.pointer_move(self._surface_point(event))
            return was_dragging
        if etype == QEvent.Type.MouseButtonRelease:
            if event.button() != Qt.MouseButton.LeftButton:
                return False
            was_dragging = self._controller.is_dragging
            self._controller.pointer_up(self._surface_point(event))
            return was_dragging
        if etype == QEvent.Type.Leave:
            self._controller.pointer_leave()
            return False
        if etype == QEvent.Type.UngrabMouse:
            self._controller.pointer_cancel()
            return False
        return False

    def _surface_point(self, event) -> Position:
        local = event.position()
        mapped = self._widget.mapToParent(local)
        return _to_position(mapped)


def move_widget_center(widget: QWidget, position: Position) -> None:
    """Place ``widget`` so its center sits at ``position`` in parent coordinates."""

    geometry = widget.geometry()
    left = int(round(position.x - geometry.width() / 2.0))
    top = int(round(position.y - geometry.height() / 2.0))
    widget.move(left, top)
