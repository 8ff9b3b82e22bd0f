from __future__ import annotations

import pytest
from PyQt6.QtCore import QEvent, QPointF, Qt
from PyQt6.QtGui import QMouseEvent
from PyQt6.QtTest import QTest
from PyQt6.QtWidgets import QApplication, QWidget

from control_layout.drag_controller import DragController, DragState
from control_layout.geometry import Position
from control_layout.qt_bridge import (
    LongPressEventFilter,
    QtChangeNotifier,
    QtTimerScheduler,
    move_widget_center,
    surface_viewport,
)
from control_layout.services.change_bus import ChangeBus
from control_layout.services.long_press_timers import LongPressTimers

pytestmark = pytest.mark.pyqt_required


class AfterHarness:
    def __init__(self) -> None:
        self.scheduled: list[tuple[str, int, object]] = []
        self.cancelled: list[object] = []

    def after(self, ms: int, cb) -> str:
        handle = f"h{len(self.scheduled) + 1}"
        self.scheduled.append((handle, ms, cb))
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)

    def run(self, handle: str) -> None:
        for h, _ms, cb in list(self.scheduled):
            if h == handle:
                cb()
                return
        raise AssertionError(f"Handle {handle} not found")


@pytest.fixture
def qt_app():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


def _mouse(kind: QEvent.Type, x: float, y: float, button: Qt.MouseButton = Qt.MouseButton.LeftButton) -> QMouseEvent:
    return QMouseEvent(
        kind,
        QPointF(x, y),
        QPointF(x, y),
        button,
        Qt.MouseButton.LeftButton,
        Qt.KeyboardModifier.NoModifier,
    )


def test_timer_scheduler_fires_and_cancels(qt_app):
    scheduler = QtTimerScheduler()
    fired: list[str] = []

    scheduler.after(5, lambda: fired.append("first"))
    cancelled = scheduler.after(5, lambda: fired.append("second"))
    scheduler.after_cancel(cancelled)
    QTest.qWait(50)

    assert fired == ["first"]
    assert scheduler.pending() == 0


def test_change_notifier_mirrors_bus_events(qt_app):
    bus = ChangeBus()
    notifier = QtChangeNotifier(bus)
    received: list[tuple[str, object]] = []
    notifier.changed.connect(lambda event, value: received.append((event, value)))

    bus.publish("buttonPositionsChanged", {"A": {"x": 1, "y": 2}})
    notifier.detach()
    bus.publish("buttonPositionsChanged", {})

    assert received == [("buttonPositionsChanged", {"A": {"x": 1, "y": 2}})]


def test_event_filter_drives_long_press_drag(qt_app, layout):
    surface = QWidget()
    surface.resize(400, 800)
    control = QWidget(surface)
    control.setGeometry(76, 76, 48, 48)
    harness = AfterHarness()
    controller = DragController(
        "A",
        positions=layout.positions,
        timers=LongPressTimers(after=harness.after, after_cancel=harness.cancel),
        viewport=surface_viewport(surface),
    )
    event_filter = LongPressEventFilter(control, controller)

    assert event_filter.eventFilter(control, _mouse(QEvent.Type.MouseButtonPress, 24, 24)) is False
    assert controller.state is DragState.PENDING
    harness.run("h1")
    consumed = event_filter.eventFilter(control, _mouse(QEvent.Type.MouseMove, -71, -71, Qt.MouseButton.NoButton))
    released = event_filter.eventFilter(control, _mouse(QEvent.Type.MouseButtonRelease, -71, -71))

    assert consumed is True
    assert released is True
    assert layout.positions.get("A") == Position(40.0, 40.0)

    event_filter.remove()


def test_event_filter_ignores_right_button(qt_app, layout):
    control = QWidget()
    harness = AfterHarness()
    controller = DragController(
        "A",
        positions=layout.positions,
        timers=LongPressTimers(after=harness.after, after_cancel=harness.cancel),
        viewport=surface_viewport(control),
    )
    event_filter = LongPressEventFilter(control, controller)

    event_filter.eventFilter(control, _mouse(QEvent.Type.MouseButtonPress, 5, 5, Qt.MouseButton.RightButton))

    assert controller.state is DragState.IDLE
    assert harness.scheduled == []


def test_move_widget_center(qt_app):
    surface = QWidget()
    control = QWidget(surface)
    control.setGeometry(0, 0, 48, 48)

    move_widget_center(control, Position(100.0, 200.0))

    assert (control.x(), control.y()) == (76, 176)
