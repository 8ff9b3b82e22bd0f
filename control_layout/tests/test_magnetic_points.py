import itertools

from control_layout.geometry import Position
from control_layout.magnetic_points import MagneticPointStore
from control_layout.services.change_bus import MAGNETIC_POINTS_CHANGED
from control_layout.storage import InMemoryStore, NamespacedStore


def _store():
    counter = itertools.count(1)
    namespaced = NamespacedStore(InMemoryStore())
    return MagneticPointStore(namespaced, id_factory=lambda: f"snap-{next(counter)}"), namespaced


def test_add_assigns_default_names_in_insertion_order() -> None:
    points, _ = _store()

    first = points.add(Position(10.0, 20.0))
    second = points.add(Position(30.0, 40.0), name="Dock")

    assert first.name == "Snap Point 1"
    assert second.name == "Dock"
    assert [point.id for point in points.points()] == ["snap-1", "snap-2"]


def test_remove_rename_and_clear_publish_events() -> None:
    points, namespaced = _store()
    events: list[object] = []
    namespaced.bus.subscribe(MAGNETIC_POINTS_CHANGED, lambda _e, value: events.append(value))
    point = points.add(Position(1.0, 2.0))

    assert points.rename(point.id, "Home") is True
    assert points.points()[0].name == "Home"
    assert points.remove("missing") is False
    assert points.remove(point.id) is True
    points.add(Position(3.0, 4.0))
    points.clear_all()

    assert points.points() == []
    assert len(events) == 5
    assert events[-1] == []


def test_malformed_points_are_skipped() -> None:
    points, namespaced = _store()
    namespaced.write(
        "visuai-magnetic-snap-points",
        [{"id": "p", "position": {"x": 1, "y": 2}, "name": "ok"}, {"id": "q"}, {"position": {"x": 1, "y": 1}}],
    )

    assert [point.id for point in points.points()] == ["p"]
