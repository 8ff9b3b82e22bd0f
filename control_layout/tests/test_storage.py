import json

from control_layout.geometry import Position
from control_layout.position_store import PositionStore
from control_layout.services.change_bus import POSITIONS_CHANGED, STORAGE_EVENT, ChangeBus
from control_layout.storage import POSITIONS_KEY, InMemoryStore, JsonFileStore, NamespacedStore, StoreError, is_mapping


class FailingStore(InMemoryStore):
    def set(self, key: str, value: str) -> None:
        raise StoreError("quota exceeded")


def test_read_falls_back_to_default_on_malformed_json() -> None:
    store = NamespacedStore(InMemoryStore({POSITIONS_KEY: "{not json"}))

    value = store.read(POSITIONS_KEY, {}, is_mapping)

    assert value == {}


def test_read_rejects_unexpected_shape() -> None:
    store = NamespacedStore(InMemoryStore({POSITIONS_KEY: "[1, 2]"}))

    assert store.read(POSITIONS_KEY, {}, is_mapping) == {}


def test_default_is_copied() -> None:
    store = NamespacedStore(InMemoryStore())
    default: dict = {}

    store.read(POSITIONS_KEY, default)["x"] = 1

    assert default == {}


def test_write_broadcasts_storage_and_named_event() -> None:
    bus = ChangeBus()
    seen: list[tuple[str, object]] = []
    bus.subscribe(None, lambda event, value: seen.append((event, value)))
    store = NamespacedStore(InMemoryStore(), bus)

    assert store.write(POSITIONS_KEY, {"A": {"x": 1, "y": 2}}, event=POSITIONS_CHANGED) is True

    assert seen == [(STORAGE_EVENT, POSITIONS_KEY), (POSITIONS_CHANGED, {"A": {"x": 1, "y": 2}})]


def test_store_failure_is_contained(caplog) -> None:
    store = NamespacedStore(FailingStore())
    events: list[str] = []
    store.bus.subscribe(None, lambda event, _value: events.append(event))

    with caplog.at_level("WARNING", logger="ControlLayout.Storage"):
        assert store.write(POSITIONS_KEY, {}) is False

    assert events == []
    assert "quota exceeded" in caplog.text


def test_listener_errors_do_not_escape() -> None:
    bus = ChangeBus()
    received: list[str] = []

    def broken(_event, _value):
        raise RuntimeError("boom")

    bus.subscribe("x", broken)
    bus.subscribe("x", lambda event, _value: received.append(event))

    bus.publish("x", 1)

    assert received == ["x"]


def test_unsubscribe_stops_delivery() -> None:
    bus = ChangeBus()
    received: list[object] = []
    unsubscribe = bus.subscribe("x", lambda _event, value: received.append(value))

    bus.publish("x", 1)
    unsubscribe()
    unsubscribe()
    bus.publish("x", 2)

    assert received == [1]
    assert bus.listener_count("x") == 0


def test_json_file_store_round_trips_through_disk(tmp_path) -> None:
    path = tmp_path / "nested" / "layout.json"
    store = JsonFileStore(path)

    store.set("k", "v")
    store.set("gone", "1")
    store.delete("gone")

    assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}
    assert not path.with_suffix(".json.tmp").exists()
    assert JsonFileStore(path).get("k") == "v"


def test_json_file_store_ignores_corrupt_file(tmp_path) -> None:
    path = tmp_path / "layout.json"
    path.write_text("[broken", encoding="utf-8")

    store = JsonFileStore(path)

    assert store.get("anything") is None


def test_position_store_skips_malformed_entries() -> None:
    backend = InMemoryStore(
        {POSITIONS_KEY: json.dumps({"A": {"x": 1, "y": 2}, "B": {"x": "nan?"}, "C": [1, 2], "D": {"x": True, "y": 1}})}
    )
    positions = PositionStore(NamespacedStore(backend))

    assert positions.get_all() == {"A": Position(1.0, 2.0)}
    assert positions.repositioned_count() == 1


def test_position_store_set_remove_clear() -> None:
    positions = PositionStore(NamespacedStore(InMemoryStore()))

    positions.set("A", Position(3.0, 4.0))
    positions.set("B", Position(5.0, 6.0))
    assert positions.remove("A") is True
    assert positions.remove("A") is False
    assert positions.to_payload() == {"B": {"x": 5.0, "y": 6.0}}

    positions.clear_all()
    assert positions.get_all() == {}
