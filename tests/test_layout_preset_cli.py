from __future__ import annotations

import json

from control_layout.geometry import Position
from control_layout.layout_state import open_layout
from control_layout.storage import JsonFileStore
from utils import layout_preset_cli


def _seed(path) -> None:
    state = open_layout(JsonFileStore(path))
    state.positions.set("like", Position(40.0, 40.0))
    state.attributes.set_value("sizes", "like", "xl")
    state.groups.create_position_group(["like", "share"])


def test_export_prints_layout_json(tmp_path, capsys) -> None:
    store = tmp_path / "store.json"
    _seed(store)

    assert layout_preset_cli.main(["--store", str(store), "export", "--layout"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["positions"] == {"like": {"x": 40.0, "y": 40.0}}
    assert data["sizes"] == {"like": "xl"}
    assert data["positionGroups"][0]["buttonIds"] == ["like", "share"]


def test_import_rejects_invalid_file_without_writing(tmp_path, capsys) -> None:
    store = tmp_path / "store.json"
    _seed(store)
    before = store.read_text(encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"sizes": {"like": "gigantic"}}), encoding="utf-8")

    assert layout_preset_cli.main(["--store", str(store), "import", str(bad)]) == 2

    assert "sizes.like" in capsys.readouterr().err
    assert store.read_text(encoding="utf-8") == before


def test_import_applies_valid_file(tmp_path) -> None:
    store = tmp_path / "store.json"
    source = tmp_path / "layout.json"
    source.write_text(json.dumps({"positions": {"tip": {"x": 5, "y": 6}}}), encoding="utf-8")

    assert layout_preset_cli.main(["--store", str(store), "import", str(source)]) == 0

    assert open_layout(JsonFileStore(store)).positions.get_all() == {"tip": Position(5.0, 6.0)}


def test_save_list_apply_delete_cycle(tmp_path, capsys) -> None:
    store = tmp_path / "store.json"
    _seed(store)

    assert layout_preset_cli.main(["--store", str(store), "save", "Evening"]) == 0
    preset_id = capsys.readouterr().out.split()[3]
    assert layout_preset_cli.main(["--store", str(store), "reset"]) == 0
    assert open_layout(JsonFileStore(store)).positions.get_all() == {}

    assert layout_preset_cli.main(["--store", str(store), "list"]) == 0
    assert "Evening" in capsys.readouterr().out
    assert layout_preset_cli.main(["--store", str(store), "apply", preset_id]) == 0
    assert open_layout(JsonFileStore(store)).positions.get("like") == Position(40.0, 40.0)
    assert layout_preset_cli.main(["--store", str(store), "delete", preset_id]) == 0
    assert layout_preset_cli.main(["--store", str(store), "delete", preset_id]) == 2
    assert layout_preset_cli.main(["--store", str(store), "apply", preset_id]) == 2


def test_store_path_defaults_from_environment(tmp_path, monkeypatch, capsys) -> None:
    store = tmp_path / "env-store.json"
    _seed(store)
    monkeypatch.setenv("CONTROL_LAYOUT_STORE_PATH", str(store))

    assert layout_preset_cli.main(["export"]) == 0

    assert "like" in json.loads(capsys.readouterr().out)["positions"]
