from control_layout.layout_history import LayoutHistory


def test_undo_redo_walks_the_stack() -> None:
    history = LayoutHistory({"a": 0})
    history.push({"a": 1}, "first")
    history.push({"a": 2}, "second")

    assert history.undo() == {"a": 1}
    assert history.undo() == {"a": 0}
    assert history.undo() is None
    assert history.redo() == {"a": 1}


def test_push_after_undo_truncates_redo_branch() -> None:
    history = LayoutHistory({"a": 0})
    history.push({"a": 1}, "first")
    history.undo()

    history.push({"a": 5}, "branch")

    assert history.can_redo is False
    assert [entry.action for entry in history.entries()] == ["Initial", "branch"]


def test_limit_drops_oldest_entries() -> None:
    history = LayoutHistory(0, limit=3)
    for value in range(1, 6):
        history.push(value, f"step {value}")

    assert len(history) == 3
    assert history.current() == 5
    assert history.undo() == 4
    assert history.undo() == 3
    assert history.undo() is None


def test_snapshots_are_deep_copied() -> None:
    state = {"positions": {"a": {"x": 1}}}
    history = LayoutHistory(state)
    state["positions"]["a"]["x"] = 99

    restored = history.current()
    restored["positions"]["a"]["x"] = 42

    assert history.current() == {"positions": {"a": {"x": 1}}}


def test_clear_keeps_current_entry_only() -> None:
    history = LayoutHistory(0)
    history.push(1, "one")
    history.push(2, "two")
    history.undo()

    history.clear()

    assert len(history) == 1
    assert history.current() == 1
    assert history.can_undo is False and history.can_redo is False
