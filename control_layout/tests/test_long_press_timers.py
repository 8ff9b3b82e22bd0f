from control_layout.services.long_press_timers import LongPressTimers


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


def test_start_schedules_with_delay_and_fires_once() -> None:
    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=harness.cancel)
    fired: list[str] = []

    timers.start("like", 1000, lambda: fired.append("like"))

    assert harness.scheduled[-1][1] == 1000
    assert timers.is_pending("like")
    harness.run("h1")
    assert fired == ["like"]
    assert not timers.is_pending("like")


def test_restart_cancels_previous_handle_and_ignores_stale_fire() -> None:
    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=harness.cancel)
    fired: list[int] = []

    timers.start("like", 1000, lambda: fired.append(1))
    timers.start("like", 1000, lambda: fired.append(2))

    assert harness.cancelled == ["h1"]
    # Host loop delivers the cancelled callback anyway.
    harness.run("h1")
    assert fired == []
    harness.run("h2")
    assert fired == [2]


def test_cancel_reports_whether_a_timer_was_pending() -> None:
    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=harness.cancel)

    assert timers.cancel("share") is False
    timers.start("share", 500, lambda: None)
    assert timers.cancel("share") is True
    assert harness.cancelled == ["h1"]


def test_cancel_all_clears_every_key() -> None:
    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=harness.cancel)
    timers.start("a", 100, lambda: None)
    timers.start("b", 100, lambda: None)

    timers.cancel_all()

    assert sorted(harness.cancelled) == ["h1", "h2"]
    assert not timers.is_pending("a")
    assert not timers.is_pending("b")


def test_delay_is_clamped_to_minimum() -> None:
    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=harness.cancel)

    timers.start("a", 0, lambda: None)

    assert harness.scheduled[-1][1] == 1


def test_cancel_failure_is_logged_not_raised() -> None:
    messages: list[str] = []

    def broken_cancel(_handle: object) -> None:
        raise RuntimeError("loop gone")

    harness = AfterHarness()
    timers = LongPressTimers(after=harness.after, after_cancel=broken_cancel, logger=lambda msg, *args: messages.append(msg % args))
    timers.start("a", 100, lambda: None)

    assert timers.cancel("a") is True
    assert any("loop gone" in message for message in messages)
