from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
LoggerFn = Callable[..., None]

MIN_DELAY_MS = 1


def _noop_log(message: str, *args: object) -> None:
    return None


class LongPressTimers:
    """Keyed single-shot timers on top of an injected ``after``/``after_cancel`` pair.

    Each key (normally a control id) owns at most one outstanding timer. Starting a
    new timer for a key cancels the previous one. Every handle carries a generation
    number, so a callback that the host loop delivers after ``cancel`` is dropped.
    """

    def __init__(
        self,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        logger: Optional[LoggerFn] = None,
    ) -> None:
        self._after = after
        self._after_cancel = after_cancel
        self._logger = logger or _noop_log
        self._handles: Dict[str, Tuple[int, object]] = {}
        self._generation = 0

    def start(self, key: str, delay_ms: int, callback: Callable[[], None]) -> int:
        self.cancel(key)
        self._generation += 1
        generation = self._generation

        def _fire() -> None:
            current = self._handles.get(key)
            if current is None or current[0] != generation:
                self._log("Stale long-press timer ignored: key=%s gen=%d", key, generation)
                return
            self._handles.pop(key, None)
            callback()

        handle = self._after(max(MIN_DELAY_MS, int(delay_ms)), _fire)
        self._handles[key] = (generation, handle)
        return generation

    def cancel(self, key: str) -> bool:
        entry = self._handles.pop(key, None)
        if entry is None:
            return False
        try:
            self._after_cancel(entry[1])
        except Exception as exc:
            self._log("Timer cancel failed for %s: %s", key, exc)
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)

    def is_pending(self, key: str) -> bool:
        return key in self._handles

    def _log(self, message: str, *args: object) -> None:
        try:
            self._logger(message, *args)
        except TypeError:
            try:
                self._logger(message % args if args else message)
            except Exception:
                pass
        except Exception:
            pass
