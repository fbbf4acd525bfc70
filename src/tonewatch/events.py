"""Owner-thread callback queue.

All monitor state is mutated on whichever thread drains this queue. Worker
threads never touch state directly; they post their results back here.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger("tonewatch")

Spawn = Callable[[Callable[[], None]], None]
DoneCallback = Callable[[Any, Optional[BaseException]], None]


def _spawn_thread(target: Callable[[], None]) -> None:
    threading.Thread(target=target, daemon=True).start()


class CallbackQueue:
    def __init__(self, spawn: Optional[Spawn] = None) -> None:
        self._queue: "queue.Queue[tuple[Callable[..., Any], tuple]]" = queue.Queue()
        self._spawn = spawn or _spawn_thread

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    def background(
        self,
        fn: Callable[..., Any],
        *args: Any,
        on_done: Optional[DoneCallback] = None,
    ) -> None:
        """Run ``fn`` off the owner thread and post ``on_done(result, error)``."""

        def _worker() -> None:
            result = None
            error: Optional[BaseException] = None
            try:
                result = fn(*args)
            except Exception as exc:
                error = exc
            if on_done is not None:
                self.post(on_done, result, error)
            elif error is not None:
                logger.warning("Background task %s failed: %s", getattr(fn, "__name__", fn), error)

        self._spawn(_worker)

    def run_pending(self) -> int:
        handled = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return handled
            self._dispatch(fn, args)
            handled += 1

    def run_forever(self, stop_event: threading.Event, poll_interval: float = 0.2) -> None:
        while not stop_event.is_set():
            try:
                fn, args = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self._dispatch(fn, args)

    def _dispatch(self, fn: Callable[..., Any], args: tuple) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Callback %s failed", getattr(fn, "__name__", fn))
