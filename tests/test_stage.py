from __future__ import annotations

import threading
import time

from channel import CancelToken
from stage import StageHandle


def test_stop_cancels_token_and_joins() -> None:
    seen: list[str] = []

    def loop(token: CancelToken) -> None:
        while not token.wait(0.01):
            pass
        seen.append("exited")

    handle = StageHandle("worker", loop, join_timeout_s=1.0).start()
    assert handle.is_alive()

    assert handle.stop() is True
    assert not handle.is_alive()
    assert seen == ["exited"]


def test_stop_returns_false_when_join_times_out() -> None:
    release = threading.Event()

    def stubborn(token: CancelToken) -> None:
        release.wait(2.0)

    handle = StageHandle("stubborn", stubborn, join_timeout_s=0.05).start()
    started = time.monotonic()

    assert handle.stop() is False
    assert time.monotonic() - started < 1.0
    assert handle.token.cancelled

    release.set()
    assert handle.join(timeout=1.0) is True


def test_stop_from_inside_worker_does_not_self_join() -> None:
    results: list[bool] = []
    holder: dict[str, StageHandle] = {}
    ready = threading.Event()

    def loop(token: CancelToken) -> None:
        ready.wait(1.0)
        results.append(holder["handle"].stop())

    handle = StageHandle("self-stop", loop, join_timeout_s=1.0)
    holder["handle"] = handle
    handle.start()
    ready.set()

    assert handle.join(timeout=1.0) is True
    assert results == [False]
    assert handle.token.cancelled


def test_unstarted_handle_stops_cleanly() -> None:
    handle = StageHandle("never", lambda token: None, join_timeout_s=0.1)

    assert handle.stop() is True
