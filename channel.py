"""FIFO channel with cancellable blocking take/put and tagged shutdown items."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from queue import Empty, Full, Queue
from typing import Generic, TypeVar, Union

from errors import InterruptedDuringShutdown

T = TypeVar("T")


class CancelToken:
    """One-shot cancellation flag shared between a stage and its thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


@dataclass(frozen=True)
class Data(Generic[T]):
    payload: T


class Stop:
    """Marker telling the consumer to leave its loop."""

    _instance: "Stop | None" = None

    def __new__(cls) -> "Stop":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "STOP"


STOP = Stop()

Item = Union[Data[T], Stop]


class Channel(Generic[T]):
    """Thin wrapper over ``queue.Queue`` that understands :class:`CancelToken`.

    ``maxsize=0`` keeps the queue unbounded. Blocking calls poll the token every
    ``poll_s`` seconds so a cancelled stage never stays parked on the queue.
    """

    def __init__(self, maxsize: int = 0, poll_s: float = 0.05) -> None:
        self._queue: Queue[Item[T]] = Queue(maxsize=maxsize)
        self._poll_s = poll_s

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def put(self, payload: T, cancel: CancelToken | None = None) -> None:
        self._put(Data(payload), cancel)

    def close(self) -> bool:
        """Enqueue :data:`STOP` without blocking. Returns False if the queue is full."""
        try:
            self._queue.put_nowait(STOP)
        except Full:
            return False
        return True

    def take(self, cancel: CancelToken | None = None) -> Item[T]:
        while True:
            if cancel is not None and cancel.cancelled:
                raise InterruptedDuringShutdown("take cancelled")
            try:
                return self._queue.get(timeout=self._poll_s)
            except Empty:
                continue

    def clear(self) -> int:
        """Drop everything currently queued; best effort, never blocks."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                return dropped
            dropped += 1

    def _put(self, item: Item[T], cancel: CancelToken | None) -> None:
        while True:
            if cancel is not None and cancel.cancelled:
                raise InterruptedDuringShutdown("put cancelled")
            try:
                self._queue.put(item, timeout=self._poll_s)
                return
            except Full:
                continue
