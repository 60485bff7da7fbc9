"""Per-start handle owning one stage thread and its cancel token."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from channel import CancelToken

logger = logging.getLogger(__name__)


class StageHandle:
    """Returned by a stage's ``start()``.

    The handle owns the worker thread and the :class:`CancelToken` the worker
    loop watches. ``stop()`` cancels and joins with a bound; a join that runs
    out of time is logged and reported as ``False``, never raised.
    """

    def __init__(
        self,
        name: str,
        target: Callable[[CancelToken], None],
        join_timeout_s: float,
    ) -> None:
        self.name = name
        self.token = CancelToken()
        self.join_timeout_s = join_timeout_s
        self._thread = threading.Thread(
            target=target,
            args=(self.token,),
            name=name,
            daemon=True,
        )

    def start(self) -> "StageHandle":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.token.cancel()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> bool:
        if self._thread is threading.current_thread():
            return False
        if self._thread.ident is None:  # never started
            return True
        self._thread.join(self.join_timeout_s if timeout is None else timeout)
        return not self._thread.is_alive()

    def stop(self) -> bool:
        self.cancel()
        if self._thread is threading.current_thread():
            # Called from inside the worker; the loop exits on its own.
            return False
        finished = self.join()
        if not finished:
            logger.warning(
                "stage thread did not stop in time",
                extra={"stage": self.name, "timeout_s": self.join_timeout_s},
            )
        return finished
