"""Serialized delivery of pipeline updates to the host's sink."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from interfaces import PipelineSink

logger = logging.getLogger(__name__)


class SerializedSink:
    """Runs every sink callback on one presentation thread, in call order.

    Stages call this from their own threads; the wrapped sink only ever sees
    calls from the single executor thread.
    """

    def __init__(self, sink: PipelineSink) -> None:
        self._sink = sink
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="presentation")
        self._closed = False

    def on_original_text(self, text: str) -> None:
        self._submit(self._sink.on_original_text, text)

    def on_translated_text(self, text: str) -> None:
        self._submit(self._sink.on_translated_text, text)

    def on_interim_text(self, text: str) -> None:
        self._submit(self._sink.on_interim_text, text)

    def on_pipeline_error(self, message: str) -> None:
        self._submit(self._sink.on_pipeline_error, message)

    def flush(self, timeout: float | None = None) -> None:
        """Block until everything submitted so far has been delivered."""
        if self._closed:
            return
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)

    def _submit(self, fn: Callable[[str], Any], value: str) -> None:
        if self._closed:
            logger.warning("Presentation sink closed, dropping update", extra={"callback": fn.__name__})
            return
        try:
            future = self._executor.submit(fn, value)
        except RuntimeError:
            # close() raced with this call
            logger.warning("Presentation sink closed, dropping update", extra={"callback": fn.__name__})
            return
        future.add_done_callback(_log_failure)


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Sink callback failed: %s", exc, exc_info=exc)
