"""Translation stage: drains final transcripts and publishes translations."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from channel import CancelToken, Channel, Stop
from errors import InterruptedDuringShutdown, TranslationIOError
from interfaces import PipelineSink, TranslationCapability
from models import TranslationResult
from stage import StageHandle

logger = logging.getLogger(__name__)


class TranslationStage:
    def __init__(
        self,
        capability: TranslationCapability,
        sink: PipelineSink,
        source_lang: str = "en",
        target_lang: str = "zh-CN",
        join_timeout_s: float = 5.0,
    ) -> None:
        self._capability = capability
        self._sink = sink
        self.source_lang = source_lang
        self.target_lang = target_lang
        self._join_timeout_s = join_timeout_s
        self._lock = threading.Lock()
        self._handle: Optional[StageHandle] = None
        self._channel: Optional[Channel[str]] = None
        self.translated = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self, text_channel: Channel[str]) -> StageHandle:
        with self._lock:
            if self._handle is not None:
                return self._handle
            self._channel = text_channel
            handle = StageHandle(
                "TranslationProcessorThread",
                lambda token: self._run(text_channel, token),
                join_timeout_s=self._join_timeout_s,
            )
            self._handle = handle.start()
        logger.info("Translation processor thread started.")
        return handle

    def stop(self) -> None:
        with self._lock:
            handle, channel = self._handle, self._channel
            if handle is None:
                return
            self._handle = None
            self._channel = None
        if channel is not None and not channel.close():
            logger.warning("Text queue full, relying on cancellation to stop translation")
        handle.stop()

    def translate_item(self, text: str) -> TranslationResult:
        if not text or not text.strip():
            translated = ""
        else:
            translated = self._capability.translate(text, self.source_lang, self.target_lang)
        return TranslationResult(
            source_text=text,
            source_lang=self.source_lang,
            target_lang=self.target_lang,
            translated_text=translated,
        )

    def _run(self, text_channel: Channel[str], token: CancelToken) -> None:
        try:
            while not token.cancelled:
                item = text_channel.take(token)
                if isinstance(item, Stop):
                    break
                try:
                    result = self.translate_item(item.payload)
                except TranslationIOError as exc:
                    self.failed += 1
                    logger.error("Translation failed: %s", exc.message, extra={"code": exc.code})
                    self._sink.on_pipeline_error(f"Translation Error: {exc.message}")
                    if token.cancelled:
                        break
                    continue
                self.translated += 1
                self._sink.on_translated_text(result.translated_text)
        except InterruptedDuringShutdown:
            logger.warning("Translation processor thread interrupted.")
        except Exception as exc:
            logger.exception("Translation processor thread crashed")
            self._sink.on_pipeline_error(f"Translation Error: {exc}")
        finally:
            logger.info(
                "Translation processor thread stopped.",
                extra={"translated": self.translated, "failed": self.failed},
            )
