"""Streaming recognition adapter using DashScope realtime ASR.

``Recognition`` keeps one websocket session open: ``send_audio_frame`` pushes
PCM on the caller's thread while the SDK delivers ``on_event``/``on_error`` on
its own receive thread. ``stop()`` closes the outbound half and waits for the
remaining sentence results.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, StreamError, classify_provider_error
from models import StreamConfig, TranscriptEvent

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore
    RecognitionResult = None  # type: ignore

logger = logging.getLogger(__name__)

_FORMATS = {"LINEAR16": "pcm"}


def _primary_language(language_code: str) -> str:
    """``en-US`` -> ``en``."""
    return (language_code or "en").split("-")[0].lower()


def _error_message(result: Any) -> str:
    message = getattr(result, "message", None)
    if message:
        return str(message)
    return str(result or "")


class _CallbackBridge(RecognitionCallback):
    """Translates SDK callbacks into :class:`TranscriptEvent` / error strings."""

    def __init__(
        self,
        on_event: Callable[[TranscriptEvent], None],
        on_error: Callable[[str], None],
        interim_results: bool,
    ) -> None:
        self._on_event = on_event
        self._on_error = on_error
        self._interim_results = interim_results
        self.failed = False

    def on_open(self) -> None:
        logger.info("STT stream started.")

    def on_complete(self) -> None:
        logger.info("STT stream completed.")

    def on_close(self) -> None:
        logger.debug("STT websocket closed.")

    def on_error(self, result: Any) -> None:
        self.failed = True
        self._on_error(_error_message(result))

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict):
            return
        text = str(sentence.get("text", ""))
        is_final = bool(RecognitionResult.is_sentence_end(sentence))
        if not is_final and not self._interim_results:
            return
        self._on_event(TranscriptEvent(text=text, is_final=is_final))


class DashscopeRecognitionStream:
    def __init__(self, recognition: Any, bridge: _CallbackBridge) -> None:
        self._recognition = recognition
        self._bridge = bridge

    def send(self, audio: bytes) -> None:
        self._recognition.send_audio_frame(audio)

    def close_send(self) -> None:
        if self._bridge.failed:
            # The SDK already tore the session down after on_error.
            return
        self._recognition.stop()


class DashscopeRecognitionCapability:
    def __init__(self, api_key: str, model: str = "paraformer-realtime-v2") -> None:
        self._api_key = api_key
        self._model = model

    def open_stream(
        self,
        config: StreamConfig,
        on_event: Callable[[TranscriptEvent], None],
        on_error: Callable[[str], None],
    ) -> DashscopeRecognitionStream:
        if dashscope is None or Recognition is None:
            raise StreamError("dashscope is not installed", code=ASR_PROTOCOL_ERROR)

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise StreamError("No API key configured", code=AUTH_FAILED)
        dashscope.api_key = api_key

        if config.single_utterance:
            logger.warning("single_utterance is not supported by %s, ignoring", self._model)

        bridge = _CallbackBridge(on_event, on_error, config.interim_results)
        recognition = Recognition(
            model=self._model,
            callback=bridge,
            format=_FORMATS.get(config.encoding.upper(), "pcm"),
            sample_rate=config.sample_rate_hz,
            language_hints=[_primary_language(config.language_code)],
        )
        try:
            recognition.start()
        except Exception as exc:
            code, retryable = classify_provider_error(exc)
            raise StreamError(str(exc), code=code, retryable=retryable) from exc
        return DashscopeRecognitionStream(recognition, bridge)
