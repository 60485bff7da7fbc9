"""State-machine based pipeline orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from channel import Channel
from interfaces import AudioSource, PipelineSink, RecognitionCapability, TranslationCapability
from models import AudioChunk, PipelineState, RecognitionEvent, RecognitionKind, StreamConfig
from presenter import SerializedSink
from recognition_stage import RecognitionStreamStage
from recorder import AudioCaptureStage
from translation_stage import TranslationStage

logger = logging.getLogger(__name__)

StateCallback = Callable[[PipelineState, PipelineState], None]


class PipelineController:
    """Owns both channels and the state; starts and stops the three stages.

    Start order is capture, recognition, translation. Stop uses the same order
    so audio stops flowing first, and every stop step runs even when an
    earlier one timed out.
    """

    def __init__(
        self,
        capture: AudioCaptureStage,
        recognition: RecognitionStreamStage,
        translation: TranslationStage,
        sink: PipelineSink,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._capture = capture
        self._recognition = recognition
        self._translation = translation
        self._sink = sink
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = PipelineState.IDLE
        self._audio_channel: Channel[AudioChunk] = Channel()
        self._text_channel: Channel[str] = Channel()

    @classmethod
    def create(
        cls,
        audio_source: AudioSource,
        recognizer: RecognitionCapability,
        translator: TranslationCapability,
        sink: PipelineSink,
        stream_config: StreamConfig | None = None,
        source_lang: str = "en",
        target_lang: str = "zh-CN",
        on_state_change: Optional[StateCallback] = None,
    ) -> "PipelineController":
        serialized = SerializedSink(sink)
        return cls(
            capture=AudioCaptureStage(audio_source),
            recognition=RecognitionStreamStage(recognizer, stream_config),
            translation=TranslationStage(translator, serialized, source_lang, target_lang),
            sink=serialized,
            on_state_change=on_state_change,
        )

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def audio_channel(self) -> Channel[AudioChunk]:
        return self._audio_channel

    @property
    def text_channel(self) -> Channel[str]:
        return self._text_channel

    def start(self) -> bool:
        with self._lock:
            if self._state != PipelineState.IDLE:
                logger.warning("Pipeline start rejected", extra={"state": self._state.value})
                return False
            self._audio_channel.clear()
            self._text_channel.clear()
            try:
                self._capture.start(self._audio_channel, on_error=self._sink.on_pipeline_error)
                self._recognition.start(self._handle_recognition_event, self._audio_channel)
                self._translation.start(self._text_channel)
            except Exception as exc:
                logger.error("Pipeline start failed: %s", exc)
                self._stop_stages()
                raise
            self._transition(PipelineState.RUNNING)
        logger.info("Translation started.")
        return True

    def stop(self) -> bool:
        with self._lock:
            if self._state != PipelineState.RUNNING:
                return False
            self._transition(PipelineState.STOPPING)
        self._stop_stages()
        with self._lock:
            self._transition(PipelineState.IDLE)
        logger.info("Translation stopped.")
        return True

    def shutdown(self) -> None:
        self.stop()
        close = getattr(self._sink, "close", None)
        if close is not None:
            close()

    def _handle_recognition_event(self, event: RecognitionEvent) -> None:
        # Runs on the provider's receive thread or the sender thread; never
        # takes the controller lock, since stop() may be waiting on this stream.
        kind = event.kind
        if kind == RecognitionKind.FINAL.value:
            if not event.text:
                return
            self._sink.on_original_text(event.text)
            self._text_channel.put(event.text)
            return
        if kind == RecognitionKind.PARTIAL.value:
            self._sink.on_interim_text(event.text)
            return
        if kind == RecognitionKind.ERROR.value:
            self._sink.on_pipeline_error(event.message)

    def _stop_stages(self) -> None:
        for name, stage in (
            ("audio capture", self._capture),
            ("speech-to-text", self._recognition),
            ("translation", self._translation),
        ):
            try:
                stage.stop()
            except Exception:
                logger.exception("Failed to stop %s stage", name)

    def _transition(self, to_state: PipelineState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.info("Pipeline state %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
