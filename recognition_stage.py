"""Recognition stage: feeds queued audio into one streaming recognition session."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from channel import CancelToken, Channel, Stop
from errors import STREAM_ERROR, ERROR_MESSAGES, InterruptedDuringShutdown, StreamError
from interfaces import RecognitionCapability, RecognitionStream
from models import AudioChunk, RecognitionEvent, RecognitionKind, StreamConfig, TranscriptEvent
from stage import StageHandle

logger = logging.getLogger(__name__)

EventCallback = Callable[[RecognitionEvent], None]
SendLoop = Callable[["_StreamSession", CancelToken], None]


class _StreamSession:
    """State of one ``start()``: the provider stream, the sender handle and flags."""

    def __init__(self, on_event: EventCallback, send_loop: SendLoop, join_timeout_s: float) -> None:
        self.on_event = on_event
        self.stream: Optional[RecognitionStream] = None
        self.handle = StageHandle(
            "STTAudioSenderThread",
            lambda token: send_loop(self, token),
            join_timeout_s=join_timeout_s,
        )
        self.stopped = False
        self.failed = False
        self._send_closed = False
        self._close_lock = threading.Lock()

    def close_send(self) -> None:
        with self._close_lock:
            if self._send_closed or self.stream is None:
                return
            self._send_closed = True
        try:
            self.stream.close_send()
        except Exception:
            logger.exception("Failed to close STT sending stream")
        else:
            logger.info("STT sending stream closed")


class RecognitionStreamStage:
    def __init__(
        self,
        capability: RecognitionCapability,
        config: StreamConfig | None = None,
        join_timeout_s: float = 5.0,
    ) -> None:
        self._capability = capability
        self.config = config or StreamConfig()
        self._join_timeout_s = join_timeout_s
        self._lock = threading.RLock()
        self._session: Optional[_StreamSession] = None
        self.chunks_sent = 0

    @property
    def streaming(self) -> bool:
        session = self._session
        return session is not None and not session.stopped

    def start(self, on_event: EventCallback, input_channel: Channel[AudioChunk]) -> StageHandle:
        with self._lock:
            current = self._session
            if current is not None and not current.stopped:
                logger.warning("STT streaming already in progress.")
                return current.handle

            session = _StreamSession(
                on_event,
                lambda s, token: self._send_loop(s, input_channel, token),
                self._join_timeout_s,
            )
            self._session = session
            self.chunks_sent = 0
            try:
                session.stream = self._capability.open_stream(
                    self.config,
                    on_event=lambda event: self._on_transcript(session, event),
                    on_error=lambda message: self._on_stream_error(session, message),
                )
            except Exception as exc:
                session.stopped = True
                self._session = None
                if isinstance(exc, StreamError):
                    raise
                raise StreamError(f"Failed to open recognition stream: {exc}") from exc
            if session.stopped:
                # The provider failed while the stream was being opened.
                return session.handle
            session.handle.start()
        logger.info("STT streaming started", extra={"language": self.config.language_code})
        return session.handle

    def stop(self) -> None:
        with self._lock:
            session = self._session
            if session is None or session.stopped:
                return
            session.stopped = True
        session.handle.stop()
        session.close_send()
        logger.info("Speech-to-Text stage stopped", extra={"chunks_sent": self.chunks_sent})

    def _send_loop(
        self,
        session: _StreamSession,
        input_channel: Channel[AudioChunk],
        token: CancelToken,
    ) -> None:
        stream = session.stream
        if stream is None:
            return
        try:
            while not token.cancelled:
                item = input_channel.take(token)
                if isinstance(item, Stop):
                    break
                if token.cancelled:
                    break
                stream.send(item.payload.pcm16_bytes)
                self.chunks_sent += 1
        except InterruptedDuringShutdown:
            logger.warning("STT audio sender thread interrupted.")
        except Exception as exc:
            if not token.cancelled:
                logger.exception("STT audio send failed")
                self._on_stream_error(session, str(exc))
        finally:
            session.close_send()
            logger.info("STT audio sender thread stopped.")

    def _on_transcript(self, session: _StreamSession, event: TranscriptEvent) -> None:
        if session is not self._session or session.failed:
            return
        text = event.text or ""
        if event.is_final:
            logger.info("STT result", extra={"chars": len(text)})
            session.on_event(RecognitionEvent(kind=RecognitionKind.FINAL.value, text=text))
        elif self.config.interim_results:
            session.on_event(RecognitionEvent(kind=RecognitionKind.PARTIAL.value, text=text))

    def _on_stream_error(self, session: _StreamSession, message: str) -> None:
        with self._lock:
            if session.failed:
                return
            session.failed = True
            session.stopped = True
        message = str(message or "").strip() or ERROR_MESSAGES[STREAM_ERROR]
        logger.error("STT stream error: %s", message)
        session.handle.cancel()
        session.close_send()
        session.on_event(
            RecognitionEvent(
                kind=RecognitionKind.ERROR.value,
                code=STREAM_ERROR,
                message=message,
                retryable=True,
            )
        )
