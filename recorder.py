"""System audio capture: sounddevice source and the capture stage."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence

from channel import CancelToken, Channel
from errors import DeviceUnavailable, InterruptedDuringShutdown
from interfaces import AudioSource
from models import CHANNELS, CHUNK_BYTES, SAMPLE_RATE, SAMPLE_WIDTH, AudioChunk
from stage import StageHandle

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

# Loopback inputs that carry what the machine is playing rather than the mic.
LOOPBACK_HINTS = ("Stereo Mix", "BlackHole", "Loopback", "Monitor of")


def list_input_devices() -> list[dict]:
    """List available audio input devices."""
    if sd is None:
        raise DeviceUnavailable("sounddevice is not installed")
    devices = []
    for i, device in enumerate(sd.query_devices()):
        if device["max_input_channels"] > 0:
            devices.append({
                "id": i,
                "name": device["name"],
                "channels": device["max_input_channels"],
                "sample_rate": device["default_samplerate"],
            })
    return devices


def find_system_audio_device(hints: Sequence[str] = LOOPBACK_HINTS) -> Optional[int]:
    """Return the id of the first loopback-looking input, or None for the default."""
    for device in list_input_devices():
        name = str(device["name"])
        if any(hint.lower() in name.lower() for hint in hints):
            logger.info("Found system audio input: %s", name)
            return int(device["id"])
    logger.warning(
        "No system audio input (e.g. Stereo Mix/BlackHole) found, using default input; "
        "this probably captures the microphone"
    )
    return None


def _resolve_device(device: Optional[str]) -> Any:
    if device is None or device == "" or device == "auto":
        return find_system_audio_device()
    if device == "default":
        return None
    try:
        return int(device)
    except ValueError:
        return device


class SoundDeviceAudioSource:
    """Blocking PCM16 reader over ``sounddevice.InputStream``."""

    def __init__(
        self,
        device: Optional[str] = None,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
        chunk_bytes: int = CHUNK_BYTES,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_bytes = chunk_bytes
        self.overflows = 0
        self._stream: Any = None

    def open(self) -> None:
        if self._stream is not None:
            return
        if sd is None:
            raise DeviceUnavailable("sounddevice is not installed")
        if np is None:
            raise DeviceUnavailable("numpy is not installed")
        device = _resolve_device(self.device)
        try:
            sd.check_input_settings(
                device=device,
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
            )
            stream = sd.InputStream(
                device=device,
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=self.chunk_bytes // (SAMPLE_WIDTH * self.channels),
            )
            stream.start()
        except Exception as exc:
            raise DeviceUnavailable(f"Audio format not supported by input {device!r}: {exc}") from exc
        self._stream = stream
        logger.info(
            "Audio line opened",
            extra={"device": device, "sample_rate": self.sample_rate, "channels": self.channels},
        )

    def read(self, num_bytes: int) -> bytes:
        if self._stream is None:
            return b""
        frames = max(1, num_bytes // (SAMPLE_WIDTH * self.channels))
        data, overflowed = self._stream.read(frames)
        if overflowed:
            self.overflows += 1
        return np.ascontiguousarray(data, dtype=np.int16).tobytes()

    def close(self) -> None:
        stream = self._stream
        if stream is None:
            return
        self._stream = None
        stream.stop()
        stream.close()
        logger.info("Audio line stopped and closed")


class AudioCaptureStage:
    """Pulls fixed-size PCM chunks from an :class:`AudioSource` on its own thread."""

    def __init__(
        self,
        source: AudioSource,
        chunk_bytes: int = CHUNK_BYTES,
        join_timeout_s: float = 1.0,
        sample_rate: int = SAMPLE_RATE,
        channels: int = CHANNELS,
    ) -> None:
        self._source = source
        self._chunk_bytes = chunk_bytes
        self._join_timeout_s = join_timeout_s
        self._sample_rate = sample_rate
        self._channels = channels
        self._lock = threading.Lock()
        self._handle: Optional[StageHandle] = None
        self.chunks_captured = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(
        self,
        audio_channel: Channel[AudioChunk],
        on_error: Optional[Callable[[str], None]] = None,
    ) -> StageHandle:
        with self._lock:
            if self._handle is not None:
                return self._handle
            self._source.open()
            handle = StageHandle(
                "AudioCaptureThread",
                lambda token: self._read_loop(audio_channel, token, on_error),
                join_timeout_s=self._join_timeout_s,
            )
            self._handle = handle.start()
            logger.info("Audio recording started")
            return handle

    def stop(self) -> None:
        with self._lock:
            handle = self._handle
            if handle is None:
                return
            self._handle = None
            handle.stop()
            self._close_source()

    def _close_source(self) -> None:
        try:
            self._source.close()
        except Exception:
            logger.exception("Failed to close audio source")

    def _read_loop(
        self,
        audio_channel: Channel[AudioChunk],
        token: CancelToken,
        on_error: Optional[Callable[[str], None]],
    ) -> None:
        try:
            while not token.cancelled:
                data = self._source.read(self._chunk_bytes)
                if not data:
                    continue
                chunk = AudioChunk(
                    pcm16_bytes=bytes(data),
                    sample_rate=self._sample_rate,
                    channels=self._channels,
                    timestamp_ms=int(time.time() * 1000),
                )
                audio_channel.put(chunk, token)
                self.chunks_captured += 1
        except InterruptedDuringShutdown:
            logger.warning("Audio recording thread interrupted while putting to queue")
        except Exception as exc:
            logger.exception("Audio read failed, capture loop exiting")
            if on_error is not None and not token.cancelled:
                on_error(f"Audio Error: {exc}")
        finally:
            logger.info("Audio recording thread stopped", extra={"chunks": self.chunks_captured})
