"""Core data models for the translator pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SAMPLE_RATE = 16000
SAMPLE_WIDTH = 2  # bytes, signed 16-bit little-endian
CHANNELS = 1
CHUNK_MS = 100
CHUNK_BYTES = SAMPLE_RATE * SAMPLE_WIDTH * CHANNELS * CHUNK_MS // 1000  # 3200


class PipelineState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


@dataclass(frozen=True)
class AudioChunk:
    pcm16_bytes: bytes
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    timestamp_ms: int = 0


@dataclass(frozen=True)
class TranscriptEvent:
    text: str
    is_final: bool = True


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    source_lang: str
    target_lang: str
    translated_text: str


@dataclass(frozen=True)
class StreamConfig:
    """First message of every recognition stream."""

    sample_rate_hz: int = SAMPLE_RATE
    encoding: str = "LINEAR16"
    language_code: str = "en-US"
    interim_results: bool = False
    single_utterance: bool = False
