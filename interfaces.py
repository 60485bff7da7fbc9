"""Protocol interfaces used by PipelineController and its stages."""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from models import StreamConfig, TranscriptEvent


class AudioSource(Protocol):
    def open(self) -> None: ...

    def read(self, num_bytes: int) -> bytes: ...

    def close(self) -> None: ...


class RecognitionStream(Protocol):
    def send(self, audio: bytes) -> None: ...

    def close_send(self) -> None: ...


class RecognitionCapability(Protocol):
    def open_stream(
        self,
        config: StreamConfig,
        on_event: Callable[[TranscriptEvent], None],
        on_error: Callable[[str], None],
    ) -> RecognitionStream: ...


class TranslationCapability(Protocol):
    def translate(self, text: str, source_lang: str, target_lang: str) -> str: ...


class PipelineSink(Protocol):
    def on_original_text(self, text: str) -> None: ...

    def on_translated_text(self, text: str) -> None: ...

    def on_interim_text(self, text: str) -> None: ...

    def on_pipeline_error(self, message: str) -> None: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_source_language(self) -> str: ...

    def get_target_language(self) -> str: ...

    def set_languages(self, source: str, target: str) -> None: ...

    def get_recognition_language(self) -> str: ...

    def get_input_device(self) -> Optional[str]: ...

    def set_input_device(self, device: Optional[str]) -> None: ...

    def get_asr_model(self) -> str: ...

    def get_translation_model(self) -> str: ...

    def get_interim_results(self) -> bool: ...

    def get_log_level(self) -> str: ...
