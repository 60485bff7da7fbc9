"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
STREAM_ERROR = "STREAM_ERROR"
TRANSLATION_IO_ERROR = "TRANSLATION_IO_ERROR"
INTERRUPTED = "INTERRUPTED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"

ERROR_MESSAGES = {
    DEVICE_UNAVAILABLE: "Audio input device could not be opened.",
    STREAM_ERROR: "Speech recognition stream failed.",
    TRANSLATION_IO_ERROR: "Translation request failed.",
    INTERRUPTED: "Interrupted during shutdown.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
}


class PipelineError(Exception):
    code = STREAM_ERROR

    def __init__(self, message: str = "", *, code: str | None = None, retryable: bool = False) -> None:
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        self.retryable = retryable
        super().__init__(self.message)


class DeviceUnavailable(PipelineError):
    code = DEVICE_UNAVAILABLE


class StreamError(PipelineError):
    code = STREAM_ERROR


class TranslationIOError(PipelineError):
    code = TRANSLATION_IO_ERROR


class InterruptedDuringShutdown(PipelineError):
    code = INTERRUPTED


def classify_provider_error(exc: BaseException) -> tuple[str, bool]:
    """Map an SDK/network exception message to ``(code, retryable)``."""
    low = str(exc).lower()
    if "401" in low or "auth" in low or "api key" in low or "apikey" in low:
        return AUTH_FAILED, False
    if "timeout" in low or "timed out" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR, True
    return ASR_PROTOCOL_ERROR, True
