"""Translation adapter using DashScope Qwen-MT models."""

from __future__ import annotations

import logging
import os
from http import HTTPStatus
from typing import Any

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, TRANSLATION_IO_ERROR, TranslationIOError, classify_provider_error

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

# Qwen-MT takes language names rather than BCP-47 tags.
LANGUAGE_NAMES = {
    "auto": "auto",
    "en": "English",
    "zh": "Chinese",
    "zh-cn": "Chinese",
    "zh-hans": "Chinese",
    "zh-tw": "Traditional Chinese",
    "zh-hant": "Traditional Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "ru": "Russian",
    "pt": "Portuguese",
    "it": "Italian",
}


def language_name(code: str) -> str:
    key = (code or "auto").strip().lower()
    if key in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[key]
    return LANGUAGE_NAMES.get(key.split("-")[0], code)


class DashscopeTranslationCapability:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-mt-turbo",
        request_timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        if not text or not text.strip():
            return ""
        if dashscope is None:
            raise TranslationIOError("dashscope is not installed", retryable=False)

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise TranslationIOError("No API key configured", code=AUTH_FAILED, retryable=False)

        try:
            response = dashscope.Generation.call(
                api_key=api_key,
                model=self._model,
                messages=[{"role": "user", "content": text}],
                result_format="message",
                translation_options={
                    "source_lang": language_name(source_lang),
                    "target_lang": language_name(target_lang),
                },
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            code, retryable = classify_provider_error(exc)
            if code == ASR_PROTOCOL_ERROR:
                code = TRANSLATION_IO_ERROR
            raise TranslationIOError(str(exc), code=code, retryable=retryable) from exc

        status = getattr(response, "status_code", HTTPStatus.OK)
        if status != HTTPStatus.OK:
            detail = f"{getattr(response, 'code', '')}: {getattr(response, 'message', '')}".strip(": ")
            code = AUTH_FAILED if status == HTTPStatus.UNAUTHORIZED else TRANSLATION_IO_ERROR
            raise TranslationIOError(
                detail or f"HTTP {status}",
                code=code,
                retryable=status >= HTTPStatus.INTERNAL_SERVER_ERROR,
            )

        translated = self._extract_text(response)
        logger.info(
            "Translated text",
            extra={"chars_in": len(text), "chars_out": len(translated), "target": target_lang},
        )
        return translated

    def _extract_text(self, response: Any) -> str:
        """Pull the message content from a ``result_format='message'`` response."""
        output = response.get("output", {}) if isinstance(response, dict) else getattr(response, "output", {})
        if not isinstance(output, dict):
            return ""
        choices = output.get("choices") or []
        if not choices:
            return str(output.get("text") or "")
        message = choices[0].get("message", {})
        content = message.get("content", "")
        if isinstance(content, list):
            return "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
        return str(content or "")
