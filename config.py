"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

DEFAULTS: dict[str, Any] = {
    "api_key": "",
    "source_language": "en",
    "target_language": "zh-CN",
    "recognition_language": "en-US",
    "input_device": None,
    "asr_model": "paraformer-realtime-v2",
    "translation_model": "qwen-mt-turbo",
    "interim_results": False,
    "log_level": "INFO",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "live_translator" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def log_dir(self) -> Path:
        return self._path.parent / "logs"

    def get_api_key(self) -> str:
        return str(self._get("api_key") or os.getenv("DASHSCOPE_API_KEY", ""))

    def set_api_key(self, key: str) -> None:
        self._set(api_key=key)

    def get_source_language(self) -> str:
        return str(self._get("source_language"))

    def get_target_language(self) -> str:
        return str(self._get("target_language"))

    def set_languages(self, source: str, target: str) -> None:
        self._set(source_language=source, target_language=target)

    def get_recognition_language(self) -> str:
        return str(self._get("recognition_language"))

    def get_input_device(self) -> Optional[str]:
        value = self._get("input_device")
        return None if value is None else str(value)

    def set_input_device(self, device: Optional[str]) -> None:
        self._set(input_device=device)

    def get_asr_model(self) -> str:
        return str(self._get("asr_model"))

    def get_translation_model(self) -> str:
        return str(self._get("translation_model"))

    def get_interim_results(self) -> bool:
        return bool(self._get("interim_results"))

    def get_log_level(self) -> str:
        return str(self._get("log_level")).upper()

    def _get(self, key: str) -> Any:
        return self._read_all().get(key, DEFAULTS[key])

    def _set(self, **values: Any) -> None:
        data = self._read_all()
        data.update(values)
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
