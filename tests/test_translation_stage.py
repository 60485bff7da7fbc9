"""Tests for TranslationStage."""

from __future__ import annotations

import threading
import time

from channel import Channel
from errors import TranslationIOError
from translation_stage import TranslationStage


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.changed = threading.Condition()

    def _record(self, kind: str, text: str) -> None:
        with self.changed:
            self.calls.append((kind, text))
            self.changed.notify_all()

    def on_original_text(self, text: str) -> None:
        self._record("original", text)

    def on_translated_text(self, text: str) -> None:
        self._record("translated", text)

    def on_interim_text(self, text: str) -> None:
        self._record("interim", text)

    def on_pipeline_error(self, message: str) -> None:
        self._record("error", message)

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        with self.changed:
            return self.changed.wait_for(lambda: len(self.calls) >= count, timeout=timeout)


class FakeTranslator:
    """Uppercases text; slower for short inputs so out-of-order completion would show."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, str, str]] = []

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        self.calls.append((text, source_lang, target_lang))
        time.sleep(0.05 if len(text) < 3 else 0.0)
        if text in self.fail_on:
            raise TranslationIOError("429 quota exceeded")
        return text.upper()


def test_translations_are_published_in_channel_order() -> None:
    sink = RecordingSink()
    stage = TranslationStage(FakeTranslator(), sink)
    channel: Channel[str] = Channel(poll_s=0.01)
    for text in ["a", "longer sentence", "b"]:
        channel.put(text)

    stage.start(channel)
    assert sink.wait_for(3)
    stage.stop()

    assert sink.calls == [
        ("translated", "A"),
        ("translated", "LONGER SENTENCE"),
        ("translated", "B"),
    ]
    assert stage.translated == 3


def test_languages_are_passed_to_capability() -> None:
    translator = FakeTranslator()
    stage = TranslationStage(translator, RecordingSink(), source_lang="en", target_lang="ja")

    result = stage.translate_item("hello")

    assert translator.calls == [("hello", "en", "ja")]
    assert result.source_text == "hello"
    assert result.translated_text == "HELLO"
    assert result.target_lang == "ja"


def test_blank_item_is_not_sent_to_capability() -> None:
    translator = FakeTranslator()
    stage = TranslationStage(translator, RecordingSink())

    result = stage.translate_item("   ")

    assert result.translated_text == ""
    assert translator.calls == []


def test_translation_error_is_reported_and_processing_continues() -> None:
    sink = RecordingSink()
    stage = TranslationStage(FakeTranslator(fail_on={"bad"}), sink)
    channel: Channel[str] = Channel(poll_s=0.01)
    for text in ["bad", "good"]:
        channel.put(text)

    stage.start(channel)
    assert sink.wait_for(2)
    stage.stop()

    assert sink.calls == [
        ("error", "Translation Error: 429 quota exceeded"),
        ("translated", "GOOD"),
    ]
    assert stage.failed == 1
    assert stage.translated == 1


def test_stop_item_ends_processing() -> None:
    sink = RecordingSink()
    stage = TranslationStage(FakeTranslator(), sink)
    channel: Channel[str] = Channel(poll_s=0.01)
    channel.put("first")
    channel.close()
    channel.put("never")

    handle = stage.start(channel)

    assert handle.join(timeout=1.0) is True
    assert sink.calls == [("translated", "FIRST")]
    stage.stop()


def test_stop_joins_idle_processor_and_is_idempotent() -> None:
    stage = TranslationStage(FakeTranslator(), RecordingSink())
    channel: Channel[str] = Channel(poll_s=0.01)

    first = stage.start(channel)
    assert stage.start(channel) is first
    started = time.monotonic()
    stage.stop()
    stage.stop()

    assert time.monotonic() - started < 1.0
    assert not first.is_alive()
    assert stage.running is False
