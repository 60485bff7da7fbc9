"""Tests for the DashScope realtime recognition adapter."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR, StreamError
from models import StreamConfig, TranscriptEvent
from recognizer import DashscopeRecognitionCapability, _CallbackBridge, _primary_language


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _result(text: str, end_time: int | None) -> MagicMock:
    result = MagicMock()
    result.get_sentence.return_value = {"text": text, "begin_time": 0, "end_time": end_time}
    return result


def _sentence_end(sentence: dict) -> bool:
    return sentence.get("end_time") is not None


def _open(capability: DashscopeRecognitionCapability, config: StreamConfig | None = None):  # noqa: ANN202
    events: list[TranscriptEvent] = []
    errors: list[str] = []
    stream = capability.open_stream(config or StreamConfig(), events.append, errors.append)
    return stream, events, errors


# ---------------------------------------------------------------
# Callback bridge
# ---------------------------------------------------------------

@patch("recognizer.RecognitionResult")
def test_bridge_forwards_sentence_end_as_final(mock_result_cls: MagicMock) -> None:
    mock_result_cls.is_sentence_end.side_effect = _sentence_end
    events: list[TranscriptEvent] = []
    bridge = _CallbackBridge(events.append, lambda m: None, interim_results=False)

    bridge.on_event(_result("hel", None))
    bridge.on_event(_result("hello world", 1200))

    assert events == [TranscriptEvent(text="hello world", is_final=True)]


@patch("recognizer.RecognitionResult")
def test_bridge_forwards_partials_when_interim_enabled(mock_result_cls: MagicMock) -> None:
    mock_result_cls.is_sentence_end.side_effect = _sentence_end
    events: list[TranscriptEvent] = []
    bridge = _CallbackBridge(events.append, lambda m: None, interim_results=True)

    bridge.on_event(_result("hel", None))
    bridge.on_event(_result("hello", 800))

    assert events == [
        TranscriptEvent(text="hel", is_final=False),
        TranscriptEvent(text="hello", is_final=True),
    ]


def test_bridge_ignores_results_without_sentence() -> None:
    events: list[TranscriptEvent] = []
    bridge = _CallbackBridge(events.append, lambda m: None, interim_results=True)
    result = MagicMock()
    result.get_sentence.return_value = None

    bridge.on_event(result)

    assert events == []


def test_bridge_error_uses_result_message_and_marks_failed() -> None:
    errors: list[str] = []
    bridge = _CallbackBridge(lambda e: None, errors.append, interim_results=False)
    result = MagicMock()
    result.message = "Websocket connection closed"

    bridge.on_error(result)

    assert errors == ["Websocket connection closed"]
    assert bridge.failed is True


def test_primary_language() -> None:
    assert _primary_language("en-US") == "en"
    assert _primary_language("zh-CN") == "zh"
    assert _primary_language("") == "en"


# ---------------------------------------------------------------
# open_stream
# ---------------------------------------------------------------

@patch("recognizer.dashscope")
@patch("recognizer.Recognition")
def test_open_stream_starts_recognition_with_config(mock_recognition_cls: MagicMock, mock_dashscope: MagicMock) -> None:
    mock_recognition = MagicMock()
    mock_recognition_cls.return_value = mock_recognition
    capability = DashscopeRecognitionCapability(api_key="test-key")

    _open(capability, StreamConfig(language_code="en-US"))

    kwargs = mock_recognition_cls.call_args.kwargs
    assert kwargs["model"] == "paraformer-realtime-v2"
    assert kwargs["format"] == "pcm"
    assert kwargs["sample_rate"] == 16000
    assert kwargs["language_hints"] == ["en"]
    assert isinstance(kwargs["callback"], _CallbackBridge)
    assert mock_dashscope.api_key == "test-key"
    mock_recognition.start.assert_called_once()


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_stream_sends_frames_and_stops_on_close(mock_recognition_cls: MagicMock) -> None:
    mock_recognition = MagicMock()
    mock_recognition_cls.return_value = mock_recognition
    stream, _, _ = _open(DashscopeRecognitionCapability(api_key="test-key"))

    stream.send(b"\x00\x00" * 1600)
    stream.close_send()

    mock_recognition.send_audio_frame.assert_called_once_with(b"\x00\x00" * 1600)
    mock_recognition.stop.assert_called_once()


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_close_send_after_provider_error_skips_stop(mock_recognition_cls: MagicMock) -> None:
    mock_recognition = MagicMock()
    mock_recognition_cls.return_value = mock_recognition
    stream, _, errors = _open(DashscopeRecognitionCapability(api_key="test-key"))

    bridge = mock_recognition_cls.call_args.kwargs["callback"]
    bridge.on_error(MagicMock(message="Internal server error"))
    stream.close_send()

    assert errors == ["Internal server error"]
    mock_recognition.stop.assert_not_called()


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_raises_auth_failed() -> None:
    capability = DashscopeRecognitionCapability(api_key="")

    with pytest.raises(StreamError) as excinfo:
        _open(capability)

    assert excinfo.value.code == AUTH_FAILED


@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": "env-key"}, clear=False)
def test_api_key_falls_back_to_environment(mock_recognition_cls: MagicMock) -> None:
    mock_recognition_cls.return_value = MagicMock()

    _open(DashscopeRecognitionCapability(api_key=""))

    mock_recognition_cls.return_value.start.assert_called_once()


@patch("recognizer.dashscope", None)
def test_missing_sdk_raises_stream_error() -> None:
    with pytest.raises(StreamError) as excinfo:
        _open(DashscopeRecognitionCapability(api_key="test-key"))

    assert excinfo.value.code == ASR_PROTOCOL_ERROR


@pytest.mark.parametrize(
    ("message", "code", "retryable"),
    [
        ("Connection timed out", NETWORK_ERROR, True),
        ("401 Unauthorized: invalid api key", AUTH_FAILED, False),
        ("unexpected handshake payload", ASR_PROTOCOL_ERROR, True),
    ],
)
@patch("recognizer.dashscope", MagicMock())
@patch("recognizer.Recognition")
def test_start_failure_is_classified(
    mock_recognition_cls: MagicMock, message: str, code: str, retryable: bool
) -> None:
    mock_recognition_cls.return_value.start.side_effect = RuntimeError(message)

    with pytest.raises(StreamError) as excinfo:
        _open(DashscopeRecognitionCapability(api_key="test-key"))

    assert excinfo.value.code == code
    assert excinfo.value.retryable is retryable
    assert message in excinfo.value.message
