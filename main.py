"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from typing import Optional

from config import JsonConfigStore
from errors import PipelineError
from interfaces import ConfigStore, PipelineSink
from logging_setup import setup_logging
from models import PipelineState, StreamConfig
from pipeline_controller import PipelineController, StateCallback
from recognizer import DashscopeRecognitionCapability
from recorder import SoundDeviceAudioSource, list_input_devices
from translator import DashscopeTranslationCapability
from window import TranslatorWindow

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication, QInputDialog
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Realtime system-audio translator")
    p.add_argument("--list-devices", action="store_true", help="print audio input devices and exit")
    p.add_argument("--device", default=None, help="input device id or name, saved to config (default: auto-detect loopback)")
    p.add_argument("--source-lang", default=None, help="translation source language, saved to config, e.g. en")
    p.add_argument("--target-lang", default=None, help="translation target language, saved to config, e.g. zh-CN")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    return p.parse_args(argv)


def apply_cli_overrides(config_store: ConfigStore, args: argparse.Namespace) -> None:
    """Persist language and device choices given on the command line."""
    if args.source_lang or args.target_lang:
        config_store.set_languages(
            args.source_lang or config_store.get_source_language(),
            args.target_lang or config_store.get_target_language(),
        )
    if args.device:
        config_store.set_input_device(args.device)


def build_controller(
    config_store: ConfigStore,
    sink: PipelineSink,
    on_state_change: Optional[StateCallback] = None,
) -> PipelineController:
    api_key = config_store.get_api_key()
    return PipelineController.create(
        audio_source=SoundDeviceAudioSource(device=config_store.get_input_device()),
        recognizer=DashscopeRecognitionCapability(api_key=api_key, model=config_store.get_asr_model()),
        translator=DashscopeTranslationCapability(api_key=api_key, model=config_store.get_translation_model()),
        sink=sink,
        stream_config=StreamConfig(
            language_code=config_store.get_recognition_language(),
            interim_results=config_store.get_interim_results(),
        ),
        source_lang=config_store.get_source_language(),
        target_lang=config_store.get_target_language(),
        on_state_change=on_state_change,
    )


class UIBridge(QObject):
    original_signal = Signal(str)
    translated_signal = Signal(str)
    interim_signal = Signal(str)
    error_signal = Signal(str)
    state_signal = Signal(str, str)  # from_state, to_state

    # PipelineSink methods, called on the presentation thread.

    def on_original_text(self, text: str) -> None:
        self.original_signal.emit(text)

    def on_translated_text(self, text: str) -> None:
        self.translated_signal.emit(text)

    def on_interim_text(self, text: str) -> None:
        self.interim_signal.emit(text)

    def on_pipeline_error(self, message: str) -> None:
        self.error_signal.emit(message)


class App:
    def __init__(self, config_store: ConfigStore) -> None:
        self.config_store = config_store
        self.app = QApplication(sys.argv)
        self.window = TranslatorWindow()
        self.ui = UIBridge()
        self.ui.original_signal.connect(self.window.append_original)
        self.ui.translated_signal.connect(self.window.append_translated)
        self.ui.interim_signal.connect(self.window.show_interim)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.state_signal.connect(self._on_state_change_ui)

        self.window.start_button.clicked.connect(self.start_translation)
        self.window.stop_button.clicked.connect(self.stop_translation)
        self.window.api_key_button.clicked.connect(self._set_api_key)
        self.app.aboutToQuit.connect(self.quit)

        self.controller: Optional[PipelineController] = None
        self._setup_services()

    def _setup_services(self) -> None:
        if not self.config_store.get_api_key():
            self.window.disable_start()
            self.window.show_fatal_error("No DashScope API key configured. Use 'Set API Key' first.")
            return
        self.controller = build_controller(self.config_store, self.ui, on_state_change=self._on_state_change)
        self.window.set_running(False)

    def _set_api_key(self) -> None:
        if self.controller is not None and self.controller.state != PipelineState.IDLE:
            self.window.show_fatal_error("Stop translation before changing the API key.")
            return
        value, ok = QInputDialog.getText(self.window, "API Key", "DashScope API Key")
        if not ok or not value:
            return
        self.config_store.set_api_key(value)
        if self.controller is not None:
            self.controller.shutdown()
        self._setup_services()

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: PipelineState, to_state: PipelineState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_error_ui(self, message: str) -> None:
        self.window.append_error(message, translated=message.startswith("Translation Error"))

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == PipelineState.RUNNING.value:
            self.window.set_running(True)
        elif to_state == PipelineState.STOPPING.value:
            self.window.disable_start()
        elif to_state == PipelineState.IDLE.value:
            self.window.set_running(False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_translation(self) -> None:
        if self.controller is None:
            return
        self.window.clear_text()
        try:
            self.controller.start()
        except PipelineError as exc:
            self.window.disable_start()
            self.window.show_fatal_error(f"Failed to initialize audio or cloud services: {exc.message}")

    def stop_translation(self) -> None:
        if self.controller is None:
            return
        # stop() joins worker threads; keep it off the Qt main thread.
        threading.Thread(
            target=self.controller.stop,
            name="PipelineStopThread",
            daemon=True,
        ).start()

    def run(self) -> int:
        self.window.show()
        return self.app.exec()

    def quit(self) -> None:
        if self.controller is not None:
            self.controller.shutdown()


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    config_store = JsonConfigStore()
    setup_logging(config_store.log_dir, level=args.log_level or config_store.get_log_level())

    if args.list_devices:
        for device in list_input_devices():
            print(f"{device['id']:>3}  {device['name']}  ({device['channels']} ch, {device['sample_rate']:.0f} Hz)")
        return 0

    apply_cli_overrides(config_store, args)
    app = App(config_store)
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
