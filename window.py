"""Main window showing original and translated text side by side."""

from __future__ import annotations

try:
    from PySide6.QtWidgets import (
        QGroupBox,
        QHBoxLayout,
        QMessageBox,
        QPlainTextEdit,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception:  # pragma: no cover
    QGroupBox = None  # type: ignore
    QHBoxLayout = None  # type: ignore
    QMessageBox = None  # type: ignore
    QPlainTextEdit = None  # type: ignore
    QPushButton = None  # type: ignore
    QVBoxLayout = None  # type: ignore
    QWidget = object  # type: ignore

ERROR_MARKER = "⚠️"


def _text_pane(title: str) -> tuple[QGroupBox, QPlainTextEdit]:
    box = QGroupBox(title)
    edit = QPlainTextEdit()
    edit.setReadOnly(True)
    edit.setLineWrapMode(QPlainTextEdit.WidgetWidth)
    layout = QVBoxLayout()
    layout.addWidget(edit)
    box.setLayout(layout)
    return box, edit


class TranslatorWindow(QWidget):
    def __init__(self, source_label: str = "Original English Text", target_label: str = "Translated Chinese Text") -> None:
        if QPushButton is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Realtime Translator")
        self.resize(800, 600)

        original_box, self.original_text = _text_pane(source_label)
        translated_box, self.translated_text = _text_pane(target_label)
        panes = QHBoxLayout()
        panes.setSpacing(10)
        panes.addWidget(original_box)
        panes.addWidget(translated_box)

        self.start_button = QPushButton("Start Translation")
        self.stop_button = QPushButton("Stop Translation")
        self.api_key_button = QPushButton("Set API Key")
        self.stop_button.setEnabled(False)
        controls = QHBoxLayout()
        controls.addStretch(1)
        controls.addWidget(self.start_button)
        controls.addWidget(self.stop_button)
        controls.addWidget(self.api_key_button)
        controls.addStretch(1)

        layout = QVBoxLayout()
        layout.addLayout(panes, 1)
        layout.addLayout(controls)
        self.setLayout(layout)

        self._interim_active = False

    def clear_text(self) -> None:
        self.original_text.clear()
        self.translated_text.clear()
        self._interim_active = False

    def append_original(self, text: str) -> None:
        self._drop_interim()
        self.original_text.appendPlainText(text)

    def show_interim(self, text: str) -> None:
        """Keep one trailing line that is replaced until the sentence is final."""
        self._drop_interim()
        self.original_text.appendPlainText(f"… {text}")
        self._interim_active = True

    def append_translated(self, text: str) -> None:
        self.translated_text.appendPlainText(text)

    def append_error(self, message: str, *, translated: bool = False) -> None:
        pane = self.translated_text if translated else self.original_text
        pane.appendPlainText(f"{ERROR_MARKER} {message}")

    def set_running(self, running: bool) -> None:
        self.start_button.setEnabled(not running)
        self.stop_button.setEnabled(running)

    def disable_start(self) -> None:
        self.start_button.setEnabled(False)
        self.stop_button.setEnabled(False)

    def show_fatal_error(self, message: str) -> None:
        QMessageBox.critical(self, "Error", message)

    def _drop_interim(self) -> None:
        if not self._interim_active:
            return
        self._interim_active = False
        cursor = self.original_text.textCursor()
        cursor.movePosition(cursor.MoveOperation.End)
        cursor.select(cursor.SelectionType.BlockUnderCursor)
        cursor.removeSelectedText()
        self.original_text.setTextCursor(cursor)
