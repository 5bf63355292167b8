"""Application entrypoint."""

from __future__ import annotations

import os
import sys

from analysis_client import AnalysisClient
from capture import build_capture_backend, select_capture_strategy
from config import JsonConfigStore
from errors import CoachError
from export_bridge import ExportBridge, ExportClient
from feedback_format import format_score, render_feedback_text, score_band
from feedback_store import FeedbackStore
from file_picker import QtFilePicker
from logging_utils import setup_logging
from models import CaptureStrategy, SessionState
from overlay import ToastOverlay
from playback import IdealDeliveryPlayer
from script_store import ScriptStore
from session_controller import RecordingController

try:
    from PySide6.QtCore import QTimer
    from PySide6.QtWidgets import (
        QApplication,
        QHBoxLayout,
        QLabel,
        QPlainTextEdit,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

BAND_COLORS = {"good": "#4ADE80", "fair": "#FACC15", "poor": "#F87171"}
PUMP_INTERVAL_MS = 30

_RECORD_LABELS = {
    SessionState.IDLE: "Lock Script to Record",
    SessionState.RECORDING: "Stop Recording",
    SessionState.STOPPED: "Analyzing...",
    SessionState.SUBMITTING: "Analyzing...",
}


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.logger = setup_logging(
            self.config_store.get_log_dir(), console=bool(os.getenv("DELIVERY_COACH_DEBUG"))
        )

        self.script_store = ScriptStore()
        self.feedback_store = FeedbackStore()
        self.analysis_client = AnalysisClient(self.config_store.get_api_base_url())

        api_key = self.config_store.get_api_key()
        try:
            strategy = select_capture_strategy(self.config_store.get_capture_strategy(), api_key)
        except CoachError as exc:
            self.logger.warning("Capture backend check failed: %s", exc.message)
            strategy = CaptureStrategy.BLOB
        recorder, transcriber = build_capture_backend(
            strategy, api_key=api_key, device=self.config_store.get_input_device()
        )
        self.logger.info("Capture strategy: %s", strategy.value)

        self.toast = ToastOverlay()
        self.player = IdealDeliveryPlayer(
            on_change=self._on_playback_change,
            on_error=lambda message: self.toast.show_notice("Playback Failed", message, True),
        )
        self.window = QWidget()
        self.window.setWindowTitle("Delivery Coach")
        self.window.resize(1200, 800)
        self._build_ui()

        self.bridge = ExportBridge(QtFilePicker(self.window))
        self.export = ExportClient(self.bridge.handle)
        self.controller = RecordingController(
            script_store=self.script_store,
            feedback_store=self.feedback_store,
            analysis_client=self.analysis_client,
            recorder=recorder,
            transcriber=transcriber,
            on_state_change=self._on_state_change,
            on_partial=self._on_partial,
            on_notice=self.toast.show_notice,
        )
        self.feedback_store.subscribe(self._render_feedback)

        self.pump = QTimer()
        self.pump.timeout.connect(self.controller.process_events)
        self.pump.start(PUMP_INTERVAL_MS)
        self._refresh_controls()
        self._render_feedback()

    def _build_ui(self) -> None:
        self.editor = QPlainTextEdit()
        self.editor.setPlaceholderText("Paste your presentation script here...")
        self.editor.textChanged.connect(self._on_text_changed)

        self.open_button = QPushButton("Open Script")
        self.open_button.clicked.connect(self._open_script)
        self.lock_button = QPushButton("Lock Script")
        self.lock_button.clicked.connect(self._toggle_lock)
        self.record_button = QPushButton("Start Recording")
        self.record_button.clicked.connect(self._toggle_recording)

        self.live_label = QLabel("")
        self.live_label.setWordWrap(True)
        self.score_label = QLabel("")
        self.positive_label = QLabel("")
        self.positive_label.setWordWrap(True)
        self.improve_label = QLabel("")
        self.improve_label.setWordWrap(True)
        self.voice_label = QLabel("")
        self.voice_label.setWordWrap(True)

        self.save_feedback_button = QPushButton("Save Feedback")
        self.save_feedback_button.clicked.connect(self._save_feedback)
        self.play_button = QPushButton("Play Ideal Delivery")
        self.play_button.clicked.connect(lambda: self.player.toggle())
        self.save_audio_button = QPushButton("Save Ideal Delivery")
        self.save_audio_button.clicked.connect(self._save_audio)

        script_row = QHBoxLayout()
        script_row.addWidget(self.open_button)
        script_row.addWidget(self.lock_button)
        export_row = QHBoxLayout()
        export_row.addWidget(self.save_feedback_button)
        export_row.addWidget(self.play_button)
        export_row.addWidget(self.save_audio_button)

        layout = QVBoxLayout()
        layout.addWidget(self.editor)
        layout.addLayout(script_row)
        layout.addWidget(self.record_button)
        layout.addWidget(self.live_label)
        layout.addWidget(self.score_label)
        layout.addWidget(self.positive_label)
        layout.addWidget(self.improve_label)
        layout.addWidget(self.voice_label)
        layout.addLayout(export_row)
        self.window.setLayout(layout)

    # ------------------------------------------------------------------
    # Script
    # ------------------------------------------------------------------

    def _on_text_changed(self) -> None:
        if not self.script_store.locked:
            self.script_store.set_text(self.editor.toPlainText())
        self._refresh_controls()

    def _open_script(self) -> None:
        text = self.export.open_text_file()
        if text is None:
            return
        self.editor.setPlainText(text)

    def _toggle_lock(self) -> None:
        if self.script_store.locked:
            self.script_store.unlock()
        else:
            try:
                self.script_store.lock()
            except CoachError as exc:
                self.toast.show_notice("Script Not Locked", exc.message, True)
                return
            self.toast.show_notice("Script Locked", "You can now start recording your delivery.")
        self._refresh_controls()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _toggle_recording(self) -> None:
        try:
            if self.controller.state == SessionState.RECORDING:
                self.controller.stop_recording()
            else:
                self.controller.start_recording()
        except CoachError as exc:
            self.logger.info("Recording command rejected: %s", exc.message)

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        if to_state == SessionState.RECORDING:
            self.live_label.setText("Recording in progress...")
        elif to_state == SessionState.SUBMITTING:
            self.live_label.setText("Please wait while we analyze your speech.")
        elif to_state in (SessionState.COMPLETE, SessionState.LOCKED_READY, SessionState.IDLE):
            self.live_label.setText("")
        self._refresh_controls()

    def _on_partial(self, text: str) -> None:
        self.live_label.setText(text)

    def _refresh_controls(self) -> None:
        state = self.controller.state if hasattr(self, "controller") else SessionState.IDLE
        locked = self.script_store.locked
        self.editor.setReadOnly(locked)
        self.lock_button.setText("Unlock Script" if locked else "Lock Script")
        self.lock_button.setEnabled(locked or not self.script_store.is_empty)
        self.open_button.setEnabled(not locked)
        label = _RECORD_LABELS.get(state)
        if label is None:
            label = "Start Recording" if state == SessionState.LOCKED_READY else "Record Again"
        self.record_button.setText(label)
        self.record_button.setEnabled(state not in (SessionState.IDLE, SessionState.STOPPED, SessionState.SUBMITTING))

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def _render_feedback(self) -> None:
        result = self.feedback_store.result
        error = self.feedback_store.error
        self.save_feedback_button.setEnabled(result is not None)
        audio_url = result.audio_url if result is not None else ""
        self.player.load(audio_url)
        self.play_button.setEnabled(bool(audio_url))
        self.save_audio_button.setEnabled(bool(audio_url))
        self.voice_label.setText("")
        if error is not None:
            self.score_label.setText("Analysis Failed")
            self.positive_label.setText(error)
            self.improve_label.setText("")
            return
        if result is None:
            self.score_label.setText("Your feedback will appear here.")
            self.positive_label.setText("")
            self.improve_label.setText("")
            return
        color = BAND_COLORS[score_band(result.score)]
        self.score_label.setText(
            f"Overall Score <span style='color: {color}'>{format_score(result.score)}</span>"
        )
        self.positive_label.setText(f"What went well: {result.positive_feedback}")
        self.improve_label.setText(f"Areas for improvement: {result.improvement_points}")
        rec = result.voice_recommendation
        if rec is not None:
            self.voice_label.setText(
                f"Recommended voice: {rec.voice_option.name} ({rec.recommended_tone}, "
                f"{rec.confidence_score:.0%} confidence)"
            )

    def _on_playback_change(self, playing: bool) -> None:
        self.play_button.setText("Pause" if playing else "Play Ideal Delivery")

    def _save_feedback(self) -> None:
        result = self.feedback_store.result
        if result is None:
            return
        if self.export.save_feedback(render_feedback_text(result)):
            self.toast.show_notice("Feedback Saved", "Your feedback was written to disk.")
        else:
            self.toast.show_notice("Not Saved", "The feedback file was not saved.", True)

    def _save_audio(self) -> None:
        result = self.feedback_store.result
        if result is None or not result.audio_url:
            return
        if self.export.save_audio(result.audio_url):
            self.toast.show_notice("Audio Saved", "The ideal delivery audio was saved.")
        else:
            self.toast.show_notice("Not Saved", "The audio file was not saved.", True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.window.show()
        self.app.aboutToQuit.connect(self.quit)
        return self.app.exec()

    def quit(self) -> None:
        self.pump.stop()
        self.player.stop()
        self.controller.cancel("app quit")
        self.analysis_client.close()
        self.bridge.close()
        self.logger.info("Application closed")


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
