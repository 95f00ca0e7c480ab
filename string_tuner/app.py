from __future__ import annotations

import logging
import sys
import time
from collections import deque
from dataclasses import dataclass

import numpy as np
import pyqtgraph as pg
from PySide6 import QtCore, QtGui, QtWidgets

from string_tuner.audio import AudioInput, AudioInputConfig
from string_tuner.engine import EngineConfig, TunerEngine
from string_tuner.instruments import Instrument
from string_tuner.notes import TuningStatus
from string_tuner.session import (
    DEFAULT_REFERENCE_PITCH,
    DEFAULT_TOLERANCE,
    REFERENCE_PITCH_MAX,
    REFERENCE_PITCH_MIN,
    TOLERANCE_MAX,
    TOLERANCE_MIN,
    TunerSnapshot,
    TuningSession,
    guidance_text,
    string_references,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UiConfig:
    window_seconds: float = 10.0
    # Poll interval for the engine slot; frames arrive every ~93 ms.
    poll_ms: int = 30
    cents_range: float = 50.0


_STATUS_STYLE = {
    TuningStatus.IN_TUNE: "#3fae5f",
    TuningStatus.SHARP: "#d9534f",
    TuningStatus.FLAT: "#d9534f",
    TuningStatus.OUT_OF_RANGE: "#8a8a8a",
}

_CARD_IDLE = "padding: 8px; border-radius: 6px; background: #eeeeee; border: 2px solid transparent;"
_CARD_DETECTED = "padding: 8px; border-radius: 6px; background: #d6e4f5; border: 2px solid #2d6cc0;"


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("String Tuner")

        self._ui = UiConfig()
        self._audio = AudioInput(AudioInputConfig())
        self._session = TuningSession()
        self._engine = TunerEngine(
            self._session,
            config=EngineConfig(sample_rate=self._audio.sample_rate),
        )
        self._start_time: float | None = None
        self._times: deque[float] = deque()
        self._cents: deque[float] = deque()

        self._build_ui()

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(self._ui.poll_ms)
        self._timer.timeout.connect(self._on_tick)
        self._render(self._session.snapshot())

    def _build_ui(self) -> None:
        root = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(root)

        controls = QtWidgets.QHBoxLayout()
        layout.addLayout(controls)

        self.instrument_combo = QtWidgets.QComboBox()
        self.instrument_combo.addItems([item.value for item in Instrument])
        self.instrument_combo.setCurrentText(Instrument.GUITAR.value)
        controls.addWidget(QtWidgets.QLabel("Instrument:"))
        controls.addWidget(self.instrument_combo)
        controls.addSpacing(12)

        self.ref_input = QtWidgets.QDoubleSpinBox()
        self.ref_input.setRange(REFERENCE_PITCH_MIN, REFERENCE_PITCH_MAX)
        self.ref_input.setDecimals(1)
        self.ref_input.setSingleStep(1.0)
        self.ref_input.setSuffix(" Hz")
        self.ref_input.setValue(self._session.reference_pitch)
        self.ref_input.setKeyboardTracking(False)
        self._fix_spinbox_style(self.ref_input)
        controls.addWidget(QtWidgets.QLabel("A4:"))
        controls.addWidget(self.ref_input)
        self.btn_reset_ref = QtWidgets.QPushButton(f"Reset to {DEFAULT_REFERENCE_PITCH:.0f} Hz")
        controls.addWidget(self.btn_reset_ref)
        controls.addSpacing(12)

        self.tol_input = QtWidgets.QDoubleSpinBox()
        self.tol_input.setRange(TOLERANCE_MIN, TOLERANCE_MAX)
        self.tol_input.setDecimals(0)
        self.tol_input.setSingleStep(5.0)
        self.tol_input.setSuffix(" cents")
        self.tol_input.setValue(self._session.tolerance)
        self.tol_input.setKeyboardTracking(False)
        self._fix_spinbox_style(self.tol_input)
        controls.addWidget(QtWidgets.QLabel("Tolerance:"))
        controls.addWidget(self.tol_input)
        self.btn_reset_tol = QtWidgets.QPushButton(f"Reset to {DEFAULT_TOLERANCE:.0f} cents")
        controls.addWidget(self.btn_reset_tol)

        controls.addStretch(1)
        self.btn_start = QtWidgets.QPushButton("Start")
        self.btn_stop = QtWidgets.QPushButton("Stop")
        self.btn_stop.setEnabled(False)
        controls.addWidget(self.btn_start)
        controls.addWidget(self.btn_stop)

        self.instrument_combo.currentTextChanged.connect(self._on_instrument_change)
        self.ref_input.valueChanged.connect(self._on_reference_change)
        self.tol_input.valueChanged.connect(self._on_tolerance_change)
        # setValue emits valueChanged, which routes through the session setters.
        self.btn_reset_ref.clicked.connect(lambda: self.ref_input.setValue(DEFAULT_REFERENCE_PITCH))
        self.btn_reset_tol.clicked.connect(lambda: self.tol_input.setValue(DEFAULT_TOLERANCE))
        self.btn_start.clicked.connect(self._on_start)
        self.btn_stop.clicked.connect(self._on_stop)

        readout = QtWidgets.QHBoxLayout()
        layout.addLayout(readout)
        self.note_label = QtWidgets.QLabel("--")
        self.note_label.setFont(QtGui.QFont("Helvetica", 48, QtGui.QFont.Weight.Bold))
        self.note_label.setMinimumWidth(160)
        readout.addWidget(self.note_label)

        details = QtWidgets.QVBoxLayout()
        readout.addLayout(details, 1)
        self.hz_label = QtWidgets.QLabel("0.0 Hz")
        self.cents_label = QtWidgets.QLabel("")
        self.string_label = QtWidgets.QLabel("")
        self.status_label = QtWidgets.QLabel("")
        self.status_label.setFont(QtGui.QFont("Helvetica", 20))
        for label in (self.hz_label, self.cents_label, self.string_label, self.status_label):
            details.addWidget(label)

        self.recommendation = QtWidgets.QLabel("")
        self.recommendation.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.recommendation)

        self.strings_title = QtWidgets.QLabel("")
        layout.addWidget(self.strings_title)
        self._strings_grid = QtWidgets.QGridLayout()
        layout.addLayout(self._strings_grid)
        self._string_cards: list[QtWidgets.QLabel] = []

        pg.setConfigOptions(antialias=True)
        self.plot = pg.PlotWidget()
        self.plot.setBackground("w")
        self.plot.showGrid(x=False, y=True, alpha=0.15)
        self.plot.setMouseEnabled(x=False, y=False)
        self.plot.setMenuEnabled(False)
        self.plot.setLabel("bottom", "Time", units="s")
        self.plot.setLabel("left", "Cents")
        self.plot.setYRange(-self._ui.cents_range, self._ui.cents_range)
        layout.addWidget(self.plot, 1)

        self._curve = self.plot.plot([], [], pen=pg.mkPen(color=(30, 90, 160), width=2), connect="finite")
        band_pen = pg.mkPen(color=(63, 174, 95), width=1, style=QtCore.Qt.PenStyle.DashLine)
        self._upper = pg.InfiniteLine(angle=0, pen=band_pen)
        self._lower = pg.InfiniteLine(angle=0, pen=band_pen)
        self.plot.addItem(self._upper)
        self.plot.addItem(self._lower)
        self._set_band(self._session.tolerance)

        self.setCentralWidget(root)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        try:
            self._stop_listening()
        finally:
            super().closeEvent(event)

    @QtCore.Slot()
    def _on_start(self) -> None:
        self._times.clear()
        self._cents.clear()
        self._start_time = time.monotonic()
        self._engine.start()
        self._audio.set_tap(self._engine.process_frame)
        try:
            self._audio.start()
        except Exception as exc:  # noqa: BLE001 - user-facing
            logger.error("Audio input failed: %s", exc)
            self._engine.stop()
            self.recommendation.setText(f"Audio input failed: {exc}")
            return
        self._timer.start()
        self.btn_start.setEnabled(False)
        self.btn_stop.setEnabled(True)
        self._render(self._session.snapshot())

    @QtCore.Slot()
    def _on_stop(self) -> None:
        self._stop_listening()

    def _stop_listening(self) -> None:
        self._timer.stop()
        self._audio.set_tap(None)
        self._audio.stop()
        self._engine.stop()
        self.btn_start.setEnabled(True)
        self.btn_stop.setEnabled(False)
        self._render(self._session.snapshot())

    @QtCore.Slot(str)
    def _on_instrument_change(self, text: str) -> None:
        self._session.select_instrument(Instrument(text))
        self._render(self._session.snapshot())

    @QtCore.Slot(float)
    def _on_reference_change(self, value: float) -> None:
        self._session.set_reference_pitch(value)
        self._render(self._session.snapshot())

    @QtCore.Slot(float)
    def _on_tolerance_change(self, value: float) -> None:
        self._session.set_tolerance(value)
        self._set_band(self._session.tolerance)
        self._render(self._session.snapshot())

    def _on_tick(self) -> None:
        if self._start_time is None:
            return
        self._engine.poll()
        snap = self._session.snapshot()
        self._append_trace(time.monotonic() - self._start_time, snap)
        self._render(snap)

    def _append_trace(self, t: float, snap: TunerSnapshot) -> None:
        # NaN breaks the line while no note is held.
        self._times.append(t)
        self._cents.append(float(snap.note.cents) if snap.note is not None else float("nan"))
        while self._times and self._times[0] < t - self._ui.window_seconds:
            self._times.popleft()
            self._cents.popleft()
        self._curve.setData(
            np.array(self._times, dtype=np.float64),
            np.array(self._cents, dtype=np.float64),
        )
        self.plot.setXRange(max(0.0, t - self._ui.window_seconds), max(self._ui.window_seconds, t))

    def _render(self, snap: TunerSnapshot) -> None:
        self.hz_label.setText(f"{self._engine.current_frequency:.1f} Hz")
        self.recommendation.setText(guidance_text(snap, listening=self._engine.is_running))
        self._render_strings(snap)

        note = snap.note
        if note is None:
            self.note_label.setText("--")
            self.cents_label.setText("")
            self.string_label.setText("")
            self.status_label.setText("")
            self.status_label.setStyleSheet("")
            return

        self.note_label.setText(note.display_name)
        self.cents_label.setText(f"{note.cents:+.1f} cents (target {note.frequency:.2f} Hz)")
        string = snap.string
        if string is None:
            self.string_label.setText("No matching string")
        else:
            target = string.target_hz(snap.config.reference_hz)
            self.string_label.setText(f"String {string.number} ({string.name}, {target:.2f} Hz)")

        status = snap.status
        if status is None:
            self.status_label.setText("")
            self.status_label.setStyleSheet("")
        else:
            self.status_label.setText(f"{status.symbol} {status.value.replace('_', ' ')}")
            self.status_label.setStyleSheet(f"color: {_STATUS_STYLE[status]}; font-weight: bold;")

    def _render_strings(self, snap: TunerSnapshot) -> None:
        refs = string_references(snap)
        self.strings_title.setText(f"{snap.instrument.label} Strings")
        if len(self._string_cards) != len(refs):
            for card in self._string_cards:
                self._strings_grid.removeWidget(card)
                card.deleteLater()
            # Guitar tunings lay out in three columns, ukuleles in two.
            columns = 3 if len(refs) > 4 else 2
            self._string_cards = []
            for i in range(len(refs)):
                card = QtWidgets.QLabel()
                card.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
                self._strings_grid.addWidget(card, i // columns, i % columns)
                self._string_cards.append(card)

        for card, ref in zip(self._string_cards, refs):
            card.setText(f"String {ref.string.number}\n{ref.string.name}\n{ref.target_hz:.1f} Hz")
            if ref.detected:
                card.setStyleSheet(_CARD_DETECTED)
            else:
                card.setStyleSheet(_CARD_IDLE)

    def _set_band(self, tolerance: float) -> None:
        self._upper.setValue(tolerance)
        self._lower.setValue(-tolerance)

    def _fix_spinbox_style(self, widget: QtWidgets.QAbstractSpinBox) -> None:
        if sys.platform != "darwin":
            return
        style = QtWidgets.QStyleFactory.create("Fusion")
        if style is not None:
            widget.setStyle(style)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QtWidgets.QApplication(sys.argv)
    win = MainWindow()
    win.resize(900, 600)
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
