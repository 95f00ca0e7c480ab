from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Callable

from string_tuner.instruments import (
    GUITAR_STANDARD,
    Instrument,
    InstrumentDefinition,
    InstrumentString,
    get_instrument,
    match_string,
)
from string_tuner.notes import MusicalNote, TuningStatus, to_note

logger = logging.getLogger(__name__)

REFERENCE_PITCH_MIN = 431.0
REFERENCE_PITCH_MAX = 449.0
DEFAULT_REFERENCE_PITCH = 440.0
TOLERANCE_MIN = 10.0
TOLERANCE_MAX = 100.0
DEFAULT_TOLERANCE = 45.0
# Fixed fine-tuning band for the recommendation text, independent of tolerance.
RECOMMENDATION_BAND_CENTS = 5.0


def clamp(value: float, low: float, high: float) -> float:
    return float(min(high, max(low, float(value))))


@dataclass(frozen=True)
class TuningConfiguration:
    reference_hz: float = DEFAULT_REFERENCE_PITCH
    tolerance_cents: float = DEFAULT_TOLERANCE

    reference_bounds = (REFERENCE_PITCH_MIN, REFERENCE_PITCH_MAX)
    tolerance_bounds = (TOLERANCE_MIN, TOLERANCE_MAX)

    def with_reference(self, value: float) -> TuningConfiguration:
        return TuningConfiguration(
            reference_hz=clamp(value, REFERENCE_PITCH_MIN, REFERENCE_PITCH_MAX),
            tolerance_cents=self.tolerance_cents,
        )

    def with_tolerance(self, value: float) -> TuningConfiguration:
        return TuningConfiguration(
            reference_hz=self.reference_hz,
            tolerance_cents=clamp(value, TOLERANCE_MIN, TOLERANCE_MAX),
        )


@dataclass(frozen=True)
class TunerSnapshot:
    frequency: float | None
    note: MusicalNote | None
    string: InstrumentString | None
    config: TuningConfiguration
    instrument: InstrumentDefinition

    @property
    def status(self) -> TuningStatus | None:
        return effective_status(self.note, self.string, self.config.tolerance_cents)

    @property
    def recommendation(self) -> str | None:
        return recommendation_text(self.note, self.string)

    def to_event(self) -> dict[str, object]:
        note = self.note
        string = self.string
        status = self.status
        return {
            "type": "tuner_update",
            "hz": float(self.frequency) if self.frequency is not None else None,
            "note": note.name if note is not None else None,
            "octave": note.octave if note is not None else None,
            "cents": float(note.cents) if note is not None else None,
            "noteHz": float(note.frequency) if note is not None else None,
            "status": status.value if status is not None else None,
            "string": string.name if string is not None else None,
            "stringNumber": string.number if string is not None else None,
            "stringHz": string.target_hz(self.config.reference_hz) if string is not None else None,
            "recommendation": self.recommendation,
            "referenceHz": self.config.reference_hz,
            "toleranceCents": self.config.tolerance_cents,
            "instrument": self.instrument.label,
        }


def effective_status(
    note: MusicalNote | None, string: InstrumentString | None, tolerance: float
) -> TuningStatus | None:
    if note is None:
        return None
    if string is None:
        return TuningStatus.OUT_OF_RANGE
    return note.status(tolerance)


def recommendation_text(note: MusicalNote | None, string: InstrumentString | None) -> str | None:
    if note is None or string is None:
        return None
    cents = note.cents
    if abs(cents) <= RECOMMENDATION_BAND_CENTS:
        return f"Perfect! {string.name} string is in tune."
    if cents > 0:
        return f"{string.name} string is {int(abs(cents))} cents sharp. Tune down."
    return f"{string.name} string is {int(abs(cents))} cents flat. Tune up."


def is_usable_frequency(hz: float) -> bool:
    return math.isfinite(hz) and hz > 0


def guidance_text(snap: TunerSnapshot, *, listening: bool) -> str:
    """One-line prompt for the presentation layer, defined for every state."""
    if snap.note is None:
        return "Play a note..." if listening else "Press Start and play a string."
    if snap.string is None:
        return "Note out of instrument range..."
    return recommendation_text(snap.note, snap.string) or ""


@dataclass(frozen=True)
class StringReference:
    string: InstrumentString
    target_hz: float
    detected: bool


def string_references(snap: TunerSnapshot) -> list[StringReference]:
    """Every string of the selected instrument at the current reference pitch."""
    ref = snap.config.reference_hz
    return [
        StringReference(string=s, target_hz=s.target_hz(ref), detected=s == snap.string)
        for s in snap.instrument.strings
    ]


Listener = Callable[[TunerSnapshot], None]


class TuningSession:
    """
    Tuning state for one capture session.

    Owns the configuration and the selected instrument, maps each incoming
    frequency to a note and a string, and keeps the published pair consistent
    when the configuration changes. Readers either poll the properties /
    ``snapshot()`` or register a listener that receives a snapshot after every
    change. All state is guarded by a single lock; listeners run outside it.
    """

    def __init__(
        self,
        *,
        instrument: Instrument | InstrumentDefinition = GUITAR_STANDARD,
        reference_hz: float = DEFAULT_REFERENCE_PITCH,
        tolerance_cents: float = DEFAULT_TOLERANCE,
    ) -> None:
        self._lock = threading.Lock()
        self._config = TuningConfiguration().with_reference(reference_hz).with_tolerance(tolerance_cents)
        self._instrument = get_instrument(instrument)
        self._frequency: float | None = None
        self._note: MusicalNote | None = None
        self._string: InstrumentString | None = None
        self._listeners: list[Listener] = []

    @property
    def config(self) -> TuningConfiguration:
        with self._lock:
            return self._config

    @property
    def reference_pitch(self) -> float:
        return self.config.reference_hz

    @property
    def tolerance(self) -> float:
        return self.config.tolerance_cents

    @property
    def instrument(self) -> InstrumentDefinition:
        with self._lock:
            return self._instrument

    @property
    def note(self) -> MusicalNote | None:
        with self._lock:
            return self._note

    @property
    def matched_string(self) -> InstrumentString | None:
        with self._lock:
            return self._string

    @property
    def frequency(self) -> float | None:
        with self._lock:
            return self._frequency

    @property
    def status(self) -> TuningStatus | None:
        return self.snapshot().status

    def snapshot(self) -> TunerSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def on_frequency(self, hz: float) -> None:
        with self._lock:
            if not is_usable_frequency(hz):
                # NaN, infinities and non-positive values mean "no signal".
                self._clear_locked()
            else:
                self._recompute_locked(float(hz))
            snap = self._snapshot_locked()
        self._notify(snap)

    def set_reference_pitch(self, value: float) -> None:
        with self._lock:
            self._config = self._config.with_reference(value)
            if self._note is not None and self._frequency is not None:
                # Recompute from the raw frequency, not the quantized note.
                self._recompute_locked(self._frequency)
            snap = self._snapshot_locked()
        logger.debug("Reference pitch set to %.1f Hz", snap.config.reference_hz)
        self._notify(snap)

    def set_tolerance(self, value: float) -> None:
        with self._lock:
            self._config = self._config.with_tolerance(value)
            snap = self._snapshot_locked()
        logger.debug("Tolerance set to %.1f cents", snap.config.tolerance_cents)
        self._notify(snap)

    def select_instrument(self, instrument: Instrument | InstrumentDefinition) -> None:
        definition = get_instrument(instrument)
        with self._lock:
            self._instrument = definition
            self._clear_locked()
            snap = self._snapshot_locked()
        logger.debug("Instrument selected: %s", definition.label)
        self._notify(snap)

    def recommendation(self) -> str | None:
        with self._lock:
            return recommendation_text(self._note, self._string)

    def reset(self) -> None:
        with self._lock:
            self._clear_locked()
            snap = self._snapshot_locked()
        self._notify(snap)

    def _recompute_locked(self, hz: float) -> None:
        ref = self._config.reference_hz
        note = to_note(hz, ref)
        string = match_string(hz, self._instrument, ref)
        self._frequency = hz
        self._note = note
        self._string = string

    def _clear_locked(self) -> None:
        self._frequency = None
        self._note = None
        self._string = None

    def _snapshot_locked(self) -> TunerSnapshot:
        return TunerSnapshot(
            frequency=self._frequency,
            note=self._note,
            string=self._string,
            config=self._config,
            instrument=self._instrument,
        )

    def _notify(self, snap: TunerSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snap)
            except Exception:  # noqa: BLE001 - a broken view must not stop tuning
                logger.warning("Tuner listener %r failed", listener, exc_info=True)
