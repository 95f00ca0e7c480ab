from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


NOTE_NAMES = ["C", "C♯", "D", "D♯", "E", "F", "F♯", "G", "G♯", "A", "A♯", "B"]
# Position of the reference letter (A) inside NOTE_NAMES.
_REFERENCE_CLASS = 9
_REFERENCE_OCTAVE = 4


class TuningStatus(str, Enum):
    IN_TUNE = "in_tune"
    SHARP = "sharp"
    FLAT = "flat"
    OUT_OF_RANGE = "out_of_range"

    @property
    def color(self) -> str:
        return _STATUS_COLORS[self]

    @property
    def symbol(self) -> str:
        return _STATUS_SYMBOLS[self]


_STATUS_COLORS = {
    TuningStatus.IN_TUNE: "green",
    TuningStatus.SHARP: "red",
    TuningStatus.FLAT: "red",
    TuningStatus.OUT_OF_RANGE: "gray",
}

_STATUS_SYMBOLS = {
    TuningStatus.IN_TUNE: "✓",
    TuningStatus.SHARP: "♯",
    TuningStatus.FLAT: "♭",
    TuningStatus.OUT_OF_RANGE: "?",
}


@dataclass(frozen=True)
class MusicalNote:
    name: str
    octave: int
    note_index: int
    frequency: float
    cents: float

    @property
    def display_name(self) -> str:
        return f"{self.name}{self.octave}"

    def status(self, tolerance: float) -> TuningStatus:
        if abs(self.cents) <= tolerance:
            return TuningStatus.IN_TUNE
        if self.cents > 0:
            return TuningStatus.SHARP
        return TuningStatus.FLAT


def floor_mod(value: int, modulus: int) -> int:
    """Modulo whose result is always in [0, modulus), also for negative values."""
    if modulus <= 0:
        raise ValueError("modulus must be positive")
    # Python's % takes the sign of the divisor.
    return int(value) % int(modulus)


def pitch_class_index(note_index: int) -> int:
    return floor_mod(int(note_index) + _REFERENCE_CLASS, 12)


def octave_number(note_index: int) -> int:
    # Floor division keeps B3 (index -10) in octave 3, not 4.
    return (int(note_index) + _REFERENCE_CLASS) // 12 + _REFERENCE_OCTAVE


def semitone_ratio(semitones: float) -> float:
    return float(2.0 ** (float(semitones) / 12.0))


def note_frequency(note_index: int, reference_hz: float) -> float:
    return float(reference_hz) * semitone_ratio(note_index)


def cents_between(hz: float, target_hz: float) -> float:
    if hz <= 0 or target_hz <= 0:
        raise ValueError("frequencies must be positive")
    return float(1200.0 * math.log2(hz / target_hz))


def nearest_note_index(semitones: float) -> int:
    """
    Round to the nearest semitone with ties going to the lower note.

    ceil(x - 0.5) keeps the remainder in (-0.5, 0.5], so cents stay in
    (-50, 50] even for exact half-semitone inputs.
    """
    return int(math.ceil(float(semitones) - 0.5))


def to_note(hz: float, reference_hz: float) -> MusicalNote:
    """
    Nearest equal-tempered note for ``hz`` under ``reference_hz`` (A4).

    The tolerance is not an input here: in-tune/sharp/flat is read later via
    ``MusicalNote.status(tolerance)`` so a tolerance change never remaps notes.
    """
    if not math.isfinite(hz) or hz <= 0:
        raise ValueError(f"frequency must be positive, got {hz}")
    if reference_hz <= 0:
        raise ValueError(f"reference pitch must be positive, got {reference_hz}")

    semitones = 12.0 * math.log2(hz / reference_hz)
    idx = nearest_note_index(semitones)
    cents = (semitones - idx) * 100.0
    return MusicalNote(
        name=NOTE_NAMES[pitch_class_index(idx)],
        octave=octave_number(idx),
        note_index=idx,
        frequency=note_frequency(idx, reference_hz),
        cents=float(cents),
    )
