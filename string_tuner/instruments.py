from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from string_tuner.notes import semitone_ratio

# Each string accepts frequencies within this many semitones of its target.
MATCH_WINDOW_SEMITONES = 3


class Instrument(str, Enum):
    GUITAR = "Guitar"
    GUITAR_DROP_D = "Guitar (Drop D)"
    UKULELE = "Ukulele"
    UKULELE_LOW_G = "Ukulele (Low G)"


@dataclass(frozen=True)
class InstrumentString:
    name: str
    semitone_offset: int
    number: int

    def target_hz(self, reference_hz: float) -> float:
        return float(reference_hz) * semitone_ratio(self.semitone_offset)

    def window_hz(self, reference_hz: float) -> tuple[float, float]:
        target = self.target_hz(reference_hz)
        return (
            target * semitone_ratio(-MATCH_WINDOW_SEMITONES),
            target * semitone_ratio(MATCH_WINDOW_SEMITONES),
        )


@dataclass(frozen=True)
class InstrumentDefinition:
    instrument: Instrument
    strings: tuple[InstrumentString, ...]

    @property
    def label(self) -> str:
        return self.instrument.value

    def __iter__(self):
        return iter(self.strings)

    def __len__(self) -> int:
        return len(self.strings)


# Offsets are semitones from the reference pitch (A4), lowest string first.
GUITAR_STANDARD = InstrumentDefinition(
    Instrument.GUITAR,
    (
        InstrumentString("E", -29, 6),
        InstrumentString("A", -24, 5),
        InstrumentString("D", -19, 4),
        InstrumentString("G", -14, 3),
        InstrumentString("B", -10, 2),
        InstrumentString("E", -5, 1),
    ),
)

GUITAR_DROP_D = InstrumentDefinition(
    Instrument.GUITAR_DROP_D,
    (
        InstrumentString("D", -31, 6),
        InstrumentString("A", -24, 5),
        InstrumentString("D", -19, 4),
        InstrumentString("G", -14, 3),
        InstrumentString("B", -10, 2),
        InstrumentString("E", -5, 1),
    ),
)

# Re-entrant tuning: string 4 (G) sits above string 3 (C).
UKULELE_STANDARD = InstrumentDefinition(
    Instrument.UKULELE,
    (
        InstrumentString("G", -2, 4),
        InstrumentString("C", -9, 3),
        InstrumentString("E", -5, 2),
        InstrumentString("A", 0, 1),
    ),
)

UKULELE_LOW_G = InstrumentDefinition(
    Instrument.UKULELE_LOW_G,
    (
        InstrumentString("G", -14, 4),
        InstrumentString("C", -9, 3),
        InstrumentString("E", -5, 2),
        InstrumentString("A", 0, 1),
    ),
)

INSTRUMENTS: dict[Instrument, InstrumentDefinition] = {
    d.instrument: d for d in (GUITAR_STANDARD, GUITAR_DROP_D, UKULELE_STANDARD, UKULELE_LOW_G)
}


def get_instrument(instrument: Instrument | InstrumentDefinition) -> InstrumentDefinition:
    if isinstance(instrument, InstrumentDefinition):
        return instrument
    return INSTRUMENTS[Instrument(instrument)]


def parse_instrument(text: str) -> Instrument:
    try:
        return Instrument(text)
    except ValueError:
        pass
    for item in Instrument:
        if item.name.lower() == text.strip().lower():
            return item
    return Instrument.GUITAR


def match_string(
    hz: float, instrument: InstrumentDefinition, reference_hz: float
) -> InstrumentString | None:
    """
    Closest string whose +/- 3 semitone window contains ``hz``.

    Windows are inclusive. Ties on distance keep the first string in
    definition order, so the result is deterministic for a given instrument.
    """
    if hz <= 0:
        return None
    best: InstrumentString | None = None
    best_err = float("inf")
    for string in instrument.strings:
        low, high = string.window_hz(reference_hz)
        if not (low <= hz <= high):
            continue
        err = abs(string.target_hz(reference_hz) - hz)
        if err < best_err:
            best_err = err
            best = string
    return best
