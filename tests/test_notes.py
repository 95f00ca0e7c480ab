from __future__ import annotations

import pytest

from string_tuner.notes import (
    NOTE_NAMES,
    MusicalNote,
    TuningStatus,
    cents_between,
    floor_mod,
    nearest_note_index,
    octave_number,
    pitch_class_index,
    to_note,
)


@pytest.mark.parametrize("reference", [431.0, 440.0, 449.0])
def test_reference_pitch_maps_to_a4(reference: float) -> None:
    note = to_note(reference, reference)

    assert note.note_index == 0
    assert note.name == "A"
    assert note.octave == 4
    assert note.cents == pytest.approx(0.0, abs=1e-9)
    assert note.frequency == pytest.approx(reference)
    assert note.display_name == "A4"


def test_octave_above_reference() -> None:
    note = to_note(880.0, 440.0)

    assert note.note_index == 12
    assert note.name == "A"
    assert note.octave == 5
    assert note.cents == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize("x", [-49.0, -25.0, -1.0, 0.0, 7.0, 33.3, 49.9])
def test_cents_follow_detuning(x: float) -> None:
    note = to_note(440.0 * 2 ** (x / 1200), 440.0)

    assert note.note_index == 0
    assert note.cents == pytest.approx(x, abs=1e-6)


@pytest.mark.parametrize(
    ("hz", "name", "octave"),
    [
        (82.41, "E", 2),
        (110.0, "A", 2),
        (246.94, "B", 3),
        (261.63, "C", 4),
        (277.18, "C♯", 4),
        (493.88, "B", 4),
        (523.25, "C", 5),
        (16.35, "C", 0),
    ],
)
def test_note_names_and_octaves(hz: float, name: str, octave: int) -> None:
    note = to_note(hz, 440.0)

    assert note.name == name
    assert note.octave == octave
    assert abs(note.cents) < 5.0


@pytest.mark.parametrize(
    ("index", "pitch_class", "octave"),
    [
        (0, 9, 4),
        (2, 11, 4),
        (3, 0, 5),
        (-9, 0, 4),
        (-10, 11, 3),
        (-21, 0, 3),
        (-29, 4, 2),
        (-57, 0, 0),
        (-58, 11, -1),
    ],
)
def test_pitch_class_and_octave_for_negative_indices(index: int, pitch_class: int, octave: int) -> None:
    assert pitch_class_index(index) == pitch_class
    assert octave_number(index) == octave


def test_floor_mod_is_never_negative() -> None:
    assert [floor_mod(v, 12) for v in (-25, -13, -12, -1, 0, 1, 11, 12, 25)] == [
        11, 11, 0, 11, 0, 1, 11, 0, 1,
    ]
    with pytest.raises(ValueError):
        floor_mod(3, 0)


def test_half_semitone_ties_go_to_the_lower_note() -> None:
    assert nearest_note_index(0.5) == 0
    assert nearest_note_index(-0.5) == -1
    assert nearest_note_index(1.5) == 1
    assert nearest_note_index(0.51) == 1
    assert nearest_note_index(-0.49) == 0


def test_cents_stay_in_half_open_range() -> None:
    for i in range(-400, 401):
        hz = 440.0 * 2 ** (i / 100 / 12)
        note = to_note(hz, 440.0)
        assert -50.0 - 1e-6 < note.cents <= 50.0 + 1e-6


def test_non_positive_frequency_is_rejected() -> None:
    with pytest.raises(ValueError):
        to_note(0.0, 440.0)
    with pytest.raises(ValueError):
        to_note(-10.0, 440.0)
    with pytest.raises(ValueError):
        to_note(float("nan"), 440.0)
    with pytest.raises(ValueError):
        to_note(float("inf"), 440.0)


def test_status_boundaries_are_inclusive() -> None:
    def note(cents: float) -> MusicalNote:
        return MusicalNote(name="A", octave=4, note_index=0, frequency=440.0, cents=cents)

    assert note(10.0).status(10.0) is TuningStatus.IN_TUNE
    assert note(-10.0).status(10.0) is TuningStatus.IN_TUNE
    assert note(10.5).status(10.0) is TuningStatus.SHARP
    assert note(-10.5).status(10.0) is TuningStatus.FLAT
    assert note(30.0).status(50.0) is TuningStatus.IN_TUNE


def test_every_status_has_color_and_symbol() -> None:
    for status in TuningStatus:
        assert status.color
        assert status.symbol
    assert TuningStatus.IN_TUNE.color == "green"
    assert TuningStatus.SHARP.symbol == "♯"
    assert TuningStatus.FLAT.symbol == "♭"


def test_cents_between() -> None:
    assert cents_between(880.0, 440.0) == pytest.approx(1200.0)
    assert cents_between(440.0, 880.0) == pytest.approx(-1200.0)
    with pytest.raises(ValueError):
        cents_between(0.0, 440.0)


def test_twelve_chromatic_names() -> None:
    assert len(NOTE_NAMES) == 12
    assert NOTE_NAMES[0] == "C"
    assert NOTE_NAMES[9] == "A"
