from __future__ import annotations

import pytest

from string_tuner.instruments import (
    GUITAR_DROP_D,
    GUITAR_STANDARD,
    INSTRUMENTS,
    UKULELE_LOW_G,
    UKULELE_STANDARD,
    Instrument,
    InstrumentDefinition,
    InstrumentString,
    get_instrument,
    match_string,
    parse_instrument,
)


def test_guitar_standard_targets() -> None:
    targets = [s.target_hz(440.0) for s in GUITAR_STANDARD]

    assert [s.semitone_offset for s in GUITAR_STANDARD] == [-29, -24, -19, -14, -10, -5]
    assert targets[0] == pytest.approx(82.41, abs=0.01)
    assert targets[-1] == pytest.approx(329.63, abs=0.01)
    assert targets == pytest.approx([82.41, 110.0, 146.83, 196.0, 246.94, 329.63], abs=0.01)
    assert [s.number for s in GUITAR_STANDARD] == [6, 5, 4, 3, 2, 1]


def test_ukulele_standard_targets() -> None:
    targets = [s.target_hz(440.0) for s in UKULELE_STANDARD]

    assert [s.semitone_offset for s in UKULELE_STANDARD] == [-2, -9, -5, 0]
    assert targets == pytest.approx([392.0, 261.63, 329.63, 440.0], abs=0.01)


def test_alternate_tunings() -> None:
    assert GUITAR_DROP_D.strings[0].target_hz(440.0) == pytest.approx(73.42, abs=0.01)
    assert UKULELE_LOW_G.strings[0].target_hz(440.0) == pytest.approx(196.0, abs=0.01)
    assert set(INSTRUMENTS) == set(Instrument)


def test_targets_follow_reference_pitch() -> None:
    a_string = GUITAR_STANDARD.strings[1]

    assert a_string.target_hz(432.0) == pytest.approx(108.0)
    assert a_string.target_hz(448.0) == pytest.approx(112.0)


@pytest.mark.parametrize(
    ("hz", "number"),
    [(82.0, 6), (108.0, 5), (147.5, 4), (193.0, 3), (250.0, 2), (333.0, 1)],
)
def test_match_nearest_guitar_string(hz: float, number: int) -> None:
    string = match_string(hz, GUITAR_STANDARD, 440.0)

    assert string is not None
    assert string.number == number


@pytest.mark.parametrize("hz", [40.0, 65.0, 400.0, 1000.0, 0.0, -5.0])
def test_out_of_range_has_no_match(hz: float) -> None:
    assert match_string(hz, GUITAR_STANDARD, 440.0) is None


def test_window_bounds_are_inclusive() -> None:
    low_e = GUITAR_STANDARD.strings[0]
    low, high = low_e.window_hz(440.0)

    assert match_string(low, GUITAR_STANDARD, 440.0) == low_e
    assert match_string(low * 0.999, GUITAR_STANDARD, 440.0) is None

    high_e = GUITAR_STANDARD.strings[-1]
    _, top = high_e.window_hz(440.0)
    assert match_string(top, GUITAR_STANDARD, 440.0) == high_e
    assert match_string(top * 1.001, GUITAR_STANDARD, 440.0) is None


def test_exact_tie_keeps_first_string() -> None:
    first = InstrumentString("X", -12, 2)
    second = InstrumentString("Y", -12, 1)
    custom = InstrumentDefinition(Instrument.GUITAR, (first, second))

    for _ in range(5):
        assert match_string(220.0, custom, 440.0) is first


def test_midpoint_between_strings_goes_to_the_nearer_or_first() -> None:
    a_string, d_string = GUITAR_STANDARD.strings[1], GUITAR_STANDARD.strings[2]
    a_hz, d_hz = a_string.target_hz(440.0), d_string.target_hz(440.0)
    mid = (a_hz + d_hz) / 2
    # Equal distances keep A, the string defined first.
    expected = a_string if abs(a_hz - mid) <= abs(d_hz - mid) else d_string

    for _ in range(10):
        assert match_string(mid, GUITAR_STANDARD, 440.0) is expected


def test_equal_targets_follow_definition_order() -> None:
    first = InstrumentString("P", -5, 2)
    second = InstrumentString("Q", -5, 1)

    forward = InstrumentDefinition(Instrument.GUITAR, (first, second))
    backward = InstrumentDefinition(Instrument.GUITAR, (second, first))
    hz = first.target_hz(440.0) * 1.01

    assert match_string(hz, forward, 440.0) is first
    assert match_string(hz, backward, 440.0) is second


def test_ukulele_reentrant_g_matches_high_g() -> None:
    string = match_string(392.0, UKULELE_STANDARD, 440.0)

    assert string is not None
    assert string.name == "G"
    assert string.number == 4


def test_parse_and_get_instrument() -> None:
    assert parse_instrument("Ukulele") is Instrument.UKULELE
    assert parse_instrument("ukulele_low_g") is Instrument.UKULELE_LOW_G
    assert parse_instrument("banjo") is Instrument.GUITAR
    assert get_instrument(Instrument.UKULELE) is UKULELE_STANDARD
    assert get_instrument(GUITAR_DROP_D) is GUITAR_DROP_D
    assert GUITAR_STANDARD.label == "Guitar"
    assert len(UKULELE_STANDARD) == 4
