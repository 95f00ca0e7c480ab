from __future__ import annotations

import numpy as np
import pytest

from string_tuner.spectrum import (
    GatePolicy,
    SampleFrame,
    SpectralEstimator,
    SpectralEstimatorConfig,
    estimate_recording,
    hann_window,
)

SAMPLE_RATE = 44_100
FFT_SIZE = 4096


def _sine(freq: float, n: int = FFT_SIZE, amp: float = 0.5) -> np.ndarray:
    t = np.arange(n, dtype=np.float64) / SAMPLE_RATE
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def test_bin_aligned_tone_returns_exact_bin_frequency() -> None:
    est = SpectralEstimator()
    freq = 20 * SAMPLE_RATE / FFT_SIZE

    hz = est.estimate(SampleFrame.from_samples(_sine(freq), SAMPLE_RATE))

    assert hz == freq


@pytest.mark.parametrize("freq", [82.41, 110.0, 146.83, 196.0, 246.94, 329.63, 440.0])
def test_unaligned_tone_error_is_bounded_by_half_a_bin(freq: float) -> None:
    est = SpectralEstimator()

    hz = est.estimate(SampleFrame.from_samples(_sine(freq), SAMPLE_RATE))

    assert hz is not None
    assert abs(hz - freq) <= SAMPLE_RATE / (2 * FFT_SIZE) + 1e-9
    # Always a multiple of the bin width.
    assert (hz / est.resolution(SAMPLE_RATE)) == pytest.approx(round(hz / est.resolution(SAMPLE_RATE)))


def test_short_frame_returns_none() -> None:
    est = SpectralEstimator()
    frame = SampleFrame.from_samples(_sine(220.0, n=FFT_SIZE - 1), SAMPLE_RATE)

    assert est.estimate(frame) is None


def test_longer_frame_uses_first_fft_size_samples() -> None:
    est = SpectralEstimator()
    freq = 30 * SAMPLE_RATE / FFT_SIZE
    samples = np.concatenate([_sine(freq), np.zeros(FFT_SIZE, dtype=np.float32)])

    assert est.estimate(SampleFrame.from_samples(samples, SAMPLE_RATE)) == freq


@pytest.mark.parametrize("gate", list(GatePolicy))
def test_silence_is_rejected_by_every_gate(gate: GatePolicy) -> None:
    est = SpectralEstimator(SpectralEstimatorConfig(gate=gate))
    frame = SampleFrame.from_samples(np.zeros(FFT_SIZE, dtype=np.float32), SAMPLE_RATE)

    assert est.estimate(frame) is None


def test_relative_gate_is_vacuous_for_noise() -> None:
    rng = np.random.default_rng(7)
    noise = rng.normal(scale=0.05, size=FFT_SIZE).astype(np.float32)
    est = SpectralEstimator(SpectralEstimatorConfig(gate=GatePolicy.RELATIVE_TO_MAX))

    assert est.estimate(SampleFrame.from_samples(noise, SAMPLE_RATE)) is not None


def test_peak_to_mean_gate_rejects_white_noise() -> None:
    rng = np.random.default_rng(7)
    est = SpectralEstimator(SpectralEstimatorConfig(gate=GatePolicy.PEAK_TO_MEAN))

    for _ in range(5):
        noise = rng.normal(scale=0.05, size=FFT_SIZE).astype(np.float32)
        assert est.estimate(SampleFrame.from_samples(noise, SAMPLE_RATE)) is None


def test_peak_to_mean_gate_accepts_noisy_tone() -> None:
    rng = np.random.default_rng(11)
    freq = 18 * SAMPLE_RATE / FFT_SIZE
    samples = _sine(freq) + rng.normal(scale=0.05, size=FFT_SIZE).astype(np.float32)
    est = SpectralEstimator(SpectralEstimatorConfig(gate=GatePolicy.PEAK_TO_MEAN))

    assert est.estimate(SampleFrame.from_samples(samples, SAMPLE_RATE)) == freq


def test_estimate_does_not_touch_input() -> None:
    samples = _sine(196.0)
    original = samples.copy()
    est = SpectralEstimator()

    first = est.estimate(SampleFrame.from_samples(samples, SAMPLE_RATE))
    second = est.estimate(SampleFrame.from_samples(samples, SAMPLE_RATE))

    np.testing.assert_array_equal(samples, original)
    assert first == second


def test_sample_frame_is_read_only() -> None:
    frame = SampleFrame.from_samples([0.0, 0.1, 0.2, 0.3], SAMPLE_RATE)

    assert len(frame) == 4
    with pytest.raises(ValueError):
        frame.samples[0] = 1.0


def test_hann_window_shape() -> None:
    w = hann_window(FFT_SIZE)

    assert w[0] == pytest.approx(0.0)
    assert w[-1] == pytest.approx(0.0)
    assert float(np.max(w)) == pytest.approx(1.0, abs=1e-6)
    np.testing.assert_allclose(w, w[::-1], atol=1e-12)


@pytest.mark.parametrize("size", [0, 1, 1000, 4095])
def test_fft_size_must_be_power_of_two(size: int) -> None:
    with pytest.raises(ValueError):
        SpectralEstimatorConfig(fft_size=size)


def test_estimate_recording_takes_median_over_frames() -> None:
    freq = 196.0
    audio = _sine(freq, n=SAMPLE_RATE)

    hz = estimate_recording(audio, SAMPLE_RATE)

    assert hz is not None
    assert abs(hz - freq) <= SAMPLE_RATE / (2 * FFT_SIZE)


def test_estimate_recording_of_silence_is_none() -> None:
    assert estimate_recording(np.zeros(SAMPLE_RATE, dtype=np.float32), SAMPLE_RATE) is None
