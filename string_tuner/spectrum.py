from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class GatePolicy(str, Enum):
    RELATIVE_TO_MAX = "relative_to_max"
    PEAK_TO_MEAN = "peak_to_mean"


@dataclass(frozen=True)
class SpectralEstimatorConfig:
    fft_size: int = 4096
    gate: GatePolicy = GatePolicy.PEAK_TO_MEAN
    # RELATIVE_TO_MAX: peak must exceed this fraction of the spectrum maximum.
    relative_threshold: float = 0.1
    # PEAK_TO_MEAN: peak must exceed the mean bin magnitude by this factor.
    peak_to_mean_ratio: float = 8.0

    def __post_init__(self) -> None:
        n = int(self.fft_size)
        if n < 2 or n & (n - 1):
            raise ValueError(f"fft_size must be a power of two >= 2, got {self.fft_size}")
        if not (0.0 <= self.relative_threshold < 1.0):
            raise ValueError("relative_threshold must be in [0, 1)")
        if self.peak_to_mean_ratio < 1.0:
            raise ValueError("peak_to_mean_ratio must be >= 1")


@dataclass(frozen=True)
class SampleFrame:
    samples: np.ndarray
    sample_rate: int

    @classmethod
    def from_samples(cls, samples, sample_rate: int) -> SampleFrame:
        data = np.array(samples, dtype=np.float32).reshape(-1)
        data.setflags(write=False)
        return cls(samples=data, sample_rate=int(sample_rate))

    def __len__(self) -> int:
        return int(self.samples.size)


class SpectralEstimator:
    """
    Dominant-frequency estimator for a single mono frame.

    Strategy:
    - Hann window over the first fft_size samples.
    - Real FFT magnitude spectrum, fft_size/2 bins covering [0, sr/2).
    - Peak bin converted to Hz (resolution sr/fft_size, no interpolation).
    - Noise gate according to the configured GatePolicy.

    Window and scratch buffers are allocated once here, so one estimator
    should be driven from a single capture thread.
    """

    def __init__(self, config: SpectralEstimatorConfig | None = None) -> None:
        self._cfg = config or SpectralEstimatorConfig()
        n = self._cfg.fft_size
        self._window = hann_window(n)
        self._scratch = np.zeros(n, dtype=np.float64)
        self._magnitudes = np.zeros(n // 2, dtype=np.float64)

    @property
    def fft_size(self) -> int:
        return self._cfg.fft_size

    def resolution(self, sample_rate: int) -> float:
        return float(sample_rate) / float(self._cfg.fft_size)

    def estimate(self, frame: SampleFrame) -> float | None:
        n = self._cfg.fft_size
        if len(frame) < n or frame.sample_rate <= 0:
            return None

        np.multiply(frame.samples[:n], self._window, out=self._scratch)
        spec = np.fft.rfft(self._scratch, n=n)
        np.abs(spec[: n // 2], out=self._magnitudes)

        peak_bin = int(np.argmax(self._magnitudes))
        peak = float(self._magnitudes[peak_bin])
        if not self._passes_gate(peak):
            return None
        return float(peak_bin * frame.sample_rate / n)

    def _passes_gate(self, peak: float) -> bool:
        mags = self._magnitudes
        if self._cfg.gate is GatePolicy.RELATIVE_TO_MAX:
            # Only an all-zero spectrum fails: the peak is the maximum.
            return peak > float(np.max(mags)) * self._cfg.relative_threshold
        if self._cfg.gate is GatePolicy.PEAK_TO_MEAN:
            return peak > float(np.mean(mags)) * self._cfg.peak_to_mean_ratio
        raise ValueError(f"unknown gate policy: {self._cfg.gate!r}")


def hann_window(size: int) -> np.ndarray:
    """Symmetric Hann window: w[i] = 0.5 * (1 - cos(2*pi*i / (size - 1)))."""
    if size < 2:
        return np.ones(max(size, 0), dtype=np.float64)
    i = np.arange(size, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * i / float(size - 1)))


def estimate_recording(
    audio: np.ndarray,
    sample_rate: int,
    *,
    estimator: SpectralEstimator | None = None,
    min_hz: float = 60.0,
    max_hz: float = 2000.0,
) -> float | None:
    est = estimator or SpectralEstimator()
    hop = est.fft_size
    data = np.asarray(audio, dtype=np.float32).reshape(-1)
    hz_list: list[float] = []
    for i in range(0, data.size - hop + 1, hop):
        hz = est.estimate(SampleFrame.from_samples(data[i : i + hop], sample_rate))
        if hz is not None and min_hz <= hz < max_hz:
            hz_list.append(hz)
    if not hz_list:
        return None
    return float(np.median(np.array(hz_list, dtype=np.float64)))
