from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np

from string_tuner.session import TuningSession
from string_tuner.spectrum import SampleFrame, SpectralEstimator, SpectralEstimatorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlausibilityBand:
    min_hz: float = 60.0
    max_hz: float = 2000.0

    def __contains__(self, hz: object) -> bool:
        if not isinstance(hz, (int, float)):
            return False
        return self.min_hz <= float(hz) < self.max_hz


@dataclass(frozen=True)
class EngineConfig:
    sample_rate: int = 44_100
    band: PlausibilityBand = PlausibilityBand()
    # Keep the previous reading when a frame yields no usable estimate.
    hold_last: bool = True


class LatestValue:
    """
    Single-slot exchange between the capture thread and the control loop.

    Only the most recent value survives; ``offer`` overwrites and ``take``
    returns it once. Each value carries the generation it was produced in,
    and ``invalidate`` bumps the generation so values computed before a stop
    are discarded instead of resurrecting state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: float | None = None
        self._seq = 0
        self._taken_seq = 0
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def offer(self, value: float, generation: int) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._value = float(value)
            self._seq += 1
            return True

    def take(self) -> float | None:
        with self._lock:
            if self._seq == self._taken_seq:
                return None
            self._taken_seq = self._seq
            return self._value

    def peek(self) -> float | None:
        with self._lock:
            return self._value

    def invalidate(self) -> int:
        with self._lock:
            self._generation += 1
            self._value = None
            self._taken_seq = self._seq
            return self._generation


class TunerEngine:
    """
    Glue between a frame source and a TuningSession.

    ``process_frame`` is meant for the capture callback; ``poll`` for the UI
    or control loop. ``stop`` resets the session synchronously.
    """

    def __init__(
        self,
        session: TuningSession | None = None,
        *,
        config: EngineConfig | None = None,
        estimator: SpectralEstimator | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.session = session or TuningSession()
        self.estimator = estimator or SpectralEstimator(SpectralEstimatorConfig())
        self._slot = LatestValue()
        # Reentrant: session listeners may read engine state while notified.
        self._state_lock = threading.RLock()
        # (running, generation) swapped as one tuple so the capture thread can
        # read it without taking the state lock.
        self._capture: tuple[bool, int] = (False, self._slot.generation)
        self._current_hz = 0.0

    @property
    def sample_rate(self) -> int:
        return self.config.sample_rate

    @property
    def fft_size(self) -> int:
        return self.estimator.fft_size

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._capture[0]

    @property
    def current_frequency(self) -> float:
        with self._state_lock:
            return self._current_hz

    def start(self) -> None:
        with self._state_lock:
            if self._capture[0]:
                return
            self._capture = (True, self._slot.generation)
        logger.debug("Tuner engine started (generation %d)", self._capture[1])

    def stop(self) -> None:
        with self._state_lock:
            self._capture = (False, self._slot.invalidate())
            self._current_hz = 0.0
            self.session.reset()
        logger.debug("Tuner engine stopped (generation %d)", self._capture[1])

    def process_frame(self, samples: np.ndarray) -> float | None:
        """Estimate one frame and offer the result to the slot."""
        running, generation = self._capture
        if not running:
            return None

        frame = SampleFrame.from_samples(samples, self.config.sample_rate)
        hz = self.estimator.estimate(frame)
        if hz is None or hz not in self.config.band:
            if self.config.hold_last:
                return None
            self._slot.offer(0.0, generation)
            return None

        self._slot.offer(hz, generation)
        return hz

    def poll(self) -> float | None:
        """Feed the newest estimate, if any, into the session."""
        with self._state_lock:
            if not self._capture[0]:
                return None
            hz = self._slot.take()
            if hz is None:
                return None
            self._current_hz = hz
            # Under the state lock so a concurrent stop() cannot be overtaken.
            self.session.on_frequency(hz)
        return hz
