from __future__ import annotations

import logging
import threading
import uuid

import numpy as np

from string_tuner.engine import EngineConfig, TunerEngine
from string_tuner.instruments import parse_instrument
from string_tuner.session import TuningSession

logger = logging.getLogger(__name__)


class RealtimeSession:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.engine = TunerEngine(TuningSession(), config=EngineConfig())
        self._input_sample_rate = self.engine.sample_rate
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._clock = 0.0

    @property
    def tuning(self) -> TuningSession:
        return self.engine.session

    def init(
        self,
        *,
        sample_rate: int,
        instrument: str,
        reference_hz: float,
        tolerance_cents: float,
    ) -> None:
        self._input_sample_rate = int(sample_rate)
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self.tuning.select_instrument(parse_instrument(instrument))
        self.tuning.set_reference_pitch(reference_hz)
        self.tuning.set_tolerance(tolerance_cents)
        self.engine.start()
        logger.info("Session %s initialized at %d Hz", self.session_id, self._input_sample_rate)

    def set_config(
        self,
        *,
        reference_hz: float | None = None,
        tolerance_cents: float | None = None,
    ) -> dict[str, object]:
        if reference_hz is not None:
            self.tuning.set_reference_pitch(reference_hz)
        if tolerance_cents is not None:
            self.tuning.set_tolerance(tolerance_cents)
        return self._event()

    def select_instrument(self, instrument: str) -> dict[str, object]:
        self.tuning.select_instrument(parse_instrument(instrument))
        return self._event()

    def stop(self) -> dict[str, object]:
        self.engine.stop()
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        return self._event()

    def process_audio_bytes(self, payload: bytes) -> list[dict[str, object]]:
        if not payload or not self.engine.is_running:
            return []

        # float32 PCM; a trailing partial sample is dropped.
        usable = len(payload) - (len(payload) % 4)
        frame = np.frombuffer(payload[:usable], dtype=np.float32)
        if frame.size == 0:
            return []

        if self._input_sample_rate != self.engine.sample_rate:
            frame = self._resample_chunk(frame, self._input_sample_rate, self.engine.sample_rate)
            if frame.size == 0:
                return []

        self._processing_buffer = np.concatenate((self._processing_buffer, frame))
        events: list[dict[str, object]] = []
        block_size = self.engine.fft_size

        while self._processing_buffer.size >= block_size:
            block = self._processing_buffer[:block_size]
            self._processing_buffer = self._processing_buffer[block_size:]
            self._clock += block_size / float(self.engine.sample_rate)
            self.engine.process_frame(block)
            self.engine.poll()
            events.append(self._event())

        return events

    def _event(self) -> dict[str, object]:
        event = self.tuning.snapshot().to_event()
        event["t"] = float(self._clock)
        return event

    def _resample_chunk(self, frame: np.ndarray, in_sr: int, out_sr: int) -> np.ndarray:
        if frame.size == 0 or in_sr <= 0 or out_sr <= 0:
            return np.zeros(0, dtype=np.float32)
        if in_sr == out_sr:
            return frame

        n_out = int(round(frame.size * (float(out_sr) / float(in_sr))))
        if n_out <= 0:
            return np.zeros(0, dtype=np.float32)

        x = np.linspace(0.0, 1.0, num=frame.size, endpoint=False)
        xi = np.linspace(0.0, 1.0, num=n_out, endpoint=False)
        return np.interp(xi, x, frame).astype(np.float32)


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}
        self._lock = threading.Lock()

    def create(self) -> RealtimeSession:
        session_id = uuid.uuid4().hex
        session = RealtimeSession(session_id)
        with self._lock:
            self._sessions[session_id] = session
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.engine.stop()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
