from __future__ import annotations

import logging
import threading
from typing import Callable
from dataclasses import dataclass

import numpy as np
import sounddevice as sd

logger = logging.getLogger(__name__)

FrameTap = Callable[[np.ndarray], None]


@dataclass(frozen=True)
class AudioInputConfig:
    sample_rate: int = 44100
    channels: int = 1
    # One block is one analysis frame (~93 ms at 44.1 kHz).
    block_size: int = 4096


class AudioInput:
    """
    Microphone capture feeding mono float32 frames to a tap.

    The tap runs on the sounddevice callback thread, so it must return
    within one block period. Blocks flagged with an over/underflow status
    are counted and skipped rather than analysed.
    """

    def __init__(self, config: AudioInputConfig | None = None) -> None:
        self._cfg = config or AudioInputConfig()
        self._lock = threading.Lock()
        self._stream: sd.InputStream | None = None
        self._tap: FrameTap | None = None
        self._dropped = 0

    @property
    def sample_rate(self) -> int:
        return self._cfg.sample_rate

    @property
    def block_size(self) -> int:
        return self._cfg.block_size

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    @property
    def dropped_blocks(self) -> int:
        with self._lock:
            return self._dropped

    def set_tap(self, tap: FrameTap | None) -> None:
        with self._lock:
            self._tap = tap

    def start(self) -> None:
        if self._stream is not None:
            return
        with self._lock:
            self._dropped = 0
        stream = sd.InputStream(
            samplerate=self._cfg.sample_rate,
            channels=self._cfg.channels,
            blocksize=self._cfg.block_size,
            dtype="float32",
            callback=self._on_block,
        )
        stream.start()
        self._stream = stream
        logger.info("Audio input started (%d Hz, block %d)", self._cfg.sample_rate, self._cfg.block_size)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        finally:
            logger.info("Audio input stopped (%d dropped blocks)", self.dropped_blocks)

    def _on_block(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        if status:
            with self._lock:
                self._dropped += 1
            logger.warning("Dropped input block: %s", status)
            return
        # First channel only; the buffer is reused by sounddevice after return.
        mono = np.array(indata[:, 0], dtype=np.float32)
        with self._lock:
            tap = self._tap
        if tap is not None:
            tap(mono)
