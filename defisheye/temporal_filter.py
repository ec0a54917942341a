"""
Temporal mixing filter for video frames.

Blends each frame with the frames before it and keeps only every N-th blend,
which both smooths and slows down the frame rate of a sequence. Frames must be
pushed one at a time in source order: the filter keeps a rolling window.
"""

from collections import deque
from typing import Optional, Iterator

import numpy as np


class TemporalMixFilter:
    """
    Equal-weight mix of the last `mix_frames` frames, keeping every
    `frame_step`-th mixed output.

    While the window is filling, the mix uses the frames seen so far. The
    k-th kept output is the mix ending at source frame k * frame_step, so N
    pushed frames produce N // frame_step outputs.

    Usage:
        with TemporalMixFilter(3, 6) as mixer:
            for frame in frames:
                mixer.push(frame)
                for mixed in mixer.drain():
                    sink.write(mixed)
    """

    def __init__(self, mix_frames: int = 3, frame_step: int = 6):
        if mix_frames < 1 or frame_step < 1:
            raise ValueError("mix_frames and frame_step must be at least 1")
        self.mix_frames = mix_frames
        self.frame_step = frame_step

        # Allocated on the first frame, reused for the whole stream
        self._window: Optional[np.ndarray] = None
        self._sum: Optional[np.ndarray] = None
        self._filled = 0

        self._pending: deque = deque()
        self._frames_in = 0
        self._frames_out = 0
        self._closed = False

    def push(self, frame: np.ndarray):
        """
        Feed the next source frame.

        Raises:
            ValueError: If the filter is closed or the frame shape/dtype changed.
        """
        if self._closed:
            raise ValueError("Cannot push into a closed filter")

        if self._window is None:
            self._window = np.empty((self.mix_frames,) + frame.shape, dtype=frame.dtype)
            self._sum = np.zeros(frame.shape, dtype=np.uint64 if frame.dtype.kind == 'u' else np.float64)
        elif frame.shape != self._window.shape[1:] or frame.dtype != self._window.dtype:
            raise ValueError(
                f"Frame {frame.shape}/{frame.dtype} does not match stream "
                f"{self._window.shape[1:]}/{self._window.dtype}")

        slot = self._frames_in % self.mix_frames
        if self._filled == self.mix_frames:
            self._sum -= self._window[slot]
        else:
            self._filled += 1
        self._window[slot] = frame
        self._sum += frame
        self._frames_in += 1

        if self._frames_in % self.frame_step == 0:
            self._pending.append(self._mix())

    def _mix(self) -> np.ndarray:
        if self._sum.dtype.kind == 'u':
            mixed = (self._sum + self._filled // 2) // self._filled
        else:
            mixed = self._sum / self._filled
        return mixed.astype(self._window.dtype)

    def pull(self) -> Optional[np.ndarray]:
        """Next filtered frame, or None when nothing is ready."""
        if not self._pending:
            return None
        self._frames_out += 1
        return self._pending.popleft()

    def drain(self) -> Iterator[np.ndarray]:
        """Pull every filtered frame produced so far, in order."""
        while True:
            frame = self.pull()
            if frame is None:
                return
            yield frame

    def close(self):
        """Drop buffered frames and release the window."""
        self._pending.clear()
        self._window = None
        self._sum = None
        self._closed = True

    @property
    def frames_in(self) -> int:
        return self._frames_in

    @property
    def frames_out(self) -> int:
        return self._frames_out

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'TemporalMixFilter':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
