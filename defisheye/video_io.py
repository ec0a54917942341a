"""
Video decode/encode.

VideoSource reads frames with OpenCV. VideoSink encodes with the ffmpeg binary
shipped by imageio-ffmpeg, which lets us set frame rate and quality directly.
Both are context managers so the native resources are released on every exit
path.
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np
import cv2
import imageio_ffmpeg

from .errors import IOFailure


class VideoSource:
    """
    Frame-sequential video decoder.

    Usage:
        with VideoSource('input.mp4') as source:
            frame = source.read()
            while frame is not None:
                ...
                frame = source.read()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.cap: Optional[cv2.VideoCapture] = None
        self._frame_count = 0

    def open(self) -> 'VideoSource':
        """
        Raises:
            IOFailure: If the file is missing or no decoder accepts it.
        """
        if not self.path.is_file():
            raise IOFailure(f"Video not found: {self.path}", self.path)
        self.cap = cv2.VideoCapture(str(self.path))
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise IOFailure(f"Failed to open video: {self.path}", self.path)
        return self

    def read(self) -> Optional[np.ndarray]:
        """Next decoded BGR frame, or None at end of stream."""
        if self.cap is None:
            raise IOFailure(f"Video source is not open: {self.path}", self.path)
        ret, frame = self.cap.read()
        if not ret or frame is None:
            return None
        self._frame_count += 1
        return frame

    @property
    def width(self) -> int:
        return int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)) if self.cap is not None else 0

    @property
    def height(self) -> int:
        return int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)) if self.cap is not None else 0

    @property
    def fps(self) -> float:
        return float(self.cap.get(cv2.CAP_PROP_FPS)) if self.cap is not None else 0.0

    @property
    def frames_read(self) -> int:
        return self._frame_count

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self) -> 'VideoSource':
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class VideoSink:
    """
    Video encoder for BGR frames of a fixed size.

    Args:
        path: Destination file; the container follows the extension.
        width, height: Frame size in pixels.
        fps: Output frame rate.
        quality: 0 (lowest) to 10 (highest), variable bit rate.
        codec: ffmpeg codec name, or None for the container default.
    """

    def __init__(self, path: Union[str, Path], width: int, height: int,
                 fps: float = 5.0, quality: int = 10, codec: Optional[str] = None):
        self.path = Path(path)
        self.width = int(width)
        self.height = int(height)
        self.fps = fps
        self.quality = quality
        self.codec = codec

        self._writer = None
        self._frames_written = 0

    def open(self) -> 'VideoSink':
        """
        Start the encoder process.

        Raises:
            IOFailure: If ffmpeg cannot be started.
        """
        try:
            self._writer = imageio_ffmpeg.write_frames(
                str(self.path),
                (self.width, self.height),
                pix_fmt_in="bgr24",
                fps=self.fps,
                quality=self.quality,
                codec=self.codec,
                macro_block_size=2,  # yuv420p needs even dimensions
            )
            self._writer.send(None)  # Seed the generator
        except (OSError, RuntimeError) as e:
            self._writer = None
            raise IOFailure(f"Failed to start encoder for {self.path}: {e}", self.path) from e
        return self

    def write(self, frame: np.ndarray):
        """
        Encode one frame.

        Raises:
            ValueError: If the frame is not (height, width, 3) uint8.
            IOFailure: If the encoder rejected the frame.
        """
        if self._writer is None:
            raise IOFailure(f"Video sink is not open: {self.path}", self.path)
        if frame.shape != (self.height, self.width, 3) or frame.dtype != np.uint8:
            raise ValueError(
                f"Expected ({self.height}, {self.width}, 3) uint8 frame, got {frame.shape} {frame.dtype}")
        try:
            self._writer.send(np.ascontiguousarray(frame))
        except (OSError, RuntimeError) as e:
            raise IOFailure(f"Failed to encode frame into {self.path}: {e}", self.path) from e
        self._frames_written += 1

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def close(self):
        """
        Flush and finalize the output file.

        Raises:
            IOFailure: If ffmpeg failed while finalizing.
        """
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        try:
            writer.close()
        except (OSError, RuntimeError) as e:
            raise IOFailure(f"Failed to finalize {self.path}: {e}", self.path) from e

    def __enter__(self) -> 'VideoSink':
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
            return False
        # The in-flight error wins; the caller discards the output
        try:
            self.close()
        except IOFailure as e:
            print(f"[Video] Encoder shutdown also failed: {e}")
        return False
