"""
Video undistortion pipeline.

decode -> undistort -> temporal mix -> encode, one frame at a time in source
order.
"""

import time
from contextlib import ExitStack
from pathlib import Path
from typing import Callable, Tuple, Union

import numpy as np

from .errors import IOFailure
from .image_undistorter import undistort_image
from .temporal_filter import TemporalMixFilter
from .undistortion_map import UndistortionMap
from .video_io import VideoSource, VideoSink


class VideoUndistorter:
    """
    Applies an undistortion map to every frame of a video.

    Stages:
        OPEN   - open the decoder, read the first frame to learn the size,
                 check it against the map, start the encoder and the filter
        DECODE - undistort each frame, push it through the temporal filter
                 and hand every filter output to the encoder
        CLOSE  - release filter, encoder and decoder, also on errors

    The filter holds a rolling window across frames, so frames are never
    reordered or processed in parallel.
    """

    def __init__(
        self,
        undistortion_map: UndistortionMap,
        fps: float = 5.0,
        quality: int = 10,
        mix_frames: int = 3,
        frame_step: int = 6,
        border_value: Tuple[int, int, int] = (0, 0, 0),
        source_factory: Callable[..., VideoSource] = VideoSource,
        sink_factory: Callable[..., VideoSink] = VideoSink,
    ):
        """
        Args:
            undistortion_map: Shared read-only map.
            fps: Output frame rate.
            quality: Encoder quality, 0-10.
            mix_frames: Frames blended per output.
            frame_step: Keep one blended frame out of this many.
            border_value: Fill colour outside the source field of view.
            source_factory: Callable(path) returning a VideoSource-like context manager.
            sink_factory: Callable(path, width, height, fps, quality) returning a
                VideoSink-like context manager.
        """
        self.undistortion_map = undistortion_map
        self.fps = fps
        self.quality = quality
        self.mix_frames = mix_frames
        self.frame_step = frame_step
        self.border_value = border_value
        self.source_factory = source_factory
        self.sink_factory = sink_factory

    def run(self, source: Union[str, Path], destination: Union[str, Path]) -> int:
        """
        Undistort a whole video.

        Args:
            source: Input video path.
            destination: Output video path.

        Returns:
            Number of frames written.

        Raises:
            IOFailure: If the video cannot be decoded or encoded.
            ResolutionMismatch: If the frames do not match the map. Raised
                before the encoder is started.
        """
        start = time.time()

        with ExitStack() as stack:
            # OPEN
            decoder = stack.enter_context(self.source_factory(source))
            frame = decoder.read()
            if frame is None:
                raise IOFailure(f"No decodable frames in video: {source}", source)

            height, width = frame.shape[:2]
            self.undistortion_map.check_size(width, height, source)

            encoder = stack.enter_context(
                self.sink_factory(destination, width, height, self.fps, self.quality))
            mixer = stack.enter_context(TemporalMixFilter(self.mix_frames, self.frame_step))

            # One remap buffer per video; the filter copies it into its window
            undistorted = np.empty_like(frame)

            # DECODE
            while frame is not None:
                undistort_image(frame, self.undistortion_map, self.border_value, out=undistorted)
                mixer.push(undistorted)
                for mixed in mixer.drain():
                    encoder.write(mixed)
                frame = decoder.read()

            frames_in = mixer.frames_in
            frames_out = mixer.frames_out
            # CLOSE happens as the stack unwinds: filter, encoder, decoder

        elapsed = time.time() - start
        print(f"[Video] {source}: {frames_in} frames in, {frames_out} frames out ({elapsed:.1f}s)")
        return frames_out
