"""
Fisheye calibration session.

Runs the whole calibration once (corner detection, fisheye solve, map
construction) and then serves undistortion requests for images and videos
against the resulting read-only map.
"""

import time
from pathlib import Path
from typing import Optional, Tuple, List, Protocol, Union

from .camera_model import CameraModel
from .configuration import CalibrationConfiguration, PipelineSettings
from .corner_detector import ChessboardCornerDetector
from .errors import DefisheyeError, ResolutionMismatch, CalibrationInputInsufficient
from .file_helper import remove_partial_output
from .fisheye_solver import calibrate_fisheye
from .image_io import read_image, image_size
from .image_undistorter import undistort_image_file
from .undistortion_map import UndistortionMap, build_undistortion_map
from .video_undistorter import VideoUndistorter


PathLike = Union[str, Path]


class CameraCalibration(Protocol):
    """Capability to undistort images and videos shot with a calibrated camera."""

    def undistort_image(self, source: PathLike, destination: PathLike):
        ...

    def undistort_video(self, source: PathLike, destination: PathLike):
        ...


class FisheyeCameraCalibration:
    """
    Fisheye camera calibrated from chessboard photographs.

    Construction runs the full calibration; the camera model and the
    undistortion map are fixed afterwards and shared by every call.

    Usage:
        config = CalibrationConfiguration(images, 6, 9)
        calibration = FisheyeCameraCalibration(config)
        calibration.undistort_image('in.jpg', 'out.jpg')
        calibration.undistort_video('in.mp4', 'out.mp4')
    """

    def __init__(self, configuration: CalibrationConfiguration,
                 settings: Optional[PipelineSettings] = None):
        """
        Args:
            configuration: Calibration images and chessboard size.
            settings: Map and video settings. Defaults if not provided.

        Raises:
            ResolutionMismatch: If calibration images differ in size.
            CalibrationInputInsufficient: If no image yields a chessboard.
            CalibrationDivergence: If the fisheye solve fails.
        """
        self.configuration = configuration
        self.settings = settings or PipelineSettings()

        self.used_images: List[Path] = []
        self.skipped_images: List[Path] = []

        start = time.time()
        self.camera_model = self._calibrate()
        self.undistortion_map = self._build_map()
        self._video = self._make_video_undistorter()
        print(f"[Calibration] Ready in {time.time() - start:.1f}s")

    @classmethod
    def from_camera_model(cls, camera_model: CameraModel,
                          settings: Optional[PipelineSettings] = None,
                          output_size: Optional[Tuple[int, int]] = None) -> 'FisheyeCameraCalibration':
        """
        Build a session from an already known camera model, skipping detection.

        Args:
            camera_model: Calibrated model.
            settings: Map and video settings.
            output_size: Output resolution. Defaults to the calibration size.
        """
        session = cls.__new__(cls)
        session.configuration = None
        session.settings = settings or PipelineSettings()
        session.used_images = []
        session.skipped_images = []
        session.camera_model = camera_model
        session.undistortion_map = session._build_map(output_size)
        session._video = session._make_video_undistorter()
        return session

    def _load_calibration_images(self):
        """Decode calibration images; unreadable ones are reported and skipped."""
        images = []
        sources = []
        for path in self.configuration.images:
            try:
                image = read_image(path)
            except DefisheyeError as e:
                print(f"[Calibration] Skipping {path}: {e}")
                self.skipped_images.append(path)
                continue
            images.append(image)
            sources.append(path)
        return images, sources

    def _calibrate(self) -> CameraModel:
        images, sources = self._load_calibration_images()
        if not images:
            raise CalibrationInputInsufficient("None of the calibration images could be read")

        reference_size = image_size(images[0])
        for image, path in zip(images, sources):
            if image_size(image) != reference_size:
                raise ResolutionMismatch(
                    f"Calibration image {path} is {image_size(image)[0]}x{image_size(image)[1]}, "
                    f"expected {reference_size[0]}x{reference_size[1]}",
                    path, expected=reference_size, actual=image_size(image))

        detector = ChessboardCornerDetector(self.configuration.pattern_size)
        detections = detector.detect_all(images, sources, workers=self.settings.detection_workers)

        # Release decoded images before the solve
        del images

        grid = self.configuration.object_point_grid()
        corner_sets = []
        for detection in detections:
            if detection.found:
                corner_sets.append(detection.corners)
                self.used_images.append(detection.source)
            else:
                print(f"[Calibration] Chessboard not found in image: {detection.source}")
                self.skipped_images.append(detection.source)

        print(f"[Calibration] Using {len(corner_sets)}/{len(self.configuration.images)} images")
        if not corner_sets:
            raise CalibrationInputInsufficient(
                f"No {self.configuration.chessboard_width}x{self.configuration.chessboard_height} "
                f"chessboard found in any calibration image")

        return calibrate_fisheye(corner_sets, [grid] * len(corner_sets), reference_size)

    def _build_map(self, output_size: Optional[Tuple[int, int]] = None) -> UndistortionMap:
        return build_undistortion_map(
            self.camera_model,
            output_size,
            policy=self.settings.camera_matrix_policy,
            balance=self.settings.balance,
            fov_scale=self.settings.fov_scale,
        )

    def _make_video_undistorter(self) -> VideoUndistorter:
        return VideoUndistorter(
            self.undistortion_map,
            fps=self.settings.video_fps,
            quality=self.settings.video_quality,
            mix_frames=self.settings.mix_frames,
            frame_step=self.settings.frame_step,
            border_value=self.settings.border_value,
        )

    def undistort_image(self, source: PathLike, destination: PathLike):
        """
        Undistort an image file into destination.

        Raises:
            ResolutionMismatch: If the image is not at the calibration resolution.
            IOFailure: If reading or writing fails.
        """
        undistort_image_file(source, destination, self.undistortion_map, self.settings.border_value)

    def undistort_video(self, source: PathLike, destination: PathLike):
        """
        Undistort, temporally mix and downsample a video file into destination.

        A failed video leaves no output file behind.

        Raises:
            ResolutionMismatch: If the frames are not at the calibration resolution.
            IOFailure: If decoding or encoding fails.
        """
        try:
            self._video.run(source, destination)
        except Exception:
            remove_partial_output(destination)
            raise
