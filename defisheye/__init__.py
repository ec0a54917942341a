"""
Fisheye lens calibration and undistortion.

Calibrates a fisheye camera from chessboard photographs and removes the lens
distortion from images and videos:
- Chessboard corner detection with sub-pixel refinement
- Fisheye (equidistant) calibration solve
- Precomputed undistortion maps
- Image and video undistortion with temporal mixing
"""

from .errors import (
    DefisheyeError,
    InvalidConfiguration,
    PatternNotFound,
    CalibrationInputInsufficient,
    CalibrationDivergence,
    ResolutionMismatch,
    IOFailure,
)
from .configuration import (
    CalibrationConfiguration,
    CameraMatrixPolicy,
    PipelineSettings,
    object_point_grid,
    parse_pattern_size,
)
from .corner_detector import ChessboardCornerDetector, CornerDetection
from .camera_model import CameraModel
from .fisheye_solver import calibrate_fisheye
from .undistortion_map import UndistortionMap, build_undistortion_map
from .image_undistorter import undistort_image, undistort_image_file
from .temporal_filter import TemporalMixFilter
from .video_io import VideoSource, VideoSink
from .video_undistorter import VideoUndistorter
from .calibration import CameraCalibration, FisheyeCameraCalibration
from .batch import UndistortResult, run_candidates

__all__ = [
    # Errors
    'DefisheyeError',
    'InvalidConfiguration',
    'PatternNotFound',
    'CalibrationInputInsufficient',
    'CalibrationDivergence',
    'ResolutionMismatch',
    'IOFailure',
    # Configuration
    'CalibrationConfiguration',
    'CameraMatrixPolicy',
    'PipelineSettings',
    'object_point_grid',
    'parse_pattern_size',
    # Core
    'ChessboardCornerDetector',
    'CornerDetection',
    'CameraModel',
    'calibrate_fisheye',
    'UndistortionMap',
    'build_undistortion_map',
    'undistort_image',
    'undistort_image_file',
    'TemporalMixFilter',
    'VideoSource',
    'VideoSink',
    'VideoUndistorter',
    'CameraCalibration',
    'FisheyeCameraCalibration',
    # Batch
    'UndistortResult',
    'run_candidates',
]
