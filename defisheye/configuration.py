"""
Configuration for a fisheye calibration session.

CalibrationConfiguration is the validated input bundle (calibration images and
chessboard grid size). PipelineSettings holds the tunable knobs of the rest of
the pipeline and can be loaded from an optional JSON file.
"""

import json
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Sequence, Union

import numpy as np

from .errors import InvalidConfiguration, IOFailure


class CameraMatrixPolicy(Enum):
    """How the intrinsic matrix of the undistorted output is chosen."""
    ESTIMATE = "estimate"  # Re-estimate a balanced matrix for the output field of view
    REUSE = "reuse"  # Use the calibrated intrinsic matrix as is


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _is_positive_int(value) -> bool:
    return _is_int(value) and value > 0


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


@dataclass(frozen=True)
class CalibrationConfiguration:
    """
    Validated calibration inputs.

    Args:
        images: Paths of the calibration photographs, in processing order.
        chessboard_width: Inner corners per chessboard row.
        chessboard_height: Inner corners per chessboard column.

    Raises:
        InvalidConfiguration: If the image collection is empty, holds a None
            entry, or a chessboard dimension is not a positive integer.
    """
    images: Tuple[Path, ...]
    chessboard_width: int
    chessboard_height: int

    def __post_init__(self):
        if self.images is None:
            raise InvalidConfiguration("Calibration images must not be None")
        if isinstance(self.images, (str, Path)):
            raise InvalidConfiguration("Calibration images must be a collection of paths")
        images = tuple(self.images)
        if not images:
            raise InvalidConfiguration("Calibration image set is empty")
        if any(image is None for image in images):
            raise InvalidConfiguration("Calibration image set contains a missing entry")
        if not _is_positive_int(self.chessboard_width):
            raise InvalidConfiguration(
                f"Chessboard width must be a positive integer, got {self.chessboard_width!r}")
        if not _is_positive_int(self.chessboard_height):
            raise InvalidConfiguration(
                f"Chessboard height must be a positive integer, got {self.chessboard_height!r}")
        object.__setattr__(self, 'images', tuple(Path(image) for image in images))

    @property
    def pattern_size(self) -> Tuple[int, int]:
        """Chessboard size as OpenCV expects it: (columns, rows)."""
        return (int(self.chessboard_width), int(self.chessboard_height))

    @property
    def corner_count(self) -> int:
        return int(self.chessboard_width) * int(self.chessboard_height)

    def object_point_grid(self) -> np.ndarray:
        """
        Canonical 3D chessboard points on the z=0 plane.

        Point i is (i mod width, i div width, 0), matching the raster order of
        detected corners.

        Returns:
            (width*height, 3) float64 array.
        """
        return object_point_grid(self.chessboard_width, self.chessboard_height)


def object_point_grid(width: int, height: int) -> np.ndarray:
    """Row-major (width*height, 3) grid of chessboard points in square units."""
    grid = np.zeros((width * height, 3), dtype=np.float64)
    grid[:, :2] = np.mgrid[0:width, 0:height].T.reshape(-1, 2)
    return grid


@dataclass
class PipelineSettings:
    """
    Tunable settings for calibration, map building and video output.

    Defaults: a 6x9 board, a re-estimated camera matrix with balance 0, and
    video output at 5 FPS mixing 3 frames and keeping every 6th.
    """
    # Chessboard inner corners
    chessboard_width: int = 6
    chessboard_height: int = 9

    # Corner detection fan-out (1 = sequential)
    detection_workers: int = 1

    # Undistortion map
    camera_matrix_policy: CameraMatrixPolicy = CameraMatrixPolicy.ESTIMATE
    balance: float = 0.0  # 0 = crop invalid pixels, 1 = keep the whole source
    fov_scale: float = 1.0
    border_value: Tuple[int, int, int] = (0, 0, 0)

    # Video output
    video_fps: float = 5.0
    video_quality: int = 10  # imageio-ffmpeg scale, 0 (worst) to 10 (best)
    mix_frames: int = 3
    frame_step: int = 6

    def __post_init__(self):
        if isinstance(self.camera_matrix_policy, str):
            try:
                self.camera_matrix_policy = CameraMatrixPolicy(self.camera_matrix_policy)
            except ValueError:
                raise InvalidConfiguration(
                    f"Unknown camera matrix policy: {self.camera_matrix_policy!r}") from None
        if not isinstance(self.camera_matrix_policy, CameraMatrixPolicy):
            raise InvalidConfiguration(
                f"Unknown camera matrix policy: {self.camera_matrix_policy!r}")
        for name in ('balance', 'fov_scale', 'video_fps'):
            if not _is_number(getattr(self, name)):
                raise InvalidConfiguration(f"{name} must be a number, got {getattr(self, name)!r}")
        if not _is_int(self.video_quality):
            raise InvalidConfiguration(f"video_quality must be an integer, got {self.video_quality!r}")
        if (isinstance(self.border_value, (str, bytes)) or not hasattr(self.border_value, '__len__')
                or len(self.border_value) != 3 or not all(_is_int(c) for c in self.border_value)):
            raise InvalidConfiguration(f"border_value must be three integers, got {self.border_value!r}")
        self.border_value = tuple(int(c) for c in self.border_value)
        if not 0.0 <= self.balance <= 1.0:
            raise InvalidConfiguration(f"Balance must be within [0, 1], got {self.balance}")
        if self.fov_scale <= 0:
            raise InvalidConfiguration(f"FOV scale must be positive, got {self.fov_scale}")
        if self.video_fps <= 0:
            raise InvalidConfiguration(f"Video frame rate must be positive, got {self.video_fps}")
        if not 0 <= self.video_quality <= 10:
            raise InvalidConfiguration(f"Video quality must be within [0, 10], got {self.video_quality}")
        for name in ('detection_workers', 'mix_frames', 'frame_step'):
            if not _is_positive_int(getattr(self, name)):
                raise InvalidConfiguration(f"{name} must be a positive integer")

    def configuration_for(self, images: Sequence[Union[str, Path]]) -> CalibrationConfiguration:
        """Bundle calibration images with the configured chessboard size."""
        return CalibrationConfiguration(tuple(images), self.chessboard_width, self.chessboard_height)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data['camera_matrix_policy'] = self.camera_matrix_policy.value
        data['border_value'] = list(self.border_value)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'PipelineSettings':
        """Create from dictionary. Missing keys keep their defaults."""
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfiguration(f"Unknown settings: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> 'PipelineSettings':
        """
        Load settings from a JSON file.

        Args:
            path: Settings file. None or a missing file yields the defaults.

        Raises:
            InvalidConfiguration: If the file is not valid JSON or holds bad values.
        """
        if path is None:
            return cls()
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            print(f"[Settings] No settings file found at {path}, using defaults")
            return cls()
        except json.JSONDecodeError as e:
            raise InvalidConfiguration(f"Settings file {path} is not valid JSON: {e}", path) from e
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"Settings file {path} must hold a JSON object", path)
        settings = cls.from_dict(data)
        print(f"[Settings] Loaded from {path}")
        return settings

    def save(self, path: Union[str, Path]):
        """Write settings to a JSON file."""
        try:
            with open(path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise IOFailure(f"Failed to save settings to {path}: {e}", path) from e
        print(f"[Settings] Saved to {path}")


def parse_pattern_size(value: str) -> Tuple[int, int]:
    """
    Parse a 'COLSxROWS' chessboard size such as '6x9'.

    Raises:
        InvalidConfiguration: If the value is malformed or not positive.
    """
    try:
        cols, rows = (int(v) for v in str(value).lower().split('x'))
    except ValueError:
        raise InvalidConfiguration(f"Chessboard size must look like 6x9, got {value!r}") from None
    if cols <= 0 or rows <= 0:
        raise InvalidConfiguration(f"Chessboard size must be positive, got {value!r}")
    return cols, rows
