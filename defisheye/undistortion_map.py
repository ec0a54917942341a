"""
Undistortion map construction.

The map is a pair of fixed-point lookup tables (OpenCV CV_16SC2 layout) that
send every output pixel to a source sampling position. It is built once per
calibration session and only read afterwards.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import cv2

from .camera_model import CameraModel
from .configuration import CameraMatrixPolicy
from .errors import ResolutionMismatch


@dataclass(frozen=True, eq=False)
class UndistortionMap:
    """
    Precomputed remap tables for one output resolution.

    map1 holds integer source coordinates (h, w, 2) int16, map2 the packed
    fractional parts (h, w) uint16, as produced by initUndistortRectifyMap
    with CV_16SC2.
    """
    map1: np.ndarray
    map2: np.ndarray
    new_camera_matrix: np.ndarray
    image_size: Tuple[int, int]  # (width, height)

    @property
    def width(self) -> int:
        return self.image_size[0]

    @property
    def height(self) -> int:
        return self.image_size[1]

    def check_size(self, width: int, height: int, source: Optional[object] = None):
        """
        Raises:
            ResolutionMismatch: If (width, height) differs from the map size.
        """
        if (int(width), int(height)) != self.image_size:
            raise ResolutionMismatch(
                f"Expected {self.width}x{self.height}, got {width}x{height}: {source}",
                source, expected=self.image_size, actual=(int(width), int(height)))

    @classmethod
    def identity(cls, width: int, height: int) -> 'UndistortionMap':
        """Map that samples every output pixel at the same source pixel."""
        xs, ys = np.meshgrid(np.arange(width, dtype=np.float32),
                             np.arange(height, dtype=np.float32))
        map1, map2 = cv2.convertMaps(xs, ys, cv2.CV_16SC2)
        return cls(map1, map2, np.eye(3, dtype=np.float64), (int(width), int(height)))


def scale_intrinsic_matrix(model: CameraModel, image_size: Tuple[int, int]) -> np.ndarray:
    """
    Rescale the calibrated K to another resolution with the same aspect ratio.

    Raises:
        ResolutionMismatch: If the aspect ratio differs from the calibration images.
    """
    width, height = image_size
    calib_width, calib_height = model.image_size
    if (width, height) == (calib_width, calib_height):
        return model.intrinsic_matrix.copy()
    if width * calib_height != height * calib_width:
        raise ResolutionMismatch(
            f"Cannot rescale {calib_width}x{calib_height} calibration to {width}x{height}",
            expected=model.image_size, actual=(width, height))
    scaled_K = model.intrinsic_matrix * width / calib_width
    scaled_K[2][2] = 1.0
    return scaled_K


def build_undistortion_map(model: CameraModel, image_size: Optional[Tuple[int, int]] = None,
                           policy: CameraMatrixPolicy = CameraMatrixPolicy.ESTIMATE,
                           balance: float = 0.0, fov_scale: float = 1.0) -> UndistortionMap:
    """
    Compute the undistortion map for a camera model.

    No stereo rectification is applied (identity rotation).

    Args:
        model: Calibrated fisheye camera model.
        image_size: Output (width, height). Defaults to the calibration size.
        policy: ESTIMATE re-balances the output intrinsics to limit black
            borders; REUSE keeps the calibrated intrinsic matrix.
        balance: ESTIMATE only. 0 keeps only valid pixels, 1 keeps the whole source.
        fov_scale: ESTIMATE only. Divisor applied to the new focal length.

    Returns:
        UndistortionMap, identical for identical inputs.
    """
    if image_size is None:
        image_size = model.image_size
    image_size = (int(image_size[0]), int(image_size[1]))

    K = scale_intrinsic_matrix(model, image_size)
    D = model.distortion_coefficients
    R = np.eye(3, dtype=np.float64)

    if policy == CameraMatrixPolicy.ESTIMATE:
        new_K = cv2.fisheye.estimateNewCameraMatrixForUndistortRectify(
            K, D, image_size, R, balance=balance, fov_scale=fov_scale
        )
    elif policy == CameraMatrixPolicy.REUSE:
        new_K = K.copy()
    else:
        raise ValueError(f"Unknown camera matrix policy: {policy}")

    map1, map2 = cv2.fisheye.initUndistortRectifyMap(K, D, R, new_K, image_size, cv2.CV_16SC2)

    print(f"[Undistort] Maps computed for {image_size[0]}x{image_size[1]} ({policy.value} camera matrix)")
    return UndistortionMap(map1, map2, np.asarray(new_K, dtype=np.float64), image_size)
