"""
Fisheye calibration solve.

Fits one intrinsic matrix and 4 distortion coefficients jointly over all
accepted views with OpenCV's Levenberg-Marquardt fisheye calibration.
"""

from typing import Sequence, Tuple

import numpy as np
import cv2

from .camera_model import CameraModel
from .errors import CalibrationInputInsufficient, CalibrationDivergence, InvalidConfiguration


# Recompute extrinsics each step, fail on ill-conditioned views, keep skew at zero
CALIBRATION_FLAGS = (
    cv2.fisheye.CALIB_RECOMPUTE_EXTRINSIC +
    cv2.fisheye.CALIB_CHECK_COND +
    cv2.fisheye.CALIB_FIX_SKEW
)

CALIBRATION_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 1e-6)


def calibrate_fisheye(corner_sets: Sequence[np.ndarray], object_grids: Sequence[np.ndarray],
                      image_size: Tuple[int, int]) -> CameraModel:
    """
    Calibrate a fisheye camera from chessboard correspondences.

    Args:
        corner_sets: Per-view (N, 2) detected corners.
        object_grids: Per-view (N, 3) chessboard points, same order as corner_sets.
        image_size: (width, height) shared by every view.

    Returns:
        CameraModel with the fitted intrinsics and distortion.

    Raises:
        CalibrationInputInsufficient: If there are no views.
        InvalidConfiguration: If views and grids do not correspond 1:1.
        CalibrationDivergence: If the solve fails or a view is degenerate.
    """
    if len(corner_sets) == 0:
        raise CalibrationInputInsufficient("No chessboard views to calibrate from")
    if len(object_grids) != len(corner_sets):
        raise InvalidConfiguration(
            f"Got {len(corner_sets)} corner sets but {len(object_grids)} object grids")

    # cv2.fisheye wants (1, N, 3) / (1, N, 2) float64 per view
    object_points = []
    image_points = []
    for i, (corners, grid) in enumerate(zip(corner_sets, object_grids)):
        corners = np.asarray(corners, dtype=np.float64).reshape(1, -1, 2)
        grid = np.asarray(grid, dtype=np.float64).reshape(1, -1, 3)
        if corners.shape[1] != grid.shape[1]:
            raise InvalidConfiguration(
                f"View {i} has {corners.shape[1]} corners but {grid.shape[1]} object points")
        image_points.append(corners)
        object_points.append(grid)

    image_size = (int(image_size[0]), int(image_size[1]))
    K = np.zeros((3, 3), dtype=np.float64)
    D = np.zeros((4, 1), dtype=np.float64)

    print(f"[Solver] Calibrating from {len(image_points)} views at {image_size[0]}x{image_size[1]}...")

    try:
        rms, K, D, rvecs, tvecs = cv2.fisheye.calibrate(
            object_points,
            image_points,
            image_size,
            K, D,
            flags=CALIBRATION_FLAGS,
            criteria=CALIBRATION_CRITERIA
        )
    except cv2.error as e:
        raise CalibrationDivergence(f"Fisheye calibration failed: {e}") from e

    if not (np.all(np.isfinite(K)) and np.all(np.isfinite(D)) and np.isfinite(rms)):
        raise CalibrationDivergence("Fisheye calibration produced non-finite parameters")

    view_errors = []
    for grid, corners, rvec, tvec in zip(object_points, image_points, rvecs, tvecs):
        projected, _ = cv2.fisheye.projectPoints(grid, rvec, tvec, K, D)
        residual = projected.reshape(-1, 2) - corners.reshape(-1, 2)
        view_errors.append(float(np.sqrt(np.mean(np.sum(residual ** 2, axis=1)))))

    model = CameraModel(K, D, image_size, float(rms), view_errors)
    print(f"[Solver] Calibration complete! RMS reprojection error: {model.rms_error:.4f} pixels")
    return model
