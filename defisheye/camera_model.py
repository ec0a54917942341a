"""
Camera model produced by fisheye calibration.
"""

from dataclasses import dataclass, field
from typing import Tuple, List

import numpy as np


@dataclass(frozen=True, eq=False)
class CameraModel:
    """
    Fisheye (equidistant) camera model.

    intrinsic_matrix is the 3x3 K with skew fixed to zero;
    distortion_coefficients are the 4 Kannala-Brandt terms k1..k4.
    """
    intrinsic_matrix: np.ndarray
    distortion_coefficients: np.ndarray
    image_size: Tuple[int, int]  # (width, height)
    rms_error: float = 0.0
    view_errors: List[float] = field(default_factory=list)

    def __post_init__(self):
        K = np.array(self.intrinsic_matrix, dtype=np.float64).reshape(3, 3)
        D = np.array(self.distortion_coefficients, dtype=np.float64).reshape(4, 1)
        object.__setattr__(self, 'intrinsic_matrix', K)
        object.__setattr__(self, 'distortion_coefficients', D)
        object.__setattr__(self, 'image_size', (int(self.image_size[0]), int(self.image_size[1])))
        object.__setattr__(self, 'view_errors', [float(e) for e in self.view_errors])

    @property
    def fx(self) -> float:
        return float(self.intrinsic_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.intrinsic_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.intrinsic_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.intrinsic_matrix[1, 2])

    def to_dict(self) -> dict:
        """Convert to dictionary for reporting."""
        return {
            'image_size': list(self.image_size),
            'camera_matrix': self.intrinsic_matrix.tolist(),
            'dist_coeffs': self.distortion_coefficients.flatten().tolist(),
            'rms_error': self.rms_error,
            'view_errors': list(self.view_errors),
        }

    def __repr__(self):
        return (f"CameraModel(image_size={self.image_size}, fx={self.fx:.2f}, fy={self.fy:.2f}, "
                f"cx={self.cx:.2f}, cy={self.cy:.2f}, rms={self.rms_error:.4f})")
