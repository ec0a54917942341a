"""
Chessboard corner detection with sub-pixel refinement.

Each calibration image yields either one complete corner set or nothing.
A missing pattern is an ordinary outcome, reported through CornerDetection
rather than an exception.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple, List, Sequence

import numpy as np
import cv2

from .errors import PatternNotFound


# Detector hints: adaptive threshold, quick reject of board-free images,
# histogram normalization before thresholding
CHESSBOARD_FLAGS = (
    cv2.CALIB_CB_ADAPTIVE_THRESH +
    cv2.CALIB_CB_FAST_CHECK +
    cv2.CALIB_CB_NORMALIZE_IMAGE
)

SUBPIX_WINDOW = (3, 3)
SUBPIX_ZERO_ZONE = (-1, -1)
SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.1)


@dataclass(frozen=True, eq=False)
class CornerDetection:
    """Outcome of corner detection for one image."""
    corners: Optional[np.ndarray] = None  # (width*height, 2) float32, raster order
    source: Optional[object] = None

    @property
    def found(self) -> bool:
        return self.corners is not None

    def require(self) -> np.ndarray:
        """
        Return the corners, or raise if the pattern was not found.

        Raises:
            PatternNotFound: If detection failed.
        """
        if self.corners is None:
            raise PatternNotFound(f"Chessboard not found in image: {self.source}", self.source)
        return self.corners


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR or BGRA image to grayscale. Single-channel input is returned as is."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.shape[2] == 1:
        return image[:, :, 0]
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def _normalize_order(corners: np.ndarray) -> np.ndarray:
    """
    Make every corner set start from the top-left corner.

    OpenCV may start enumerating from the opposite end of the board. Reversing
    the sequence is a 180 degree relabelling of the grid, which keeps the
    correspondence with the object point grid valid.
    """
    first, last = corners[0], corners[-1]
    if first[0] + first[1] > last[0] + last[1]:
        return corners[::-1].copy()
    return corners


class ChessboardCornerDetector:
    """
    Finds the inner corners of a chessboard of known size.

    Usage:
        detector = ChessboardCornerDetector((6, 9))
        detection = detector.detect(image)
        if detection.found:
            corners = detection.corners
    """

    def __init__(self, pattern_size: Tuple[int, int]):
        """
        Args:
            pattern_size: Inner corners as (columns, rows).
        """
        self.pattern_size = (int(pattern_size[0]), int(pattern_size[1]))
        self.corner_count = self.pattern_size[0] * self.pattern_size[1]

    def detect(self, image: np.ndarray, source: Optional[object] = None) -> CornerDetection:
        """
        Detect and refine chessboard corners in one image.

        Args:
            image: Decoded BGR (or grayscale) image.
            source: Optional label for reporting, usually the image path.

        Returns:
            CornerDetection with (width*height, 2) corners, or not found.
        """
        gray = to_grayscale(image)

        found, corners = cv2.findChessboardCorners(gray, self.pattern_size, flags=CHESSBOARD_FLAGS)
        if not found or corners is None or len(corners) == 0:
            return CornerDetection(None, source)

        corners = cv2.cornerSubPix(gray, corners, SUBPIX_WINDOW, SUBPIX_ZERO_ZONE, SUBPIX_CRITERIA)

        # Partial boards cannot be matched to the object grid
        if corners is None or len(corners) != self.corner_count:
            return CornerDetection(None, source)

        corners = _normalize_order(corners.reshape(-1, 2).astype(np.float32))
        return CornerDetection(corners, source)

    def detect_all(self, images: Sequence[np.ndarray], sources: Optional[Sequence[object]] = None,
                   workers: int = 1) -> List[CornerDetection]:
        """
        Detect corners in many images.

        Detection is independent per image, so it may fan out over a thread
        pool. Results always come back in the order of `images`.

        Args:
            images: Decoded images.
            sources: Optional labels, one per image.
            workers: Number of worker threads (1 = sequential).
        """
        if sources is None:
            sources = [None] * len(images)
        if len(sources) != len(images):
            raise ValueError("Need exactly one source label per image")

        if workers <= 1 or len(images) <= 1:
            return [self.detect(image, source) for image, source in zip(images, sources)]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() yields results in submission order
            return list(pool.map(self.detect, images, sources))
