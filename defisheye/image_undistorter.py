"""
Single image undistortion with a precomputed map.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import cv2

from .file_helper import remove_partial_output
from .image_io import read_image, write_image
from .undistortion_map import UndistortionMap


def undistort_image(image: np.ndarray, undistortion_map: UndistortionMap,
                    border_value: Tuple[int, int, int] = (0, 0, 0),
                    out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Remap an image through the undistortion map.

    Bilinear sampling; samples outside the source get border_value.
    The input image is not modified.

    Args:
        image: Source image at the map resolution.
        undistortion_map: Precomputed map.
        border_value: Fill colour for samples outside the source.
        out: Optional preallocated destination of the same shape and dtype.

    Returns:
        The undistorted image (out, when given).

    Raises:
        ResolutionMismatch: If the image size differs from the map size.
    """
    height, width = image.shape[:2]
    undistortion_map.check_size(width, height)
    if out is not None and (out.shape != image.shape or out.dtype != image.dtype or out is image):
        raise ValueError("Output buffer must be a distinct array matching the image")
    return cv2.remap(
        image, undistortion_map.map1, undistortion_map.map2,
        dst=out,
        interpolation=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border_value
    )


def undistort_image_file(source: Union[str, Path], destination: Union[str, Path],
                         undistortion_map: UndistortionMap,
                         border_value: Tuple[int, int, int] = (0, 0, 0)):
    """
    Read an image, undistort it and write the result.

    The resolution is checked before anything is written. If writing fails
    or the image does not match, no file is left at destination.
    """
    try:
        image = read_image(source)
        height, width = image.shape[:2]
        undistortion_map.check_size(width, height, source)
        write_image(destination, undistort_image(image, undistortion_map, border_value))
    except Exception:
        remove_partial_output(destination)
        raise
