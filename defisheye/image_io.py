"""
Image decode/encode through OpenCV.
"""

from pathlib import Path
from typing import Union

import numpy as np
import cv2

from .errors import IOFailure


def read_image(path: Union[str, Path]) -> np.ndarray:
    """
    Decode an image file into a BGR array.

    Raises:
        IOFailure: If the file is missing or cannot be decoded.
    """
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise IOFailure(f"Could not read image: {path}", path)
    return image


def write_image(path: Union[str, Path], image: np.ndarray):
    """
    Encode an image to a file. The format follows the file extension.

    Raises:
        IOFailure: If OpenCV cannot encode or write the file.
    """
    try:
        ok = cv2.imwrite(str(path), image)
    except cv2.error as e:
        raise IOFailure(f"Could not write image {path}: {e}", path) from e
    if not ok:
        raise IOFailure(f"Could not write image: {path}", path)


def image_size(image: np.ndarray):
    """(width, height) of an image array."""
    return (int(image.shape[1]), int(image.shape[0]))
