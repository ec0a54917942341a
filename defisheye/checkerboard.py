"""
Checkerboard rendering.

Used by the printable generator and to produce synthetic calibration views.
"""

from typing import Tuple

import numpy as np
import cv2


def render_checkerboard(corners_x: int, corners_y: int, square_px: int,
                        margin_px: int = 0) -> np.ndarray:
    """
    Draw a checkerboard with the given number of inner corners.

    The board has (corners_x + 1) x (corners_y + 1) squares, the top-left
    square black, surrounded by a white margin.

    Returns:
        Grayscale uint8 image.
    """
    squares_x = corners_x + 1
    squares_y = corners_y + 1

    board_width_px = squares_x * square_px
    board_height_px = squares_y * square_px
    board = np.ones((board_height_px + 2 * margin_px, board_width_px + 2 * margin_px),
                    dtype=np.uint8) * 255

    # Draw black squares
    for row in range(squares_y):
        for col in range(squares_x):
            if (row + col) % 2 == 0:
                x1 = margin_px + col * square_px
                y1 = margin_px + row * square_px
                board[y1:y1 + square_px, x1:x1 + square_px] = 0

    return board


def inner_corner_positions(corners_x: int, corners_y: int, square_px: int,
                           margin_px: int = 0) -> np.ndarray:
    """
    Pixel positions of the inner corners of a rendered board, row-major.

    Returns:
        (corners_x*corners_y, 2) float array.
    """
    xs = margin_px + square_px * (np.arange(corners_x) + 1)
    ys = margin_px + square_px * (np.arange(corners_y) + 1)
    grid = np.stack(np.meshgrid(xs, ys), axis=-1).reshape(-1, 2)
    # Square edges fall between pixel centres
    return grid.astype(np.float64) - 0.5


def render_checkerboard_view(corners_x: int, corners_y: int, square_px: int,
                             margin_px: int, canvas_size: Tuple[int, int],
                             offset: Tuple[int, int] = (0, 0)) -> np.ndarray:
    """
    Place a rendered board on a white BGR canvas of (width, height).

    Returns:
        BGR uint8 image of the canvas size.
    """
    board = render_checkerboard(corners_x, corners_y, square_px, margin_px)
    width, height = canvas_size
    canvas = np.ones((height, width), dtype=np.uint8) * 255
    x, y = offset
    h, w = board.shape
    if x < 0 or y < 0 or x + w > width or y + h > height:
        raise ValueError(f"Board of {w}x{h} does not fit at {offset} in {width}x{height}")
    canvas[y:y + h, x:x + w] = board
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)
