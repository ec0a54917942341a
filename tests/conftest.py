"""
Shared fixtures: a known fisheye camera, synthetic chessboard views rendered
through it, and in-memory video endpoints.
"""

from types import SimpleNamespace

import numpy as np
import cv2
import pytest

from defisheye.camera_model import CameraModel
from defisheye.checkerboard import render_checkerboard, render_checkerboard_view, inner_corner_positions
from defisheye.configuration import object_point_grid
from defisheye.errors import IOFailure
from defisheye.undistortion_map import UndistortionMap


BOARD = (6, 9)
IMAGE_SIZE = (640, 480)

K_TRUE = np.array([
    [300.0, 0.0, 320.0],
    [0.0, 300.0, 240.0],
    [0.0, 0.0, 1.0],
])
D_TRUE = np.array([0.05, -0.01, 0.005, -0.001]).reshape(4, 1)

# (rvec, board centre in camera coordinates), board units are squares
POSES = [
    ((0.0, 0.0, 0.0), (0.0, 0.0, 14.0)),
    ((0.3, 0.0, 0.0), (-3.0, 0.0, 14.0)),
    ((0.0, 0.3, 0.0), (3.0, 0.0, 14.0)),
    ((-0.25, 0.2, 0.1), (0.0, -2.0, 13.0)),
    ((0.2, -0.25, -0.1), (-2.0, 2.0, 13.0)),
    ((0.1, 0.35, 0.05), (4.0, 2.0, 15.0)),
    ((-0.3, -0.1, 0.0), (-4.0, -2.0, 15.0)),
]

# Texture used to render fisheye views
TEXTURE_SQUARE_PX = 40
TEXTURE_MARGIN_PX = 40


def pose_to_extrinsics(rvec, centre):
    """rvec/tvec placing the board centre at `centre` in camera coordinates."""
    rvec = np.array(rvec, dtype=np.float64).reshape(3, 1)
    R, _ = cv2.Rodrigues(rvec)
    board_centre = np.array([(BOARD[0] - 1) / 2.0, (BOARD[1] - 1) / 2.0, 0.0])
    tvec = np.array(centre, dtype=np.float64) - R @ board_centre
    return rvec, tvec.reshape(3, 1)


def project_corners(rvec, tvec, K=K_TRUE, D=D_TRUE) -> np.ndarray:
    grid = object_point_grid(*BOARD).reshape(1, -1, 3)
    projected, _ = cv2.fisheye.projectPoints(grid, rvec, tvec, K, D)
    return projected.reshape(-1, 2)


def render_fisheye_view(rvec, tvec, K=K_TRUE, D=D_TRUE, image_size=IMAGE_SIZE) -> np.ndarray:
    """
    Render the chessboard as seen through the fisheye camera.

    Every output pixel is traced back to a ray, intersected with the board
    plane and sampled from a board texture.
    """
    texture = render_checkerboard(BOARD[0], BOARD[1], TEXTURE_SQUARE_PX, TEXTURE_MARGIN_PX)
    texture = cv2.GaussianBlur(texture, (0, 0), 2.0)

    width, height = image_size
    us, vs = np.meshgrid(np.arange(width, dtype=np.float64), np.arange(height, dtype=np.float64))
    pixels = np.stack([us.ravel(), vs.ravel()], axis=-1).reshape(1, -1, 2)
    rays = cv2.fisheye.undistortPoints(pixels, K, D).reshape(-1, 2)

    # Plane-to-ray homography of the z=0 board plane
    R, _ = cv2.Rodrigues(rvec)
    H = np.column_stack([R[:, 0], R[:, 1], tvec.ravel()])
    board = np.linalg.solve(H, np.column_stack([rays, np.ones(len(rays))]).T)
    w = board[2]
    X = board[0] / w
    Y = board[1] / w

    map_x = TEXTURE_MARGIN_PX + TEXTURE_SQUARE_PX * (X + 1) - 0.5
    map_y = TEXTURE_MARGIN_PX + TEXTURE_SQUARE_PX * (Y + 1) - 0.5
    behind = w <= 0
    map_x[behind] = -1000.0
    map_y[behind] = -1000.0

    gray = cv2.remap(texture,
                     map_x.reshape(height, width).astype(np.float32),
                     map_y.reshape(height, width).astype(np.float32),
                     interpolation=cv2.INTER_LINEAR,
                     borderMode=cv2.BORDER_CONSTANT,
                     borderValue=255)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


@pytest.fixture
def true_camera():
    return CameraModel(K_TRUE, D_TRUE, IMAGE_SIZE)


@pytest.fixture(scope="session")
def extrinsics():
    return [pose_to_extrinsics(rvec, centre) for rvec, centre in POSES]


@pytest.fixture(scope="session")
def fisheye_views(extrinsics):
    """List of (BGR image, ground-truth corners) pairs."""
    return [(render_fisheye_view(rvec, tvec), project_corners(rvec, tvec))
            for rvec, tvec in extrinsics]


@pytest.fixture
def flat_board_view():
    """Undistorted 6x9 board on a 640x480 canvas and its true inner corners."""
    square, margin, offset = 30, 30, (100, 60)
    image = render_checkerboard_view(BOARD[0], BOARD[1], square, margin, IMAGE_SIZE, offset)
    image = cv2.GaussianBlur(image, (5, 5), 1.0)
    expected = inner_corner_positions(BOARD[0], BOARD[1], square, margin) + np.array(offset)
    return image, expected


@pytest.fixture
def write_views(tmp_path, fisheye_views):
    """Write the fisheye views as PNG files and return their paths."""
    def _write(count=None):
        views = fisheye_views if count is None else fisheye_views[:count]
        paths = []
        for i, (image, _) in enumerate(views):
            path = tmp_path / f"view_{i:02d}.png"
            cv2.imwrite(str(path), image)
            paths.append(path)
        return paths
    return _write


@pytest.fixture
def identity_map():
    return UndistortionMap.identity(64, 48)


class FakeVideoSource:
    """In-memory decoder over a list of frames."""

    def __init__(self, frames, fail_at=None):
        self.frames = list(frames)
        self.fail_at = fail_at
        self.position = 0
        self.opened = False
        self.released = False

    def __enter__(self):
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.released = True
        return False

    def read(self):
        if self.fail_at is not None and self.position == self.fail_at:
            raise IOFailure("Corrupt frame")
        if self.position >= len(self.frames):
            return None
        frame = self.frames[self.position]
        self.position += 1
        return frame.copy()


class FakeVideoSink:
    """In-memory encoder collecting written frames."""

    def __init__(self, path, width, height, fps, quality):
        self.path = path
        self.size = (width, height)
        self.fps = fps
        self.quality = quality
        self.frames = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def write(self, frame):
        self.frames.append(frame.copy())


@pytest.fixture
def fake_video():
    """
    Factories for VideoUndistorter that record every endpoint they create.
    """
    state = SimpleNamespace(sources=[], sinks=[], frames=[], fail_at=None)

    def source_factory(path):
        source = FakeVideoSource(state.frames, state.fail_at)
        state.sources.append(source)
        return source

    def sink_factory(path, width, height, fps, quality):
        sink = FakeVideoSink(path, width, height, fps, quality)
        state.sinks.append(sink)
        return sink

    state.source_factory = source_factory
    state.sink_factory = sink_factory
    return state


def constant_frames(values, width=64, height=48):
    """One uint8 BGR frame per value, every pixel set to that value."""
    return [np.full((height, width, 3), v, dtype=np.uint8) for v in values]
