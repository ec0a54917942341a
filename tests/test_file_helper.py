import numpy as np
import pytest

from defisheye.checkerboard import render_checkerboard, render_checkerboard_view, inner_corner_positions
from defisheye.errors import InvalidConfiguration, IOFailure
from defisheye.file_helper import (
    create_output_file,
    create_temporary_file,
    list_directory,
    remove_partial_output,
)
from defisheye.image_io import image_size, read_image, write_image


class TestFiles:

    def test_list_directory_sorted_regular_files(self, tmp_path):
        for name in ["b.jpg", "a.jpg", ".hidden", "c.mp4"]:
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "nested").mkdir()
        assert [p.name for p in list_directory(tmp_path)] == ["a.jpg", "b.jpg", "c.mp4"]

    def test_list_missing_directory(self, tmp_path):
        with pytest.raises(InvalidConfiguration):
            list_directory(tmp_path / "missing")

    def test_temporary_file(self, tmp_path):
        path = create_temporary_file("undistorted", ".jpg", tmp_path)
        assert path.exists()
        assert path.parent == tmp_path
        assert path.name.startswith("undistorted")
        assert path.suffix == ".jpg"

    def test_temporary_file_in_missing_directory(self, tmp_path):
        with pytest.raises(IOFailure):
            create_temporary_file("undistorted", ".jpg", tmp_path / "missing")

    def test_remove_partial_output(self, tmp_path):
        path = tmp_path / "partial.mp4"
        path.write_bytes(b"half")
        remove_partial_output(path)
        assert not path.exists()
        remove_partial_output(path)


class TestImageIO:

    def test_write_then_read(self, tmp_path):
        image = np.zeros((20, 30, 3), dtype=np.uint8)
        image[5:10, 5:10] = 200
        path = tmp_path / "image.png"
        write_image(path, image)
        np.testing.assert_array_equal(read_image(path), image)
        assert image_size(image) == (30, 20)

    def test_read_missing(self, tmp_path):
        with pytest.raises(IOFailure) as exc:
            read_image(tmp_path / "missing.png")
        assert exc.value.source == tmp_path / "missing.png"

    def test_write_unknown_format(self, tmp_path):
        with pytest.raises(IOFailure):
            write_image(tmp_path / "image.nope", np.zeros((4, 4, 3), dtype=np.uint8))


class TestCheckerboard:

    def test_square_layout(self):
        board = render_checkerboard(6, 9, 10, margin_px=5)
        assert board.shape == (10 * 10 + 10, 7 * 10 + 10)
        assert board[0, 0] == 255  # margin
        assert board[5, 5] == 0  # top-left square is black
        assert board[5, 15] == 255

    def test_corner_positions(self):
        corners = inner_corner_positions(6, 9, 10, margin_px=5)
        assert corners.shape == (54, 2)
        np.testing.assert_allclose(corners[0], [14.5, 14.5])
        np.testing.assert_allclose(corners[-1], [64.5, 94.5])

    def test_view_must_fit(self):
        with pytest.raises(ValueError):
            render_checkerboard_view(6, 9, 50, 0, (100, 100))

    def test_view_is_bgr(self):
        view = render_checkerboard_view(2, 2, 10, 0, (50, 40), (5, 5))
        assert view.shape == (40, 50, 3)
        assert view[5, 5, 0] == 0
        assert view[0, 0, 0] == 255


class TestOutputFile:

    def test_creates_named_file(self, tmp_path):
        path = create_output_file(tmp_path / "out", "undistorted_a", ".jpg")
        assert path == tmp_path / "out" / "undistorted_a.jpg"
        assert path.exists()

    def test_taken_name_gets_counter(self, tmp_path):
        first = create_output_file(tmp_path, "undistorted_a", ".jpg")
        second = create_output_file(tmp_path, "undistorted_a", ".jpg")
        third = create_output_file(tmp_path, "undistorted_a", ".jpg")
        assert [first.name, second.name, third.name] == [
            "undistorted_a.jpg", "undistorted_a_1.jpg", "undistorted_a_2.jpg"]

    def test_directory_is_a_file(self, tmp_path):
        blocker = tmp_path / "out"
        blocker.write_bytes(b"")
        with pytest.raises(IOFailure):
            create_output_file(blocker, "undistorted_a", ".jpg")
