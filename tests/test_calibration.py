import numpy as np
import cv2
import pytest

import defisheye.calibration as calibration_module
from defisheye.calibration import FisheyeCameraCalibration
from defisheye.configuration import CalibrationConfiguration, CameraMatrixPolicy, PipelineSettings
from defisheye.errors import CalibrationInputInsufficient, ResolutionMismatch

from conftest import K_TRUE, IMAGE_SIZE


@pytest.fixture
def recorded_solver(monkeypatch, true_camera):
    """Replace the solver with one returning the known camera and recording its inputs."""
    calls = []

    def fake_calibrate(corner_sets, object_grids, image_size):
        calls.append((corner_sets, object_grids, image_size))
        return true_camera

    monkeypatch.setattr(calibration_module, "calibrate_fisheye", fake_calibrate)
    return calls


def test_end_to_end_calibration(write_views):
    configuration = CalibrationConfiguration(write_views(), 6, 9)
    calibration = FisheyeCameraCalibration(configuration, PipelineSettings(detection_workers=2))

    model = calibration.camera_model
    assert model.image_size == IMAGE_SIZE
    assert len(calibration.used_images) >= 5
    np.testing.assert_allclose(model.fx, K_TRUE[0, 0], rtol=0.05)
    np.testing.assert_allclose(model.fy, K_TRUE[1, 1], rtol=0.05)
    assert model.rms_error < 1.0
    assert calibration.undistortion_map.image_size == IMAGE_SIZE


def test_skips_images_without_board(tmp_path, write_views, recorded_solver):
    paths = write_views(3)
    blank = tmp_path / "blank.png"
    cv2.imwrite(str(blank), np.full((480, 640, 3), 255, dtype=np.uint8))
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")

    configuration = CalibrationConfiguration([paths[0], blank, paths[1], broken, paths[2]], 6, 9)
    calibration = FisheyeCameraCalibration(configuration)

    assert calibration.used_images == paths
    assert set(calibration.skipped_images) == {blank, broken}

    corner_sets, object_grids, image_size = recorded_solver[0]
    assert len(corner_sets) == 3
    assert all(c.shape == (54, 2) for c in corner_sets)
    assert len(object_grids) == 3
    assert image_size == IMAGE_SIZE


def test_no_board_anywhere(tmp_path, recorded_solver):
    blank = tmp_path / "blank.png"
    cv2.imwrite(str(blank), np.full((480, 640, 3), 255, dtype=np.uint8))
    with pytest.raises(CalibrationInputInsufficient):
        FisheyeCameraCalibration(CalibrationConfiguration([blank], 6, 9))
    assert recorded_solver == []


def test_nothing_readable(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    with pytest.raises(CalibrationInputInsufficient):
        FisheyeCameraCalibration(CalibrationConfiguration([broken], 6, 9))


def test_mixed_calibration_resolutions(tmp_path, write_views):
    paths = write_views(1)
    small = tmp_path / "small.png"
    cv2.imwrite(str(small), np.full((240, 320, 3), 255, dtype=np.uint8))
    with pytest.raises(ResolutionMismatch):
        FisheyeCameraCalibration(CalibrationConfiguration([paths[0], small], 6, 9))


def test_settings_reach_map_and_video(write_views, recorded_solver):
    settings = PipelineSettings(camera_matrix_policy=CameraMatrixPolicy.REUSE, video_fps=12.0,
                                mix_frames=2, frame_step=4)
    calibration = FisheyeCameraCalibration(CalibrationConfiguration(write_views(1), 6, 9), settings)

    np.testing.assert_array_equal(calibration.undistortion_map.new_camera_matrix, K_TRUE)
    video = calibration._video
    assert (video.fps, video.mix_frames, video.frame_step) == (12.0, 2, 4)


class TestFromCameraModel:

    def test_undistorts_images(self, tmp_path, true_camera, fisheye_views):
        calibration = FisheyeCameraCalibration.from_camera_model(true_camera)
        source = tmp_path / "in.png"
        destination = tmp_path / "out.png"
        cv2.imwrite(str(source), fisheye_views[0][0])

        calibration.undistort_image(source, destination)

        result = cv2.imread(str(destination))
        assert result.shape == (480, 640, 3)

    def test_rejects_other_resolution(self, tmp_path, true_camera):
        calibration = FisheyeCameraCalibration.from_camera_model(true_camera)
        source = tmp_path / "in.png"
        destination = tmp_path / "out.png"
        cv2.imwrite(str(source), np.zeros((240, 320, 3), dtype=np.uint8))

        with pytest.raises(ResolutionMismatch):
            calibration.undistort_image(source, destination)
        assert not destination.exists()

    def test_rescaled_output_size(self, true_camera):
        calibration = FisheyeCameraCalibration.from_camera_model(true_camera, output_size=(320, 240))
        assert calibration.undistortion_map.image_size == (320, 240)

    def test_failed_video_leaves_no_output(self, tmp_path, true_camera):
        calibration = FisheyeCameraCalibration.from_camera_model(true_camera)
        source = tmp_path / "in.avi"
        writer = cv2.VideoWriter(str(source), cv2.VideoWriter_fourcc(*'MJPG'), 30.0, (64, 48))
        for _ in range(6):
            writer.write(np.zeros((48, 64, 3), dtype=np.uint8))
        writer.release()
        destination = tmp_path / "out.mp4"
        destination.write_bytes(b"")

        with pytest.raises(ResolutionMismatch):
            calibration.undistort_video(source, destination)
        assert not destination.exists()
