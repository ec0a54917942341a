"""
Batch undistortion of candidate images and videos.

Each candidate is processed on its own: a failure is recorded for that file
and the batch moves on.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, Sequence, Union

from .calibration import CameraCalibration
from .errors import DefisheyeError
from .file_helper import create_output_file, create_temporary_file


VIDEO_EXTENSIONS = {'.mp4', '.mov', '.avi', '.mkv', '.m4v', '.webm', '.mpg', '.mpeg'}

OUTPUT_PREFIX = "undistorted"
IMAGE_SUFFIX = ".jpg"
VIDEO_SUFFIX = ".mp4"


@dataclass
class UndistortResult:
    """Outcome for one candidate file."""
    source: Path
    destination: Optional[Path] = None
    error: Optional[DefisheyeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    def __str__(self):
        if self.ok:
            return str(self.destination)
        return f"FAILED {self.source}: {self.error_kind}: {self.error}"


def is_video(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in VIDEO_EXTENSIONS


def _allocate_destination(source: Path, output_dir: Optional[Path], suffix: str) -> Path:
    if output_dir is None:
        return create_temporary_file(OUTPUT_PREFIX, suffix)
    return create_output_file(output_dir, f"{OUTPUT_PREFIX}_{source.stem}", suffix)


def run_candidates(calibration: CameraCalibration, candidates: Sequence[Union[str, Path]],
                   output_dir: Optional[Union[str, Path]] = None) -> List[UndistortResult]:
    """
    Undistort every candidate file.

    Videos (by extension) go through undistort_video, everything else through
    undistort_image.

    Args:
        calibration: Any CameraCalibration implementation.
        candidates: Input files.
        output_dir: Where to write results. Temporary files if None.

    Returns:
        One UndistortResult per candidate, in input order.
    """
    output_dir = Path(output_dir) if output_dir is not None else None
    results = []

    for candidate in candidates:
        source = Path(candidate)
        video = is_video(source)
        result = UndistortResult(source)
        try:
            destination = _allocate_destination(source, output_dir, VIDEO_SUFFIX if video else IMAGE_SUFFIX)
            if video:
                calibration.undistort_video(source, destination)
            else:
                calibration.undistort_image(source, destination)
            result.destination = destination
        except DefisheyeError as e:
            result.error = e
            print(f"[Batch] {source}: {type(e).__name__}: {e}")
        results.append(result)

    succeeded = sum(1 for r in results if r.ok)
    print(f"[Batch] {succeeded}/{len(results)} candidates undistorted")
    return results
