#!/usr/bin/env python3
"""
defisheye - Main Entry Point

Calibrates a fisheye camera from a directory of chessboard photographs, then
undistorts every image and video in a candidate directory.

Usage:
    python main.py calibration/ candidate/
    python main.py calibration/ candidate/ --chessboard 9x6
    python main.py calibration/ candidate/ --camera-matrix reuse
    python main.py calibration/ candidate/ --output-dir out/ --workers 4
    python main.py calibration/ candidate/ --config settings.json

Output:
    One line per candidate: the undistorted file path, or the failure.

Exit codes:
    0 - every candidate undistorted
    1 - calibration failed
    2 - calibration succeeded but some candidates failed
"""

import sys
import argparse
from typing import Optional, List, Tuple

from defisheye import (
    FisheyeCameraCalibration,
    PipelineSettings,
    CameraMatrixPolicy,
    DefisheyeError,
    InvalidConfiguration,
    parse_pattern_size,
    run_candidates,
)
from defisheye.file_helper import list_directory


def parse_chessboard(value: str) -> Tuple[int, int]:
    """Parse a 'COLSxROWS' chessboard size for argparse."""
    try:
        return parse_pattern_size(value)
    except InvalidConfiguration as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fisheye calibration and undistortion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "calibration",
        help="Directory of chessboard calibration photographs"
    )
    parser.add_argument(
        "candidates",
        help="Directory of images and videos to undistort"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a JSON settings file (optional)"
    )
    parser.add_argument(
        "--save-config",
        default=None,
        help="Write the effective settings to this JSON file"
    )
    parser.add_argument(
        "--chessboard",
        type=parse_chessboard,
        default=None,
        help="Inner chessboard corners as COLSxROWS (default: 6x9)"
    )
    parser.add_argument(
        "--camera-matrix",
        choices=[p.value for p in CameraMatrixPolicy],
        default=None,
        help="Re-estimate the output camera matrix or reuse the calibrated one (default: estimate)"
    )
    parser.add_argument(
        "--balance",
        type=float,
        default=None,
        help="Balance for the re-estimated camera matrix, 0-1 (default: 0)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads for chessboard detection (default: 1)"
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=None,
        help="Output video frame rate (default: 5)"
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=None,
        help="Output video quality 0-10 (default: 10)"
    )
    parser.add_argument(
        "--output-dir", "-o",
        default=None,
        help="Directory for undistorted files (default: temporary files)"
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> PipelineSettings:
    """Load settings from --config and apply command line overrides."""
    data = PipelineSettings.load(args.config).to_dict()
    if args.chessboard is not None:
        data['chessboard_width'], data['chessboard_height'] = args.chessboard
    overrides = {
        'camera_matrix_policy': args.camera_matrix,
        'balance': args.balance,
        'detection_workers': args.workers,
        'video_fps': args.fps,
        'video_quality': args.quality,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return PipelineSettings.from_dict(data)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
        if args.save_config:
            settings.save(args.save_config)
        configuration = settings.configuration_for(list_directory(args.calibration))
        calibration = FisheyeCameraCalibration(configuration, settings)
    except DefisheyeError as e:
        print(f"[Main] Calibration failed: {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    print(f"[Main] {calibration.camera_model}")

    try:
        candidates = list_directory(args.candidates)
    except DefisheyeError as e:
        print(f"[Main] {type(e).__name__}: {e}", file=sys.stderr)
        return 2

    results = run_candidates(calibration, candidates, args.output_dir)
    for result in results:
        print(result)

    return 0 if all(r.ok for r in results) else 2


if __name__ == "__main__":
    sys.exit(main())
