#!/usr/bin/env python3
"""
Environment verification for fisheye calibration and video undistortion.

Checks the pieces the pipeline cannot run without: the cv2.fisheye solver,
a video decoder backend and the ffmpeg binary used for encoding.

Usage:
    python verify_env.py
"""

import sys
from typing import List, Tuple

# (label, passed, detail)
CheckResult = Tuple[str, bool, str]


def check_python() -> List[CheckResult]:
    version = f"{sys.version_info.major}.{sys.version_info.minor}"
    return [("Python 3.9+", sys.version_info >= (3, 9), version)]


def check_opencv() -> List[CheckResult]:
    try:
        import cv2
    except ImportError:
        return [("OpenCV", False, "pip install opencv-python")]

    backends = [cv2.videoio_registry.getBackendName(b) for b in cv2.videoio_registry.getBackends()]
    return [
        ("OpenCV", True, cv2.__version__),
        ("cv2.fisheye calibration", hasattr(cv2, "fisheye") and hasattr(cv2.fisheye, "calibrate"), ""),
        ("Video decode backend", "FFMPEG" in backends, ", ".join(backends)),
    ]


def check_numpy() -> List[CheckResult]:
    try:
        import numpy as np
    except ImportError:
        return [("NumPy", False, "pip install numpy")]
    return [("NumPy", True, np.__version__)]


def check_encoder() -> List[CheckResult]:
    try:
        import imageio_ffmpeg
        ffmpeg_exe = imageio_ffmpeg.get_ffmpeg_exe()
    except (ImportError, RuntimeError) as e:
        return [("ffmpeg encoder", False, str(e))]
    return [("ffmpeg encoder", bool(ffmpeg_exe), ffmpeg_exe)]


SECTIONS = [
    ("Python", check_python),
    ("OpenCV", check_opencv),
    ("NumPy", check_numpy),
    ("Encoder", check_encoder),
]


def main() -> int:
    print("defisheye environment check")

    failures = 0
    for section, run_checks in SECTIONS:
        print(f"\n[{section}]")
        for label, passed, detail in run_checks():
            mark = "ok  " if passed else "FAIL"
            print(f"  {mark} {label}" + (f" ({detail})" if detail else ""))
            failures += 0 if passed else 1

    if failures:
        print(f"\n{failures} check(s) failed")
        return 1
    print("\nReady: calibration and undistortion can run")
    return 0


if __name__ == "__main__":
    sys.exit(main())
