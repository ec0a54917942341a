"""
Error types for the fisheye calibration pipeline.

Session-level errors (InvalidConfiguration, CalibrationInputInsufficient,
CalibrationDivergence) abort a calibration run. Item-level errors
(PatternNotFound, ResolutionMismatch, IOFailure) only affect the image or
video they were raised for.
"""

from typing import Optional


class DefisheyeError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, source: Optional[object] = None):
        super().__init__(message)
        self.source = source


class InvalidConfiguration(DefisheyeError):
    """Calibration inputs are malformed. Raised before any I/O."""
    pass


class PatternNotFound(DefisheyeError):
    """No complete chessboard was found in an image."""
    pass


class CalibrationInputInsufficient(DefisheyeError):
    """No calibration image produced a usable corner set."""
    pass


class CalibrationDivergence(DefisheyeError):
    """The fisheye solver failed to converge or a view was ill-conditioned."""
    pass


class ResolutionMismatch(DefisheyeError):
    """An image or video does not match the calibration resolution."""

    def __init__(self, message: str, source: Optional[object] = None,
                 expected: Optional[tuple] = None, actual: Optional[tuple] = None):
        super().__init__(message, source)
        self.expected = expected
        self.actual = actual


class IOFailure(DefisheyeError):
    """Reading, decoding, writing or encoding failed."""
    pass
