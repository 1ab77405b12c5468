"""
Errors raised by the page capture pipeline.

Detection failures are folded into the pipeline result; warp and
intermediate processing errors are scoped to the single image or frame that
raised them.
"""


class ScanError(Exception):
    """Base class for every pipeline error."""


class InvalidFrameError(ScanError, ValueError):
    """A frame does not satisfy the width * height * channels contract."""


class DetectionFailure(ScanError):
    """No qualifying page quad was found."""


class RemoteDetectionError(DetectionFailure):
    """The remote corner service failed or sent an unreadable reply."""


class IntermediateProcessingError(ScanError):
    """A grayscale, blur, edge or contour step failed."""


class WarpError(ScanError):
    """The quad is too degenerate to estimate a homography from."""
