"""
Shared data model, configuration and errors
"""

from .buffer import PixelBuffer, FrameSource, Encoder
from .config import ScanConfig
from .errors import (
    ScanError,
    InvalidFrameError,
    DetectionFailure,
    RemoteDetectionError,
    IntermediateProcessingError,
    WarpError,
)
from .geometry import Point, Quad, OutputDimensions

__all__ = [
    'PixelBuffer', 'FrameSource', 'Encoder', 'ScanConfig',
    'ScanError', 'InvalidFrameError', 'DetectionFailure', 'RemoteDetectionError',
    'IntermediateProcessingError', 'WarpError',
    'Point', 'Quad', 'OutputDimensions',
]
