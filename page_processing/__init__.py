"""
Page Processing Module

Rectifies, relights and filters a located page, one image at a time, in
batches or from a live camera.
"""

from .filters import PRESETS, apply_preset, get_preset, skips_illumination
from .illumination import IlluminationNormalizer
from .live_capture import LiveCaptureSession
from .pipeline import BatchItem, DocumentPipeline, ScanResult
from .rectifier import PerspectiveRectifier

__all__ = [
    'PRESETS', 'apply_preset', 'get_preset', 'skips_illumination',
    'IlluminationNormalizer', 'LiveCaptureSession',
    'BatchItem', 'DocumentPipeline', 'ScanResult', 'PerspectiveRectifier',
]
