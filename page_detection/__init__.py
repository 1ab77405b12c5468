"""
Page Detection Module

Finds the page quadrilateral in a frame, orders its corners and debounces
detections for live auto-capture.
"""

from .backend import BackendHandle, OpenCVBackend, ScratchBuffers, VisionBackend
from .detector import EdgeQuadDetector
from .ordering import order_corners, corners_stable
from .remote import RemoteCornerDetector
from .stability import StabilityGate, GateDecision, GateStatus

__all__ = [
    'BackendHandle', 'OpenCVBackend', 'ScratchBuffers', 'VisionBackend',
    'EdgeQuadDetector', 'order_corners', 'corners_stable',
    'RemoteCornerDetector', 'StabilityGate', 'GateDecision', 'GateStatus',
]
