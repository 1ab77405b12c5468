"""
Page detector for camera frames
"""

import logging
from typing import Optional, Tuple

import numpy as np

from common.buffer import PixelBuffer
from common.config import ScanConfig
from common.geometry import Quad
from .backend import BackendHandle, ScratchBuffers, VisionBackend
from .ordering import order_corners

logger = logging.getLogger(__name__)


class EdgeQuadDetector:
    """
    Finds the page in a frame.

    Uses Canny edges and external contours; the largest convex 4-vertex
    contour covering enough of the frame wins. Anything else (no contour,
    several small documents, heavy occlusion) is reported as not found.
    """

    def __init__(self, config: Optional[ScanConfig] = None, backend: Optional[VisionBackend] = None):
        """
        Initialize the detector.

        Args:
            config: Detection constants (Canny thresholds, dilation, area ratio, ...)
            backend: Image primitives; a private OpenCV backend is created when omitted
        """
        self.config = config or ScanConfig()
        self.backend = backend or BackendHandle().get()

    def find_corners(self, buffer: PixelBuffer) -> Optional[np.ndarray]:
        """
        Detect the page outline.

        Args:
            buffer: Input frame

        Returns:
            Array with the 4 unordered corners [[x1,y1], ..., [x4,y4]]
            or None if no page was found.
        """
        cfg = self.config
        backend = self.backend
        image_area = buffer.area
        min_area = image_area * cfg.min_area_ratio

        # Intermediates are referenced only through scratch
        with ScratchBuffers() as scratch:
            scratch.keep('gray', backend.grayscale(buffer.pixels))

            # Blur to suppress sensor and compression noise
            scratch.keep('blurred', backend.blur(scratch['gray'], cfg.blur_kernel))

            scratch.keep('edges', backend.edges(
                scratch['blurred'], cfg.canny_low, cfg.canny_high, cfg.canny_aperture
            ))

            # Bridge small gaps so broken page edges close into one contour
            scratch.keep('dilated', backend.dilate(
                scratch['edges'], cfg.dilate_kernel, cfg.dilate_iterations
            ))

            scratch.keep('contours', backend.contours(scratch['dilated']))

            best_corners = None
            best_area = 0.0

            for contour in scratch['contours']:
                area = backend.contour_area(contour)
                if area < min_area:
                    continue

                approx = backend.approx_polygon(contour, cfg.approx_epsilon)
                if len(approx) == 4 and area > best_area and backend.is_convex(approx):
                    best_area = area
                    best_corners = approx.reshape(4, 2).astype(np.float32)

            if best_corners is None:
                logger.debug("No page quad among %d contours", len(scratch['contours']))
                return None

            if cfg.refine_corners:
                best_corners = backend.refine_corners(scratch['gray'], best_corners, cfg.max_refine_shift)

            logger.debug("Page quad found, area ratio %.3f", best_area / image_area)
            return best_corners

    def detect(self, buffer: PixelBuffer) -> Optional[Quad]:
        """
        Detect the page and return its ordered corners.

        Args:
            buffer: Input frame

        Returns:
            Quad ordered TL, TR, BR, BL or None if no page was found
        """
        corners = self.find_corners(buffer)
        if corners is None:
            return None
        return order_corners(corners)

    def detect_scaled(self, buffer: PixelBuffer,
                      detect_width: Optional[int] = None) -> Tuple[Optional[Quad], Optional[Quad]]:
        """
        Detect on a downscaled proxy of the frame.

        Args:
            buffer: Full resolution frame
            detect_width: Proxy width; the frame is used as-is when not wider

        Returns:
            Tuple (proxy_quad, full_quad): corners at detection resolution and
            the same corners rescaled to the frame. Both None if not found.
        """
        detect_width = detect_width or self.config.detect_width
        proxy, scale = self.proxy(buffer, detect_width)

        quad = self.detect(proxy)
        if quad is None:
            return None, None
        if scale == 1.0:
            return quad, quad
        return quad, quad.scaled(1.0 / scale)

    def proxy(self, buffer: PixelBuffer, detect_width: int) -> Tuple[PixelBuffer, float]:
        """Downscale to detect_width keeping the aspect ratio; returns (proxy, scale)."""
        if buffer.width <= detect_width:
            return buffer, 1.0

        scale = detect_width / buffer.width
        detect_height = max(1, int(round(buffer.height * scale)))
        pixels = self.backend.resize(buffer.pixels, detect_width, detect_height)
        return PixelBuffer(pixels), scale
