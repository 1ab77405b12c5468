"""
Perspective rectification of a detected page
"""

import logging
from typing import Optional

import numpy as np

from common.buffer import PixelBuffer
from common.errors import WarpError
from common.geometry import OutputDimensions, Quad
from page_detection.backend import BackendHandle, VisionBackend, rectangle_corners

logger = logging.getLogger(__name__)

# Corner triples whose cross product falls below this are treated as collinear
_COLLINEAR_EPS = 1e-6


class PerspectiveRectifier:
    """
    Maps the page quad onto an upright rectangle.

    The output size follows the longer of each pair of opposite edges, so the
    page keeps roughly its physical aspect ratio.
    """

    def __init__(self, min_output_size: int = 200, fill: int = 255,
                 backend: Optional[VisionBackend] = None):
        """
        Args:
            min_output_size: Floor for the output width and height
            fill: Value of pixels sampled from outside the source (white)
            backend: Image primitives; a private OpenCV backend is created when omitted
        """
        self.min_output_size = min_output_size
        self.fill = fill
        self.backend = backend or BackendHandle().get()

    def output_dimensions(self, quad: Quad) -> OutputDimensions:
        top, bottom, left, right = quad.edge_lengths()
        width = max(int(round(max(top, bottom))), self.min_output_size)
        height = max(int(round(max(left, right))), self.min_output_size)
        return OutputDimensions(width, height)

    def homography(self, quad: Quad, dims: OutputDimensions) -> np.ndarray:
        """
        Homography taking the quad corners onto the output rectangle.

        Raises:
            WarpError: if the quad is degenerate
        """
        self._check_geometry(quad)
        dst = rectangle_corners(dims.width, dims.height)
        return self.backend.compute_homography(quad.as_array(), dst)

    def rectify(self, buffer: PixelBuffer, quad: Quad) -> PixelBuffer:
        """
        Produce the flattened page.

        Args:
            buffer: Source frame
            quad: Ordered page corners in source coordinates

        Returns:
            New buffer of output_dimensions(quad) with the source channel count
        """
        dims = self.output_dimensions(quad)
        matrix = self.homography(quad, dims)

        warped = self.backend.warp(buffer.pixels, matrix, dims.width, dims.height, fill=self.fill)
        if warped.ndim == 2:
            warped = warped[:, :, np.newaxis]

        logger.debug("Rectified %dx%d -> %dx%d", buffer.width, buffer.height, dims.width, dims.height)
        return PixelBuffer(np.ascontiguousarray(warped, dtype=np.uint8))

    def _check_geometry(self, quad: Quad) -> None:
        if quad.area() < 1.0:
            raise WarpError(f"Quad area {quad.area():.3f} is below one pixel")

        pts = quad.points
        for i in range(4):
            a, b, c = pts[i], pts[(i + 1) % 4], pts[(i + 2) % 4]
            cross = (b.x - a.x) * (c.y - a.y) - (b.y - a.y) * (c.x - a.x)
            if abs(cross) < _COLLINEAR_EPS:
                raise WarpError("Three quad corners are collinear")
