"""
Shadow and uneven lighting removal
"""

import logging
from typing import Optional

import numpy as np

from common.buffer import PixelBuffer
from common.config import ScanConfig
from page_detection.backend import BackendHandle, VisionBackend

logger = logging.getLogger(__name__)


class IlluminationNormalizer:
    """
    Divides each colour channel by a heavily blurred copy of itself.

    The blur estimates the lighting of the paper; dividing it out flattens
    shadows and gradients while text, being much smaller than the blur, keeps
    its contrast. The result is scaled so plain paper lands on `strength`.
    """

    def __init__(self, strength: float = 210.0, min_radius: int = 31, radius_divisor: int = 15,
                 backend: Optional[VisionBackend] = None):
        self.strength = strength
        self.min_radius = min_radius
        self.radius_divisor = radius_divisor
        self.backend = backend or BackendHandle().get()

    @classmethod
    def from_config(cls, config: ScanConfig, backend: Optional[VisionBackend] = None) -> "IlluminationNormalizer":
        return cls(config.shadow_strength, config.shadow_min_radius, config.shadow_radius_divisor,
                   backend=backend)

    def blur_radius(self, width: int, height: int) -> int:
        return max(self.min_radius, int(round(min(width, height) / self.radius_divisor)))

    def normalize(self, buffer: PixelBuffer) -> PixelBuffer:
        """
        Args:
            buffer: Rectified page

        Returns:
            New buffer of the same shape; alpha is copied unchanged
        """
        radius = self.blur_radius(buffer.width, buffer.height)
        sigma = radius / 2.0

        colour = buffer.pixels[:, :, :3].astype(np.float32)
        background = self.backend.gaussian_blur(colour, sigma)
        background = np.maximum(background, 1.0)

        out = np.clip(np.rint(colour / background * self.strength), 0, 255).astype(np.uint8)
        if buffer.channels == 4:
            out = np.dstack([out, buffer.pixels[:, :, 3]])

        logger.debug("Illumination normalised with blur radius %d", radius)
        return PixelBuffer(np.ascontiguousarray(out))
