"""
Named filter presets applied to the rectified page.

A preset is an ordered list of (operation, parameter) steps. The table is
data; each operation is a small function over the RGB channels, so alpha
never passes through a filter.
"""

import logging
from typing import Callable, Dict, Tuple

import cv2
import numpy as np

from common.buffer import PixelBuffer
from common.errors import IntermediateProcessingError

logger = logging.getLogger(__name__)

Step = Tuple[str, object]

PRESETS: Dict[str, Tuple[Step, ...]] = {
    'document': (
        ('grayscale', None),
        ('normalize', None),
        ('linear', (1.3, 15)),
        ('sharpen', 1.5),
    ),
    'grayscale': (
        ('grayscale', None),
        ('normalize', None),
        ('gamma', 0.9),
        ('sharpen', 1.0),
    ),
    'enhanced': (
        ('normalize', None),
        ('sharpen', 1.5),
        ('modulate', (1.05, 1.1)),
    ),
    'auto': (
        ('normalize', None),
        ('gamma', 0.9),
        ('sharpen', 1.2),
        ('modulate', (1.03, 1.0)),
    ),
    'original': (),
}

# Presets that hand over the page exactly as rectified
RAW_PRESETS = frozenset({'original'})

DEFAULT_PRESET = 'auto'


def grayscale(rgb: np.ndarray, _=None) -> np.ndarray:
    """Luma replicated over the three colour channels."""
    gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)


def normalize(rgb: np.ndarray, _=None) -> np.ndarray:
    """Stretch the 1st..99th luminance percentile onto the full range."""
    luma = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
    low, high = np.percentile(luma, (1, 99))
    if high <= low:
        return rgb.copy()

    scale = 255.0 / (high - low)
    return _to_uint8((rgb.astype(np.float32) - low) * scale)


def linear(rgb: np.ndarray, params: Tuple[float, float]) -> np.ndarray:
    multiplier, offset = params
    return _to_uint8(rgb.astype(np.float32) * multiplier + offset)


def gamma(rgb: np.ndarray, value: float) -> np.ndarray:
    table = _to_uint8(255.0 * (np.arange(256, dtype=np.float64) / 255.0) ** value)
    return cv2.LUT(rgb, table)


def sharpen(rgb: np.ndarray, sigma: float) -> np.ndarray:
    """Unsharp mask with a Gaussian of the given sigma."""
    blurred = cv2.GaussianBlur(rgb, (0, 0), sigmaX=sigma, sigmaY=sigma)
    return cv2.addWeighted(rgb, 2.0, blurred, -1.0, 0)


def modulate(rgb: np.ndarray, params: Tuple[float, float]) -> np.ndarray:
    """Multiply HSV value by brightness and saturation by saturation."""
    brightness, saturation = params
    hsv = cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV).astype(np.float32)
    hsv[:, :, 1] *= saturation
    hsv[:, :, 2] *= brightness
    return cv2.cvtColor(_to_uint8(hsv), cv2.COLOR_HSV2RGB)


OPERATIONS: Dict[str, Callable[[np.ndarray, object], np.ndarray]] = {
    'grayscale': grayscale,
    'normalize': normalize,
    'linear': linear,
    'gamma': gamma,
    'sharpen': sharpen,
    'modulate': modulate,
}


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def get_preset(name: str) -> Tuple[Step, ...]:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown filter preset {name!r}; expected one of {sorted(PRESETS)}") from None


def skips_illumination(name: str) -> bool:
    get_preset(name)
    return name in RAW_PRESETS


def apply_preset(buffer: PixelBuffer, name: str) -> PixelBuffer:
    """
    Run every step of the named preset.

    Args:
        buffer: Page after illumination normalisation
        name: Preset name from PRESETS

    Returns:
        New buffer with the same shape

    Raises:
        ValueError: if the preset is unknown
        IntermediateProcessingError: if an OpenCV step fails
    """
    steps = get_preset(name)

    rgb = np.ascontiguousarray(buffer.pixels[:, :, :3])
    for operation, param in steps:
        try:
            rgb = OPERATIONS[operation](rgb, param)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Filter step {operation} of preset {name} failed: {e}") from e

    if buffer.channels == 4:
        rgb = np.dstack([rgb, buffer.pixels[:, :, 3]])

    logger.debug("Applied preset %s (%d steps)", name, len(steps))
    return PixelBuffer(np.ascontiguousarray(rgb, dtype=np.uint8))
