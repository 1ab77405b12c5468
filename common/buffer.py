"""
Raw pixel buffers and the contracts of the collaborators around the pipeline
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import numpy as np

from .errors import InvalidFrameError

SUPPORTED_CHANNELS = (3, 4)


@dataclass(frozen=True)
class PixelBuffer:
    """
    Row-major RGB(A) image, stored as a uint8 array of shape (H, W, C).

    Stages never write into a buffer they were given; they return a new one.
    """

    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray) or pixels.ndim != 3:
            raise InvalidFrameError("Pixel data must be an array of shape (height, width, channels)")
        if pixels.shape[2] not in SUPPORTED_CHANNELS:
            raise InvalidFrameError(f"Unsupported channel count: {pixels.shape[2]}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidFrameError("Frame has no pixels")
        if pixels.dtype != np.uint8:
            raise InvalidFrameError(f"Pixel data must be uint8, got {pixels.dtype}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def area(self) -> int:
        return self.width * self.height

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int, channels: int) -> "PixelBuffer":
        """
        Wrap raw row-major bytes.

        Args:
            data: Pixel bytes, length width * height * channels
            width: Frame width in pixels
            height: Frame height in pixels
            channels: 3 (RGB) or 4 (RGBA)

        Returns:
            PixelBuffer holding a private copy of the bytes
        """
        if channels not in SUPPORTED_CHANNELS:
            raise InvalidFrameError(f"Unsupported channel count: {channels}")
        if width <= 0 or height <= 0:
            raise InvalidFrameError(f"Invalid frame size: {width}x{height}")
        expected = width * height * channels
        if len(data) != expected:
            raise InvalidFrameError(
                f"Buffer length {len(data)} does not match {width}x{height}x{channels} = {expected}"
            )
        pixels = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, channels).copy()
        return cls(pixels)

    @classmethod
    def from_frame(cls, frame: Mapping[str, Any]) -> "PixelBuffer":
        """Build a buffer from a FrameSource snapshot."""
        try:
            return cls.from_bytes(frame["buffer"], int(frame["width"]), int(frame["height"]),
                                  int(frame["channels"]))
        except KeyError as e:
            raise InvalidFrameError(f"Frame is missing field {e}") from e

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())


class FrameSource(Protocol):
    """Live video snapshots or decoded stills."""

    def snapshot(self) -> Mapping[str, Any]:
        """Return {buffer, width, height, channels} for the current frame."""
        ...


# Compression of the final buffer (JPEG and friends) is owned by the caller.
Encoder = Callable[[PixelBuffer], bytes]
