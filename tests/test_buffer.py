"""
Tests for PixelBuffer
"""

import numpy as np
import pytest

from common.buffer import PixelBuffer
from common.errors import InvalidFrameError, ScanError


class TestPixelBuffer:
    """Tests for PixelBuffer"""

    def test_from_bytes(self):
        data = bytes(range(24))
        buffer = PixelBuffer.from_bytes(data, 4, 2, 3)

        assert (buffer.width, buffer.height, buffer.channels) == (4, 2, 3)
        assert buffer.pixels[0, 1].tolist() == [3, 4, 5]
        assert buffer.to_bytes() == data

    def test_from_bytes_copies(self):
        data = bytearray(12)
        buffer = PixelBuffer.from_bytes(data, 2, 2, 3)
        data[0] = 99
        assert buffer.pixels[0, 0, 0] == 0

    def test_length_mismatch(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer.from_bytes(bytes(23), 4, 2, 3)

    def test_unsupported_channels(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer.from_bytes(bytes(16), 4, 2, 2)

    def test_invalid_size(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer.from_bytes(b'', 0, 2, 3)

    def test_error_hierarchy(self):
        """Invalid frames are both ScanError and ValueError"""
        with pytest.raises(ValueError):
            PixelBuffer.from_bytes(bytes(5), 4, 2, 3)
        assert issubclass(InvalidFrameError, ScanError)

    def test_from_frame(self):
        frame = {'buffer': bytes(4 * 3 * 4), 'width': 4, 'height': 3, 'channels': 4}
        buffer = PixelBuffer.from_frame(frame)
        assert buffer.pixels.shape == (3, 4, 4)

    def test_from_frame_missing_field(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer.from_frame({'buffer': bytes(12), 'width': 2, 'height': 2})

    def test_rejects_wrong_dtype(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer(np.zeros((2, 2, 3), dtype=np.float32))

    def test_rejects_wrong_ndim(self):
        with pytest.raises(InvalidFrameError):
            PixelBuffer(np.zeros((2, 2), dtype=np.uint8))

    def test_area(self):
        assert PixelBuffer(np.zeros((5, 7, 3), np.uint8)).area == 35

    def test_copy(self):
        buffer = PixelBuffer(np.zeros((2, 2, 3), np.uint8))
        copy = buffer.copy()
        copy.pixels[0, 0, 0] = 1
        assert buffer.pixels[0, 0, 0] == 0
