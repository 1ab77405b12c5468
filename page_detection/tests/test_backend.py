"""
Tests for the vision backend, its handle and scratch buffers
"""

import numpy as np
import pytest

from common.errors import IntermediateProcessingError, WarpError
from page_detection.backend import BackendHandle, OpenCVBackend, ScratchBuffers, rectangle_corners


class TestBackendHandle:
    """Tests for BackendHandle"""

    def test_lazy(self):
        created = []

        def factory():
            created.append(1)
            return OpenCVBackend()

        handle = BackendHandle(factory)
        assert not handle.initialized
        assert created == []

        handle.get()
        assert handle.initialized
        assert created == [1]

    def test_idempotent(self):
        created = []

        def factory():
            created.append(1)
            return OpenCVBackend()

        handle = BackendHandle(factory)
        assert handle.get() is handle.get()
        assert len(created) == 1

    def test_default_backend(self):
        assert isinstance(BackendHandle().get(), OpenCVBackend)


class TestScratchBuffers:
    """Tests for ScratchBuffers"""

    def test_released_on_exit(self):
        with ScratchBuffers() as scratch:
            scratch.keep('gray', np.zeros((4, 4), np.uint8))
            assert 'gray' in scratch
            assert len(scratch) == 1

        assert scratch.released
        assert len(scratch) == 0

    def test_released_on_error(self):
        with pytest.raises(RuntimeError, match="boom"):
            with ScratchBuffers() as scratch:
                scratch.keep('edges', np.zeros((4, 4), np.uint8))
                raise RuntimeError("boom")

        assert scratch.released
        assert len(scratch) == 0

    def test_release_twice(self):
        scratch = ScratchBuffers()
        scratch.release()
        scratch.release()
        assert scratch.released

    def test_keep_after_release(self):
        scratch = ScratchBuffers()
        scratch.release()
        with pytest.raises(RuntimeError):
            scratch.keep('late', np.zeros((1, 1), np.uint8))

    def test_keep_returns_image(self):
        image = np.ones((2, 2), np.uint8)
        with ScratchBuffers() as scratch:
            assert scratch.keep('img', image) is image

    def test_lookup(self):
        image = np.ones((2, 2), np.uint8)
        with ScratchBuffers() as scratch:
            scratch.keep('gray', image)
            assert scratch['gray'] is image
            with pytest.raises(KeyError):
                scratch['edges']

        with pytest.raises(KeyError):
            scratch['gray']


class TestOpenCVBackend:
    """Tests for OpenCVBackend"""

    @pytest.fixture
    def backend(self):
        return OpenCVBackend()

    def test_grayscale_rgb_and_rgba(self, backend):
        rgb = np.zeros((10, 10, 3), np.uint8)
        rgb[:, :, 0] = 255
        rgba = np.dstack([rgb, np.full((10, 10), 7, np.uint8)])

        assert backend.grayscale(rgb).shape == (10, 10)
        assert np.array_equal(backend.grayscale(rgb), backend.grayscale(rgba))
        # Red weighs about 0.299 in RGB order
        assert backend.grayscale(rgb)[0, 0] == 76

    def test_grayscale_error(self, backend):
        with pytest.raises(IntermediateProcessingError):
            backend.grayscale(np.zeros((10, 10, 3), np.float64))

    def test_homography_identity(self, backend):
        corners = rectangle_corners(300, 200)
        matrix = backend.compute_homography(corners, corners)
        assert np.allclose(matrix, np.eye(3), atol=1e-9)

    def test_homography_degenerate(self, backend):
        src = np.array([[10, 10], [10, 10], [10, 10], [10, 10]], dtype=np.float32)
        with pytest.raises(WarpError):
            backend.compute_homography(src, rectangle_corners(300, 200))

    def test_warp_fills_white(self, backend):
        image = np.zeros((100, 100, 4), np.uint8)
        # Shift everything 50 px to the right
        matrix = np.array([[1, 0, 50], [0, 1, 0], [0, 0, 1]], dtype=np.float64)

        warped = backend.warp(image, matrix, 100, 100)

        assert warped.shape == (100, 100, 4)
        assert np.all(warped[:, :40] == 255)
        assert np.all(warped[:, 60:] == 0)

    def test_rectangle_corners(self):
        corners = rectangle_corners(300, 200)
        assert corners.tolist() == [[0, 0], [299, 0], [299, 199], [0, 199]]
