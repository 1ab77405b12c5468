"""
Tests for filter presets
"""

import cv2
import numpy as np
import pytest

from common.buffer import PixelBuffer
from common.errors import IntermediateProcessingError
from page_processing import filters
from page_processing.filters import PRESETS, apply_preset, get_preset, skips_illumination


@pytest.fixture
def colour_page():
    """Low contrast colour page with some text-like marks"""
    rng = np.random.default_rng(7)
    pixels = np.empty((120, 160, 3), dtype=np.uint8)
    pixels[:, :, 0] = rng.integers(120, 170, size=(120, 160))
    pixels[:, :, 1] = rng.integers(110, 160, size=(120, 160))
    pixels[:, :, 2] = rng.integers(100, 150, size=(120, 160))
    pixels[50:60, 20:140] = (60, 50, 40)
    return PixelBuffer(pixels)


class TestPresets:
    """Tests for the preset table"""

    def test_names(self):
        assert set(PRESETS) == {'document', 'grayscale', 'enhanced', 'auto', 'original'}

    def test_document_steps(self):
        assert [op for op, _ in get_preset('document')] == ['grayscale', 'normalize', 'linear', 'sharpen']
        assert dict(get_preset('document'))['linear'] == (1.3, 15)

    def test_every_step_is_known(self):
        for steps in PRESETS.values():
            for operation, _ in steps:
                assert operation in filters.OPERATIONS

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match='sepia'):
            get_preset('sepia')
        with pytest.raises(ValueError):
            skips_illumination('sepia')

    def test_skips_illumination(self):
        assert skips_illumination('original')
        assert not skips_illumination('auto')
        assert not skips_illumination('document')


class TestApplyPreset:
    """Tests for apply_preset"""

    def test_original_is_identity(self, colour_page):
        result = apply_preset(colour_page, 'original')
        assert np.array_equal(result.pixels, colour_page.pixels)
        assert result.pixels is not colour_page.pixels

    @pytest.mark.parametrize('name', ['document', 'grayscale'])
    def test_gray_presets(self, colour_page, name):
        """Gray presets keep three equal channels"""
        result = apply_preset(colour_page, name)

        assert result.channels == 3
        assert np.array_equal(result.pixels[:, :, 0], result.pixels[:, :, 1])
        assert np.array_equal(result.pixels[:, :, 1], result.pixels[:, :, 2])

    @pytest.mark.parametrize('name', sorted(PRESETS))
    def test_shape_preserved(self, colour_page, name):
        result = apply_preset(colour_page, name)
        assert result.pixels.shape == colour_page.pixels.shape
        assert result.pixels.dtype == np.uint8

    @pytest.mark.parametrize('name', sorted(PRESETS))
    def test_alpha_preserved(self, colour_page, name):
        alpha = np.full((120, 160, 1), 33, dtype=np.uint8)
        rgba = PixelBuffer(np.concatenate([colour_page.pixels, alpha], axis=2))

        result = apply_preset(rgba, name)

        assert result.channels == 4
        assert np.all(result.pixels[:, :, 3] == 33)

    def test_auto_increases_contrast(self, colour_page):
        result = apply_preset(colour_page, 'auto')
        assert result.pixels.std() > colour_page.pixels.std()

    def test_input_untouched(self, colour_page):
        before = colour_page.pixels.copy()
        apply_preset(colour_page, 'document')
        assert np.array_equal(colour_page.pixels, before)


class TestOperations:
    """Tests for single filter operations"""

    def test_normalize_stretches_range(self):
        ramp = np.linspace(100, 150, 256).astype(np.uint8)
        rgb = np.repeat(np.repeat(ramp[np.newaxis, :, np.newaxis], 10, axis=0), 3, axis=2)

        result = filters.normalize(rgb)

        assert result.min() == 0
        assert result.max() == 255

    def test_normalize_flat_image(self):
        rgb = np.full((10, 10, 3), 77, dtype=np.uint8)
        assert np.array_equal(filters.normalize(rgb), rgb)

    def test_linear(self):
        rgb = np.array([[[0, 100, 200]]], dtype=np.uint8)
        assert filters.linear(rgb, (1.3, 15)).tolist() == [[[15, 145, 255]]]

    def test_gamma(self):
        rgb = np.array([[[0, 128, 255]]], dtype=np.uint8)
        result = filters.gamma(rgb, 0.9)
        assert result[0, 0, 0] == 0
        assert result[0, 0, 2] == 255
        assert result[0, 0, 1] == round(255 * (128 / 255) ** 0.9)

    def test_gamma_one_is_identity(self, colour_page):
        assert np.array_equal(filters.gamma(colour_page.pixels, 1.0), colour_page.pixels)

    def test_sharpen_keeps_flat_areas(self):
        rgb = np.full((40, 40, 3), 120, dtype=np.uint8)
        assert np.array_equal(filters.sharpen(rgb, 1.5), rgb)

    def test_sharpen_increases_edge_contrast(self):
        rgb = np.full((40, 40, 3), 100, dtype=np.uint8)
        rgb[:, 20:] = 160

        result = filters.sharpen(rgb, 1.5)

        assert result[20, 19, 0] < 100
        assert result[20, 20, 0] > 160

    def test_grayscale(self):
        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[:, :, 1] = 255
        result = filters.grayscale(rgb)
        assert result.shape == (2, 2, 3)
        assert result[0, 0].tolist() == [150, 150, 150]

    def test_modulate_saturation(self):
        rgb = np.zeros((4, 4, 3), dtype=np.uint8)
        rgb[:, :] = (200, 100, 100)

        more = filters.modulate(rgb, (1.0, 1.3))
        less = filters.modulate(rgb, (1.0, 0.5))

        spread = lambda img: int(img[0, 0].max()) - int(img[0, 0].min())
        assert spread(more) > spread(rgb) > spread(less)


class TestOperationErrors:
    """OpenCV failures inside a preset surface as pipeline errors"""

    @pytest.fixture
    def broken_sharpen(self, monkeypatch):
        def sharpen(rgb, sigma):
            raise cv2.error("sharpen unavailable")

        monkeypatch.setitem(filters.OPERATIONS, 'sharpen', sharpen)

    def test_cv2_error_wrapped(self, colour_page, broken_sharpen):
        with pytest.raises(IntermediateProcessingError, match='sharpen'):
            apply_preset(colour_page, 'document')

    def test_unaffected_preset(self, colour_page, broken_sharpen):
        assert apply_preset(colour_page, 'original').pixels.shape == colour_page.pixels.shape
