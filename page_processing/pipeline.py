"""
Document pipeline: prepare, locate, rectify, normalise and filter one page
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from common.buffer import Encoder, PixelBuffer
from common.config import ScanConfig
from common.errors import DetectionFailure, ScanError
from common.geometry import Quad
from page_detection.backend import BackendHandle
from page_detection.detector import EdgeQuadDetector
from page_detection.ordering import order_corners
from page_detection.remote import RemoteCornerDetector
from .filters import DEFAULT_PRESET, apply_preset, get_preset, skips_illumination
from .illumination import IlluminationNormalizer
from .rectifier import PerspectiveRectifier

logger = logging.getLogger(__name__)

SOURCE_LOCAL = 'local'
SOURCE_REMOTE = 'remote'
SOURCE_MANUAL = 'manual'


@dataclass
class ScanResult:
    """Outcome of processing one page."""
    buffer: PixelBuffer
    quad: Optional[Quad]
    corner_source: Optional[str]
    rectified: bool
    preset: str
    failure: Optional[DetectionFailure] = None


@dataclass
class BatchItem:
    index: int
    result: Optional[ScanResult] = None
    error: Optional[ScanError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DocumentPipeline:
    """
    Turns a photographed page into a clean, upright, evenly lit image.

    1. Prepare: shrink frames larger than max_process_dim
    2. Locate: local edge detection on a proxy, then the remote fallback
    3. Rectify the quad (skipped when no page was found)
    4. Normalise illumination (skipped by raw presets)
    5. Apply the filter preset
    """

    def __init__(self, config: Optional[ScanConfig] = None, handle: Optional[BackendHandle] = None,
                 remote: Optional[RemoteCornerDetector] = None, encoder: Optional[Encoder] = None):
        """
        Args:
            config: Pipeline constants
            handle: Backend handle shared by every stage; created lazily when omitted
            remote: Fallback corner service; built from config.remote_detect_url when omitted
            encoder: Compresses a buffer for the remote fallback, which is unused without it
        """
        self.config = config or ScanConfig()
        self.handle = handle or BackendHandle()
        if remote is None and self.config.remote_detect_url:
            remote = RemoteCornerDetector(self.config.remote_detect_url, self.config.remote_timeout)
        self.remote = remote
        self.encoder = encoder

        self._detector: Optional[EdgeQuadDetector] = None
        self._rectifier: Optional[PerspectiveRectifier] = None
        self._normalizer: Optional[IlluminationNormalizer] = None

    @property
    def detector(self) -> EdgeQuadDetector:
        if self._detector is None:
            self._detector = EdgeQuadDetector(self.config, backend=self.handle.get())
        return self._detector

    @property
    def rectifier(self) -> PerspectiveRectifier:
        if self._rectifier is None:
            self._rectifier = PerspectiveRectifier(self.config.min_output_size, backend=self.handle.get())
        return self._rectifier

    @property
    def normalizer(self) -> IlluminationNormalizer:
        if self._normalizer is None:
            self._normalizer = IlluminationNormalizer.from_config(self.config, backend=self.handle.get())
        return self._normalizer

    def prepare(self, buffer: PixelBuffer) -> Tuple[PixelBuffer, float]:
        """
        Fit the frame inside max_process_dim (never enlarged).

        Returns:
            Tuple (buffer, scale) where scale maps input to prepared coordinates
        """
        longest = max(buffer.width, buffer.height)
        limit = self.config.max_process_dim
        if longest <= limit:
            return buffer, 1.0

        scale = limit / longest
        width = max(1, int(round(buffer.width * scale)))
        height = max(1, int(round(buffer.height * scale)))
        pixels = self.handle.get().resize(buffer.pixels, width, height)
        logger.debug("Prepared %dx%d -> %dx%d", buffer.width, buffer.height, width, height)
        return PixelBuffer(pixels), scale

    def locate(self, buffer: PixelBuffer) -> Tuple[Optional[Quad], Optional[str]]:
        """
        Find the page corners, locally first, then through the remote service.

        Remote corners must form a convex, simple quad covering at least
        min_area_ratio of the frame; anything else counts as not found.

        Returns:
            Tuple (quad, source); (None, None) when neither found a page
        """
        _, quad = self.detector.detect_scaled(buffer)
        if quad is not None:
            return quad, SOURCE_LOCAL

        if self.remote is not None and self.encoder is not None:
            logger.info("No page found locally, asking the corner service")
            quad = self.remote.detect(self.encoder(buffer), buffer.width, buffer.height)
            if quad is not None:
                if quad.is_acceptable(buffer.width, buffer.height, self.config.min_area_ratio):
                    return quad, SOURCE_REMOTE
                logger.warning("Corner service returned an unusable quad, ignoring it")

        return None, None

    def process(self, buffer: PixelBuffer, filter_name: str = DEFAULT_PRESET,
                corners=None, corner_source: str = SOURCE_MANUAL) -> ScanResult:
        """
        Process one page.

        Args:
            buffer: Input frame at any resolution
            filter_name: Preset name
            corners: Known corners in input coordinates; skips detection
            corner_source: How the given corners were obtained

        Returns:
            ScanResult; a page that could not be found is returned unrectified
            with the DetectionFailure recorded

        Raises:
            ValueError: unknown preset
            IntermediateProcessingError: a detection step failed
            WarpError: the corners are degenerate
        """
        get_preset(filter_name)
        prepared, scale = self.prepare(buffer)

        failure = None
        if corners is not None:
            quad = order_corners(corners)
            if scale != 1.0:
                quad = quad.scaled(scale)
            source = corner_source
        else:
            quad, source = self.locate(prepared)
            if quad is None:
                failure = DetectionFailure("No page found in frame")
                logger.warning("No page found, processing the whole frame")

        page = prepared
        if quad is not None:
            page = self.rectifier.rectify(prepared, quad)

        if not skips_illumination(filter_name):
            page = self.normalizer.normalize(page)
        page = apply_preset(page, filter_name)

        logger.info("Processed page %dx%d (source=%s, preset=%s)", page.width, page.height, source, filter_name)
        return ScanResult(
            buffer=page,
            quad=quad,
            corner_source=source,
            rectified=quad is not None,
            preset=filter_name,
            failure=failure,
        )

    def process_batch(self, buffers: Iterable[PixelBuffer],
                      filter_name: str = DEFAULT_PRESET) -> List[BatchItem]:
        """
        Process pages one after another; a failing page does not stop the batch.

        Returns:
            One BatchItem per input, in input order
        """
        get_preset(filter_name)

        items = []
        for index, buffer in enumerate(buffers):
            try:
                result = self.process(buffer, filter_name)
            except ScanError as e:
                logger.warning("Page %d failed: %s", index, e)
                items.append(BatchItem(index, error=e))
                continue
            items.append(BatchItem(index, result=result))

        failed = sum(1 for item in items if not item.ok)
        logger.info("Batch done: %d pages, %d failed", len(items), failed)
        return items
