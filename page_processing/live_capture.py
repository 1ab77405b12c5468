"""
Live camera capture with automatic triggering
"""

import logging
from typing import Callable, Optional

from common.buffer import FrameSource, PixelBuffer
from common.config import ScanConfig
from common.errors import IntermediateProcessingError, InvalidFrameError, ScanError
from common.geometry import Quad
from page_detection.stability import GateDecision, GateStatus, StabilityGate
from .filters import DEFAULT_PRESET
from .pipeline import SOURCE_LOCAL, DocumentPipeline, ScanResult

logger = logging.getLogger(__name__)


class LiveCaptureSession:
    """
    Drives detection on a live video source.

    The host calls tick() from its display loop; detection runs at most
    detect_rate_hz times per second and captures the page automatically once
    the stability gate fires. capture() takes a picture on demand. While a
    capture is running every tick and capture request is dropped.
    """

    def __init__(self, source: FrameSource, pipeline: Optional[DocumentPipeline] = None,
                 config: Optional[ScanConfig] = None,
                 on_capture: Optional[Callable[[ScanResult], None]] = None,
                 filter_name: str = DEFAULT_PRESET):
        """
        Args:
            source: Live frame provider
            pipeline: Pipeline used for detection and capture
            config: Rate and gate constants; defaults to the pipeline's config
            on_capture: Called with every successful capture
            filter_name: Preset applied to captured pages
        """
        self.source = source
        self.pipeline = pipeline or DocumentPipeline(config)
        self.config = config or self.pipeline.config
        self.on_capture = on_capture
        self.filter_name = filter_name

        self.gate = StabilityGate.from_config(self.config)
        self.capturing = False
        self.closed = False
        self.last_quad: Optional[Quad] = None
        self._last_tick_ms: Optional[float] = None
        self._decision = GateDecision(False, GateStatus.NONE, 0, 0.0)

    @property
    def decision(self) -> GateDecision:
        return self._decision

    @property
    def status(self) -> GateStatus:
        return self._decision.status

    def tick(self, timestamp_ms: float) -> Optional[GateDecision]:
        """
        One iteration of the detection loop.

        Args:
            timestamp_ms: Current time in milliseconds

        Returns:
            GateDecision of this tick, or None when the tick was skipped
        """
        if self.closed or self.capturing:
            return None
        if self._last_tick_ms is not None and timestamp_ms - self._last_tick_ms < self.config.detect_interval_ms:
            return None
        self._last_tick_ms = timestamp_ms

        try:
            frame = PixelBuffer.from_frame(self.source.snapshot())
        except InvalidFrameError as e:
            logger.warning("Skipping frame: %s", e)
            return None

        try:
            proxy_quad, full_quad = self.pipeline.detector.detect_scaled(frame, self.config.detect_width)
        except IntermediateProcessingError as e:
            logger.warning("Detection failed on live frame: %s", e)
            proxy_quad, full_quad = None, None

        self.last_quad = full_quad
        decision = self.gate.update(proxy_quad)
        self._decision = decision

        if decision.triggered:
            logger.info("Page steady, capturing automatically")
            self._capture(frame, full_quad)

        return decision

    def capture(self) -> Optional[ScanResult]:
        """Capture the current frame now, bypassing the stability gate."""
        if self.closed or self.capturing:
            return None

        try:
            frame = PixelBuffer.from_frame(self.source.snapshot())
        except InvalidFrameError as e:
            logger.warning("Cannot capture frame: %s", e)
            return None

        logger.info("Manual capture")
        return self._capture(frame, None)

    def close(self) -> None:
        self.closed = True
        self.gate.reset()
        self.last_quad = None

    def _capture(self, frame: PixelBuffer, quad: Optional[Quad]) -> Optional[ScanResult]:
        self.capturing = True
        try:
            result = self.pipeline.process(frame, self.filter_name, corners=quad,
                                           corner_source=SOURCE_LOCAL)
        except ScanError as e:
            logger.warning("Capture failed: %s", e)
            return None
        else:
            if self.on_capture is not None:
                self.on_capture(result)
            return result
        finally:
            self.capturing = False
            self.gate.reset()
            self._decision = GateDecision(False, GateStatus.NONE, 0, 0.0)
