"""
Temporal debounce for live auto-capture
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from common.config import ScanConfig
from common.geometry import Quad
from .ordering import corners_stable

logger = logging.getLogger(__name__)


class GateStatus(Enum):
    """What the live view should tell the user"""
    NONE = "none"
    DETECTING = "detecting"
    STABLE = "stable"


@dataclass(frozen=True)
class GateDecision:
    triggered: bool
    status: GateStatus
    stable_count: int
    progress: float


class StabilityGate:
    """
    Triggers auto-capture once the detected page has held still long enough.

    One gate belongs to one live session and is only updated from that
    session's detection loop.
    """

    def __init__(self, distance_threshold: float = 20.0, stable_frames: int = 7, hint_frames: int = 3):
        """
        Args:
            distance_threshold: Largest per-corner movement (px) still counted as steady
            stable_frames: Consecutive steady ticks needed to trigger a capture
            hint_frames: Steady ticks after which the status turns to STABLE
        """
        if stable_frames < 1:
            raise ValueError("stable_frames must be at least 1")
        self.distance_threshold = distance_threshold
        self.stable_frames = stable_frames
        self.hint_frames = hint_frames
        self.last_corners: Optional[Quad] = None
        self.stable_count = 0

    @classmethod
    def from_config(cls, config: ScanConfig) -> "StabilityGate":
        return cls(config.stable_distance, config.stable_frames, config.hint_frames)

    def update(self, corners: Optional[Quad]) -> GateDecision:
        """
        Feed the detection of one tick.

        Args:
            corners: Ordered corners at detection resolution, or None

        Returns:
            GateDecision; triggered is True on the tick that should capture
        """
        triggered = False

        if corners is None:
            self.stable_count = 0
            status = GateStatus.NONE
        elif self.last_corners is None:
            self.stable_count = 0
            status = GateStatus.DETECTING
        elif corners_stable(corners, self.last_corners, self.distance_threshold):
            self.stable_count += 1
            if self.stable_count >= self.stable_frames:
                triggered = True
                self.stable_count = 0
                status = GateStatus.STABLE
            elif self.stable_count >= self.hint_frames:
                status = GateStatus.STABLE
            else:
                status = GateStatus.DETECTING
        else:
            self.stable_count = 0
            status = GateStatus.DETECTING

        self.last_corners = corners

        if triggered:
            logger.debug("Page steady for %d ticks, triggering capture", self.stable_frames)

        return GateDecision(
            triggered=triggered,
            status=status,
            stable_count=self.stable_count,
            progress=self.stable_count / self.stable_frames,
        )

    def reset(self) -> None:
        self.last_corners = None
        self.stable_count = 0
