"""
Tunable constants of the capture pipeline.

All values were chosen empirically. Each one can be overridden from the
environment (or a .env file) with the PAGE_CAPTURE_ prefix, e.g.
PAGE_CAPTURE_CANNY_LOW=40.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "PAGE_CAPTURE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ScanConfig:
    # Edge detection
    blur_kernel: int = 5
    canny_low: int = 50
    canny_high: int = 150
    canny_aperture: int = 3
    dilate_kernel: int = 3
    dilate_iterations: int = 2

    # Quad selection
    min_area_ratio: float = 0.1
    approx_epsilon: float = 0.02
    refine_corners: bool = True
    max_refine_shift: float = 10.0

    # Resolution
    detect_width: int = 640
    max_process_dim: int = 2000
    min_output_size: int = 200

    # Live capture
    stable_distance: float = 20.0
    stable_frames: int = 7
    hint_frames: int = 3
    detect_rate_hz: float = 10.0

    # Shadow removal
    shadow_strength: float = 210.0
    shadow_min_radius: int = 31
    shadow_radius_divisor: int = 15

    # Remote corner fallback
    remote_detect_url: Optional[str] = None
    remote_timeout: float = 30.0

    @property
    def detect_interval_ms(self) -> float:
        return 1000.0 / self.detect_rate_hz

    def with_overrides(self, **overrides) -> "ScanConfig":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, dotenv_path: Optional[str] = None) -> "ScanConfig":
        """
        Build a config from defaults overridden by environment variables.

        Args:
            prefix: Prefix of the variables to read
            dotenv_path: Optional .env file; by default the nearest .env is used

        Returns:
            ScanConfig with every matching variable applied
        """
        load_dotenv(dotenv_path)

        overrides = {}
        for field in fields(cls):
            name = prefix + field.name.upper()
            raw = os.getenv(name)
            if raw is None:
                continue
            overrides[field.name] = _convert(name, raw, field.default)

        return cls(**overrides)


def _convert(name: str, raw: str, default):
    value = raw.strip()
    if isinstance(default, bool):
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} must be a boolean, got {raw!r}")
    if default is None:
        return value or None
    try:
        return type(default)(value)
    except ValueError as e:
        raise ValueError(f"{name} must be {type(default).__name__}, got {raw!r}") from e
