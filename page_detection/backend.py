"""
Image-processing capability used by detection and rectification.

Detection and warping only need a handful of primitives. They are expressed
as the VisionBackend interface so the OpenCV implementation can be swapped
for another library or a test double.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import cv2
import numpy as np

from common.errors import IntermediateProcessingError, WarpError

logger = logging.getLogger(__name__)


class VisionBackend(ABC):
    """Primitives required by the capture pipeline. Images are uint8 RGB(A) or single channel."""

    @abstractmethod
    def grayscale(self, image: np.ndarray) -> np.ndarray:
        ...

    @abstractmethod
    def blur(self, image: np.ndarray, ksize: int) -> np.ndarray:
        ...

    @abstractmethod
    def gaussian_blur(self, image: np.ndarray, sigma: float) -> np.ndarray:
        ...

    @abstractmethod
    def edges(self, image: np.ndarray, low: int, high: int, aperture: int) -> np.ndarray:
        ...

    @abstractmethod
    def dilate(self, image: np.ndarray, ksize: int, iterations: int) -> np.ndarray:
        ...

    @abstractmethod
    def contours(self, binary: np.ndarray) -> List[np.ndarray]:
        ...

    @abstractmethod
    def contour_area(self, contour: np.ndarray) -> float:
        ...

    @abstractmethod
    def approx_polygon(self, contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
        ...

    @abstractmethod
    def is_convex(self, polygon: np.ndarray) -> bool:
        ...

    @abstractmethod
    def refine_corners(self, gray: np.ndarray, corners: np.ndarray, max_shift: float) -> np.ndarray:
        ...

    @abstractmethod
    def resize(self, image: np.ndarray, width: int, height: int) -> np.ndarray:
        ...

    @abstractmethod
    def compute_homography(self, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        ...

    @abstractmethod
    def warp(self, image: np.ndarray, matrix: np.ndarray, width: int, height: int,
             fill: int = 255) -> np.ndarray:
        ...


class OpenCVBackend(VisionBackend):
    """VisionBackend on top of cv2. cv2 failures are translated into pipeline errors."""

    def grayscale(self, image: np.ndarray) -> np.ndarray:
        if image.ndim == 2:
            return image
        code = cv2.COLOR_RGBA2GRAY if image.shape[2] == 4 else cv2.COLOR_RGB2GRAY
        try:
            return cv2.cvtColor(image, code)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Grayscale conversion failed: {e}") from e

    def blur(self, image: np.ndarray, ksize: int) -> np.ndarray:
        try:
            return cv2.GaussianBlur(image, (ksize, ksize), 0)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Blur failed: {e}") from e

    def gaussian_blur(self, image: np.ndarray, sigma: float) -> np.ndarray:
        try:
            # Kernel size is derived from sigma
            return cv2.GaussianBlur(image, (0, 0), sigmaX=sigma, sigmaY=sigma)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Background blur failed: {e}") from e

    def edges(self, image: np.ndarray, low: int, high: int, aperture: int) -> np.ndarray:
        try:
            return cv2.Canny(image, low, high, apertureSize=aperture)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Canny edge detection failed: {e}") from e

    def dilate(self, image: np.ndarray, ksize: int, iterations: int) -> np.ndarray:
        kernel = np.ones((ksize, ksize), np.uint8)
        try:
            return cv2.dilate(image, kernel, iterations=iterations)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Dilation failed: {e}") from e

    def contours(self, binary: np.ndarray) -> List[np.ndarray]:
        try:
            contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Contour extraction failed: {e}") from e
        return list(contours)

    def contour_area(self, contour: np.ndarray) -> float:
        return float(cv2.contourArea(contour))

    def approx_polygon(self, contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
        peri = cv2.arcLength(contour, True)
        return cv2.approxPolyDP(contour, epsilon_ratio * peri, True)

    def is_convex(self, polygon: np.ndarray) -> bool:
        return bool(cv2.isContourConvex(polygon))

    def refine_corners(self, gray: np.ndarray, corners: np.ndarray, max_shift: float) -> np.ndarray:
        """
        Refine corner positions using sub-pixel accuracy.

        Args:
            gray: Grayscale image
            corners: Initial corner positions (4, 2)
            max_shift: Largest accepted movement of a single corner

        Returns:
            Refined corner positions
        """
        h, w = gray.shape[:2]
        refined = np.asarray(corners, dtype=np.float32).reshape(-1, 2).copy()

        # Only refine corners that are inside the image
        in_bounds = [i for i in range(len(refined))
                     if 5 <= refined[i][0] < w - 5 and 5 <= refined[i][1] < h - 5]
        if not in_bounds:
            return refined

        win_size = (11, 11)
        zero_zone = (-1, -1)
        criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 40, 0.001)

        for i in in_bounds:
            corner_point = refined[i:i + 1].reshape(-1, 1, 2).copy()
            try:
                cv2.cornerSubPix(gray, corner_point, win_size, zero_zone, criteria)
            except cv2.error:
                logger.debug("Sub-pixel refinement failed for corner %d, keeping it", i)
                continue
            sub_pix_corner = corner_point.reshape(2)

            if np.linalg.norm(sub_pix_corner - refined[i]) <= max_shift:
                refined[i] = sub_pix_corner

        return refined

    def resize(self, image: np.ndarray, width: int, height: int) -> np.ndarray:
        try:
            return cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
        except cv2.error as e:
            raise IntermediateProcessingError(f"Resize failed: {e}") from e

    def compute_homography(self, src: np.ndarray, dst: np.ndarray) -> np.ndarray:
        try:
            matrix = cv2.getPerspectiveTransform(
                np.asarray(src, dtype=np.float32), np.asarray(dst, dtype=np.float32)
            )
        except cv2.error as e:
            raise WarpError(f"Homography estimation failed: {e}") from e

        if not np.all(np.isfinite(matrix)) or np.linalg.cond(matrix) > 1e12:
            raise WarpError("Homography is ill-conditioned")
        return matrix

    def warp(self, image: np.ndarray, matrix: np.ndarray, width: int, height: int,
             fill: int = 255) -> np.ndarray:
        channels = 1 if image.ndim == 2 else image.shape[2]
        try:
            return cv2.warpPerspective(
                image,
                matrix,
                (width, height),
                flags=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=(fill,) * min(channels, 4),
            )
        except cv2.error as e:
            raise WarpError(f"Perspective warp failed: {e}") from e


class BackendHandle:
    """
    Owns one lazily initialised backend.

    get() is idempotent: the first call builds and configures the backend,
    every later call returns the same instance.
    """

    def __init__(self, factory=OpenCVBackend, num_threads: Optional[int] = None):
        self._factory = factory
        self._num_threads = num_threads
        self._backend: Optional[VisionBackend] = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._backend is not None

    def get(self) -> VisionBackend:
        if self._backend is not None:
            return self._backend

        with self._lock:
            if self._backend is None:
                if self._num_threads is not None:
                    cv2.setNumThreads(self._num_threads)
                self._backend = self._factory()
                logger.debug("Initialised vision backend %s", type(self._backend).__name__)
        return self._backend


class ScratchBuffers:
    """
    Intermediate images owned by one processing pass.

    Used as a context manager: everything kept during the block is released
    exactly once when the block exits, whether it returns or raises.
    """

    def __init__(self):
        self._buffers: Dict[str, np.ndarray] = {}
        self._released = False

    def __enter__(self) -> "ScratchBuffers":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def __len__(self) -> int:
        return len(self._buffers)

    def __contains__(self, name: str) -> bool:
        return name in self._buffers

    def __getitem__(self, name: str):
        return self._buffers[name]

    @property
    def released(self) -> bool:
        return self._released

    def keep(self, name: str, image):
        if self._released:
            raise RuntimeError("Scratch buffers were already released")
        self._buffers[name] = image
        return image

    def release(self) -> None:
        if self._released:
            return
        self._buffers.clear()
        self._released = True


def rectangle_corners(width: int, height: int) -> np.ndarray:
    """Corners of the width x height output rectangle in TL, TR, BR, BL order."""
    return np.array([
        [0, 0],
        [width - 1, 0],
        [width - 1, height - 1],
        [0, height - 1]
    ], dtype=np.float32)

