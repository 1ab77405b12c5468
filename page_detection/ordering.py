"""
Canonical corner ordering
"""

from typing import Optional

import numpy as np

from common.geometry import Quad


def order_corners(corners) -> Quad:
    """
    Order 4 points as top-left, top-right, bottom-right, bottom-left.

    Top-left has the smallest x + y and bottom-right the largest; top-right has
    the largest x - y and bottom-left the smallest. Ties go to the point that
    comes first in the input, so near-square quads rotated by 45 degrees can end
    up with one point under two labels.

    Args:
        corners: Quad, sequence of 4 Points or anything shaped like (4, 2)

    Returns:
        Ordered Quad
    """
    if isinstance(corners, Quad):
        corners = corners.as_array()
    pts = np.array([[float(x), float(y)] for x, y in corners], dtype=np.float64)
    if pts.shape != (4, 2):
        raise ValueError(f"Expected 4 points, got {len(pts)}")

    s = pts.sum(axis=1)
    d = pts[:, 0] - pts[:, 1]

    return Quad.from_array([
        pts[np.argmin(s)],  # top-left
        pts[np.argmax(d)],  # top-right
        pts[np.argmax(s)],  # bottom-right
        pts[np.argmin(d)],  # bottom-left
    ])


def corners_stable(a: Optional[Quad], b: Optional[Quad], threshold: float) -> bool:
    """True when every corner of a lies within threshold pixels of the same corner of b."""
    if a is None or b is None:
        return False
    return all(pa.distance_to(pb) <= threshold for pa, pb in zip(a.points, b.points))
