"""
Geometric primitives shared by detection and rectification
"""

import math
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __iter__(self) -> Iterator[float]:
        return iter((self.x, self.y))

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)

    def rounded(self) -> "Point":
        """Nearest integer pixel, used when indexing a buffer."""
        return Point(float(round(self.x)), float(round(self.y)))


@dataclass(frozen=True)
class OutputDimensions:
    width: int
    height: int


@dataclass(frozen=True)
class Quad:
    """
    Four page corners ordered top-left, top-right, bottom-right, bottom-left.

    A Quad coming straight out of contour approximation is not ordered; run it
    through page_detection.ordering.order_corners first.
    """

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)

    @property
    def points(self) -> Tuple[Point, Point, Point, Point]:
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    @classmethod
    def from_array(cls, corners) -> "Quad":
        """
        Build a Quad from anything shaped like (4, 2), keeping the given order.

        Args:
            corners: Sequence or array with 4 [x, y] rows

        Returns:
            Quad with the rows taken as TL, TR, BR, BL
        """
        pts = np.asarray(corners, dtype=np.float64).reshape(4, 2)
        return cls(*(Point(float(x), float(y)) for x, y in pts))

    def as_array(self) -> np.ndarray:
        return np.array([[p.x, p.y] for p in self.points], dtype=np.float32)

    def area(self) -> float:
        """Enclosed area using the shoelace formula."""
        pts = self.points
        total = 0.0
        for i in range(4):
            a = pts[i]
            b = pts[(i + 1) % 4]
            total += a.x * b.y - b.x * a.y
        return abs(total) / 2.0

    def _cross_products(self):
        pts = self.points
        crosses = []
        for i in range(4):
            a = pts[i]
            b = pts[(i + 1) % 4]
            c = pts[(i + 2) % 4]
            crosses.append((b.x - a.x) * (c.y - b.y) - (b.y - a.y) * (c.x - b.x))
        return crosses

    def is_convex(self) -> bool:
        """True when every turn goes the same way and none is straight."""
        crosses = self._cross_products()
        return all(c > 0 for c in crosses) or all(c < 0 for c in crosses)

    def is_simple(self) -> bool:
        """True when the two pairs of opposite edges do not cross."""
        pts = self.points

        def ccw(a, b, c):
            return (c.y - a.y) * (b.x - a.x) > (b.y - a.y) * (c.x - a.x)

        def crosses(p1, p2, p3, p4):
            return ccw(p1, p3, p4) != ccw(p2, p3, p4) and ccw(p1, p2, p3) != ccw(p1, p2, p4)

        return not (crosses(pts[0], pts[1], pts[2], pts[3]) or
                    crosses(pts[1], pts[2], pts[3], pts[0]))

    def is_acceptable(self, width: int, height: int, min_area_ratio: float = 0.1) -> bool:
        """
        Check the accepted-quad invariant against a frame of the given size.

        Args:
            width: Frame width in pixels
            height: Frame height in pixels
            min_area_ratio: Minimum share of the frame the quad must enclose

        Returns:
            True if the quad is convex, simple and large enough
        """
        if width <= 0 or height <= 0:
            return False
        return (self.is_convex() and self.is_simple() and
                self.area() >= width * height * min_area_ratio)

    def scaled(self, factor: float) -> "Quad":
        return Quad(*(p.scaled(factor) for p in self.points))

    def rounded(self) -> "Quad":
        return Quad(*(p.rounded() for p in self.points))

    def edge_lengths(self) -> Tuple[float, float, float, float]:
        """Lengths of the (top, bottom, left, right) edges."""
        return (
            self.top_left.distance_to(self.top_right),
            self.bottom_left.distance_to(self.bottom_right),
            self.top_left.distance_to(self.bottom_left),
            self.top_right.distance_to(self.bottom_right),
        )
