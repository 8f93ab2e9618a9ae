"""Affine matrices and axis-aligned boxes used by the map core.

Matrices follow the SVG convention ``(a, b, c, d, e, f)``::

    x' = a*x + c*y + e
    y' = b*x + d*y + f

``m1 @ m2`` applies ``m2`` first, then ``m1``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from pygame.math import Vector2

_EPS = 1e-12


class SingularTransformError(ValueError):
    """Raised when a matrix without an inverse is inverted."""


@dataclass(frozen=True, slots=True)
class Affine:
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> "Affine":
        return cls()

    @classmethod
    def translate(cls, tx: float, ty: float = 0.0) -> "Affine":
        return cls(e=float(tx), f=float(ty))

    @classmethod
    def scale(cls, sx: float, sy: float | None = None) -> "Affine":
        sy = sx if sy is None else sy
        return cls(a=float(sx), d=float(sy))

    @classmethod
    def rotate(cls, degrees: float, cx: float = 0.0, cy: float = 0.0) -> "Affine":
        rad = math.radians(degrees)
        cos_t, sin_t = math.cos(rad), math.sin(rad)
        rot = cls(a=cos_t, b=sin_t, c=-sin_t, d=cos_t)
        if cx == 0.0 and cy == 0.0:
            return rot
        return cls.translate(cx, cy) @ rot @ cls.translate(-cx, -cy)

    @classmethod
    def skew_x(cls, degrees: float) -> "Affine":
        return cls(c=math.tan(math.radians(degrees)))

    @classmethod
    def skew_y(cls, degrees: float) -> "Affine":
        return cls(b=math.tan(math.radians(degrees)))

    def __matmul__(self, other: "Affine") -> "Affine":
        return Affine(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.a, self.b, self.c, self.d, self.e, self.f))

    def inverse(self) -> "Affine":
        det = self.determinant
        if not self.is_finite() or abs(det) < _EPS:
            raise SingularTransformError(f"matrix is not invertible (det={det!r})")
        inv = 1.0 / det
        return Affine(
            a=self.d * inv,
            b=-self.b * inv,
            c=-self.c * inv,
            d=self.a * inv,
            e=(self.c * self.f - self.d * self.e) * inv,
            f=(self.b * self.e - self.a * self.f) * inv,
        )

    def apply(self, x: float, y: float) -> Vector2:
        return Vector2(self.a * x + self.c * y + self.e, self.b * x + self.d * y + self.f)

    def apply_point(self, point: Vector2 | tuple[float, float]) -> Vector2:
        return self.apply(point[0], point[1])


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned rectangle; ``width``/``height`` may be zero for a point."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_points(cls, points: Iterable[Vector2 | tuple[float, float]]) -> "BoundingBox | None":
        xs: list[float] = []
        ys: list[float] = []
        for p in points:
            xs.append(float(p[0]))
            ys.append(float(p[1]))
        if not xs:
            return None
        x0, y0 = min(xs), min(ys)
        return cls(x=x0, y=y0, width=max(xs) - x0, height=max(ys) - y0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Vector2:
        return Vector2(self.x + self.width / 2.0, self.y + self.height / 2.0)

    def corners(self) -> tuple[Vector2, Vector2, Vector2, Vector2]:
        return (
            Vector2(self.x, self.y),
            Vector2(self.right, self.y),
            Vector2(self.right, self.bottom),
            Vector2(self.x, self.bottom),
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height))

    def is_degenerate(self) -> bool:
        return (not self.is_finite()) or self.width <= 0.0 or self.height <= 0.0

    def contains(self, point: Vector2 | tuple[float, float]) -> bool:
        px, py = float(point[0]), float(point[1])
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def union(self, other: "BoundingBox") -> "BoundingBox":
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        return BoundingBox(
            x=x0,
            y=y0,
            width=max(self.right, other.right) - x0,
            height=max(self.bottom, other.bottom) - y0,
        )

    def padded(self, fraction: float) -> "BoundingBox":
        """Grow by ``fraction`` of the width/height on each side of each axis."""

        pad_x = self.width * fraction
        pad_y = self.height * fraction
        return BoundingBox(
            x=self.x - pad_x,
            y=self.y - pad_y,
            width=self.width + 2.0 * pad_x,
            height=self.height + 2.0 * pad_y,
        )

    def transformed(self, matrix: Affine) -> "BoundingBox":
        # All four corners: rotation or skew moves the extremes off the diagonal.
        box = BoundingBox.from_points(matrix.apply_point(p) for p in self.corners())
        assert box is not None
        return box

    def as_view_box(self) -> str:
        return f"{self.x:g} {self.y:g} {self.width:g} {self.height:g}"


def union_all(boxes: Iterable[BoundingBox | None]) -> BoundingBox | None:
    out: BoundingBox | None = None
    for box in boxes:
        if box is None:
            continue
        out = box if out is None else out.union(box)
    return out
