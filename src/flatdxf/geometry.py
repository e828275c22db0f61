from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

POINT_TOLERANCE = 1.0e-4
NUMBER_OF_GRADS = 5.0
MAX_SAMPLE_STEP_DEG = 20.0

# (float)bulge == 0 in single precision
_BULGE_ZERO = 2.0**-150


@dataclass(frozen=True, eq=False)
class Point:
    x: float
    y: float
    z: float = 0.0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, (Point, Vertex, PolyVertex)):
            return NotImplemented
        return same_xy(self.x, self.y, other.x, other.y)

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class Vertex:
    x: float
    y: float
    start_width: float = 0.0
    end_width: float = 0.0


@dataclass
class PolyVertex:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    start_width: float = 0.0
    end_width: float = 0.0
    bulge: float = 0.0

    def arc_to(self, x2: float, y2: float) -> "EllipticalArc | None":
        return arc_from_bulge(self.bulge, self.x, self.y, x2, y2)

    @property
    def point(self) -> Point:
        return Point(self.x, self.y, self.z)

    def coincides(self, other: "PolyVertex") -> bool:
        return self.point == other.point


def same_xy(x1: float, y1: float, x2: float, y2: float) -> bool:
    return abs(x1 - x2) <= POINT_TOLERANCE and abs(y1 - y2) <= POINT_TOLERANCE


@dataclass(frozen=True)
class EllipticalArc:
    """Arc of an ellipse given by its center and the two half-axis vectors.

    Angles are parametric, in degrees. A circle is the special case where
    both axis vectors have the same length and are perpendicular.
    """

    center: tuple[float, float]
    major: tuple[float, float]
    minor: tuple[float, float]
    start_angle: float
    end_angle: float

    @classmethod
    def circular(
        cls, cx: float, cy: float, radius: float, start_angle: float, end_angle: float
    ) -> "EllipticalArc":
        return cls((cx, cy), (radius, 0.0), (0.0, radius), start_angle, end_angle)

    def total_sweep(self) -> float:
        sweep = self.end_angle - self.start_angle
        if self.end_angle < self.start_angle:
            sweep += 360.0
        return sweep

    def sample(self, step_degrees: float) -> list[Vertex]:
        if step_degrees == 0:
            step = 1.0
        else:
            step = min(MAX_SAMPLE_STEP_DEG, step_degrees)
        sweep = self.total_sweep()
        # halves round up
        count = max(math.floor(sweep / step + 0.5) + 1, 2)
        actual_step = sweep / (count - 1)

        cx, cy = self.center
        max_, may = self.major
        mix, miy = self.minor
        out: list[Vertex] = []
        for i in range(count):
            angle = math.radians((self.start_angle + i * actual_step) % 360.0)
            cos_a = math.cos(angle)
            sin_a = math.sin(angle)
            out.append(Vertex(cx + max_ * cos_a + mix * sin_a, cy + may * cos_a + miy * sin_a))
        return out


def arc_from_bulge(
    bulge: float, x1: float, y1: float, x2: float, y2: float
) -> EllipticalArc | None:
    if abs(bulge) <= _BULGE_ZERO:
        return None
    cotan = 0.5 * (1.0 / bulge - bulge)
    cx = 0.5 * ((x1 + x2) - (y2 - y1) * cotan)
    cy = 0.5 * ((y2 + y1) + (x2 - x1) * cotan)
    radius = math.hypot(cx - x1, cy - y1)
    start = _angle_about(cx, cy, x1, y1)
    end = _angle_about(cx, cy, x2, y2)
    if bulge < 0.0:
        start, end = end, start
    return EllipticalArc.circular(cx, cy, radius, start, end)


def _angle_about(cx: float, cy: float, x: float, y: float) -> float:
    angle = math.degrees(math.atan2(y - cy, x - cx))
    if angle < 0.0:
        angle += 360.0
    return angle


@dataclass(frozen=True)
class Affine2D:
    """2D affine map ``x' = mxx*x + mxy*y + tx``, ``y' = myx*x + myy*y + ty``."""

    mxx: float = 1.0
    myx: float = 0.0
    mxy: float = 0.0
    myy: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def identity(cls) -> "Affine2D":
        return cls()

    @classmethod
    def rotation(cls, degrees: float) -> "Affine2D":
        rad = math.radians(degrees)
        cos_a = math.cos(rad)
        sin_a = math.sin(rad)
        return cls(cos_a, sin_a, -sin_a, cos_a, 0.0, 0.0)

    @classmethod
    def scaling(cls, sx: float, sy: float) -> "Affine2D":
        return cls(sx, 0.0, 0.0, sy, 0.0, 0.0)

    @classmethod
    def translation(cls, tx: float, ty: float) -> "Affine2D":
        return cls(1.0, 0.0, 0.0, 1.0, tx, ty)

    def compose(self, other: "Affine2D") -> "Affine2D":
        return Affine2D(
            mxx=self.mxx * other.mxx + self.mxy * other.myx,
            myx=self.myx * other.mxx + self.myy * other.myx,
            mxy=self.mxx * other.mxy + self.mxy * other.myy,
            myy=self.myx * other.mxy + self.myy * other.myy,
            tx=self.mxx * other.tx + self.mxy * other.ty + self.tx,
            ty=self.myx * other.tx + self.myy * other.ty + self.ty,
        )

    def with_translation(self, tx: float, ty: float) -> "Affine2D":
        return Affine2D(self.mxx, self.myx, self.mxy, self.myy, tx, ty)

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return (
            self.mxx * x + self.mxy * y + self.tx,
            self.myx * x + self.myy * y + self.ty,
        )

    def is_identity(self) -> bool:
        return self == _IDENTITY

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (self.mxx, self.myx, self.mxy, self.myy, self.tx, self.ty)


_IDENTITY = Affine2D()


def block_transform(
    insert_x: float,
    insert_y: float,
    scale_x: float,
    scale_y: float,
    rotation_deg: float,
) -> tuple[Affine2D, float]:
    transform = Affine2D.rotation(math.fmod(rotation_deg, 360.0)).compose(
        Affine2D.scaling(scale_x, scale_y)
    )
    # insertion point is in the parent frame, not pushed through rotate/scale
    transform = transform.with_translation(insert_x, insert_y)
    average_scale = 0.5 * (scale_x + scale_y)
    stroke_scale = 1.0 / average_scale if average_scale != 0.0 else 1.0
    return transform, stroke_scale


def make_vertex_list(
    poly_vertices: Sequence[PolyVertex],
    closed: bool,
    has_width: bool,
    step_degrees: float = NUMBER_OF_GRADS,
) -> list[Vertex]:
    count = len(poly_vertices)
    if count < 2:
        return []
    segment_count = count if closed else count - 1

    out: list[Vertex] = []
    for index in range(segment_count):
        v1 = poly_vertices[index]
        v2 = poly_vertices[(index + 1) % count]
        arc = v1.arc_to(v2.x, v2.y)
        if arc is None:
            piece = [
                Vertex(v1.x, v1.y, v1.start_width, v1.end_width),
                Vertex(v2.x, v2.y, v2.start_width, v2.end_width),
            ]
        else:
            piece = _arc_piece(arc.sample(step_degrees), v1, v1.bulge < 0.0, has_width)
        if out:
            out[-1] = piece[0]
            out.extend(piece[1:])
        else:
            out.extend(piece)
    return out


def _arc_piece(
    samples: list[Vertex], v1: PolyVertex, reverse: bool, has_width: bool
) -> list[Vertex]:
    if reverse:
        samples = samples[::-1]
    if not has_width:
        return [Vertex(s.x, s.y) for s in samples]
    increase = (v1.end_width - v1.start_width) / len(samples)
    out: list[Vertex] = []
    start = v1.start_width
    for sample in samples:
        end = start + increase
        out.append(Vertex(sample.x, sample.y, start, end))
        start = end
    return out
