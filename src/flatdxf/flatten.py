from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Iterator, Sequence, Union

from . import codes, geometry
from .document import MODEL_BLOCK, Block, Document, DocumentPhase
from .entity import (
    Arc,
    Circle,
    Dimension,
    Ellipse,
    Entity,
    Face3D,
    Insert,
    Line,
    LwPolyline,
    Point,
    PolyFaceMesh,
    PolygonMesh,
    Polyline,
    Ray,
    Solid,
    Viewport,
    XLine,
)
from .geometry import NUMBER_OF_GRADS, Affine2D, EllipticalArc, make_vertex_list
from .resolve import ResolutionContext, dash_for, resolve_color, resolve_line_type

logger = logging.getLogger(__name__)

# Partial ellipse arcs drawn natively need this extra rotation to line up
# with sampled output. Only confirmed against a single drawing so far.
ELLIPSE_ARC_ROTATION_OFFSET_DEG = -90.0

_IDENTITY = Affine2D.identity()


def _sample_count(sweep: float, step: float) -> int:
    return max(int(math.ceil(abs(sweep) / step)), 1) + 1


@dataclass(frozen=True)
class Segment:
    kind: ClassVar[str] = "segment"

    x1: float
    y1: float
    x2: float
    y2: float
    color: int = codes.DEFAULT_COLOR
    dash: tuple[float, ...] = ()
    transform: Affine2D = _IDENTITY
    stroke_scale: float = 1.0

    def local_points(self) -> list[tuple[float, float]]:
        return [(self.x1, self.y1), (self.x2, self.y2)]

    def world_points(self) -> list[tuple[float, float]]:
        return [self.transform.apply(x, y) for x, y in self.local_points()]


@dataclass(frozen=True)
class ArcPrimitive:
    """Elliptical arc in screen-style angles.

    ``start_angle`` and ``sweep`` follow the y-down convention: the DXF
    (counter-clockwise) angle ``a`` is stored as ``-a`` and a positive DXF
    sweep becomes a negative ``sweep``.
    """

    kind: ClassVar[str] = "arc"

    cx: float
    cy: float
    rx: float
    ry: float
    start_angle: float
    sweep: float
    color: int = codes.DEFAULT_COLOR
    dash: tuple[float, ...] = ()
    transform: Affine2D = _IDENTITY
    stroke_scale: float = 1.0

    @property
    def is_full(self) -> bool:
        return abs(self.sweep) >= 360.0

    def dxf_angles(self) -> tuple[float, float]:
        """Counter-clockwise start and end angles in degrees."""
        start = -self.start_angle
        return start, start - self.sweep

    def local_points(self, step_degrees: float = NUMBER_OF_GRADS) -> list[tuple[float, float]]:
        start, end = self.dxf_angles()
        count = _sample_count(end - start, step_degrees)
        out: list[tuple[float, float]] = []
        for index in range(count):
            angle = math.radians(start + (end - start) * index / (count - 1))
            out.append((self.cx + self.rx * math.cos(angle), self.cy + self.ry * math.sin(angle)))
        return out

    def world_points(self, step_degrees: float = NUMBER_OF_GRADS) -> list[tuple[float, float]]:
        return [self.transform.apply(x, y) for x, y in self.local_points(step_degrees)]


@dataclass(frozen=True)
class PolylinePrimitive:
    kind: ClassVar[str] = "polyline"

    vertices: tuple[float, ...]
    color: int = codes.DEFAULT_COLOR
    dash: tuple[float, ...] = ()
    transform: Affine2D = _IDENTITY
    stroke_scale: float = 1.0

    def local_points(self) -> list[tuple[float, float]]:
        return list(zip(self.vertices[0::2], self.vertices[1::2]))

    def world_points(self) -> list[tuple[float, float]]:
        return [self.transform.apply(x, y) for x, y in self.local_points()]


@dataclass(frozen=True)
class PolygonPrimitive:
    """Closed outline; the edge from the last vertex back to the first is implicit."""

    kind: ClassVar[str] = "polygon"

    vertices: tuple[float, ...]
    color: int = codes.DEFAULT_COLOR
    dash: tuple[float, ...] = ()
    transform: Affine2D = _IDENTITY
    stroke_scale: float = 1.0

    def local_points(self) -> list[tuple[float, float]]:
        return list(zip(self.vertices[0::2], self.vertices[1::2]))

    def world_points(self) -> list[tuple[float, float]]:
        return [self.transform.apply(x, y) for x, y in self.local_points()]


Primitive = Union[Segment, ArcPrimitive, PolylinePrimitive, PolygonPrimitive]


@dataclass
class FlattenResult:
    primitives: list[Primitive] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failed_by_type: Counter = field(default_factory=Counter)

    def __len__(self) -> int:
        return len(self.primitives)

    def __iter__(self) -> Iterator[Primitive]:
        return iter(self.primitives)

    def counts_by_kind(self) -> dict[str, int]:
        return dict(sorted(Counter(primitive.kind for primitive in self.primitives).items()))


def _flat(points: Sequence[tuple[float, float]]) -> tuple[float, ...]:
    out: list[float] = []
    for x, y in points:
        out.append(x)
        out.append(y)
    return tuple(out)


def _open_ring(points: list[tuple[float, float]]) -> list[tuple[float, float]]:
    if len(points) > 2 and geometry.Point(*points[0]) == geometry.Point(*points[-1]):
        return points[:-1]
    return points


class _Emitter:
    def __init__(self, document: Document, result: FlattenResult, *, native_ellipses: bool) -> None:
        self.document = document
        self.result = result
        self.native_ellipses = native_ellipses
        self._active: list[str] = []

    def emit(self, primitive: Primitive) -> None:
        self.result.primitives.append(primitive)

    def block(
        self,
        block: Block,
        transform: Affine2D,
        stroke_scale: float,
        context: ResolutionContext,
    ) -> None:
        self._active.append(block.name.upper())
        try:
            for entity in block.entities:
                self.entity(entity, transform, stroke_scale, context)
        finally:
            self._active.pop()

    def entity(
        self,
        entity: Entity,
        transform: Affine2D,
        stroke_scale: float,
        context: ResolutionContext,
    ) -> None:
        if not self.document.get_layer(entity.common.layer).is_on:
            logger.debug("%s entity %s is on switched-off layer %r", entity.entity_type, entity.handle, entity.layer)
            self.result.skipped += 1
            return
        succeeded = False
        handler = _HANDLERS.get(type(entity))
        if handler is None:
            logger.debug("no flattening for %s entity %s", entity.entity_type, entity.handle)
        else:
            try:
                succeeded = handler(self, entity, transform, stroke_scale, context)
            except Exception:
                logger.exception("failed to flatten %s entity %s", entity.entity_type, entity.handle)
        if succeeded:
            self.result.succeeded += 1
        else:
            self.result.failed += 1
            self.result.failed_by_type[str(entity.entity_type)] += 1

    def _style(
        self,
        entity: Entity,
        transform: Affine2D,
        stroke_scale: float,
        context: ResolutionContext,
        *,
        dashed: bool = True,
    ) -> dict[str, Any]:
        dash: tuple[float, ...] = ()
        if dashed:
            dash = dash_for(self.document, entity, resolve_line_type(self.document, entity, context))
        return {
            "color": resolve_color(self.document, entity, context),
            "dash": dash,
            "transform": transform,
            "stroke_scale": stroke_scale,
        }

    def _path(
        self,
        points: list[tuple[float, float]],
        closed: bool,
        style: dict[str, Any],
    ) -> None:
        if closed:
            self.emit(PolygonPrimitive(_flat(_open_ring(points)), **style))
        else:
            self.emit(PolylinePrimitive(_flat(points), **style))

    def line(self, entity: Line, transform, stroke_scale, context) -> bool:
        style = self._style(entity, transform, stroke_scale, context)
        self.emit(Segment(entity.start[0], entity.start[1], entity.end[0], entity.end[1], **style))
        return True

    def ray(self, entity: Ray | XLine, transform, stroke_scale, context) -> bool:
        (x1, y1), (x2, y2) = entity.segment()
        self.emit(Segment(x1, y1, x2, y2, **self._style(entity, transform, stroke_scale, context)))
        return True

    def arc(self, entity: Arc, transform, stroke_scale, context) -> bool:
        start, end = entity.start_angle, entity.end_angle
        sweep = start - end
        if end < start:
            sweep -= 360.0
        cx, cy = entity.center[0], entity.center[1]
        style = self._style(entity, transform, stroke_scale, context)
        self.emit(ArcPrimitive(cx, cy, entity.radius, entity.radius, -start, sweep, **style))
        return True

    def circle(self, entity: Circle, transform, stroke_scale, context) -> bool:
        cx, cy = entity.center[0], entity.center[1]
        style = self._style(entity, transform, stroke_scale, context)
        self.emit(ArcPrimitive(cx, cy, entity.radius, entity.radius, 0.0, 360.0, **style))
        return True

    def ellipse(self, entity: Ellipse, transform, stroke_scale, context) -> bool:
        line_type = resolve_line_type(self.document, entity, context)
        continuous = line_type is None or line_type.is_continuous()
        closed = entity.is_closed
        cx, cy = entity.center[0], entity.center[1]
        mx, my = entity.major_axis[0], entity.major_axis[1]
        radius = math.hypot(mx, my)
        color = resolve_color(self.document, entity, context)

        if continuous and closed and entity.ratio == 1.0:
            self.emit(ArcPrimitive(cx, cy, radius, radius, 0.0, 360.0, color=color, transform=transform, stroke_scale=stroke_scale))
            return True

        if self.native_ellipses and continuous and transform.is_identity():
            theta = math.degrees(math.atan2(my, mx))
            if closed:
                start, sweep = 0.0, 360.0
            else:
                start = -entity.start_angle
                sweep = entity.start_angle - entity.end_angle
                if entity.end_angle < entity.start_angle:
                    sweep -= 360.0
                theta += ELLIPSE_ARC_ROTATION_OFFSET_DEG
            local = Affine2D.translation(cx, cy).compose(Affine2D.rotation(theta))
            self.emit(
                ArcPrimitive(
                    0.0, 0.0, radius, radius * entity.ratio, start, sweep,
                    color=color, transform=local, stroke_scale=stroke_scale,
                )
            )
            return True

        arc = EllipticalArc((cx, cy), (mx, my), entity.minor_axis(), entity.start_angle, entity.end_angle)
        points = [(vertex.x, vertex.y) for vertex in arc.sample(NUMBER_OF_GRADS)]
        dash = dash_for(self.document, entity, line_type)
        self._path(points, closed, {"color": color, "dash": dash, "transform": transform, "stroke_scale": stroke_scale})
        return True

    def polyline(self, entity: Polyline, transform, stroke_scale, context) -> bool:
        if entity.is_degenerate():
            return False
        need_close = entity.need_close()
        if entity.is_2d:
            vertices = make_vertex_list(entity.poly_vertices, need_close, entity.has_width)
            if not vertices:
                return False
            points = [(vertex.x, vertex.y) for vertex in vertices]
        else:
            points = [(vertex.location[0], vertex.location[1]) for vertex in entity.vertices]
        self._path(points, need_close, self._style(entity, transform, stroke_scale, context))
        return True

    def lwpolyline(self, entity: LwPolyline, transform, stroke_scale, context) -> bool:
        if entity.is_degenerate():
            return False
        need_close = entity.need_close()
        vertices = make_vertex_list(entity.poly_vertices, need_close, entity.has_width)
        if not vertices:
            return False
        points = [(vertex.x, vertex.y) for vertex in vertices]
        self._path(points, need_close, self._style(entity, transform, stroke_scale, context))
        return True

    def polygon_mesh(self, entity: PolygonMesh, transform, stroke_scale, context) -> bool:
        m_count, n_count = entity.m_count, entity.n_count
        vertices = entity.vertices
        if m_count <= 0 or n_count <= 0 or len(vertices) < m_count * n_count:
            logger.debug(
                "polygon mesh %s has %d vertices for a %dx%d grid",
                entity.handle, len(vertices), m_count, n_count,
            )
            return False
        style = self._style(entity, transform, stroke_scale, context, dashed=False)

        def xy(index: int) -> tuple[float, float]:
            location = vertices[index].location
            return (location[0], location[1])

        for n in range(n_count):
            points = [xy(n_count * m + n) for m in range(m_count)]
            self._path(points, entity.m_closed, style)
        for m in range(m_count):
            points = [xy(n_count * m + n) for n in range(n_count)]
            self._path(points, entity.n_closed, style)
        return True

    def polyface_mesh(self, entity: PolyFaceMesh, transform, stroke_scale, context) -> bool:
        if not entity.faces:
            return True
        style = self._style(entity, transform, stroke_scale, context, dashed=False)
        vertices = entity.vertices
        for face in entity.faces:
            points: list[tuple[float, float]] = []
            for index in face.indices:
                position = abs(index) - 1
                if position < 0 or position >= len(vertices):
                    logger.debug("polyface mesh %s: face index %d out of range", entity.handle, index)
                    points = []
                    break
                location = vertices[position].location
                points.append((location[0], location[1]))
            if len(points) < 2:
                continue
            self.emit(PolygonPrimitive(_flat(points), **style))
        return True

    def face(self, entity: Face3D | Solid, transform, stroke_scale, context) -> bool:
        points = [(corner[0], corner[1]) for corner in entity.outline()]
        style = self._style(entity, transform, stroke_scale, context, dashed=False)
        self.emit(PolygonPrimitive(_flat(points), **style))
        return True

    def _target_block(self, entity: Entity, name: str | None) -> Block | None:
        name = (name or "").strip()
        if not name:
            logger.debug("%s entity %s has no block name", entity.entity_type, entity.handle)
            return None
        block = self.document.get_block(name)
        if block is None:
            logger.debug("%s entity %s references unknown block %r", entity.entity_type, entity.handle, name)
            return None
        if block.name.upper() in self._active:
            logger.warning("block %r references itself; skipping", block.name)
            return None
        return block

    def insert(self, entity: Insert, transform, stroke_scale, context) -> bool:
        block = self._target_block(entity, entity.block_name)
        if block is None:
            return False
        child = ResolutionContext(
            color=resolve_color(self.document, entity, context),
            line_type=resolve_line_type(self.document, entity, context),
            override=block.property_override,
        )
        self.block(block, transform.compose(entity.transform), stroke_scale * entity.stroke_scale, child)
        return True

    def dimension(self, entity: Dimension, transform, stroke_scale, context) -> bool:
        block = self._target_block(entity, entity.block_name)
        if block is None:
            return False
        child = ResolutionContext(
            color=resolve_color(self.document, entity, context),
            line_type=context.line_type,
            override=block.property_override,
        )
        self.block(block, transform, stroke_scale, child)
        return True

    def nothing(self, entity: Point | Viewport, transform, stroke_scale, context) -> bool:
        return False


_Handler = Callable[[_Emitter, Any, Affine2D, float, ResolutionContext], bool]

_HANDLERS: dict[type, _Handler] = {
    Line: _Emitter.line,
    Ray: _Emitter.ray,
    XLine: _Emitter.ray,
    Arc: _Emitter.arc,
    Circle: _Emitter.circle,
    Ellipse: _Emitter.ellipse,
    Polyline: _Emitter.polyline,
    LwPolyline: _Emitter.lwpolyline,
    PolygonMesh: _Emitter.polygon_mesh,
    PolyFaceMesh: _Emitter.polyface_mesh,
    Face3D: _Emitter.face,
    Solid: _Emitter.face,
    Insert: _Emitter.insert,
    Dimension: _Emitter.dimension,
    Point: _Emitter.nothing,
    Viewport: _Emitter.nothing,
}


def flatten(
    document: Document,
    block_name: str = MODEL_BLOCK,
    *,
    transform: Affine2D | None = None,
    stroke_scale: float = 1.0,
    native_ellipses: bool = False,
) -> FlattenResult:
    """Flatten one block of a parsed document into 2D primitives in paint order."""
    document._require_phase(DocumentPhase.FLATTENING)
    if stroke_scale <= 0:
        raise ValueError(f"stroke_scale must be positive: {stroke_scale}")
    block = document.require_block(block_name)
    result = FlattenResult()
    emitter = _Emitter(document, result, native_ellipses=native_ellipses)
    context = ResolutionContext(override=block.property_override)
    emitter.block(block, transform or _IDENTITY, stroke_scale, context)
    logger.debug(
        "flattened %s: %d primitives, %d entities ok, %d failed, %d skipped",
        block.name, len(result.primitives), result.succeeded, result.failed, result.skipped,
    )
    return result
