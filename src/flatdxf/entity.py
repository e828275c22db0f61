from __future__ import annotations

import math
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Union

from . import codes, geometry
from .errors import EntityDiscarded, UnsupportedEntityKind
from .geometry import Affine2D, PolyVertex, block_transform
from .pairs import PairContainer
from .types import EntityType

if TYPE_CHECKING:
    from .document import Block

Point3D = tuple[float, float, float]

RAY_LENGTH = 300.0
XLINE_HALF_LENGTH = 150.0
DEFAULT_LAYER_NAME = "0"


@dataclass
class EntityCommon:
    entity_type: EntityType
    handle: str | None = None
    owner_id: str | None = None
    in_paper_space: bool = False
    layer: str = DEFAULT_LAYER_NAME
    color_index: int = codes.COLOR_BY_LAYER
    line_type: str = codes.LINE_TYPE_BY_LAYER
    line_type_scale: float = 1.0
    visible: bool = True
    _parent: "weakref.ref[Block] | None" = field(default=None, repr=False, compare=False)

    @property
    def parent_block(self) -> "Block | None":
        if self._parent is None:
            return None
        return self._parent()

    def set_parent(self, block: "Block") -> None:
        current = self.parent_block
        if current is not None and current is not block:
            raise ValueError(f"{self.entity_type} entity already belongs to block {current.name!r}")
        self._parent = weakref.ref(block)


class _EntityFields:
    common: EntityCommon

    @property
    def entity_type(self) -> EntityType:
        return self.common.entity_type

    @property
    def dxftype(self) -> str:
        return self.common.entity_type.value

    @property
    def handle(self) -> str | None:
        return self.common.handle

    @property
    def layer(self) -> str:
        return self.common.layer


@dataclass
class Line(_EntityFields):
    common: EntityCommon
    start: Point3D
    end: Point3D
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)


@dataclass
class Arc(_EntityFields):
    common: EntityCommon
    center: Point3D
    radius: float
    start_angle: float
    end_angle: float
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)


@dataclass
class Circle(_EntityFields):
    common: EntityCommon
    center: Point3D
    radius: float
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)


@dataclass
class Ray(_EntityFields):
    common: EntityCommon
    base: Point3D
    direction: Point3D

    def segment(self) -> tuple[tuple[float, float], tuple[float, float]]:
        bx, by = self.base[0], self.base[1]
        dx, dy = self.direction[0], self.direction[1]
        return (bx, by), (bx + RAY_LENGTH * dx, by + RAY_LENGTH * dy)


@dataclass
class XLine(_EntityFields):
    common: EntityCommon
    base: Point3D
    direction: Point3D

    def segment(self) -> tuple[tuple[float, float], tuple[float, float]]:
        bx, by = self.base[0], self.base[1]
        dx, dy = self.direction[0], self.direction[1]
        return (
            (bx - XLINE_HALF_LENGTH * dx, by - XLINE_HALF_LENGTH * dy),
            (bx + XLINE_HALF_LENGTH * dx, by + XLINE_HALF_LENGTH * dy),
        )


@dataclass
class Ellipse(_EntityFields):
    common: EntityCommon
    center: Point3D
    major_axis: Point3D
    ratio: float
    start_angle: float
    end_angle: float
    extrusion: Point3D = (0.0, 0.0, 1.0)

    @property
    def is_closed(self) -> bool:
        # 2*pi radians does not always convert back to exactly 360.0
        return (self.end_angle - self.start_angle) >= 360.0 - 1e-9

    def minor_axis(self) -> tuple[float, float]:
        mx, my = self.major_axis[0], self.major_axis[1]
        return (-my * self.ratio, mx * self.ratio)


@dataclass
class Point(_EntityFields):
    common: EntityCommon
    location: Point3D


@dataclass
class Vertex(_EntityFields):
    FLAG_CONTROL_POINT = 16
    FLAG_3D_POLYLINE = 32
    FLAG_3D_POLYGON_MESH = 64
    FLAG_POLYFACE_MESH = 128

    common: EntityCommon
    location: Point3D
    raw_start_width: float = 0.0
    raw_end_width: float = 0.0
    raw_bulge: float = 0.0
    flags: int = 0

    @property
    def is_control_point(self) -> bool:
        return bool(self.flags & self.FLAG_CONTROL_POINT)

    @property
    def is_2d(self) -> bool:
        return self.flags < self.FLAG_3D_POLYLINE

    @property
    def start_width(self) -> float:
        return self.raw_start_width if self.is_2d else 0.0

    @property
    def end_width(self) -> float:
        return self.raw_end_width if self.is_2d else 0.0

    @property
    def bulge(self) -> float:
        return self.raw_bulge if self.is_2d else 0.0

    def to_poly_vertex(self) -> PolyVertex:
        x, y, z = self.location
        return PolyVertex(x, y, z, self.start_width, self.end_width, self.bulge)


class FaceType(Enum):
    UNDEFINED = 0
    POINT = 1
    LINE = 2
    TRIANGLE = 3
    QUAD = 4


@dataclass
class FaceDef(_EntityFields):
    common: EntityCommon
    indices: tuple[int, ...]

    @property
    def face_type(self) -> FaceType:
        try:
            return FaceType(len(self.indices))
        except ValueError:
            return FaceType.UNDEFINED


@dataclass
class Polyline(_EntityFields):
    FLAG_CLOSED = 1
    FLAG_3D_POLYLINE = 8
    FLAG_POLYGON_MESH = 16
    FLAG_POLYFACE_MESH = 64

    common: EntityCommon
    flags: int = 0
    default_start_width: float = 0.0
    default_end_width: float = 0.0
    surface_type: int = 0
    elevation: Point3D = (0.0, 0.0, 0.0)
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)
    control_points: list[Vertex] = field(default_factory=list)
    vertices: list[Vertex] = field(default_factory=list)
    poly_vertices: list[PolyVertex] = field(default_factory=list)
    has_width: bool = False

    def add_entity(self, entity: "Entity") -> None:
        if not isinstance(entity, Vertex):
            return
        if entity.is_control_point:
            self.control_points.append(entity)
        elif not entity.is_2d:
            self.vertices.append(entity)
        else:
            poly_vertex = entity.to_poly_vertex()
            self.poly_vertices.append(poly_vertex)
            self.has_width = self.has_width or poly_vertex.start_width > 0 or poly_vertex.end_width > 0

    @property
    def is_closed(self) -> bool:
        return bool(self.flags & self.FLAG_CLOSED)

    @property
    def is_2d(self) -> bool:
        return not self.flags & self.FLAG_3D_POLYLINE

    def path_length(self) -> int:
        return len(self.poly_vertices) if self.is_2d else len(self.vertices)

    def is_degenerate(self) -> bool:
        return self.path_length() < 2

    def need_close(self) -> bool:
        if not self.is_closed or self.is_degenerate():
            return False
        if self.is_2d:
            return not self.poly_vertices[0].coincides(self.poly_vertices[-1])
        first, last = self.vertices[0].location, self.vertices[-1].location
        return geometry.Point(*first) != geometry.Point(*last)


@dataclass
class PolygonMesh(Polyline):
    FLAG_M_CLOSED = 1
    FLAG_N_CLOSED = 32

    m_count: int = 0
    n_count: int = 0
    m_density: int = 0
    n_density: int = 0

    @property
    def m_closed(self) -> bool:
        return bool(self.flags & self.FLAG_M_CLOSED)

    @property
    def n_closed(self) -> bool:
        return bool(self.flags & self.FLAG_N_CLOSED)


@dataclass
class PolyFaceMesh(Polyline):
    vertex_count: int = 0
    face_count: int = 0
    faces: list[FaceDef] = field(default_factory=list)

    def add_entity(self, entity: "Entity") -> None:
        if isinstance(entity, FaceDef):
            self.faces.append(entity)
            return
        super().add_entity(entity)


@dataclass
class LwPolyline(_EntityFields):
    FLAG_CLOSED = 1

    common: EntityCommon
    vertex_count: int = 0
    flags: int = 0
    constant_width: float = 0.0
    elevation: float = 0.0
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)
    poly_vertices: list[PolyVertex] = field(default_factory=list)
    has_width: bool = False

    @property
    def is_closed(self) -> bool:
        return bool(self.flags & self.FLAG_CLOSED)

    def is_degenerate(self) -> bool:
        return len(self.poly_vertices) < 2

    def need_close(self) -> bool:
        if not self.is_closed or self.is_degenerate():
            return False
        return not self.poly_vertices[0].coincides(self.poly_vertices[-1])


@dataclass
class Face3D(_EntityFields):
    common: EntityCommon
    corners: tuple[Point3D, Point3D, Point3D, Point3D]
    invisible_edges: int = 0

    @property
    def is_triangle(self) -> bool:
        return self.corners[3] == self.corners[2]

    def outline(self) -> list[Point3D]:
        return list(self.corners[:3] if self.is_triangle else self.corners)


@dataclass
class Solid(_EntityFields):
    common: EntityCommon
    corners: tuple[Point3D, Point3D, Point3D, Point3D]
    thickness: float = 0.0
    extrusion: Point3D = (0.0, 0.0, 1.0)

    def outline(self) -> list[Point3D]:
        c1, c2, c3, c4 = self.corners
        if c4 == c3:
            return [c1, c2, c3]
        # SOLID/TRACE store the quad in zig-zag order
        return [c1, c2, c4, c3]


@dataclass
class Insert(_EntityFields):
    common: EntityCommon
    block_name: str
    insert: Point3D
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0
    transform: Affine2D = field(default_factory=Affine2D.identity)
    stroke_scale: float = 1.0

    def add_entity(self, entity: "Entity") -> None:
        # attribute records hang off inserts; they are not drawn
        return None


@dataclass
class Dimension(_EntityFields):
    common: EntityCommon
    block_name: str | None
    style: str | None = None
    defpoint: tuple[float, float] = (0.0, 0.0)
    text_point: tuple[float, float] = (0.0, 0.0)
    text: str | None = None
    measurement: float = 0.0
    text_rotation: float = 0.0
    horizontal_direction: float = 0.0


@dataclass
class Viewport(_EntityFields):
    common: EntityCommon
    center: tuple[float, float]
    width: float
    height: float
    view_center: tuple[float, float]
    view_height: float
    viewport_id: int = 0

    @property
    def scale(self) -> float:
        if self.view_height == 0.0:
            return 1.0
        return self.height / self.view_height

    @property
    def view_width(self) -> float:
        if self.height == 0.0:
            return 0.0
        return self.width * self.view_height / self.height

    @property
    def transform(self) -> Affine2D:
        scale = self.scale
        return Affine2D.scaling(scale, scale).compose(
            Affine2D.translation(
                self.center[0] - self.view_center[0] * scale,
                self.center[1] - self.view_center[1] * scale,
            )
        )

    def bounds(self) -> tuple[float, float, float, float]:
        half_w = 0.5 * self.width
        half_h = 0.5 * self.height
        cx, cy = self.center
        return (cx - half_w, cy - half_h, cx + half_w, cy + half_h)


Entity = Union[
    Line,
    Arc,
    Circle,
    Ray,
    XLine,
    Ellipse,
    Point,
    Vertex,
    FaceDef,
    Polyline,
    PolygonMesh,
    PolyFaceMesh,
    LwPolyline,
    Face3D,
    Solid,
    Insert,
    Dimension,
    Viewport,
]

CONTAINER_TYPES = (Polyline, Insert)


def is_container(entity: object) -> bool:
    return isinstance(entity, CONTAINER_TYPES)


def decode_common(
    entity_type: EntityType, pairs: PairContainer, *, ignore_paper_space: bool
) -> EntityCommon:
    source = pairs.subclass_pairs("AcDbEntity")
    if source is None:
        source = pairs
    in_paper_space = source.get_int(codes.PAPER_SPACE, 0) != 0
    if in_paper_space and ignore_paper_space:
        raise EntityDiscarded(f"paper space {entity_type} ignored")
    return EntityCommon(
        entity_type=entity_type,
        handle=pairs.first_value(codes.HANDLE),
        owner_id=pairs.first_value(codes.OWNER_ID),
        in_paper_space=in_paper_space,
        layer=source.get_str(codes.LAYER, DEFAULT_LAYER_NAME),
        color_index=source.get_int(codes.COLOR, codes.COLOR_BY_LAYER),
        line_type=source.get_str(codes.LINE_TYPE, codes.LINE_TYPE_BY_LAYER),
        line_type_scale=source.get_float(codes.LINE_TYPE_SCALE, 1.0),
        # group 60: 0 visible, 1 invisible
        visible=source.get_int(codes.VISIBLE, 0) == 0,
    )


def _point(pairs: PairContainer, x_code: int) -> Point3D:
    return (
        pairs.get_float(x_code),
        pairs.get_float(x_code + 10),
        pairs.get_float(x_code + 20),
    )


def _extrusion(pairs: PairContainer) -> Point3D:
    return (
        pairs.get_float(codes.NORMAL_X, 0.0),
        pairs.get_float(codes.NORMAL_Y, 0.0),
        pairs.get_float(codes.NORMAL_Z, 1.0),
    )


def _decode_line(common: EntityCommon, pairs: PairContainer) -> Line:
    return Line(
        common=common,
        start=_point(pairs, codes.X),
        end=_point(pairs, codes.X1),
        thickness=pairs.get_float(codes.THICKNESS),
        extrusion=_extrusion(pairs),
    )


def _decode_arc(common: EntityCommon, pairs: PairContainer) -> Arc:
    return Arc(
        common=common,
        center=_point(pairs, codes.X),
        radius=pairs.get_float(codes.FLOAT_40),
        start_angle=pairs.get_float(codes.ANGLE_50),
        end_angle=pairs.get_float(codes.ANGLE_51),
        thickness=pairs.get_float(codes.THICKNESS),
        extrusion=_extrusion(pairs),
    )


def _decode_circle(common: EntityCommon, pairs: PairContainer) -> Circle:
    return Circle(
        common=common,
        center=_point(pairs, codes.X),
        radius=pairs.get_float(codes.FLOAT_40),
        thickness=pairs.get_float(codes.THICKNESS),
        extrusion=_extrusion(pairs),
    )


def _decode_ray(common: EntityCommon, pairs: PairContainer) -> Ray:
    return Ray(common=common, base=_point(pairs, codes.X), direction=_point(pairs, codes.X1))


def _decode_xline(common: EntityCommon, pairs: PairContainer) -> XLine:
    return XLine(common=common, base=_point(pairs, codes.X), direction=_point(pairs, codes.X1))


def _decode_ellipse(common: EntityCommon, pairs: PairContainer) -> Ellipse:
    return Ellipse(
        common=common,
        center=_point(pairs, codes.X),
        major_axis=_point(pairs, codes.X1),
        ratio=pairs.get_float(codes.FLOAT_40, 1.0),
        start_angle=math.degrees(pairs.get_float(codes.FLOAT_41, 0.0)),
        end_angle=math.degrees(pairs.get_float(codes.FLOAT_42, 2.0 * math.pi)),
        extrusion=_extrusion(pairs),
    )


def _decode_point(common: EntityCommon, pairs: PairContainer) -> Point:
    return Point(common=common, location=_point(pairs, codes.X))


def _decode_vertex(common: EntityCommon, pairs: PairContainer) -> Vertex | FaceDef:
    if pairs.get_int(codes.INT_71, 0) != 0:
        return _decode_face_def(common, pairs)
    return Vertex(
        common=common,
        location=_point(pairs, codes.X),
        raw_start_width=pairs.get_float(codes.FLOAT_40),
        raw_end_width=pairs.get_float(codes.FLOAT_41),
        raw_bulge=pairs.get_float(codes.FLOAT_42),
        flags=pairs.get_int(codes.FLAGS),
    )


def _decode_face_def(common: EntityCommon, pairs: PairContainer) -> FaceDef:
    common.entity_type = EntityType.FACEDEF
    raw = [pairs.get_int(code, 0) for code in (codes.INT_71, codes.INT_72, codes.INT_73, codes.INT_74)]
    while raw and raw[-1] == 0:
        raw.pop()
    return FaceDef(common=common, indices=tuple(raw))


def _polyline_fields(pairs: PairContainer) -> dict:
    return {
        "flags": pairs.get_int(codes.FLAGS),
        "default_start_width": pairs.get_float(codes.FLOAT_40),
        "default_end_width": pairs.get_float(codes.FLOAT_41),
        "surface_type": pairs.get_int(codes.INT_75),
        "elevation": _point(pairs, codes.X),
        "thickness": pairs.get_float(codes.THICKNESS),
        "extrusion": _extrusion(pairs),
    }


def _decode_polyline(common: EntityCommon, pairs: PairContainer) -> Polyline:
    fields = _polyline_fields(pairs)
    flags = fields["flags"]
    if flags & Polyline.FLAG_POLYGON_MESH:
        common.entity_type = EntityType.POLYGON3D
        return PolygonMesh(
            common=common,
            m_count=pairs.get_int(codes.INT_71),
            n_count=pairs.get_int(codes.INT_72),
            m_density=pairs.get_int(codes.INT_73),
            n_density=pairs.get_int(codes.INT_74),
            **fields,
        )
    if flags & Polyline.FLAG_POLYFACE_MESH:
        common.entity_type = EntityType.POLYFACE3D
        return PolyFaceMesh(
            common=common,
            vertex_count=pairs.get_int(codes.INT_71),
            face_count=pairs.get_int(codes.INT_72),
            **fields,
        )
    return Polyline(common=common, **fields)


def _decode_lwpolyline(common: EntityCommon, pairs: PairContainer) -> LwPolyline:
    constant_width = pairs.get_float(codes.FLOAT_43)
    entity = LwPolyline(
        common=common,
        vertex_count=pairs.get_int(codes.INT_90),
        flags=pairs.get_int(codes.FLAGS),
        constant_width=constant_width,
        elevation=pairs.get_float(codes.ELEVATION),
        thickness=pairs.get_float(codes.THICKNESS),
        extrusion=_extrusion(pairs),
        has_width=constant_width > 0.0,
    )
    current: PolyVertex | None = None
    for pair in pairs.iter_from(codes.X):
        if pair.code == codes.X:
            current = PolyVertex(
                x=_float(pair.value),
                start_width=constant_width,
                end_width=constant_width,
            )
            entity.poly_vertices.append(current)
            continue
        if current is None:
            continue
        if pair.code == codes.Y:
            current.y = _float(pair.value)
        elif pair.code == codes.Z:
            current.z = _float(pair.value)
        elif pair.code == codes.FLOAT_40 and constant_width <= 0.0:
            current.start_width = _float(pair.value)
            entity.has_width = entity.has_width or current.start_width > 0.0
        elif pair.code == codes.FLOAT_41 and constant_width <= 0.0:
            current.end_width = _float(pair.value)
            entity.has_width = entity.has_width or current.end_width > 0.0
        elif pair.code == codes.FLOAT_42:
            current.bulge = _float(pair.value)
    return entity


def _float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 0.0


def _corners(pairs: PairContainer) -> tuple[Point3D, Point3D, Point3D, Point3D]:
    return (
        _point(pairs, codes.X),
        _point(pairs, codes.X1),
        _point(pairs, codes.X2),
        _point(pairs, codes.X3),
    )


def _decode_face3d(common: EntityCommon, pairs: PairContainer) -> Face3D:
    return Face3D(common=common, corners=_corners(pairs), invisible_edges=pairs.get_int(codes.FLAGS))


def _decode_solid(common: EntityCommon, pairs: PairContainer) -> Solid:
    return Solid(
        common=common,
        corners=_corners(pairs),
        thickness=pairs.get_float(codes.THICKNESS),
        extrusion=_extrusion(pairs),
    )


def _decode_insert(common: EntityCommon, pairs: PairContainer) -> Insert:
    insert = _point(pairs, codes.X)
    scale_x = pairs.get_float(codes.FLOAT_41, 1.0)
    scale_y = pairs.get_float(codes.FLOAT_42, 1.0)
    rotation = pairs.get_float(codes.ANGLE_50, 0.0)
    transform, stroke_scale = block_transform(insert[0], insert[1], scale_x, scale_y, rotation)
    return Insert(
        common=common,
        block_name=pairs.get_str(codes.NAME),
        insert=insert,
        scale_x=scale_x,
        scale_y=scale_y,
        rotation=rotation,
        transform=transform,
        stroke_scale=stroke_scale,
    )


def _decode_dimension(common: EntityCommon, pairs: PairContainer) -> Dimension:
    source = pairs.subclass_pairs("AcDbDimension")
    if source is None:
        source = pairs
    return Dimension(
        common=common,
        block_name=source.first_value(codes.NAME),
        style=source.first_value(codes.TEXT_3),
        defpoint=(source.get_float(codes.X), source.get_float(codes.Y)),
        text_point=(source.get_float(codes.X1), source.get_float(codes.Y1)),
        text=source.first_value(codes.TEXT),
        measurement=source.get_float(codes.FLOAT_42),
        text_rotation=source.get_float(codes.ANGLE_53),
        horizontal_direction=source.get_float(codes.ANGLE_51),
    )


def _decode_viewport(common: EntityCommon, pairs: PairContainer) -> Viewport:
    return Viewport(
        common=common,
        center=(pairs.get_float(codes.X), pairs.get_float(codes.Y)),
        width=pairs.get_float(codes.FLOAT_40),
        height=pairs.get_float(codes.FLOAT_41),
        view_center=(pairs.get_float(codes.X2), pairs.get_float(codes.Y2)),
        view_height=pairs.get_float(codes.FLOAT_45),
        viewport_id=pairs.get_int(codes.INT_69),
    )


Decoder = Callable[[EntityCommon, PairContainer], "Entity"]

DECODERS: dict[EntityType, Decoder] = {
    EntityType.ARC: _decode_arc,
    EntityType.CIRCLE: _decode_circle,
    EntityType.DIMENSION: _decode_dimension,
    EntityType.ELLIPSE: _decode_ellipse,
    EntityType.FACE3D: _decode_face3d,
    EntityType.INSERT: _decode_insert,
    EntityType.LINE: _decode_line,
    EntityType.LWPOLYLINE: _decode_lwpolyline,
    EntityType.POINT: _decode_point,
    EntityType.POLYLINE: _decode_polyline,
    EntityType.RAY: _decode_ray,
    EntityType.SOLID: _decode_solid,
    EntityType.TRACE: _decode_solid,
    EntityType.VERTEX: _decode_vertex,
    EntityType.VIEWPORT: _decode_viewport,
    EntityType.XLINE: _decode_xline,
}


def decode(
    entity_type: EntityType, pairs: PairContainer, *, ignore_paper_space: bool = True
) -> "Entity":
    decoder = DECODERS.get(entity_type)
    if decoder is None:
        raise UnsupportedEntityKind(entity_type)
    common = decode_common(entity_type, pairs, ignore_paper_space=ignore_paper_space)
    return decoder(common, pairs)
