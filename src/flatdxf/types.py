from __future__ import annotations

from enum import Enum


class EntityType(Enum):
    ACAD_PROXY_ENTITY = "ACAD_PROXY_ENTITY"
    ARC = "ARC"
    ARCALIGNEDTEXT = "ARCALIGNEDTEXT"
    ATTDEF = "ATTDEF"
    ATTRIB = "ATTRIB"
    BODY = "BODY"
    CIRCLE = "CIRCLE"
    DIMENSION = "DIMENSION"
    ELLIPSE = "ELLIPSE"
    FACE3D = "3DFACE"
    FACEDEF = "FACEDEF"
    HATCH = "HATCH"
    IMAGE = "IMAGE"
    INSERT = "INSERT"
    LEADER = "LEADER"
    LINE = "LINE"
    LWPOLYLINE = "LWPOLYLINE"
    MLINE = "MLINE"
    MTEXT = "MTEXT"
    PDFUNDERLAY = "PDFUNDERLAY"
    POINT = "POINT"
    POLYFACE3D = "POLYFACE3D"
    POLYGON3D = "POLYGON3D"
    POLYLINE = "POLYLINE"
    RAY = "RAY"
    REGION = "REGION"
    RTEXT = "RTEXT"
    SEQEND = "SEQEND"
    SHAPE = "SHAPE"
    SOLID = "SOLID"
    SOLID3D = "3DSOLID"
    SPLINE = "SPLINE"
    TABLE = "TABLE"
    TEXT = "TEXT"
    TOLERANCE = "TOLERANCE"
    TRACE = "TRACE"
    VERTEX = "VERTEX"
    VIEWPORT = "VIEWPORT"
    WIPEOUT = "WIPEOUT"
    XLINE = "XLINE"
    UNRECOGNIZED_ENTITY = "UNRECOGNIZED_ENTITY"

    @classmethod
    def canonical(cls, name: str) -> "EntityType":
        return _BY_NAME.get(name.strip().upper(), cls.UNRECOGNIZED_ENTITY)

    def __str__(self) -> str:
        return self.value


_BY_NAME: dict[str, EntityType] = {member.value: member for member in EntityType}

SUPPORTED_ENTITY_TYPES: frozenset[EntityType] = frozenset(
    {
        EntityType.ARC,
        EntityType.CIRCLE,
        EntityType.DIMENSION,
        EntityType.ELLIPSE,
        EntityType.FACE3D,
        EntityType.FACEDEF,
        EntityType.INSERT,
        EntityType.LINE,
        EntityType.LWPOLYLINE,
        EntityType.POINT,
        EntityType.POLYFACE3D,
        EntityType.POLYGON3D,
        EntityType.POLYLINE,
        EntityType.RAY,
        EntityType.SEQEND,
        EntityType.SOLID,
        EntityType.TRACE,
        EntityType.VERTEX,
        EntityType.VIEWPORT,
        EntityType.XLINE,
    }
)


def is_supported(entity_type: EntityType) -> bool:
    return entity_type in SUPPORTED_ENTITY_TYPES
