from typing import Sequence

from .convert import ConvertResult, to_dxf
from .document import Block, Document, DistanceUnit, Layer, LineType
from .entity import Entity
from .errors import (
    DocumentStateError,
    DxfReadError,
    EntityDiscarded,
    FlatDxfError,
    MalformedStream,
    UnresolvedReference,
    UnsupportedEntityKind,
)
from .flatten import (
    ArcPrimitive,
    FlattenResult,
    PolygonPrimitive,
    PolylinePrimitive,
    Segment,
    flatten,
)
from .geometry import Affine2D
from .parser import read, read_stream
from .render import plot
from .types import EntityType

__all__ = [
    "read",
    "read_stream",
    "flatten",
    "plot",
    "to_dxf",
    "Document",
    "Block",
    "Layer",
    "LineType",
    "DistanceUnit",
    "Entity",
    "EntityType",
    "Affine2D",
    "FlattenResult",
    "Segment",
    "ArcPrimitive",
    "PolylinePrimitive",
    "PolygonPrimitive",
    "ConvertResult",
    "FlatDxfError",
    "DxfReadError",
    "MalformedStream",
    "EntityDiscarded",
    "UnsupportedEntityKind",
    "UnresolvedReference",
    "DocumentStateError",
]


def main(argv: Sequence[str] | None = None) -> int:
    from flatdxf.cli import main as cli_main

    return cli_main(argv)
