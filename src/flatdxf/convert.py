from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .document import MODEL_BLOCK, Document
from .flatten import (
    ArcPrimitive,
    FlattenResult,
    PolygonPrimitive,
    PolylinePrimitive,
    Primitive,
    Segment,
    flatten,
)
from .geometry import Affine2D
from .parser import read

logger = logging.getLogger(__name__)

_SIMILARITY_TOLERANCE = 1.0e-9


@dataclass(frozen=True)
class ConvertResult:
    source_path: str | None
    output_path: str
    total_primitives: int
    written_primitives: int
    skipped_primitives: int
    skipped_by_kind: dict[str, int]


def to_dxf(
    source: str | os.PathLike[str] | Document | FlattenResult,
    output_path: str | os.PathLike[str],
    *,
    dxf_version: str = "R2010",
    block: str = MODEL_BLOCK,
    strict: bool = False,
) -> ConvertResult:
    ezdxf = _require_ezdxf()
    source_path, flattened = _resolve_primitives(source, block)

    dxf_doc = ezdxf.new(dxfversion=dxf_version)
    modelspace = dxf_doc.modelspace()
    line_types = _LineTypeTable(dxf_doc)

    total = 0
    written = 0
    skipped_by_kind: dict[str, int] = {}

    for primitive in flattened.primitives:
        total += 1
        if _write_primitive(modelspace, primitive, line_types):
            written += 1
            continue
        skipped_by_kind[primitive.kind] = skipped_by_kind.get(primitive.kind, 0) + 1

    skipped = total - written
    if strict and skipped > 0:
        summary = ", ".join(f"{kind}:{count}" for kind, count in sorted(skipped_by_kind.items()))
        raise ValueError(f"failed to convert {skipped} primitives ({summary})")

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    dxf_doc.saveas(str(out_path))

    return ConvertResult(
        source_path=source_path,
        output_path=str(out_path),
        total_primitives=total,
        written_primitives=written,
        skipped_primitives=skipped,
        skipped_by_kind=dict(sorted(skipped_by_kind.items())),
    )


def _require_ezdxf():
    try:
        import ezdxf
    except Exception as exc:
        raise ImportError(
            "ezdxf is required for DXF export. "
            'Install it with `pip install "flatdxf[dxf]"`.'
        ) from exc
    return ezdxf


def _resolve_primitives(
    source: str | os.PathLike[str] | Document | FlattenResult, block: str
) -> tuple[str | None, FlattenResult]:
    if isinstance(source, FlattenResult):
        return None, source
    if isinstance(source, Document):
        return None, flatten(source, block)
    doc = read(source)
    return str(source), flatten(doc, block)


class _LineTypeTable:
    """Creates one LTYPE per distinct dash pattern on first use."""

    def __init__(self, dxf_doc: Any) -> None:
        self._dxf_doc = dxf_doc
        self._names: dict[tuple[float, ...], str] = {}

    def name_for(self, dash: tuple[float, ...]) -> str | None:
        if not dash:
            return None
        name = self._names.get(dash)
        if name is not None:
            return name
        name = f"FLATDXF{len(self._names) + 1}"
        pattern: list[float] = [sum(dash)]
        for index, length in enumerate(dash):
            pattern.append(length if index % 2 == 0 else -length)
        self._dxf_doc.linetypes.add(name, pattern, description=name)
        self._names[dash] = name
        return name


def _write_primitive(modelspace: Any, primitive: Primitive, line_types: _LineTypeTable) -> bool:
    try:
        return _write_primitive_unsafe(modelspace, primitive, line_types)
    except Exception:
        logger.debug("could not write %s primitive", primitive.kind, exc_info=True)
        return False


def _write_primitive_unsafe(modelspace: Any, primitive: Primitive, line_types: _LineTypeTable) -> bool:
    dxfattribs = _primitive_dxfattribs(primitive, line_types)

    if isinstance(primitive, Segment):
        start, end = primitive.world_points()
        modelspace.add_line(_point3(start), _point3(end), dxfattribs=dxfattribs)
        return True

    if isinstance(primitive, ArcPrimitive):
        if _write_native_arc(modelspace, primitive, dxfattribs):
            return True
        points = primitive.world_points()
        if len(points) < 2:
            return False
        if primitive.is_full:
            points = points[:-1]
        modelspace.add_lwpolyline(points, close=primitive.is_full, dxfattribs=dxfattribs)
        return True

    if isinstance(primitive, PolylinePrimitive):
        points = primitive.world_points()
        if len(points) < 2:
            return False
        modelspace.add_lwpolyline(points, close=False, dxfattribs=dxfattribs)
        return True

    if isinstance(primitive, PolygonPrimitive):
        points = primitive.world_points()
        if len(points) < 2:
            return False
        modelspace.add_lwpolyline(points, close=True, dxfattribs=dxfattribs)
        return True

    return False


def _write_native_arc(modelspace: Any, primitive: ArcPrimitive, dxfattribs: dict[str, Any]) -> bool:
    if not math.isclose(primitive.rx, primitive.ry, rel_tol=_SIMILARITY_TOLERANCE):
        return False
    similarity = _similarity(primitive.transform)
    if similarity is None:
        return False
    scale, rotation = similarity
    center = primitive.transform.apply(primitive.cx, primitive.cy)
    radius = primitive.rx * scale
    if primitive.is_full:
        modelspace.add_circle(_point3(center), radius, dxfattribs=dxfattribs)
        return True
    start, end = primitive.dxf_angles()
    modelspace.add_arc(
        _point3(center),
        radius,
        (start + rotation) % 360.0,
        (end + rotation) % 360.0,
        dxfattribs=dxfattribs,
    )
    return True


def _similarity(transform: Affine2D) -> tuple[float, float] | None:
    """Uniform scale and rotation (degrees) of a mirror-free similarity map."""
    mxx, myx, mxy, myy, _, _ = transform.as_tuple()
    scale = math.hypot(mxx, myx)
    if scale == 0.0:
        return None
    tolerance = _SIMILARITY_TOLERANCE * max(scale, 1.0)
    if abs(mxx - myy) > tolerance or abs(myx + mxy) > tolerance:
        return None
    return scale, math.degrees(math.atan2(myx, mxx))


def _primitive_dxfattribs(primitive: Primitive, line_types: _LineTypeTable) -> dict[str, Any]:
    attribs: dict[str, Any] = {}
    color = _to_valid_aci(primitive.color)
    if color is not None:
        attribs["color"] = color
    line_type = line_types.name_for(primitive.dash)
    if line_type is not None:
        attribs["linetype"] = line_type
    return attribs


def _to_valid_aci(value: Any) -> int | None:
    try:
        aci = int(value)
    except Exception:
        return None
    if 1 <= aci <= 255:
        return aci
    return None


def _point3(value: tuple[float, float]) -> tuple[float, float, float]:
    return (float(value[0]), float(value[1]), 0.0)
