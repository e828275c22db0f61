from __future__ import annotations

import logging
import os
from typing import Any, Sequence

from . import codes
from .document import MODEL_BLOCK, Document
from .flatten import ArcPrimitive, FlattenResult, Primitive, PolygonPrimitive, flatten
from .parser import read

logger = logging.getLogger(__name__)

_DEFAULT_COLOR = "#000000"


def plot(
    source: str | os.PathLike[str] | Document | FlattenResult,
    *,
    ax: Any = None,
    show: bool = True,
    auto_fit: bool = True,
    equal: bool = True,
    line_width: float = 0.5,
    block: str = MODEL_BLOCK,
    title: str | None = None,
):
    """Draw a drawing, a parsed document or flattened primitives with matplotlib.

    Returns the axes that were drawn on.
    """
    if isinstance(source, FlattenResult):
        result = source
    elif isinstance(source, Document):
        result = flatten(source, block)
    else:
        result = flatten(read(source), block)
        if title is None:
            title = os.fspath(source)
    return plot_primitives(
        result.primitives,
        ax=ax,
        show=show,
        auto_fit=auto_fit,
        equal=equal,
        line_width=line_width,
        title=title,
    )


def plot_primitives(
    primitives: Sequence[Primitive],
    *,
    ax: Any = None,
    show: bool = True,
    auto_fit: bool = True,
    equal: bool = True,
    line_width: float = 0.5,
    title: str | None = None,
):
    plt = _require_matplotlib()
    if ax is None:
        _, ax = plt.subplots()

    for primitive in primitives:
        points = primitive.world_points()
        if len(points) < 2:
            logger.debug("skipping %s primitive with %d points", primitive.kind, len(points))
            continue
        if isinstance(primitive, PolygonPrimitive):
            points = points + points[:1]
        elif isinstance(primitive, ArcPrimitive) and primitive.is_full:
            points[-1] = points[0]
        _draw_path(
            ax,
            points,
            line_width * primitive.stroke_scale,
            color=_resolve_color(primitive.color),
            dash=primitive.dash,
        )

    if auto_fit:
        ax.autoscale(True)
    if equal:
        ax.set_aspect("equal", adjustable="datalim")
    if title:
        ax.set_title(title)
    if show:
        plt.show()
    return ax


def _require_matplotlib():
    try:
        import matplotlib.pyplot as plt
    except Exception as exc:
        raise ImportError(
            "matplotlib is required for plotting. "
            'Install it with `pip install "flatdxf[plot]"`.'
        ) from exc
    return plt


def _aci2rgb(aci: int) -> tuple[int, int, int]:
    try:
        from ezdxf.colors import aci2rgb
    except Exception as exc:
        raise ImportError(
            "ezdxf is required to map ACI colors for plotting. "
            'Install it with `pip install "flatdxf[plot]"`.'
        ) from exc
    rgb = aci2rgb(aci)
    return (int(rgb[0]), int(rgb[1]), int(rgb[2]))


def _resolve_color(aci: int) -> str:
    # ACI 7 is white on dark backgrounds and black on light ones
    if aci == codes.DEFAULT_COLOR or not 1 <= aci <= 255:
        return _DEFAULT_COLOR
    red, green, blue = _aci2rgb(aci)
    return f"#{red:02x}{green:02x}{blue:02x}"


def _line_style(dash: tuple[float, ...]) -> Any:
    if not dash or sum(dash) <= 0.0:
        return "-"
    return (0, tuple(dash))


def _draw_path(
    ax: Any,
    points: Sequence[tuple[float, float]],
    line_width: float,
    color: str | None = None,
    dash: tuple[float, ...] = (),
) -> None:
    xs = [point[0] for point in points]
    ys = [point[1] for point in points]
    ax.plot(xs, ys, linewidth=line_width, color=color, linestyle=_line_style(dash))
