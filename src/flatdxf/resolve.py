from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import codes
from .document import Document, LineType, PropertyOverride

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    """BYBLOCK values handed down from the insert that opened a block."""

    color: int = codes.DEFAULT_COLOR
    line_type: LineType | None = None
    override: PropertyOverride | None = None


ROOT_CONTEXT = ResolutionContext()


def resolve_color(document: Document, entity: "Entity", context: ResolutionContext) -> int:
    color = entity.common.color_index
    if context.override is not None and context.override.color_index is not None:
        color = context.override.color_index
    if color == codes.COLOR_BY_BLOCK:
        return context.color
    if color == codes.COLOR_BY_LAYER:
        return document.get_layer(entity.common.layer).color
    return color


def resolve_line_type(
    document: Document, entity: "Entity", context: ResolutionContext
) -> LineType | None:
    name = (entity.common.line_type or codes.LINE_TYPE_BY_LAYER).upper()
    if name == codes.LINE_TYPE_BY_LAYER:
        return document.get_line_type(document.get_layer(entity.common.layer).line_type_name)
    if name == codes.LINE_TYPE_BY_BLOCK:
        return context.line_type
    if not document.has_line_type(name):
        logger.debug("%s entity %s: unknown line type %r", entity.entity_type, entity.handle, name)
    return document.get_line_type(name)


def dash_for(document: Document, entity: "Entity", line_type: LineType | None) -> tuple[float, ...]:
    if line_type is None or line_type.is_continuous():
        return ()
    return line_type.make_dash_array(document.line_type_scale * entity.common.line_type_scale)
