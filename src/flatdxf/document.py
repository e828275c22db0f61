from __future__ import annotations

import logging
import weakref
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Iterator

from . import codes
from .errors import DocumentStateError, UnresolvedReference
from .types import EntityType

if TYPE_CHECKING:
    from .entity import Entity

logger = logging.getLogger(__name__)

MODEL_BLOCK = "*MODEL_SPACE"
PAPER_BLOCK = "*PAPER_SPACE"

LAYER_FLAG_FROZEN = 1

_DASH_SEGMENTS = {
    " ": (0.0, 10.0),
    ".": (1.0, 3.0),
    "-": (5.0, 3.0),
    "_": (10.0, 0.0),
}
_DEFAULT_DASH_SEGMENT = (3.0, 3.0)


class DistanceUnit(IntEnum):
    UNITLESS = 0
    INCHES = 1
    FEET = 2
    MILES = 3
    MILLIMETERS = 4
    CENTIMETERS = 5
    METERS = 6
    KILOMETERS = 7
    MICROINCHES = 8
    MILS = 9
    YARDS = 10
    ANGSTROMS = 11
    NANOMETERS = 12
    MICRONS = 13
    DECIMETERS = 14
    DECAMETERS = 15
    HECTOMETERS = 16
    GIGAMETERS = 17
    ASTRONOMICAL_UNITS = 18
    LIGHT_YEARS = 19
    PARSECS = 20

    @classmethod
    def from_index(cls, index: int) -> "DistanceUnit":
        try:
            return cls(index)
        except ValueError:
            return cls.UNITLESS

    @property
    def meters(self) -> float:
        return _METERS_PER_UNIT[self]


_METERS_PER_UNIT = {
    DistanceUnit.UNITLESS: 1.0,
    DistanceUnit.INCHES: 0.0254,
    DistanceUnit.FEET: 0.3048,
    DistanceUnit.MILES: 1609.344,
    DistanceUnit.MILLIMETERS: 1.0e-3,
    DistanceUnit.CENTIMETERS: 1.0e-2,
    DistanceUnit.METERS: 1.0,
    DistanceUnit.KILOMETERS: 1.0e3,
    DistanceUnit.MICROINCHES: 2.54e-8,
    DistanceUnit.MILS: 2.54e-5,
    DistanceUnit.YARDS: 0.9144,
    DistanceUnit.ANGSTROMS: 1.0e-10,
    DistanceUnit.NANOMETERS: 1.0e-9,
    DistanceUnit.MICRONS: 1.0e-6,
    DistanceUnit.DECIMETERS: 0.1,
    DistanceUnit.DECAMETERS: 10.0,
    DistanceUnit.HECTOMETERS: 100.0,
    DistanceUnit.GIGAMETERS: 1.0e9,
    DistanceUnit.ASTRONOMICAL_UNITS: 1.495978707e11,
    DistanceUnit.LIGHT_YEARS: 9.4607304725808e15,
    DistanceUnit.PARSECS: 3.0856775814913673e16,
}


@dataclass
class Layer:
    name: str
    flags: int
    color: int
    line_type_name: str
    is_on: bool = True

    @classmethod
    def from_raw(cls, name: str, flags: int, raw_color: int, line_type_name: str | None) -> "Layer":
        # negative color means the layer is switched off
        return cls(
            name=name.upper(),
            flags=flags,
            color=abs(raw_color),
            line_type_name=(line_type_name or codes.LINE_TYPE_CONTINUOUS).upper(),
            is_on=raw_color >= 0,
        )

    @property
    def is_frozen(self) -> bool:
        return bool(self.flags & LAYER_FLAG_FROZEN)


@dataclass(frozen=True)
class LineType:
    name: str
    flags: int = 0
    complex_flags: int = 0
    description: str = ""
    item_count: int = 0
    pattern: tuple[float, ...] = ()
    pattern_length: float = 0.0

    def is_continuous(self) -> bool:
        return self.item_count == 0

    def make_dash_array(self, scale: float) -> tuple[float, ...]:
        """On/off lengths derived from the description glyphs, times ``scale``."""
        if self.is_continuous():
            return ()
        description = self.description.strip()
        if len(description) % 2 == 1:
            description += " "
        out: list[float] = []
        for char in description:
            on, off = _DASH_SEGMENTS.get(char, _DEFAULT_DASH_SEGMENT)
            out.append(on * scale)
            out.append(off * scale)
        return tuple(out)


DEFAULT_LAYER = Layer(name="", flags=0, color=codes.DEFAULT_COLOR, line_type_name=codes.LINE_TYPE_CONTINUOUS)
DEFAULT_LINE_TYPE = LineType(name=codes.LINE_TYPE_CONTINUOUS, description="Solid line")


@dataclass(frozen=True)
class PropertyOverride:
    color_index: int | None = None


ARROW_BLOCK_OVERRIDE = PropertyOverride(color_index=codes.COLOR_BY_BLOCK)


class Block:
    def __init__(
        self,
        document: "Document",
        name: str,
        origin: tuple[float, float] = (0.0, 0.0),
        flags: int = 0,
    ) -> None:
        self._document = weakref.ref(document)
        self.name = name
        self.origin = origin
        self.flags = flags
        self.entities: list[Entity] = []
        self.property_override: PropertyOverride | None = None

    def __repr__(self) -> str:
        return f"Block({self.name!r}, {len(self.entities)} entities)"

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self) -> Iterator["Entity"]:
        return iter(self.entities)

    def add_entity(self, entity: "Entity") -> None:
        document = self._document()
        if document is not None:
            document._require_phase(DocumentPhase.PARSING)
        self.entities.append(entity)
        entity.common.set_parent(self)
        if document is not None:
            document.last_added = entity

    def clear(self) -> None:
        self.entities.clear()


class DocumentPhase(Enum):
    PARSING = "parsing"
    FLATTENING = "flattening"
    CLEARED = "cleared"


_CONTEXTS = ("model", "paper", "block")
_OUTCOMES = ("read", "ignored", "unsupported")


@dataclass
class ReadStatus:
    """Per-context tallies of read, ignored and unsupported entities."""

    counts: dict[tuple[str, str], Counter] = field(default_factory=dict)

    def record(self, entity_type: EntityType | str, context: str, outcome: str) -> None:
        if context not in _CONTEXTS:
            raise ValueError(f"unknown status context: {context}")
        if outcome not in _OUTCOMES:
            raise ValueError(f"unknown status outcome: {outcome}")
        name = str(entity_type)
        self.counts.setdefault((context, outcome), Counter())[name] += 1
        logger.debug("%s entity %s in %s context", outcome, name, context)

    def total(self, context: str, outcome: str) -> int:
        counter = self.counts.get((context, outcome))
        return sum(counter.values()) if counter else 0

    def by_type(self, context: str, outcome: str) -> dict[str, int]:
        counter = self.counts.get((context, outcome))
        return dict(sorted(counter.items())) if counter else {}

    def summary(self) -> dict[str, dict[str, int]]:
        out: dict[str, dict[str, int]] = {}
        for context in _CONTEXTS:
            for outcome in _OUTCOMES:
                by_type = self.by_type(context, outcome)
                if by_type:
                    out[f"{context}.{outcome}"] = by_type
        return out


class Document:
    def __init__(self, *, collect_status: bool = True) -> None:
        self.phase = DocumentPhase.PARSING
        self.status: ReadStatus | None = ReadStatus() if collect_status else None
        self._blocks: dict[str, Block] = {}
        self._layers: dict[str, Layer] = {}
        self._line_types: dict[str, LineType] = {}
        self._entities_by_handle: dict[str, Entity] = {}
        self.arrow_blocks: list[str] = []
        self.last_added: Entity | None = None

        self.header: dict[str, Any] = {}
        self.distance_unit = DistanceUnit.UNITLESS
        self.line_type_scale = 1.0
        self.limits_min = (0.0, 0.0)
        self.limits_max = (0.0, 0.0)

        self.modelspace = Block(self, MODEL_BLOCK)
        self.add_block(self.modelspace)
        self.paperspace = Block(self, PAPER_BLOCK)
        self.add_block(self.paperspace)

    def _require_phase(self, *phases: DocumentPhase) -> None:
        if self.phase not in phases:
            expected = "/".join(phase.value for phase in phases)
            raise DocumentStateError(f"document is {self.phase.value}, expected {expected}")

    def _require_alive(self) -> None:
        if self.phase is DocumentPhase.CLEARED:
            raise DocumentStateError("document has been cleared")

    def add_block(self, block: Block) -> None:
        self._require_phase(DocumentPhase.PARSING)
        self._blocks[block.name.upper()] = block

    def add_layer(self, name: str, flags: int, raw_color: int, line_type_name: str | None) -> Layer:
        self._require_phase(DocumentPhase.PARSING)
        layer = Layer.from_raw(name, flags, raw_color, line_type_name)
        self._layers[layer.name] = layer
        return layer

    def add_line_type(self, line_type: LineType) -> None:
        self._require_phase(DocumentPhase.PARSING)
        name = line_type.name.upper()
        if name != line_type.name:
            line_type = LineType(
                name=name,
                flags=line_type.flags,
                complex_flags=line_type.complex_flags,
                description=line_type.description,
                item_count=line_type.item_count,
                pattern=line_type.pattern,
                pattern_length=line_type.pattern_length,
            )
        self._line_types[name] = line_type

    def add_arrow_block(self, name: str) -> None:
        self._require_phase(DocumentPhase.PARSING)
        if any(existing.upper() == name.upper() for existing in self.arrow_blocks):
            return
        self.arrow_blocks.append(name)

    def register_entity(self, entity: "Entity") -> None:
        self._require_phase(DocumentPhase.PARSING)
        handle = entity.common.handle
        if handle is not None:
            self._entities_by_handle[handle] = entity

    def set_header_variable(self, name: str, value: Any) -> None:
        self._require_phase(DocumentPhase.PARSING)
        self.header.setdefault(name, value)

    def get_block(self, name: str) -> Block | None:
        self._require_alive()
        return self._blocks.get(name.upper())

    def require_block(self, name: str) -> Block:
        block = self.get_block(name)
        if block is None:
            raise UnresolvedReference("block", name)
        return block

    def get_layer(self, name: str | None) -> Layer:
        self._require_alive()
        return self._layers.get((name or "").upper(), DEFAULT_LAYER)

    def get_line_type(self, name: str | None) -> LineType:
        self._require_alive()
        if not name:
            return DEFAULT_LINE_TYPE
        line_type = self._line_types.get(name.upper())
        if line_type is None:
            logger.debug("line type %r not found, using %s", name, DEFAULT_LINE_TYPE.name)
            return DEFAULT_LINE_TYPE
        return line_type

    def has_line_type(self, name: str) -> bool:
        self._require_alive()
        return name.upper() in self._line_types

    def get_entity(self, handle: str) -> "Entity | None":
        self._require_alive()
        return self._entities_by_handle.get(handle)

    def block_names(self) -> list[str]:
        self._require_alive()
        return [block.name for block in self._blocks.values()]

    def layer_names(self) -> list[str]:
        self._require_alive()
        return [layer.name for layer in self._layers.values()]

    def line_type_names(self) -> list[str]:
        self._require_alive()
        return [line_type.name for line_type in self._line_types.values()]

    @property
    def entity_count(self) -> int:
        return len(self._entities_by_handle)

    def initialize(self) -> None:
        for name in self.arrow_blocks:
            block = self._blocks.get(name.upper())
            if block is not None:
                block.property_override = ARROW_BLOCK_OVERRIDE

    def finish_parsing(self) -> None:
        self._require_phase(DocumentPhase.PARSING)
        self.initialize()
        self.phase = DocumentPhase.FLATTENING

    def clear(self) -> None:
        for block in self._blocks.values():
            block.clear()
        self._blocks.clear()
        self._layers.clear()
        self._line_types.clear()
        self._entities_by_handle.clear()
        self.arrow_blocks.clear()
        self.last_added = None
        self.phase = DocumentPhase.CLEARED

    def flatten(self, block_name: str = MODEL_BLOCK, **kwargs):
        from .flatten import flatten

        return flatten(self, block_name, **kwargs)

    def plot(self, *args, **kwargs):
        from .render import plot

        return plot(self, *args, **kwargs)

    def export_dxf(self, output_path: str, **kwargs):
        from .convert import to_dxf

        return to_dxf(self, output_path, **kwargs)
