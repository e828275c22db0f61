from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from . import codes
from .document import MODEL_BLOCK, PAPER_BLOCK, Block, DistanceUnit, Document, LineType
from .entity import FaceDef, Vertex, decode, is_container
from .errors import DxfReadError, EntityDiscarded, UnsupportedEntityKind
from .pairs import PairContainer
from .tags import TagCursor
from .types import EntityType, is_supported

logger = logging.getLogger(__name__)

_ARROW_BLOCK_VARIABLES = {"$DIMBLK", "$DIMBLK1", "$DIMBLK2"}
_RESERVED_BLOCKS = {MODEL_BLOCK, PAPER_BLOCK}


def read_structure(
    cursor: TagCursor,
    container: PairContainer,
    *,
    ignore_control_strings: bool = True,
) -> str | None:
    """Collect one code-0 delimited record into ``container``.

    Returns the record name (the value of its leading code-0 tag, or "" when
    the record does not start with one) and leaves the next record's code-0
    tag pushed back on the cursor. Returns ``None`` when the input is already
    exhausted.
    """
    name = ""
    first = True
    skipping = False
    read_any = False
    while True:
        pair = cursor.next_pair()
        if pair is None:
            return name if read_any else None
        read_any = True
        if pair.code == codes.STRUCTURE:
            if first:
                name = pair.value
                first = False
                continue
            cursor.push_back(pair)
            return name
        first = False
        if pair.code == codes.CONTROL_STRING and ignore_control_strings:
            skipping = not skipping
            continue
        if pair.code < 0 or skipping:
            continue
        container.add(pair.code, pair.value)


class _Reader:
    def __init__(
        self,
        cursor: TagCursor,
        document: Document,
        *,
        ignore_paper_space: bool,
        ignore_control_strings: bool,
    ) -> None:
        self.cursor = cursor
        self.document = document
        self.ignore_paper_space = ignore_paper_space
        self.ignore_control_strings = ignore_control_strings
        self._table: str | None = None
        self._block: Block | None = None

    def _structure(self, container: PairContainer) -> str | None:
        container.clear()
        name = read_structure(
            self.cursor, container, ignore_control_strings=self.ignore_control_strings
        )
        if name is None:
            logger.warning("input ends inside a section at line %d; treating as end of input", self.cursor.line)
            return None
        return name.upper()

    def run(self) -> None:
        for pair in self.cursor:
            if pair.code == codes.STRUCTURE and pair.value.upper() == "EOF":
                return
            if pair.code != codes.NAME:
                continue
            section = pair.value.upper()
            logger.debug("section %s at line %d", section, self.cursor.line)
            if section == "HEADER":
                self._read_header()
            elif section == "TABLES":
                self._read_tables()
            elif section == "BLOCKS":
                self._read_blocks()
            elif section == "ENTITIES":
                self._read_entities()
            else:
                self._skip_section()

    def _skip_section(self) -> None:
        for pair in self.cursor:
            if pair.code == codes.STRUCTURE and pair.value.upper() == "ENDSEC":
                return

    def _read_header(self) -> None:
        container = PairContainer()
        while True:
            name = self._structure(container)
            if name is None or name == "ENDSEC":
                return
            self._apply_header(container)

    def _apply_header(self, container: PairContainer) -> None:
        variables: list[tuple[str, list[str]]] = []
        for pair in container:
            if pair.code == codes.HEADER_VARIABLE:
                variables.append((pair.value.upper(), []))
            elif variables:
                variables[-1][1].append(pair.value)

        document = self.document
        for variable, values in variables:
            if not values:
                continue
            document.set_header_variable(variable, values[0] if len(values) == 1 else tuple(values))
            try:
                if variable in _ARROW_BLOCK_VARIABLES:
                    if values[0].strip():
                        document.add_arrow_block(values[0].strip())
                elif variable == "$INSUNITS":
                    document.distance_unit = DistanceUnit.from_index(int(values[0]))
                elif variable == "$LTSCALE":
                    document.line_type_scale = float(values[0])
                elif variable == "$LIMMIN" and len(values) >= 2:
                    document.limits_min = (float(values[0]), float(values[1]))
                elif variable == "$LIMMAX" and len(values) >= 2:
                    document.limits_max = (float(values[0]), float(values[1]))
            except ValueError:
                logger.debug("unreadable header variable %s=%r", variable, values)

    def _read_tables(self) -> None:
        container = PairContainer()
        while True:
            name = self._structure(container)
            if name is None or name == "ENDSEC":
                return
            if name == "TABLE":
                self._table = container.get_str(codes.NAME).upper()
            elif name == "ENDTAB":
                self._table = None
            elif self._table == "LAYER":
                self._add_layer(container)
            elif self._table == "LTYPE":
                self._add_line_type(container)

    def _add_layer(self, container: PairContainer) -> None:
        self.document.add_layer(
            container.get_str(codes.NAME),
            container.get_int(codes.FLAGS),
            container.get_int(codes.COLOR, codes.DEFAULT_COLOR),
            container.first_value(codes.LINE_TYPE),
        )

    def _add_line_type(self, container: PairContainer) -> None:
        item_count = container.get_int(codes.INT_73)
        pattern: list[float] = []
        for value in container.iterate_all(codes.LINE_TYPE_SPACING):
            if len(pattern) >= item_count:
                break
            try:
                pattern.append(float(value))
            except ValueError:
                pattern.append(0.0)
        self.document.add_line_type(
            LineType(
                name=container.get_str(codes.NAME),
                flags=container.get_int(codes.FLAGS),
                complex_flags=container.get_int(codes.INT_74),
                description=container.get_str(codes.TEXT_3),
                item_count=item_count,
                pattern=tuple(pattern),
                pattern_length=container.get_float(codes.FLOAT_40),
            )
        )

    def _read_blocks(self) -> None:
        container = PairContainer()
        while True:
            name = self._structure(container)
            if name is None or name == "ENDSEC":
                self._block = None
                return
            if name == "BLOCK":
                self._open_block(container)
            elif name == "ENDBLK":
                self._block = None
            else:
                self._read_entity(container, EntityType.canonical(name), block_context=True)

    def _open_block(self, container: PairContainer) -> None:
        block_name = container.get_str(codes.NAME)
        if block_name.upper() in _RESERVED_BLOCKS:
            self._block = self.document.get_block(block_name)
            return
        block = Block(
            self.document,
            block_name,
            origin=(container.get_float(codes.X), container.get_float(codes.Y)),
            flags=container.get_int(codes.FLAGS),
        )
        self.document.add_block(block)
        self._block = block

    def _read_entities(self) -> None:
        container = PairContainer()
        while True:
            name = self._structure(container)
            if name is None or name == "ENDSEC":
                return
            self._read_entity(container, EntityType.canonical(name), block_context=False)

    def _record(self, entity_type: EntityType | str, context: str | None, outcome: str) -> None:
        status = self.document.status
        if status is not None and context is not None:
            status.record(entity_type, context, outcome)

    def _context(self, block_context: bool, in_paper_space: bool) -> str | None:
        if block_context:
            # records outside BLOCK/ENDBLK are not tallied
            return "block" if self._block is not None else None
        return "paper" if in_paper_space else "model"

    def _read_entity(self, container: PairContainer, entity_type: EntityType, *, block_context: bool) -> None:
        if not is_supported(entity_type):
            self._record(entity_type, self._context(block_context, False), "unsupported")
            return

        try:
            entity = decode(entity_type, container, ignore_paper_space=self.ignore_paper_space)
        except EntityDiscarded as exc:
            logger.debug("%s", exc)
            self._record(entity_type, self._context(block_context, True), "ignored")
            return
        except (UnsupportedEntityKind, ValueError) as exc:
            logger.debug("skipping %s entity: %s", entity_type, exc)
            self._record(entity_type, self._context(block_context, False), "ignored")
            return

        document = self.document
        if isinstance(entity, (Vertex, FaceDef)):
            self._attach(entity, block_context)
            return

        document.register_entity(entity)
        context = self._context(block_context, entity.common.in_paper_space)
        if block_context:
            if self._block is not None:
                self._block.add_entity(entity)
        elif entity.common.in_paper_space:
            document.paperspace.add_entity(entity)
        else:
            document.modelspace.add_entity(entity)
        self._record(entity.entity_type, context, "read")

    def _attach(self, entity: Vertex | FaceDef, block_context: bool) -> None:
        document = self.document
        document.register_entity(entity)
        owner_id = entity.common.owner_id
        if owner_id is not None:
            target = document.get_entity(owner_id)
        else:
            target = document.last_added
        context = self._context(block_context, entity.common.in_paper_space)
        if target is None or not is_container(target):
            logger.debug("%s entity %s has no container", entity.entity_type, entity.handle)
            self._record(entity.entity_type, context, "ignored")
            return
        target.add_entity(entity)
        self._record(entity.entity_type, context, "read")


def read_stream(
    stream: Iterable[str],
    *,
    ignore_paper_space: bool = True,
    ignore_control_strings: bool = True,
    collect_status: bool = True,
) -> Document:
    """Parse DXF text lines into a :class:`Document` ready for flattening."""
    document = Document(collect_status=collect_status)
    reader = _Reader(
        TagCursor(stream),
        document,
        ignore_paper_space=ignore_paper_space,
        ignore_control_strings=ignore_control_strings,
    )
    try:
        reader.run()
    except DxfReadError as exc:
        if exc.document is None:
            exc.document = document
        raise
    except Exception as exc:
        raise DxfReadError(f"Error in DXF file: {exc}", document=document) from exc
    document.finish_parsing()
    return document


def read(
    path: str | os.PathLike[str],
    *,
    encoding: str = "utf-8",
    errors: str = "replace",
    ignore_paper_space: bool = True,
    ignore_control_strings: bool = True,
    collect_status: bool = True,
) -> Document:
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"DXF file not found: {source}")
    with source.open("r", encoding=encoding, errors=errors) as handle:
        return read_stream(
            handle,
            ignore_paper_space=ignore_paper_space,
            ignore_control_strings=ignore_control_strings,
            collect_status=collect_status,
        )
