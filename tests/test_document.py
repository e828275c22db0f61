from __future__ import annotations

import pytest

from flatdxf import DocumentStateError, UnresolvedReference
from flatdxf.document import (
    MODEL_BLOCK,
    PAPER_BLOCK,
    DistanceUnit,
    Document,
    DocumentPhase,
    LineType,
    ReadStatus,
)
from tests._dxf_helpers import dxf_text, layer, line, read_text


def test_dash_array_from_description_glyphs() -> None:
    dash_dot = LineType(name="DASHDOT", description="- .", item_count=4, pattern=(0.5, -0.25, 0.0, -0.25))

    assert dash_dot.make_dash_array(2.0) == (10.0, 6.0, 0.0, 20.0, 2.0, 6.0, 0.0, 20.0)
    assert LineType(name="CONTINUOUS", description="Solid line").make_dash_array(2.0) == ()


def test_unknown_glyph_uses_default_segment() -> None:
    odd = LineType(name="ODD", description="xx", item_count=2)

    assert odd.make_dash_array(1.0) == (3.0, 3.0, 3.0, 3.0)


def test_negative_layer_color_switches_layer_off() -> None:
    document = Document()

    hidden = document.add_layer("hidden", 0, -5, None)

    assert hidden.name == "HIDDEN"
    assert hidden.color == 5
    assert not hidden.is_on
    assert hidden.line_type_name == "CONTINUOUS"
    assert document.get_layer("Hidden") is hidden


def test_layer_frozen_flag() -> None:
    document = Document()

    frozen = document.add_layer("F", 1 | 4, 2, "Dashed")
    thawed = document.add_layer("T", 4, 2, None)

    assert frozen.is_frozen
    assert frozen.is_on
    assert frozen.line_type_name == "DASHED"
    assert not thawed.is_frozen


def test_unknown_layer_falls_back_to_default() -> None:
    document = Document()

    fallback = document.get_layer("nowhere")

    assert fallback.color == 7
    assert fallback.is_on


def test_line_type_lookup_is_case_insensitive() -> None:
    document = Document()
    document.add_line_type(LineType(name="dashed", description="-", item_count=2))

    assert document.has_line_type("DASHED")
    assert document.get_line_type("Dashed").name == "DASHED"
    assert document.get_line_type("missing").name == "CONTINUOUS"
    assert document.get_line_type(None).name == "CONTINUOUS"


def test_arrow_blocks_are_deduplicated() -> None:
    document = Document()
    document.add_arrow_block("_ArchTick")
    document.add_arrow_block("_ARCHTICK")

    assert document.arrow_blocks == ["_ArchTick"]


def test_reserved_blocks_exist_from_the_start() -> None:
    document = Document()

    assert document.get_block("*model_space") is document.modelspace
    assert document.get_block(PAPER_BLOCK) is document.paperspace
    assert document.get_block("missing") is None
    with pytest.raises(UnresolvedReference) as excinfo:
        document.require_block("missing")
    assert excinfo.value.name == "missing"


def test_mutation_after_parsing_is_rejected() -> None:
    document = read_text(dxf_text(layers=[layer("A")], entities=[line(0, 0, 1, 1)]))

    assert document.phase is DocumentPhase.FLATTENING
    with pytest.raises(DocumentStateError):
        document.add_layer("B", 0, 1, None)
    with pytest.raises(DocumentStateError):
        document.modelspace.add_entity(document.modelspace.entities[0])


def test_entity_records_its_parent_block() -> None:
    document = read_text(dxf_text(entities=[line(0, 0, 1, 1, handle="2A")]))
    entity = document.get_entity("2A")

    assert entity is not None
    assert entity.common.parent_block is document.modelspace


def test_cleared_document_refuses_lookups() -> None:
    document = read_text(dxf_text(entities=[line(0, 0, 1, 1)]))

    document.clear()

    assert document.phase is DocumentPhase.CLEARED
    with pytest.raises(DocumentStateError):
        document.get_block(MODEL_BLOCK)
    with pytest.raises(DocumentStateError):
        document.flatten()


def test_distance_unit_lookup() -> None:
    assert DistanceUnit.from_index(4) is DistanceUnit.MILLIMETERS
    assert DistanceUnit.from_index(99) is DistanceUnit.UNITLESS
    assert DistanceUnit.INCHES.meters == 0.0254


def test_read_status_summary_groups_by_context() -> None:
    status = ReadStatus()
    status.record("LINE", "model", "read")
    status.record("LINE", "model", "read")
    status.record("TEXT", "block", "unsupported")

    assert status.total("model", "read") == 2
    assert status.summary() == {"model.read": {"LINE": 2}, "block.unsupported": {"TEXT": 1}}
    with pytest.raises(ValueError):
        status.record("LINE", "layout", "read")
