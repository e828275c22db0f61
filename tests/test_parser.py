from __future__ import annotations

import logging

import pytest

import flatdxf.parser as parser_module
from flatdxf import DxfReadError, EntityType, read
from flatdxf.entity import Insert, Line, LwPolyline, PolyFaceMesh, PolygonMesh, Polyline, Viewport
from flatdxf.pairs import PairContainer
from flatdxf.parser import read_structure
from flatdxf.tags import TagCursor, TagPair
from tests._dxf_helpers import (
    block,
    dxf_text,
    entity,
    insert,
    layer,
    line,
    ltype,
    lwpolyline,
    read_text,
)


def test_read_structure_collects_one_record() -> None:
    cursor = TagCursor(["0", "LINE", "8", "0", "102", "{ACAD_REACTORS", "330", "1F", "102", "}", "-1", "x", "0", "EOF"])
    container = PairContainer()

    assert read_structure(cursor, container) == "LINE"
    assert [(pair.code, pair.value) for pair in container] == [(8, "0")]
    assert cursor.next_pair() == TagPair(0, "EOF")


def test_read_structure_without_leading_marker_and_at_eof() -> None:
    cursor = TagCursor(["9", "$ACADVER", "1", "AC1015"])
    container = PairContainer()

    assert read_structure(cursor, container) == ""
    assert len(container) == 2
    assert read_structure(cursor, PairContainer()) is None


def test_header_variables_are_grouped() -> None:
    text = dxf_text(
        header=[
            (9, "$ACADVER"), (1, "AC1015"),
            (9, "$INSUNITS"), (70, 4),
            (9, "$LTSCALE"), (40, 2.5),
            (9, "$LIMMAX"), (10, 420.0), (20, 297.0),
            (9, "$DIMBLK"), (1, "_ArchTick"),
            (9, "$DIMBLK1"), (1, ""),
        ],
    )

    document = read_text(text)

    assert document.header["$ACADVER"] == "AC1015"
    assert document.header["$LIMMAX"] == ("420.0", "297.0")
    assert document.distance_unit.name == "MILLIMETERS"
    assert document.line_type_scale == 2.5
    assert document.limits_max == (420.0, 297.0)
    assert document.arrow_blocks == ["_ArchTick"]


def test_tables_fill_layers_and_line_types() -> None:
    text = dxf_text(
        layers=[layer("Walls", color=3, line_type="Dashed"), layer("Hidden", color=-2)],
        line_types=[ltype("DASHED", "- ", [0.5, -0.25])],
    )

    document = read_text(text)

    assert document.layer_names() == ["WALLS", "HIDDEN"]
    walls = document.get_layer("walls")
    assert walls.color == 3
    assert walls.line_type_name == "DASHED"
    assert not document.get_layer("HIDDEN").is_on
    dashed = document.get_line_type("dashed")
    assert dashed.item_count == 2
    assert dashed.pattern == (0.5, -0.25)
    assert dashed.pattern_length == 0.75


def test_blocks_and_entities_are_separated() -> None:
    text = dxf_text(
        blocks=[block("Door", line(0, 0, 1, 0), origin=(2.0, 3.0))],
        entities=[insert("Door", 5, 5), line(0, 0, 10, 10)],
    )

    document = read_text(text)
    door = document.require_block("DOOR")

    assert door.name == "Door"
    assert door.origin == (2.0, 3.0)
    assert [type(item) for item in door] == [Line]
    assert [type(item) for item in document.modelspace] == [Insert, Line]
    assert document.status is not None
    assert document.status.total("block", "read") == 1
    assert document.status.total("model", "read") == 2


def test_reserved_block_names_route_to_existing_blocks() -> None:
    text = dxf_text(blocks=[block("*Model_Space", line(0, 0, 1, 1)), block("*Paper_Space")])

    document = read_text(text)

    assert len(document.modelspace) == 1
    assert document.block_names() == ["*MODEL_SPACE", "*PAPER_SPACE"]


def test_legacy_polyline_collects_following_vertices() -> None:
    text = dxf_text(
        entities=[
            entity("POLYLINE", (66, 1), (70, 1)),
            entity("VERTEX", (10, 0.0), (20, 0.0), (42, 1.0)),
            entity("VERTEX", (10, 2.0), (20, 0.0)),
            entity("SEQEND"),
            line(0, 0, 1, 1),
        ]
    )

    document = read_text(text)
    polyline = document.modelspace.entities[0]

    assert isinstance(polyline, Polyline)
    assert polyline.is_closed
    assert [(v.x, v.y, v.bulge) for v in polyline.poly_vertices] == [(0.0, 0.0, 1.0), (2.0, 0.0, 0.0)]
    assert len(document.modelspace) == 2
    assert document.status is not None
    assert document.status.by_type("model", "read") == {"LINE": 1, "POLYLINE": 1, "VERTEX": 2}
    assert document.status.by_type("model", "ignored") == {"SEQEND": 1}


def test_vertices_attach_through_owner_handle() -> None:
    text = dxf_text(
        entities=[
            entity("POLYLINE", (70, 8), handle="A1"),
            line(0, 0, 1, 1, handle="B1"),
            entity("VERTEX", (10, 1.0), (20, 2.0), (30, 3.0), (70, 32), handle="A2", owner="A1"),
            entity("VERTEX", (10, 4.0), (20, 5.0), (30, 6.0), (70, 32), handle="A3", owner="A1"),
        ]
    )

    document = read_text(text)
    polyline = document.get_entity("A1")

    assert isinstance(polyline, Polyline)
    assert not polyline.is_2d
    assert [vertex.location for vertex in polyline.vertices] == [(1.0, 2.0, 3.0), (4.0, 5.0, 6.0)]
    assert polyline.poly_vertices == []


def test_vertex_without_container_is_ignored() -> None:
    text = dxf_text(entities=[line(0, 0, 1, 1), entity("VERTEX", (10, 1.0), (20, 2.0))])

    document = read_text(text)

    assert len(document.modelspace) == 1
    assert document.status is not None
    assert document.status.by_type("model", "ignored") == {"VERTEX": 1}


def test_mesh_polylines_get_their_own_kinds() -> None:
    text = dxf_text(
        entities=[
            entity("POLYLINE", (70, 16), (71, 2), (72, 3)),
            entity("POLYLINE", (70, 64), (71, 4), (72, 1)),
            entity("VERTEX", (10, 0.0), (20, 0.0), (70, 192)),
            entity("VERTEX", (71, 1), (72, 2), (73, 3), (70, 128)),
        ]
    )

    document = read_text(text)
    mesh, polyface = document.modelspace.entities

    assert isinstance(mesh, PolygonMesh)
    assert mesh.entity_type is EntityType.POLYGON3D
    assert (mesh.m_count, mesh.n_count) == (2, 3)
    assert isinstance(polyface, PolyFaceMesh)
    assert polyface.entity_type is EntityType.POLYFACE3D
    assert len(polyface.vertices) == 1
    assert [face.indices for face in polyface.faces] == [(1, 2, 3)]


def test_lwpolyline_vertices_and_bulges() -> None:
    text = dxf_text(entities=[lwpolyline([(0, 0), (1, 0, 0.5), (1, 1)], closed=True)])

    document = read_text(text)
    polyline = document.modelspace.entities[0]

    assert isinstance(polyline, LwPolyline)
    assert polyline.is_closed
    assert [(v.x, v.y, v.bulge) for v in polyline.poly_vertices] == [
        (0.0, 0.0, 0.0),
        (1.0, 0.0, 0.5),
        (1.0, 1.0, 0.0),
    ]


def test_unsupported_entities_are_counted_and_skipped() -> None:
    unsupported = [entity("TEXT", (1, "hello"), handle="2A"), entity("ACME_WIDGET", handle="2B")]
    blocks = [block("B", entity("MTEXT", (1, "note"), handle="2C"))]

    document = read_text(dxf_text(blocks=blocks, entities=unsupported))

    assert len(document.modelspace) == 0
    assert len(document.require_block("B")) == 0
    assert document.entity_count == 0
    assert document.get_entity("2A") is None
    assert document.get_entity("2B") is None
    assert document.get_entity("2C") is None
    assert len(document.flatten()) == 0
    assert len(document.flatten("B")) == 0
    assert document.status is not None
    assert document.status.by_type("model", "unsupported") == {"TEXT": 1, "UNRECOGNIZED_ENTITY": 1}
    assert document.status.by_type("block", "unsupported") == {"MTEXT": 1}

    with_line = read_text(dxf_text(blocks=blocks, entities=[*unsupported, line(0, 0, 1, 1, handle="2D")]))

    assert len(with_line.modelspace) == 1
    assert with_line.entity_count == 1
    assert with_line.get_entity("2A") is None
    assert isinstance(with_line.get_entity("2D"), Line)
    assert len(with_line.flatten()) == 1


def test_paper_space_entities_are_ignored_by_default() -> None:
    text = dxf_text(entities=[line(0, 0, 1, 1, paper=True), line(0, 0, 2, 2)])

    ignored = read_text(text)
    kept = read_text(text, ignore_paper_space=False)

    assert len(ignored.modelspace) == 1
    assert len(ignored.paperspace) == 0
    assert ignored.status is not None
    assert ignored.status.by_type("paper", "ignored") == {"LINE": 1}
    assert len(kept.paperspace) == 1
    assert kept.paperspace.entities[0].common.in_paper_space


def test_control_string_groups_are_skipped_by_default() -> None:
    record = entity(
        "LINE",
        (102, "{ACAD_REACTORS"),
        (330, "1F"),
        (102, "}"),
        (10, 0.0), (20, 0.0), (11, 1.0), (21, 1.0),
    )
    text = dxf_text(entities=[record])

    skipped = read_text(text).modelspace.entities[0]
    kept = read_text(text, ignore_control_strings=False).modelspace.entities[0]

    assert skipped.common.owner_id is None
    assert kept.common.owner_id == "1F"


def test_entity_common_fields() -> None:
    text = dxf_text(
        entities=[
            entity(
                "CIRCLE",
                (48, 0.5), (60, 1), (10, 1.0), (20, 2.0), (40, 3.0),
                layer="Walls", handle="C1", color=5, line_type="Dashed",
            )
        ]
    )

    circle = read_text(text).get_entity("C1")

    assert circle is not None
    common = circle.common
    assert (common.layer, common.color_index, common.line_type) == ("Walls", 5, "Dashed")
    assert common.line_type_scale == 0.5
    assert not common.visible
    assert circle.dxftype == "CIRCLE"


def test_missing_eof_marker_is_accepted() -> None:
    document = read_text(dxf_text(entities=[line(0, 0, 1, 1)], eof=False))

    assert len(document.modelspace) == 1


def test_input_ending_inside_a_section_is_logged(caplog) -> None:
    text = dxf_text(entities=[line(0, 0, 1, 1)], eof=False).rsplit("0\nENDSEC\n", 1)[0]

    with caplog.at_level(logging.WARNING, logger="flatdxf.parser"):
        document = read_text(text)

    assert len(document.modelspace) == 1
    assert "inside a section" in caplog.text


def test_other_sections_are_skipped() -> None:
    objects = "0\nSECTION\n2\nOBJECTS\n0\nDICTIONARY\n2\nENTITIES\n0\nENDSEC\n"
    text = objects + dxf_text(entities=[line(0, 0, 1, 1)])

    document = read_text(text)

    assert len(document.modelspace) == 1


def test_read_from_path(tmp_path) -> None:
    path = tmp_path / "drawing.dxf"
    path.write_text(dxf_text(entities=[line(0, 0, 1, 1)]), encoding="utf-8")

    assert len(read(path).modelspace) == 1
    assert len(read(str(path)).modelspace) == 1


def test_read_missing_path(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read(tmp_path / "missing.dxf")


def test_unexpected_failure_is_wrapped_with_partial_document(monkeypatch) -> None:
    original = parser_module.decode

    def _decode(entity_type, pairs, **kwargs):
        if entity_type is EntityType.CIRCLE:
            raise RuntimeError("boom")
        return original(entity_type, pairs, **kwargs)

    monkeypatch.setattr(parser_module, "decode", _decode)
    text = dxf_text(entities=[line(0, 0, 1, 1), entity("CIRCLE", (40, 1.0))])

    with pytest.raises(DxfReadError) as excinfo:
        read_text(text)

    assert "Error in DXF file" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert excinfo.value.document is not None
    assert len(excinfo.value.document.modelspace) == 1


def test_viewport_maps_view_into_paper_rectangle() -> None:
    document = read_text(
        dxf_text(
            entities=[
                entity(
                    "VIEWPORT",
                    (10, 50.0), (20, 40.0), (40, 20.0), (41, 10.0),
                    (12, 5.0), (22, 5.0), (45, 5.0), (69, 2),
                    handle="3A",
                )
            ]
        )
    )

    viewport = document.get_entity("3A")

    assert isinstance(viewport, Viewport)
    assert viewport.viewport_id == 2
    assert viewport.scale == 2.0
    assert viewport.view_width == 10.0
    assert viewport.bounds() == (40.0, 35.0, 60.0, 45.0)
    assert viewport.transform.apply(0.0, 0.0) == (80.0, 60.0)
    assert viewport.transform.apply(1.0, 0.0) == (82.0, 60.0)
