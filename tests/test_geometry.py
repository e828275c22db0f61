from __future__ import annotations

import math

from flatdxf.geometry import (
    Affine2D,
    EllipticalArc,
    Point,
    PolyVertex,
    arc_from_bulge,
    block_transform,
    make_vertex_list,
)
from tests._dxf_helpers import pair_close


def test_point_equality_uses_tolerance() -> None:
    assert Point(1.0, 2.0) == Point(1.00005, 1.99995, 10.0)
    assert Point(1.0, 2.0) != Point(1.001, 2.0)


def test_bulge_one_is_a_semicircle() -> None:
    arc = arc_from_bulge(1.0, 0.0, 0.0, 2.0, 0.0)

    assert arc is not None
    assert pair_close(arc.center, (1.0, 0.0))
    assert math.isclose(arc.major[0], 1.0)
    assert math.isclose(arc.total_sweep(), 180.0)


def test_zero_bulge_is_a_straight_segment() -> None:
    assert arc_from_bulge(0.0, 0.0, 0.0, 1.0, 0.0) is None
    assert arc_from_bulge(1e-50, 0.0, 0.0, 1.0, 0.0) is None


def test_sample_uses_requested_step() -> None:
    arc = EllipticalArc.circular(0.0, 0.0, 1.0, 0.0, 90.0)

    samples = arc.sample(5.0)

    assert len(samples) == 19
    assert pair_close((samples[0].x, samples[0].y), (1.0, 0.0))
    assert pair_close((samples[-1].x, samples[-1].y), (0.0, 1.0))


def test_sample_step_is_clamped() -> None:
    arc = EllipticalArc.circular(0.0, 0.0, 1.0, 0.0, 180.0)

    assert len(arc.sample(90.0)) == 10
    assert len(arc.sample(0.0)) == 181


def test_sample_count_rounds_half_steps_up() -> None:
    for sweep, expected in ((22.5, 6), (67.5, 15), (112.5, 24)):
        samples = EllipticalArc.circular(0.0, 0.0, 1.0, 0.0, sweep).sample(5.0)

        assert len(samples) == expected
        end = math.radians(sweep)
        assert pair_close((samples[-1].x, samples[-1].y), (math.cos(end), math.sin(end)))


def test_poly_vertices_coincide_within_point_tolerance() -> None:
    first = PolyVertex(1.0, 2.0, z=3.0, bulge=0.5)

    assert first.point == Point(1.0, 2.0, 3.0)
    assert first.coincides(PolyVertex(1.00005, 1.99995))
    assert not first.coincides(PolyVertex(1.001, 2.0))


def test_vertex_list_follows_bulge_direction() -> None:
    ccw = make_vertex_list([PolyVertex(0.0, 0.0, bulge=1.0), PolyVertex(2.0, 0.0)], False, False)
    cw = make_vertex_list([PolyVertex(0.0, 0.0, bulge=-1.0), PolyVertex(2.0, 0.0)], False, False)

    for path in (ccw, cw):
        assert pair_close((path[0].x, path[0].y), (0.0, 0.0))
        assert pair_close((path[-1].x, path[-1].y), (2.0, 0.0))
    assert min(vertex.y for vertex in ccw) < -0.99
    assert max(vertex.y for vertex in cw) > 0.99


def test_vertex_list_has_no_duplicate_joins() -> None:
    square = [PolyVertex(0.0, 0.0), PolyVertex(1.0, 0.0), PolyVertex(1.0, 1.0), PolyVertex(0.0, 1.0)]

    open_path = make_vertex_list(square, False, False)
    closed_path = make_vertex_list(square, True, False)

    assert [(v.x, v.y) for v in open_path] == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]
    assert [(v.x, v.y) for v in closed_path][-1] == (0.0, 0.0)
    assert len(closed_path) == 5


def test_vertex_list_interpolates_widths_along_arcs() -> None:
    path = make_vertex_list(
        [PolyVertex(0.0, 0.0, start_width=0.0, end_width=1.0, bulge=1.0), PolyVertex(2.0, 0.0)],
        False,
        True,
    )

    widths = [vertex.end_width for vertex in path]
    assert widths == sorted(widths)
    assert math.isclose(widths[-1], 1.0)


def test_compose_applies_right_operand_first() -> None:
    move = Affine2D.translation(10.0, 0.0)
    scale = Affine2D.scaling(2.0, 2.0)

    assert move.compose(scale).apply(1.0, 1.0) == (12.0, 2.0)
    assert scale.compose(move).apply(1.0, 1.0) == (22.0, 2.0)
    assert Affine2D.identity().is_identity()
    assert scale.compose(move).as_tuple() == (2.0, 0.0, 0.0, 2.0, 20.0, 0.0)


def test_block_transform_sets_translation_directly() -> None:
    transform, stroke_scale = block_transform(10.0, 5.0, 2.0, 2.0, 90.0)

    assert pair_close(transform.apply(1.0, 0.0), (10.0, 7.0))
    assert pair_close(transform.apply(0.0, 0.0), (10.0, 5.0))
    assert stroke_scale == 0.5


def test_block_transform_zero_scale_keeps_stroke() -> None:
    _, stroke_scale = block_transform(0.0, 0.0, 1.0, -1.0, 0.0)

    assert stroke_scale == 1.0
