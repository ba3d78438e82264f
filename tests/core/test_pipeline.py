# shadowcatcher/tests/core/test_pipeline.py

import pytest
import numpy as np
import quaternion

from shadowcatcher.core.boolean_trim import BooleanTrimmer, Containment, classify_point
from shadowcatcher.core.common_types import PolygonLoop, ShadowPolygonSet, Transform
from shadowcatcher.core.errors import ComputationCancelled, ComputationError, IncompleteResult, NoCastingGeometry
from shadowcatcher.core.pipeline import CancellationToken, PipelineStage, ShadowCaster, compute_shadow
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.models.mesh_definitions import Instance, Mesh

DOWN = np.array([0.0, 0.0, -1.0])


def rectangle(x0, y0, x1, y1):
    return PolygonLoop(((x0, y0), (x1, y0), (x1, y1), (x0, y1)))


def bounds(shadow_set):
    points = np.array([p for loop in shadow_set.loops for p in loop])
    return points.min(axis=0), points.max(axis=0)


@pytest.fixture
def site():
    return rectangle(-5.0, -5.0, 5.0, 5.0)


# --- Reference scenarios ---

def test_cube_lit_from_above(ground_plane, cube_mesh):
    """Cube on a receiving face of its own size, light straight down."""
    result = compute_shadow(ground_plane, rectangle(-0.5, -0.5, 0.5, 0.5), [Instance(cube_mesh)], DOWN)

    assert result.ground_footprint_area == pytest.approx(1.0)
    # The cast shadow is exactly the footprint...
    assert len(result.cast_shadows.loops) == 1
    assert result.cast_shadows.area == pytest.approx(1.0)
    assert result.cast_shadows.loops[0] == rectangle(-0.5, -0.5, 0.5, 0.5)
    # ...so nothing is left once the footprint is removed.
    assert result.shadows.is_empty
    assert not result.is_complete
    assert any(isinstance(w, IncompleteResult) for w in result.warnings)
    assert result.diagnostics.silhouette_edges == 4


def test_cube_lit_at_45_degrees(ground_plane, cube_mesh):
    result = compute_shadow(ground_plane, rectangle(-1.0, -1.0, 3.0, 1.0), [Instance(cube_mesh)],
                            np.array([1.0, 0.0, -1.0]))

    assert result.ground_footprint_area == pytest.approx(1.0)
    # Footprint plus the footprint moved by the cube's height along +X.
    assert result.cast_shadows.area == pytest.approx(2.0)
    # Net shadow beyond the footprint: height x width.
    assert result.shadows.area == pytest.approx(1.0)
    assert len(result.shadows.loops) == 1
    lo, hi = bounds(result.shadows)
    np.testing.assert_allclose(lo, [0.5, -0.5], atol=1e-9)
    np.testing.assert_allclose(hi, [1.5, 0.5], atol=1e-9)
    assert result.is_complete


def test_grazing_light(ground_plane, cube_mesh):
    result = compute_shadow(ground_plane, rectangle(-1.0, -1.0, 1.0, 1.0), [Instance(cube_mesh)],
                            np.array([1.0, 0.0, 0.0]))

    assert result.shadows.is_empty
    assert result.diagnostics.silhouette_edges == 4
    assert result.diagnostics.degenerate_projections == result.diagnostics.silhouette_edges
    assert any(isinstance(w, IncompleteResult) for w in result.warnings)


# --- Instances ---

def test_instance_transform_is_applied(ground_plane, floating_square_mesh):
    placement = Transform(position=np.array([10.0, 0.0, 0.0]),
                          orientation=quaternion.from_rotation_vector([0.0, 0.0, np.pi / 2]))
    result = compute_shadow(ground_plane, rectangle(-20.0, -20.0, 20.0, 20.0),
                            [Instance(floating_square_mesh, placement)], DOWN)
    assert result.shadows.area == pytest.approx(1.0)
    lo, hi = bounds(result.shadows)
    np.testing.assert_allclose(lo, [9.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(hi, [10.0, 1.0], atol=1e-9)


def test_shadows_of_adjacent_instances_are_merged(ground_plane, floating_square_mesh, site):
    instances = [Instance(floating_square_mesh, name="left"),
                 Instance(floating_square_mesh, Transform.from_translation([1.0, 0.0, 0.0]), name="right")]
    result = compute_shadow(ground_plane, site, instances, DOWN)
    assert result.shadows.loops == (rectangle(0.0, 0.0, 2.0, 1.0),)
    assert result.ground_footprint_area == 0.0
    assert result.diagnostics.instances == 2


def test_ground_footprints_are_summed_over_instances(ground_plane, cube_mesh, site):
    instances = [Instance(cube_mesh), Instance(cube_mesh, Transform.from_translation([3.0, 0.0, 0.0]))]
    result = compute_shadow(ground_plane, site, instances, np.array([1.0, 0.0, -1.0]))
    assert result.ground_footprint_area == pytest.approx(2.0)
    assert result.shadows.area == pytest.approx(2.0)


def test_shadow_is_clipped_to_the_receiving_face(ground_plane, floating_square_mesh, site):
    placement = Transform.from_translation([4.5, 0.0, 0.0])
    result = compute_shadow(ground_plane, site, [Instance(floating_square_mesh, placement)], DOWN)
    assert result.shadows.area == pytest.approx(0.5)
    for loop in result.shadows.loops:
        for point in loop:
            assert classify_point(point, site) is not Containment.OUTSIDE


def test_shadow_area_never_exceeds_the_receiving_face(ground_plane, cube_mesh):
    boundary = rectangle(-0.5, -0.5, 1.0, 0.5)
    result = compute_shadow(ground_plane, boundary, [Instance(cube_mesh)], np.array([1.0, 0.0, -0.2]))
    assert 0.0 < result.shadows.area <= boundary.area - result.ground_footprint_area + 1e-9


def test_boundary_may_be_given_as_points(ground_plane, floating_square_mesh):
    result = compute_shadow(ground_plane, [(-2.0, -2.0), (2.0, -2.0), (2.0, 2.0), (-2.0, 2.0)],
                            [Instance(floating_square_mesh)], DOWN)
    assert result.shadows.area == pytest.approx(1.0)


def test_hidden_and_non_casting_instances_are_skipped(ground_plane, floating_square_mesh, site):
    instances = [Instance(floating_square_mesh),
                 Instance(floating_square_mesh, Transform.from_translation([2.0, 0.0, 0.0]), visible=False),
                 Instance(floating_square_mesh, Transform.from_translation([-2.0, 0.0, 0.0]), casts_shadow=False)]
    result = compute_shadow(ground_plane, site, instances, DOWN)
    assert result.diagnostics.instances == 1
    assert result.shadows.area == pytest.approx(1.0)


def test_no_eligible_instance_raises(ground_plane, floating_square_mesh, site):
    with pytest.raises(NoCastingGeometry):
        compute_shadow(ground_plane, site, [], DOWN)
    with pytest.raises(NoCastingGeometry):
        compute_shadow(ground_plane, site, [Instance(floating_square_mesh, visible=False)], DOWN)


def test_zero_light_direction_raises(ground_plane, floating_square_mesh, site):
    with pytest.raises(ComputationError):
        compute_shadow(ground_plane, site, [Instance(floating_square_mesh)], np.zeros(3))


def test_exact_union_setting(ground_plane, floating_square_mesh, site):
    instances = [Instance(floating_square_mesh),
                 Instance(floating_square_mesh, Transform.from_translation([0.5, 0.5, 0.0]))]
    heuristic = compute_shadow(ground_plane, site, instances, DOWN)
    exact = compute_shadow(ground_plane, site, instances, DOWN, settings=ShadowSettings(exact_union=True))
    assert heuristic.shadows.area == pytest.approx(2.0)
    assert exact.shadows.area == pytest.approx(1.75)


def test_area_is_conserved_over_the_receiving_face(ground_plane, cube_mesh):
    site = rectangle(-1.0, -1.0, 3.0, 1.0)
    footprint = rectangle(-0.5, -0.5, 0.5, 0.5)
    result = compute_shadow(ground_plane, site, [Instance(cube_mesh)], np.array([1.0, 0.0, -1.0]))
    trimmer = BooleanTrimmer(1e-6)

    assert trimmer.intersect(result.shadows.loops, footprint) == []

    covered = trimmer.union([result.shadows.loops, [footprint]])
    sun = ShadowPolygonSet.from_loops(trimmer.subtract(site, covered))
    assert sun.area == pytest.approx(6.0)
    assert result.shadows.area + result.ground_footprint_area + sun.area == pytest.approx(site.area)


def test_boxes_at_the_same_position_keep_both_shadows(ground_plane, cube_mesh, site):
    tall = Mesh.from_polygons([v.position * [1.0, 1.0, 2.0] for v in cube_mesh.vertices],
                              [f.vertices for f in cube_mesh.faces], name="tall")
    instances = [Instance(cube_mesh, name="short"), Instance(tall, name="tall")]
    light = np.array([1.0, 0.0, -1.0])

    result = compute_shadow(ground_plane, site, instances, light)
    assert result.diagnostics.dropped_loops == 0
    assert sorted(loop.area for loop in result.shadows.loops) == pytest.approx([1.0, 2.0])
    assert result.ground_footprint_area == pytest.approx(2.0)

    exact = compute_shadow(ground_plane, site, instances, light, settings=ShadowSettings(exact_union=True))
    assert len(exact.shadows.loops) == 1
    assert exact.shadows.area == pytest.approx(2.0)
    lo, hi = bounds(exact.shadows)
    np.testing.assert_allclose(lo, [0.5, -0.5], atol=1e-9)
    np.testing.assert_allclose(hi, [2.5, 0.5], atol=1e-9)


# --- Progress and cancellation ---

def test_progress_reports_every_stage(ground_plane, floating_square_mesh, site):
    events = []
    instances = [Instance(floating_square_mesh, name="a"),
                 Instance(floating_square_mesh, Transform.from_translation([2.0, 0.0, 0.0]), name="b")]
    compute_shadow(ground_plane, site, instances, DOWN, progress=events.append)

    assert len(events) == 2 * len(PipelineStage)
    assert [e.stage for e in events[:len(PipelineStage)]] == list(PipelineStage)
    assert {e.instance_name for e in events} == {"a", "b"}
    assert all(e.instance_count == 2 for e in events)
    assert events[-1].instance_index == 1


def test_cancellation_stops_between_stages(ground_plane, floating_square_mesh, site):
    token = CancellationToken()
    seen = []

    def progress(event):
        seen.append(event.stage)
        if event.stage is PipelineStage.PROJECTED:
            token.cancel()

    caster = ShadowCaster(progress=progress, cancel=token)
    with pytest.raises(ComputationCancelled):
        caster.compute(ground_plane, site, [Instance(floating_square_mesh)], DOWN)
    assert seen[-1] is PipelineStage.PROJECTED


def test_cancel_callable_is_checked_before_the_first_instance(ground_plane, floating_square_mesh, site):
    events = []
    with pytest.raises(ComputationCancelled):
        compute_shadow(ground_plane, site, [Instance(floating_square_mesh)], DOWN,
                       progress=events.append, cancel=lambda: True)
    assert events == []
