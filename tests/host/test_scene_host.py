# shadowcatcher/tests/host/test_scene_host.py

import pytest
import numpy as np

from shadowcatcher.core.common_types import Transform
from shadowcatcher.core.errors import NoCastingGeometry, SceneError
from shadowcatcher.core.settings import ShadowSettings
from shadowcatcher.host.scene_host import (Scene, SceneInstance, catch_shadows, find_receiving_face,
                                           light_direction_from_sun, select_visible_instances, spherical_to_cartesian)
from shadowcatcher.models.mesh_definitions import Mesh

SITE = [[-5.0, -5.0, 0.0], [5.0, -5.0, 0.0], [5.0, 5.0, 0.0], [-5.0, 5.0, 0.0]]


@pytest.fixture
def scene(floating_square_mesh):
    return Scene(receiving_face=SITE,
                 light_direction=[0.0, 0.0, -1.0],
                 instances=[SceneInstance(floating_square_mesh, name="panel"),
                            SceneInstance(floating_square_mesh, Transform.from_translation([2.0, 0.0, 0.0]),
                                          layer="Trees", name="tree")],
                 name="test")


def test_spherical_to_cartesian_unit_axes():
    np.testing.assert_allclose(spherical_to_cartesian(0.0, 0.0), [1.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(spherical_to_cartesian(0.0, np.pi / 2), [0.0, 0.0, 1.0], atol=1e-12)


def test_light_direction_points_away_from_the_sun():
    np.testing.assert_allclose(light_direction_from_sun(0.0, 90.0), [0.0, 0.0, -1.0], atol=1e-12)
    light = light_direction_from_sun(90.0, 45.0)
    np.testing.assert_allclose(light, [0.0, -np.sqrt(0.5), -np.sqrt(0.5)], atol=1e-12)


def test_select_visible_instances(floating_square_mesh):
    instances = [SceneInstance(floating_square_mesh, name="shown"),
                 SceneInstance(floating_square_mesh, visible=False, name="hidden"),
                 SceneInstance(floating_square_mesh, casts_shadow=False, name="no-shadow"),
                 SceneInstance(floating_square_mesh, layer="Off", name="layer-off")]
    selected = select_visible_instances(instances, hidden_layers={"Off"})
    assert [inst.name for inst in selected] == ["shown"]
    assert selected[0].is_eligible


def test_receiving_plane_of_scene(scene):
    plane, boundary = scene.get_receiving_plane()
    np.testing.assert_allclose(plane.normal, [0.0, 0.0, 1.0])
    assert boundary.area == pytest.approx(100.0)
    assert scene.receiving_area == pytest.approx(100.0)


def test_degenerate_receiving_face_is_rejected(floating_square_mesh):
    collinear = Scene(receiving_face=[[0, 0, 0], [1, 0, 0], [2, 0, 0]], light_direction=[0, 0, -1])
    with pytest.raises(SceneError):
        collinear.get_receiving_plane()
    too_few = Scene(receiving_face=[[0, 0, 0], [1, 0, 0]], light_direction=[0, 0, -1])
    with pytest.raises(SceneError):
        too_few.get_receiving_plane()
    warped = Scene(receiving_face=[[0, 0, 0], [1, 0, 0], [1, 1, 0.5], [0, 1, 0]], light_direction=[0, 0, -1])
    with pytest.raises(SceneError):
        warped.get_receiving_plane()


def test_hidden_layers_are_excluded(scene):
    scene.hidden_layers = {"Trees"}
    assert [inst.name for inst in scene.list_casting_instances()] == ["panel"]


def test_selection_falls_back_to_all_instances(scene):
    scene.selection = ("tree",)
    assert [inst.name for inst in scene.list_casting_instances()] == ["tree"]
    scene.hidden_layers = {"Trees"}
    assert [inst.name for inst in scene.list_casting_instances()] == ["panel"]


def test_catch_shadows(scene):
    result = catch_shadows(scene)
    assert result.shadows.area == pytest.approx(2.0)
    assert len(result.shadows.loops) == 2


def test_catch_shadows_uses_given_settings(scene):
    scene.instances[1].transform = Transform.from_translation([0.5, 0.0, 0.0])
    assert catch_shadows(scene).shadows.area == pytest.approx(2.0)
    assert catch_shadows(scene, settings=ShadowSettings(exact_union=True)).shadows.area == pytest.approx(1.5)


def test_catch_shadows_without_instances(scene):
    scene.instances = []
    with pytest.raises(NoCastingGeometry):
        catch_shadows(scene)


def test_catch_shadows_with_zero_light(scene):
    scene.light_direction = np.zeros(3)
    with pytest.raises(SceneError):
        catch_shadows(scene)


# Ground square plus a wall along its +X side; only the ground receives shadows.
SITE_POINTS = [[0, 0, 0], [4, 0, 0], [4, 4, 0], [0, 4, 0], [4, 0, 2], [4, 4, 2]]
SITE_FACES = [[0, 1, 2, 3], [1, 4, 5, 2]]


def test_find_receiving_face_uses_the_receiving_flag():
    site = Mesh.from_polygons(SITE_POINTS, SITE_FACES, receives_shadow=[True, False], name="site")
    face = find_receiving_face(site, Transform.from_translation([1.0, 2.0, 0.0]))
    np.testing.assert_allclose(face, [[1, 2, 0], [5, 2, 0], [5, 6, 0], [1, 6, 0]])


def test_find_receiving_face_within_a_group():
    site = Mesh.from_polygons(SITE_POINTS, SITE_FACES, groups={"ground": [0]}, name="site")
    with pytest.raises(SceneError):
        find_receiving_face(site)
    np.testing.assert_allclose(find_receiving_face(site, group="ground"), SITE_POINTS[:4])
    with pytest.raises(SceneError):
        find_receiving_face(site, group="roof")
