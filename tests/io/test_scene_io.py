# shadowcatcher/tests/io/test_scene_io.py

from datetime import datetime

import pytest
import numpy as np
import yaml

from shadowcatcher.core.errors import SceneError
from shadowcatcher.host.scene_host import catch_shadows
from shadowcatcher.io.scene_io import SceneLoader, load_scene_from_yaml, save_result_to_yaml, scene_from_dict

SCENE_YAML = """
name: courtyard
receiving_face:
  - [-5.0, -5.0, 0.0]
  - [5.0, -5.0, 0.0]
  - [5.0, 5.0, 0.0]
  - [-5.0, 5.0, 0.0]
light_direction: [1.0, 0.0, -1.0]
shadow_time: 2024-06-21 14:30:00
hidden_layers: [Trees]
settings:
  tolerance: 1e-6
meshes:
  cube:
    vertices:
      - [-0.5, -0.5, 0.0]
      - [0.5, -0.5, 0.0]
      - [0.5, 0.5, 0.0]
      - [-0.5, 0.5, 0.0]
      - [-0.5, -0.5, 1.0]
      - [0.5, -0.5, 1.0]
      - [0.5, 0.5, 1.0]
      - [-0.5, 0.5, 1.0]
    faces:
      - [0, 3, 2, 1]
      - [4, 5, 6, 7]
      - [0, 1, 5, 4]
      - [1, 2, 6, 5]
      - [2, 3, 7, 6]
      - [3, 0, 4, 7]
instances:
  - mesh: cube
    name: house
    position: [0.0, 0.0, 0.0]
    orientation: [1.0, 0.0, 0.0, 0.0]
  - mesh: cube
    name: tree
    position: [-3.0, 0.0, 0.0]
    layer: Trees
"""


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "scene.yaml"
    path.write_text(SCENE_YAML)
    return path


def test_load_scene(scene_file):
    scene = load_scene_from_yaml(str(scene_file))
    assert scene.name == "courtyard"
    assert len(scene.instances) == 2
    assert scene.instances[0].mesh is scene.instances[1].mesh
    assert scene.instances[1].layer == "Trees"
    assert scene.hidden_layers == {"Trees"}
    assert scene.shadow_time == datetime(2024, 6, 21, 14, 30)
    assert scene.settings.tolerance == pytest.approx(1e-6)
    np.testing.assert_allclose(scene.light_direction, [1.0, 0.0, -1.0])
    np.testing.assert_allclose(scene.instances[1].transform.position, [-3.0, 0.0, 0.0])


def test_loaded_scene_casts_shadows(scene_file):
    result = catch_shadows(load_scene_from_yaml(str(scene_file)))
    assert result.ground_footprint_area == pytest.approx(1.0)
    assert result.shadows.area == pytest.approx(1.0)


def test_sun_angles_and_tagged_values():
    data = yaml.load("""
receiving_face: !numpy.ndarray [[0, 0, 0], [1, 0, 0], [1, 1, 0]]
sun: {azimuth: 0.0, elevation: 90.0}
meshes:
  panel: {vertices: [[0, 0, 1], [1, 0, 1], [1, 1, 1]], faces: [[0, 1, 2]]}
instances:
  - {mesh: panel, orientation: !numpy.quaternion [1.0, 0.0, 0.0, 0.0]}
""", Loader=SceneLoader)
    assert isinstance(data['receiving_face'], np.ndarray)
    scene = scene_from_dict(data)
    np.testing.assert_allclose(scene.light_direction, [0.0, 0.0, -1.0], atol=1e-12)
    assert scene.instances[0].transform.orientation == np.quaternion(1.0, 0.0, 0.0, 0.0)
    assert scene.instances[0].name == "panel#0"


def test_receiving_face_from_a_mesh_group():
    data = yaml.load("""
light_direction: [0.0, 0.0, -1.0]
receiving_face: {mesh: site, group: ground, position: [10.0, 0.0, 0.0]}
meshes:
  site:
    vertices: [[0, 0, 0], [4, 0, 0], [4, 4, 0], [0, 4, 0], [4, 0, 2], [4, 4, 2]]
    faces: [[0, 1, 2, 3], [1, 4, 5, 2]]
    groups: {ground: [0], wall: [1]}
""", Loader=SceneLoader)
    scene = scene_from_dict(data)
    np.testing.assert_allclose(scene.receiving_face, [[10, 0, 0], [14, 0, 0], [14, 4, 0], [10, 4, 0]])
    assert scene.receiving_area == pytest.approx(16.0)


@pytest.mark.parametrize("data", [
    [1, 2, 3],
    {'receiving_face': [[0, 0, 0], [1, 0, 0], [1, 1, 0]]},
    {'receiving_face': [[0, 0, 0], [1, 0, 0], [1, 1, 0]], 'light_direction': [0, 0, -1],
     'instances': [{'mesh': 'missing'}]},
    {'receiving_face': [[0, 0, 0], [1, 0, 0], [1, 1, 0]], 'light_direction': [0, 0, -1],
     'settings': {'no_such_setting': 1}},
    {'receiving_face': [[0, 0, 0], [1, 0, 0], [1, 1, 0]], 'light_direction': [0, 0],
     'meshes': {}},
    {'receiving_face': {'mesh': 'missing'}, 'light_direction': [0, 0, -1]},
])
def test_invalid_scenes_raise_scene_error(data):
    with pytest.raises(SceneError):
        scene_from_dict(data)


def test_missing_scene_file(tmp_path):
    with pytest.raises(SceneError):
        load_scene_from_yaml(str(tmp_path / "nope.yaml"))


def test_malformed_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("receiving_face: [[0, 0, 0]\n")
    with pytest.raises(SceneError):
        load_scene_from_yaml(str(path))


def test_mesh_path_that_cannot_be_loaded(tmp_path):
    path = tmp_path / "scene.yaml"
    path.write_text("receiving_face: [[0, 0, 0], [1, 0, 0], [1, 1, 0]]\n"
                    "light_direction: [0, 0, -1]\n"
                    "meshes:\n  house: {path: missing.stl}\n")
    with pytest.raises(SceneError):
        load_scene_from_yaml(str(path))


def test_save_result(scene_file, tmp_path):
    scene = load_scene_from_yaml(str(scene_file))
    result = catch_shadows(scene)
    plane, _ = scene.get_receiving_plane()
    out = tmp_path / "shadows.yaml"

    save_result_to_yaml(result, plane, str(out), site_area=scene.receiving_area, shadow_time=scene.shadow_time)

    saved = yaml.safe_load(out.read_text())
    assert saved['name'] == "Shadows: 14:30 - 21 June"
    assert saved['material'] == {'name': "02 - Shadows", 'color': [255, 0, 0], 'alpha': 0.5}
    assert saved['shadow_area'] == pytest.approx(1.0)
    assert saved['statistics']['footprint_area'] == pytest.approx(1.0)
    assert saved['complete'] is True
    assert len(saved['loops']) == 1
    points = np.array(saved['loops'][0]['points'])
    assert points.shape == (4, 3)
    np.testing.assert_allclose(points[:, 2], 0.0, atol=1e-12)
    assert points[:, 0].min() == pytest.approx(0.5)
