# shadowcatcher/tests/utils/test_mesh_utils.py

import pytest
import numpy as np
import trimesh

from shadowcatcher.core.mesh_graph import connected_components
from shadowcatcher.utils.mesh_utils import create_box_mesh, load_mesh_from_file, mesh_from_trimesh

CUBE_OBJ = """
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 1.0 1.0 0.0
v 0.0 1.0 0.0
v 0.0 0.0 1.0
v 1.0 0.0 1.0
v 1.0 1.0 1.0
v 0.0 1.0 1.0
f 1 4 3 2
f 5 6 7 8
f 1 2 6 5
f 2 3 7 6
f 3 4 8 7
f 4 1 5 8
"""


def test_create_box_mesh_has_quad_sides():
    box = create_box_mesh([2.0, 1.0, 1.0])
    assert len(box.vertices) == 8
    assert len(box.faces) == 6
    assert len(box.edges) == 12
    assert all(len(face.vertices) == 4 for face in box.faces)
    assert sum(face.area for face in box.faces) == pytest.approx(2 * (2.0 + 2.0 + 1.0))
    normals = np.array([face.normal for face in box.faces])
    np.testing.assert_allclose(normals.sum(axis=0), 0.0, atol=1e-12)
    # Outward normals: each points away from the centre.
    for face in box.faces:
        centre = np.mean([box.position(v) for v in face.vertices], axis=0)
        assert np.dot(face.normal, centre) > 0.0


def test_create_box_mesh_with_transform():
    transform = trimesh.transformations.translation_matrix([0.0, 0.0, 0.5])
    box = create_box_mesh([1.0, 1.0, 1.0], transform=transform)
    z = np.array([box.position(i)[2] for i in range(len(box.vertices))])
    assert z.min() == pytest.approx(0.0)
    assert z.max() == pytest.approx(1.0)


def test_mesh_from_trimesh_keeps_triangles():
    mesh = mesh_from_trimesh(trimesh.creation.box(extents=[1.0, 1.0, 1.0]), name="box")
    assert mesh.name == "box"
    assert len(mesh.faces) == 12
    assert len(connected_components(mesh)) == 1


def test_load_mesh_from_obj_file(tmp_path):
    path = tmp_path / "cube.obj"
    path.write_text(CUBE_OBJ)
    mesh = load_mesh_from_file(str(path), name="cube")
    assert mesh is not None
    assert mesh.name == "cube"
    assert len(mesh.faces) == 12
    assert sum(face.area for face in mesh.faces) == pytest.approx(6.0)


def test_load_mesh_failures_return_none(tmp_path):
    assert load_mesh_from_file("") is None
    assert load_mesh_from_file(str(tmp_path / "missing.stl")) is None
