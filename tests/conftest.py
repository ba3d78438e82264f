# shadowcatcher/tests/conftest.py

import pytest
import numpy as np

from shadowcatcher.core.common_types import Plane
from shadowcatcher.models.mesh_definitions import Mesh

# --- Shared geometry ---

# Unit cube standing on the XY plane, centred on the Z axis.
CUBE_POINTS = [[-0.5, -0.5, 0.0], [0.5, -0.5, 0.0], [0.5, 0.5, 0.0], [-0.5, 0.5, 0.0],
               [-0.5, -0.5, 1.0], [0.5, -0.5, 1.0], [0.5, 0.5, 1.0], [-0.5, 0.5, 1.0]]
# Outward facing loops: bottom, top, -Y, +X, +Y, -X.
CUBE_FACES = [[0, 3, 2, 1], [4, 5, 6, 7], [0, 1, 5, 4],
              [1, 2, 6, 5], [2, 3, 7, 6], [3, 0, 4, 7]]


@pytest.fixture
def ground_plane():
    """The XY plane; plane-local coordinates equal world X and Y."""
    return Plane(origin=np.array([0.0, 0.0, 0.0]), normal=np.array([0.0, 0.0, 1.0]))


@pytest.fixture
def cube_mesh():
    return Mesh.from_polygons(CUBE_POINTS, CUBE_FACES, name="cube")


@pytest.fixture
def floating_square_mesh():
    """A single upward facing square one unit above the ground."""
    points = [[0.0, 0.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 1.0], [0.0, 1.0, 1.0]]
    return Mesh.from_polygons(points, [[0, 1, 2, 3]], name="panel")
