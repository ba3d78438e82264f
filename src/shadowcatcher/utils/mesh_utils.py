# shadowcatcher/src/shadowcatcher/utils/mesh_utils.py

import trimesh
import logging
import numpy as np
from typing import Optional, Sequence

from shadowcatcher.models.mesh_definitions import Mesh

# Configure a logger for this module
logger = logging.getLogger(__name__)


def mesh_from_trimesh(tm: trimesh.Trimesh, name: str = "",
                      casts_shadow: bool = True, receives_shadow: bool = True) -> Mesh:
    """
    Converts a trimesh.Trimesh into a Mesh definition.

    Every triangle becomes a face. Coplanar neighbouring triangles are kept
    as separate faces; the edge between them faces the light the same way on
    both sides and is never a silhouette edge.
    """
    return Mesh.from_polygons(np.asarray(tm.vertices, dtype=float),
                              np.asarray(tm.faces, dtype=int).tolist(),
                              casts_shadow=casts_shadow,
                              receives_shadow=receives_shadow,
                              name=name or tm.metadata.get('name', ''))


def load_mesh_from_file(file_path: str, name: str = "") -> Optional[Mesh]:
    """
    Loads a mesh definition from a file using the trimesh library.

    This function supports the mesh formats trimesh supports (STL, OBJ, PLY,
    ...). Scenes with several geometries are concatenated into one mesh.

    Args:
        file_path: The absolute or relative path to the mesh file.
        name: Name for the mesh; defaults to the file path.

    Returns:
        A Mesh if the file is loaded successfully, otherwise None (file not
        found, unsupported format, empty mesh or a trimesh error).
    """
    if not file_path:
        logger.warning("File path is empty or None. Cannot load mesh.")
        return None

    try:
        tm = trimesh.load(file_path, force='mesh')
        if tm.is_empty:
            logger.warning(f"Loaded mesh from '{file_path}' is empty.")
            return None
        logger.info(f"Successfully loaded mesh from '{file_path}' "
                    f"with {len(tm.vertices)} vertices and {len(tm.faces)} faces.")
        return mesh_from_trimesh(tm, name=name or str(file_path))
    except FileNotFoundError:
        logger.error(f"Mesh file not found at path: {file_path}")
        return None
    except Exception as e:
        # trimesh raises various errors depending on the file format.
        logger.error(f"Failed to load mesh from '{file_path}'. Error: {e}", exc_info=True)
        return None


def create_box_mesh(extents: Sequence[float], transform: Optional[np.ndarray] = None, name: str = "box") -> Mesh:
    """
    Axis-aligned box centred on the origin (before `transform`), with its
    six sides as quadrilateral faces.
    """
    box = trimesh.creation.box(extents=extents, transform=transform)
    # Pair the triangles of each side back into one quad per side.
    quads = []
    for normal in ([1, 0, 0], [-1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1], [0, 0, -1]):
        if transform is not None:
            normal = np.asarray(transform)[:3, :3] @ np.asarray(normal, dtype=float)
        side = np.flatnonzero(np.asarray(box.face_normals) @ np.asarray(normal, dtype=float) > 0.5)
        quads.append(_triangles_to_quad(box.faces[side], box.vertices, np.asarray(normal, dtype=float)))
    return Mesh.from_polygons(np.asarray(box.vertices, dtype=float), quads, name=name)


def _triangles_to_quad(triangles: np.ndarray, vertices: np.ndarray, normal: np.ndarray) -> list:
    corners = sorted({int(v) for tri in triangles for v in tri})
    pts = vertices[corners]
    centre = pts.mean(axis=0)
    # Order the corners counter-clockwise around the outward normal.
    ref = pts[0] - centre
    ortho = np.cross(normal, ref)
    angles = np.arctan2((pts - centre) @ ortho, (pts - centre) @ ref)
    return [corners[i] for i in np.argsort(angles)]


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)  # Setup basic logging for the example

    # Create a dummy OBJ file for testing
    dummy_obj_content = """
# Vertices
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 1.0 1.0 0.0
v 0.0 1.0 0.0
v 0.0 0.0 1.0
v 1.0 0.0 1.0
v 1.0 1.0 1.0
v 0.0 1.0 1.0
# Faces
f 1 4 3 2
f 5 6 7 8
f 1 2 6 5
f 2 3 7 6
f 3 4 8 7
f 4 1 5 8
    """
    dummy_file_path = "dummy_cube.obj"
    with open(dummy_file_path, "w") as f:
        f.write(dummy_obj_content)

    loaded_mesh = load_mesh_from_file(dummy_file_path)
    if loaded_mesh:
        print(f"\nMesh loaded successfully: {loaded_mesh}")
    print(f"Box: {create_box_mesh([2.0, 1.0, 1.0])}")

    import os
    os.remove(dummy_file_path)
    logger.info(f"Cleaned up {dummy_file_path}")
