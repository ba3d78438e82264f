# shadowcatcher/src/shadowcatcher/core/projection.py

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np

from shadowcatcher.core.common_types import (Plane, Point2D, Segment2D, Transform, Vector3D, as_vector,
                                             is_parallel, normalize)
from shadowcatcher.core.errors import DegenerateProjection
from shadowcatcher.core.settings import DEFAULT_PARALLEL_TOLERANCE
from shadowcatcher.models.mesh_definitions import Mesh


class PlaneProjector:
    """
    Projects mesh points along the light direction onto the receiving plane.

    The plane and the light direction are mapped into the mesh definition's
    own frame once, so mesh vertices are never transformed to world space.
    Because the plane's in-plane basis is mapped along with it, the 2D
    coordinates produced are the receiving plane's world 2D coordinates.

    Attributes:
        plane: Receiving plane in the local frame.
        light_dir: Unit light direction in the local frame.
        degenerate_count: Number of projections that failed with
                          DegenerateProjection and were skipped.
    """

    def __init__(self, plane: Plane, light_dir: Vector3D, transform: Optional[Transform] = None,
                 parallel_tolerance: float = DEFAULT_PARALLEL_TOLERANCE):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        light = normalize(light_dir)
        if transform is not None:
            to_local = transform.inverse()
            plane = plane.transformed(to_local)
            light = to_local.apply_vector(light)
        self.plane = plane
        self.light_dir = light
        self.parallel_tolerance = parallel_tolerance
        self.degenerate_count = 0

    def project(self, point: Vector3D) -> Point2D:
        return project(point, self.plane, self.light_dir, self.parallel_tolerance)

    def project_edges(self, mesh: Mesh, edge_indices: Iterable[int], min_length: float = 0.0) -> List[Segment2D]:
        """
        Projects mesh edges to plane-local segments.

        Edges whose projection is degenerate are skipped and counted in
        `degenerate_count`. Edges that collapse to a point (shorter than
        `min_length` after projection) are dropped.
        """
        segments: List[Segment2D] = []
        for edge_index in edge_indices:
            a, b = mesh.edges[edge_index].vertices
            try:
                start = self.project(mesh.position(a))
                end = self.project(mesh.position(b))
            except DegenerateProjection as e:
                self.degenerate_count += 1
                self.logger.debug(f"Skipping edge {edge_index} of mesh '{mesh.name}': {e}")
                continue
            if np.hypot(end[0] - start[0], end[1] - start[1]) <= min_length:
                continue
            segments.append((start, end))
        return segments


def project(point: Vector3D, plane: Plane, light_dir: Vector3D,
            parallel_tolerance: float = DEFAULT_PARALLEL_TOLERANCE) -> Point2D:
    """
    Intersects the line through `point` along `light_dir` with `plane`.

    Points on either side of the plane are projected; the line is not
    restricted to the forward ray.

    Returns:
        The intersection in plane-local 2D coordinates.

    Raises:
        DegenerateProjection: If the light travels parallel to the plane.
    """
    origin = as_vector(point)
    direction = as_vector(light_dir)
    denom = float(np.dot(direction, plane.normal))
    if abs(denom) <= parallel_tolerance * np.linalg.norm(direction):
        raise DegenerateProjection(f"Light direction {direction} is parallel to the receiving plane.")
    t = float(np.dot(plane.origin - origin, plane.normal)) / denom
    return plane.to_2d(origin + t * direction)


def footprint_loops(mesh: Mesh, plane: Plane, tol: float) -> Tuple[List[List[Point2D]], float]:
    """
    Faces of `mesh` lying on `plane` (parallel normal, first vertex on the
    plane), as plane-local vertex loops, plus their summed area.

    `plane` must already be expressed in the mesh's frame.
    """
    loops: List[List[Point2D]] = []
    area = 0.0
    for index, face in enumerate(mesh.faces):
        if not is_parallel(face.normal, plane.normal):
            continue
        if not plane.contains(mesh.position(face.vertices[0]), tol):
            continue
        loops.append([plane.to_2d(p) for p in mesh.face_points(index)])
        area += face.area
    return loops, area
