# shadowcatcher/src/shadowcatcher/core/silhouette.py

import logging
from typing import List

import numpy as np

from shadowcatcher.core.common_types import Vector3D, as_vector
from shadowcatcher.core.errors import NonManifoldMesh
from shadowcatcher.core.mesh_graph import Component
from shadowcatcher.core.settings import DEFAULT_FACING_TOLERANCE
from shadowcatcher.models.mesh_definitions import Mesh


class SilhouetteExtractor:
    """
    Finds the edges of a mesh component that outline its shadow.

    An edge is a silhouette edge when exactly one of its incident faces casts
    shadows (an open boundary), or when its two shadow casting faces lie on
    opposite sides of the light: one facing it, the other facing away.

    Edges with more than two casting faces are tolerated. They are classified
    by majority: interior when most faces agree on facing, silhouette on a
    tie. Each one is recorded in `non_manifold`.
    """

    def __init__(self, facing_tolerance: float = DEFAULT_FACING_TOLERANCE):
        self.facing_tolerance = facing_tolerance
        self.non_manifold: List[NonManifoldMesh] = []
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def faces_light(self, normal: Vector3D, light_dir: Vector3D) -> bool:
        """True if a face with `normal` is lit by light travelling along `light_dir`."""
        return float(np.dot(light_dir, normal)) < -self.facing_tolerance

    def is_silhouette(self, mesh: Mesh, edge_index: int, light_dir: Vector3D) -> bool:
        edge = mesh.edges[edge_index]
        casting = [mesh.faces[f] for f in edge.faces if mesh.faces[f].casts_shadow]
        if not casting:
            return False
        if len(casting) == 1:
            return True
        facing = [self.faces_light(face.normal, light_dir) for face in casting]
        if len(casting) == 2:
            return facing[0] != facing[1]

        lit = sum(facing)
        unlit = len(facing) - lit
        self.non_manifold.append(NonManifoldMesh(
            message=f"Edge {edge_index} of mesh '{mesh.name}' has {len(casting)} shadow casting faces.",
            edge_index=edge_index,
            face_count=len(casting)))
        self.logger.warning(f"Non-manifold edge {edge_index} in mesh '{mesh.name}' "
                            f"({lit} lit / {unlit} unlit faces); classified by majority.")
        return lit == unlit

    def extract(self, mesh: Mesh, component: Component, light_dir: Vector3D) -> List[int]:
        """
        Silhouette edges of one component.

        Args:
            mesh: Mesh the component belongs to.
            component: Connected component produced by `connected_components`.
            light_dir: Direction the light travels, in the mesh's frame.

        Returns:
            Indices of the silhouette edges, in component order. Callers treat
            them as an unordered edge soup.
        """
        light = as_vector(light_dir)
        edges = [e for e in component.edges if self.is_silhouette(mesh, e, light)]
        self.logger.debug(f"{len(edges)} of {len(component.edges)} edges are silhouette edges.")
        return edges
