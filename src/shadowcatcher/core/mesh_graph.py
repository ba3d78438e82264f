# shadowcatcher/src/shadowcatcher/core/mesh_graph.py

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Tuple

from shadowcatcher.models.mesh_definitions import ElementKind, ElementRef, Mesh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Component:
    """
    A maximal connected set of edges and faces of one mesh.

    Attributes:
        edges: Edge indices, ascending.
        faces: Face indices, ascending.
    """
    edges: Tuple[int, ...]
    faces: Tuple[int, ...]

    @property
    def size(self) -> int:
        return len(self.edges) + len(self.faces)


def _vertex_incidence(mesh: Mesh) -> Dict[int, List[ElementRef]]:
    incidence: Dict[int, List[ElementRef]] = {}
    for index, edge in enumerate(mesh.edges):
        for v in edge.vertices:
            incidence.setdefault(v, []).append(ElementRef(ElementKind.EDGE, index))
    for index, face in enumerate(mesh.faces):
        for v in face.vertices:
            incidence.setdefault(v, []).append(ElementRef(ElementKind.FACE, index))
    return incidence


def _element_vertices(mesh: Mesh, ref: ElementRef) -> Tuple[int, ...]:
    element = mesh.element(ref)
    if ref.kind in (ElementKind.EDGE, ElementKind.FACE):
        return tuple(element.vertices)
    return ()


def connected_components(mesh: Mesh) -> List[Component]:
    """
    Groups the edges and faces of a mesh into connected components.

    Two elements are connected when they share a vertex (an edge and the
    faces it bounds always do). The flood fill starts from the first
    unvisited edge or face in arena order, so the result is deterministic.

    Args:
        mesh: The mesh definition. It is only read.

    Returns:
        One Component per connected set; an empty list for an empty mesh.
        Every edge and face appears in exactly one component.
    """
    incidence = _vertex_incidence(mesh)
    seeds = mesh.refs(ElementKind.EDGE) + mesh.refs(ElementKind.FACE)
    visited = set()
    components: List[Component] = []

    for seed in seeds:
        if seed in visited:
            continue
        visited.add(seed)
        queue = deque([seed])
        edges, faces = [], []
        seen_vertices = set()
        while queue:
            ref = queue.popleft()
            (edges if ref.kind is ElementKind.EDGE else faces).append(ref.index)
            for v in _element_vertices(mesh, ref):
                if v in seen_vertices:
                    continue
                seen_vertices.add(v)
                for neighbour in incidence.get(v, ()):
                    if neighbour not in visited:
                        visited.add(neighbour)
                        queue.append(neighbour)
        components.append(Component(edges=tuple(sorted(edges)), faces=tuple(sorted(faces))))

    logger.debug(f"Mesh '{mesh.name}' split into {len(components)} connected component(s).")
    return components
