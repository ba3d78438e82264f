# shadowcatcher/src/shadowcatcher/models/mesh_definitions.py

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

# Import base types from common_types
from shadowcatcher.core.common_types import Transform, Vector3D, newell_normal, polygon_area_3d

logger = logging.getLogger(__name__)


class ElementKind(Enum):
    """Discriminant of the elements stored in a Mesh."""
    VERTEX = "vertex"
    EDGE = "edge"
    FACE = "face"
    GROUP = "group"


@dataclass(frozen=True)
class ElementRef:
    """Index of an element in one of the arenas of a Mesh."""
    kind: ElementKind
    index: int


@dataclass(frozen=True, eq=False)
class Vertex:
    """
    A mesh vertex.

    Attributes:
        position: Read-only 3D position in the mesh definition's frame.
    """
    position: Vector3D


@dataclass(frozen=True)
class Edge:
    """
    A straight edge between two vertices.

    Attributes:
        vertices: Indices of the two end vertices.
        faces: Indices of the incident faces; at most two in well-formed input.
    """
    vertices: Tuple[int, int]
    faces: Tuple[int, ...] = ()


@dataclass(frozen=True, eq=False)
class Face:
    """
    A planar polygonal face.

    Attributes:
        vertices: Vertex indices of the outer loop, in winding order. The
                  winding defines the normal (right-hand rule).
        normal: Unit normal computed from the loop.
        area: Area of the face.
        casts_shadow: Whether this face blocks light.
        receives_shadow: Whether shadows may be cast onto this face.
    """
    vertices: Tuple[int, ...]
    normal: Vector3D
    area: float = 0.0
    casts_shadow: bool = True
    receives_shadow: bool = True


@dataclass(frozen=True)
class Group:
    """A named collection of element references, e.g. a layer or sub-object."""
    name: str
    members: Tuple[ElementRef, ...] = ()


MeshElement = Union[Vertex, Edge, Face, Group]


class Mesh:
    """
    Immutable, shareable polygon mesh definition.

    Vertices, edges and faces are stored in arenas (tuples) and reference each
    other by integer index. Edges are derived from face loops, so every edge
    knows its incident faces. A Mesh is never modified after construction and
    may be referenced by any number of Instances.
    """

    def __init__(self,
                 vertices: Sequence[Vertex],
                 edges: Sequence[Edge],
                 faces: Sequence[Face],
                 groups: Sequence[Group] = (),
                 name: str = ""):
        self.name = name
        self._vertices: Tuple[Vertex, ...] = tuple(vertices)
        self._edges: Tuple[Edge, ...] = tuple(edges)
        self._faces: Tuple[Face, ...] = tuple(faces)
        self._groups: Tuple[Group, ...] = tuple(groups)

    @property
    def vertices(self) -> Tuple[Vertex, ...]:
        return self._vertices

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self._edges

    @property
    def faces(self) -> Tuple[Face, ...]:
        return self._faces

    @property
    def groups(self) -> Tuple[Group, ...]:
        return self._groups

    def find_group(self, name: str) -> Optional[Group]:
        return next((g for g in self._groups if g.name == name), None)

    @property
    def is_empty(self) -> bool:
        return not self._edges and not self._faces

    def position(self, vertex_index: int) -> Vector3D:
        return self._vertices[vertex_index].position

    def face_points(self, face_index: int) -> np.ndarray:
        """(N, 3) array of the positions of a face's loop."""
        return np.array([self.position(i) for i in self._faces[face_index].vertices])

    def element(self, ref: ElementRef) -> MeshElement:
        """Resolves an ElementRef to the element it indexes."""
        if ref.kind is ElementKind.VERTEX:
            return self._vertices[ref.index]
        if ref.kind is ElementKind.EDGE:
            return self._edges[ref.index]
        if ref.kind is ElementKind.FACE:
            return self._faces[ref.index]
        if ref.kind is ElementKind.GROUP:
            return self._groups[ref.index]
        raise ValueError(f"Unknown element kind: {ref.kind!r}")

    def refs(self, kind: ElementKind) -> List[ElementRef]:
        """All references of one element kind, in arena order."""
        arena = {
            ElementKind.VERTEX: self._vertices,
            ElementKind.EDGE: self._edges,
            ElementKind.FACE: self._faces,
            ElementKind.GROUP: self._groups,
        }[kind]
        return [ElementRef(kind, i) for i in range(len(arena))]

    def __repr__(self) -> str:
        return (f"Mesh(name={self.name!r}, vertices={len(self._vertices)}, "
                f"edges={len(self._edges)}, faces={len(self._faces)})")

    @classmethod
    def from_polygons(cls,
                      points: Sequence[Iterable[float]],
                      face_loops: Sequence[Sequence[int]],
                      loose_edges: Sequence[Tuple[int, int]] = (),
                      casts_shadow: Union[bool, Sequence[bool]] = True,
                      receives_shadow: Union[bool, Sequence[bool]] = True,
                      groups: Optional[Mapping[str, Sequence[int]]] = None,
                      name: str = "") -> 'Mesh':
        """
        Builds a mesh from vertex positions and face loops.

        Args:
            points: Vertex positions.
            face_loops: Each face as a list of vertex indices in winding order.
            loose_edges: Additional edges that bound no face.
            casts_shadow: One flag for all faces or one flag per face.
            receives_shadow: One flag for all faces or one flag per face.
            groups: Named sets of face loops, by index into `face_loops`.
            name: Name of the definition, used in log messages.

        Returns:
            The new Mesh. Faces with fewer than three vertices or no area are
            skipped with a warning.
        """
        positions = np.asarray(points, dtype=float).reshape(-1, 3)
        vertices = []
        for pos in positions:
            pos = pos.copy()
            pos.flags.writeable = False
            vertices.append(Vertex(position=pos))

        cast_flags = _per_face(casts_shadow, len(face_loops), "casts_shadow")
        receive_flags = _per_face(receives_shadow, len(face_loops), "receives_shadow")

        faces: List[Face] = []
        face_of_loop: Dict[int, int] = {}
        edge_faces: Dict[Tuple[int, int], List[int]] = {}
        edge_order: List[Tuple[int, int]] = []

        def _register(a: int, b: int, face_index: Optional[int]):
            key = (a, b) if a < b else (b, a)
            if key not in edge_faces:
                edge_faces[key] = []
                edge_order.append(key)
            if face_index is not None and face_index not in edge_faces[key]:
                edge_faces[key].append(face_index)

        for loop_index, loop in enumerate(face_loops):
            loop = tuple(int(i) for i in loop)
            if len(loop) < 3:
                logger.warning(f"Face {loop_index} of mesh '{name}' has < 3 vertices. Skipping.")
                continue
            loop_points = positions[list(loop)]
            try:
                normal = newell_normal(loop_points)
            except ValueError:
                logger.warning(f"Face {loop_index} of mesh '{name}' is degenerate. Skipping.")
                continue
            normal.flags.writeable = False
            face_index = len(faces)
            face_of_loop[loop_index] = face_index
            faces.append(Face(vertices=loop, normal=normal, area=polygon_area_3d(loop_points),
                              casts_shadow=cast_flags[loop_index],
                              receives_shadow=receive_flags[loop_index]))
            for a, b in zip(loop, loop[1:] + loop[:1]):
                if a != b:
                    _register(a, b, face_index)

        for a, b in loose_edges:
            if a != b:
                _register(int(a), int(b), None)

        mesh_groups = []
        for group_name, members in (groups or {}).items():
            refs = tuple(ElementRef(ElementKind.FACE, face_of_loop[int(i)])
                         for i in members if int(i) in face_of_loop)
            mesh_groups.append(Group(name=str(group_name), members=refs))

        edges = [Edge(vertices=key, faces=tuple(edge_faces[key])) for key in edge_order]
        return cls(vertices, edges, faces, groups=mesh_groups, name=name)


def _per_face(flag: Union[bool, Sequence[bool]], count: int, label: str) -> List[bool]:
    if isinstance(flag, (bool, np.bool_)):
        return [bool(flag)] * count
    flags = [bool(f) for f in flag]
    if len(flags) != count:
        raise ValueError(f"Expected {count} {label} flags, got {len(flags)}.")
    return flags


@dataclass
class Instance:
    """
    A placed copy of a mesh definition eligible to cast a shadow.

    Attributes:
        mesh: The shared mesh definition; never modified through the instance.
        transform: Rigid placement of the definition in the scene.
        visible: Whether the instance is visible (already resolved by the host,
                 including layer visibility).
        casts_shadow: Whether the instance casts shadows at all.
        name: Descriptive name used in log messages.
    """
    mesh: Mesh
    transform: Transform = field(default_factory=Transform.identity)
    visible: bool = True
    casts_shadow: bool = True
    name: str = ""

    @property
    def is_eligible(self) -> bool:
        return self.visible and self.casts_shadow


if __name__ == '__main__':
    # Example: a unit cube resting on the XY plane, placed twice.
    cube_points = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
                   [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]]
    cube_faces = [[0, 3, 2, 1], [4, 5, 6, 7], [0, 1, 5, 4],
                  [1, 2, 6, 5], [2, 3, 7, 6], [3, 0, 4, 7]]
    cube = Mesh.from_polygons(cube_points, cube_faces, name="cube")
    first = Instance(mesh=cube, name="first")
    second = Instance(mesh=cube, transform=Transform.from_translation([3.0, 0.0, 0.0]), name="second")

    print(cube)
    for inst in (first, second):
        print(f"  Instance '{inst.name}' at {inst.transform.position}, shares mesh: {inst.mesh is cube}")
    for ref in cube.refs(ElementKind.FACE):
        face = cube.element(ref)
        print(f"    Face {ref.index}: normal={face.normal}, area={face.area:.2f}")
