# shadowcatcher/src/shadowcatcher/core/common_types.py

import numpy as np
import quaternion  # For numpy-quaternion library
from typing import Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from shadowcatcher.core.geometry2d import segments_touch

# --- Basic Geometric Types ---

# Vector3D: A 3-element NumPy array representing a vector or point in 3D space.
Vector3D = np.ndarray  # np.array([x, y, z])

# Point2D: A point in the plane-local coordinates of the receiving plane.
Point2D = Tuple[float, float]

# Segment2D: A straight segment between two plane-local points.
Segment2D = Tuple[Point2D, Point2D]

# Quaternion: Using the numpy-quaternion library.
# np.quaternion(w, x, y, z) or quaternion.as_quat_array([...])
Quaternion = np.quaternion


def as_vector(values: Iterable[float]) -> Vector3D:
    """Returns `values` as a float64 array of shape (3,)."""
    vec = np.asarray(values, dtype=float).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"Expected 3 components, got shape {vec.shape}.")
    return vec


def normalize(vector: Vector3D) -> Vector3D:
    """
    Returns a unit-length copy of `vector`.

    Raises:
        ValueError: If the vector has (near) zero length.
    """
    vec = as_vector(vector)
    length = np.linalg.norm(vec)
    if length < 1e-12:
        raise ValueError("Cannot normalize a zero-length vector.")
    return vec / length


def is_parallel(a: Vector3D, b: Vector3D, tol: float = 1e-9) -> bool:
    """True if `a` and `b` are parallel or anti-parallel."""
    return float(np.linalg.norm(np.cross(normalize(a), normalize(b)))) < tol


def _in_plane_axis(normal: Vector3D) -> Vector3D:
    # World axis least aligned with the normal, flattened onto the plane.
    # A ground plane (normal +Z) gets u = +X, v = +Y.
    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(normal)))] = 1.0
    return normalize(axis - np.dot(axis, normal) * normal)


# --- Rigid Transforms ---

@dataclass(frozen=True, eq=False)
class Transform:
    """
    Rigid placement of a mesh definition: a rotation (as a quaternion)
    followed by a translation.

    Attributes:
        position: Translation applied after rotating.
        orientation: Unit quaternion describing the rotation.
    """
    position: Vector3D = field(default_factory=lambda: np.array([0.0, 0.0, 0.0]))
    orientation: Quaternion = field(default_factory=lambda: np.quaternion(1, 0, 0, 0))

    @property
    def rotation_matrix(self) -> np.ndarray:
        return quaternion.as_rotation_matrix(self.orientation.normalized())

    @property
    def matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix of this transform."""
        mat = np.eye(4)
        mat[:3, :3] = self.rotation_matrix
        mat[:3, 3] = as_vector(self.position)
        return mat

    def inverse(self) -> 'Transform':
        inv_orientation = self.orientation.normalized().conjugate()
        inv_rotation = quaternion.as_rotation_matrix(inv_orientation)
        return Transform(position=-(inv_rotation @ as_vector(self.position)),
                         orientation=inv_orientation)

    def apply_point(self, point: Vector3D) -> Vector3D:
        return self.rotation_matrix @ as_vector(point) + as_vector(self.position)

    def apply_points(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        return pts @ self.rotation_matrix.T + as_vector(self.position)

    def apply_vector(self, vector: Vector3D) -> Vector3D:
        return self.rotation_matrix @ as_vector(vector)

    @classmethod
    def identity(cls) -> 'Transform':
        return cls()

    @classmethod
    def from_translation(cls, offset: Iterable[float]) -> 'Transform':
        return cls(position=as_vector(offset))


# --- Planes ---

@dataclass(frozen=True, eq=False)
class Plane:
    """
    An oriented plane with an orthonormal in-plane basis.

    The basis (`u_axis`, `v_axis`) defines the plane-local 2D coordinate
    system all shadow polygons are expressed in. When the axes are not given
    they are derived deterministically from the normal, so two planes built
    from the same origin and normal share 2D coordinates.

    Attributes:
        origin: A point on the plane; maps to (0, 0) in plane-local coordinates.
        normal: Unit normal of the plane.
        u_axis: First in-plane unit axis.
        v_axis: Second in-plane unit axis, normal x u_axis.
    """
    origin: Vector3D
    normal: Vector3D
    u_axis: Optional[Vector3D] = None
    v_axis: Optional[Vector3D] = None

    def __post_init__(self):
        normal = normalize(self.normal)
        object.__setattr__(self, 'origin', as_vector(self.origin))
        object.__setattr__(self, 'normal', normal)
        if self.u_axis is None:
            u_axis = _in_plane_axis(normal)
        else:
            u_axis = as_vector(self.u_axis)
            u_axis = normalize(u_axis - np.dot(u_axis, normal) * normal)
        object.__setattr__(self, 'u_axis', u_axis)
        object.__setattr__(self, 'v_axis', np.cross(normal, u_axis))

    @classmethod
    def from_points(cls, points: Sequence[Iterable[float]]) -> 'Plane':
        """
        Builds the plane of a planar polygon. The normal follows the winding of
        the points (Newell's method) and the origin is the first point.

        Raises:
            ValueError: If the points are collinear or fewer than three.
        """
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        if len(pts) < 3:
            raise ValueError("A plane needs at least three points.")
        return cls(origin=pts[0], normal=newell_normal(pts))

    def distance(self, point: Vector3D) -> float:
        """Signed distance of `point` from the plane along the normal."""
        return float(np.dot(as_vector(point) - self.origin, self.normal))

    def contains(self, point: Vector3D, tol: float = 1e-6) -> bool:
        return abs(self.distance(point)) <= tol

    def to_2d(self, point: Vector3D) -> Point2D:
        """Orthogonally maps a 3D point to plane-local coordinates."""
        offset = as_vector(point) - self.origin
        return float(np.dot(offset, self.u_axis)), float(np.dot(offset, self.v_axis))

    def to_3d(self, point: Point2D) -> Vector3D:
        return self.origin + point[0] * self.u_axis + point[1] * self.v_axis

    def transformed(self, transform: Transform) -> 'Plane':
        """
        Maps the plane, including its in-plane basis, through a rigid
        transform. Plane-local coordinates are preserved: for any point p,
        ``plane.to_2d(p) == plane.transformed(t).to_2d(t.apply_point(p))``.
        """
        return Plane(origin=transform.apply_point(self.origin),
                     normal=transform.apply_vector(self.normal),
                     u_axis=transform.apply_vector(self.u_axis))


def newell_normal(points: np.ndarray) -> Vector3D:
    """
    Unit normal of a (possibly non-convex) planar polygon by Newell's method.

    Raises:
        ValueError: If the polygon is degenerate.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    nxt = np.roll(pts, -1, axis=0)
    normal = np.array([
        np.sum((pts[:, 1] - nxt[:, 1]) * (pts[:, 2] + nxt[:, 2])),
        np.sum((pts[:, 2] - nxt[:, 2]) * (pts[:, 0] + nxt[:, 0])),
        np.sum((pts[:, 0] - nxt[:, 0]) * (pts[:, 1] + nxt[:, 1])),
    ])
    return normalize(normal)


def polygon_area_3d(points: np.ndarray) -> float:
    """Area of a planar polygon in 3D (half the length of the Newell vector)."""
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) < 3:
        return 0.0
    total = np.zeros(3)
    for current, following in zip(pts, np.roll(pts, -1, axis=0)):
        total += np.cross(current, following)
    return 0.5 * float(np.linalg.norm(total))


# --- Plane-local Polygons ---

def shoelace_area(points: Sequence[Point2D]) -> float:
    """Signed area of a closed 2D polygon; positive when counter-clockwise."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def _canonical_rotation(points: Tuple[Point2D, ...]) -> Tuple[Point2D, ...]:
    if not points:
        return points
    start = min(range(len(points)), key=lambda i: points[i])
    return points[start:] + points[:start]


@dataclass(frozen=True)
class PolygonLoop:
    """
    A closed loop of plane-local points. The closing edge from the last point
    back to the first is implicit.

    Loops are stored starting at their lexicographically smallest vertex, so
    two loops describing the same cycle compare equal. Orientation carries
    meaning: outer boundaries run counter-clockwise, holes clockwise.
    """
    points: Tuple[Point2D, ...]

    def __post_init__(self):
        pts = tuple((float(p[0]), float(p[1])) for p in self.points)
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        object.__setattr__(self, 'points', _canonical_rotation(pts))

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def signed_area(self) -> float:
        return shoelace_area(self.points)

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    @property
    def is_hole(self) -> bool:
        return self.signed_area < 0.0

    def edges(self) -> List[Segment2D]:
        count = len(self.points)
        return [(self.points[i], self.points[(i + 1) % count]) for i in range(count)]

    def reversed(self) -> 'PolygonLoop':
        return PolygonLoop(tuple(reversed(self.points)))

    def is_simple(self, tol: float = 1e-9) -> bool:
        """True if no two non-adjacent edges of the loop touch or cross."""
        edges = self.edges()
        count = len(edges)
        if count < 3:
            return False
        for i in range(count):
            for j in range(i + 1, count):
                if j == i + 1 or (i == 0 and j == count - 1):
                    continue
                if segments_touch(edges[i], edges[j], tol):
                    return False
        return True


@dataclass(frozen=True)
class ShadowPolygonSet:
    """
    Aggregated shadow polygons on the receiving plane.

    Attributes:
        loops: Oriented polygon loops (holes run clockwise).
        area: Signed shoelace sum of the loops, so holes subtract.
    """
    loops: Tuple[PolygonLoop, ...] = ()
    area: float = 0.0

    @classmethod
    def from_loops(cls, loops: Iterable[PolygonLoop]) -> 'ShadowPolygonSet':
        ordered = tuple(sorted(loops, key=lambda loop: loop.points))
        return cls(loops=ordered, area=sum(loop.signed_area for loop in ordered))

    @property
    def is_empty(self) -> bool:
        return not self.loops

    def to_world(self, plane: Plane) -> List[np.ndarray]:
        """Returns each loop as an (N, 3) array of points on `plane`."""
        return [np.array([plane.to_3d(p) for p in loop.points]) for loop in self.loops]


if __name__ == '__main__':
    # Example usage
    ground = Plane(origin=np.array([0.0, 0.0, 0.0]), normal=np.array([0.0, 0.0, 1.0]))
    placement = Transform(position=np.array([2.0, 0.0, 0.0]),
                          orientation=quaternion.from_rotation_vector([0.0, 0.0, np.pi / 2]))
    square = PolygonLoop(((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)))

    print(f"Plane basis: u={ground.u_axis}, v={ground.v_axis}")
    print(f"Placement matrix:\n{placement.matrix}")
    print(f"Local plane: {ground.transformed(placement.inverse())}")
    print(f"Square area: {square.area}, hole: {square.is_hole}")
