# shadowcatcher/src/shadowcatcher/core/boolean_trim.py

import logging
from enum import Enum
from typing import Callable, List, Sequence, Union

from shadowcatcher.core.common_types import Point2D, PolygonLoop
from shadowcatcher.core.geometry2d import left_normal, midpoint, point_in_polygon, point_on_segment
from shadowcatcher.core.planar_graph import HalfEdge, PlanarGraph, trace_directed_loops
from shadowcatcher.core.settings import DEFAULT_TOLERANCE

LoopsLike = Union[PolygonLoop, Sequence[PolygonLoop]]

# Side samples are taken this many tolerances away from an edge.
SIDE_SAMPLE_FACTOR = 8.0


class Containment(Enum):
    INSIDE = "inside"
    ON_BOUNDARY = "on_boundary"
    OUTSIDE = "outside"
    UNKNOWN = "unknown"


def _as_loops(loops: LoopsLike) -> List[PolygonLoop]:
    if isinstance(loops, PolygonLoop):
        return [loops]
    return [loop if isinstance(loop, PolygonLoop) else PolygonLoop(tuple(loop)) for loop in loops]


def even_odd(point: Point2D, loops: Sequence[PolygonLoop]) -> bool:
    """Even-odd containment of `point` in the region bounded by `loops`."""
    inside = False
    for loop in loops:
        if point_in_polygon(point, loop.points):
            inside = not inside
    return inside


def classify_point(point: Point2D, loops: LoopsLike, tol: float = DEFAULT_TOLERANCE) -> Containment:
    """
    Classifies a point against a polygon given as one or more loops.

    Returns:
        ON_BOUNDARY when the point is within `tol` of an edge, otherwise
        INSIDE or OUTSIDE by the even-odd rule. UNKNOWN when the polygon has
        no loop with three vertices and a non-zero area.
    """
    valid = [loop for loop in _as_loops(loops) if len(loop) >= 3 and loop.area > tol * tol]
    if not valid:
        return Containment.UNKNOWN
    for loop in valid:
        for segment in loop.edges():
            if point_on_segment(point, segment, tol):
                return Containment.ON_BOUNDARY
    return Containment.INSIDE if even_odd(point, valid) else Containment.OUTSIDE


class BooleanTrimmer:
    """
    Planar set operations on polygon loops.

    Both inputs are inserted into one planar graph. Every vertex of each
    input is first tested against the edges of the other (the vertex split
    pass), then crossing edges are split. Edges are classified by their
    midpoint, and each remaining edge is kept when the region on exactly one
    of its sides belongs to the result. The kept edges are re-traced into
    loops, which re-verifies that they close.

    Attributes:
        tol: Snapping and on-edge tolerance.
        dropped_loops: Number of result loops dropped so far because they did not close.
    """

    def __init__(self, tol: float = DEFAULT_TOLERANCE):
        self.tol = tol
        self.dropped_loops = 0
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def subtract(self, loops: LoopsLike, obstacle: LoopsLike) -> List[PolygonLoop]:
        """
        Removes the area of `obstacle` from `loops`.

        Edges whose midpoint is strictly inside the obstacle are removed, and
        obstacle edges that do not bound the remaining area are dropped in
        the cleanup.
        """
        subject, clip = _as_loops(loops), _as_loops(obstacle)
        graph = self._insert(subject, [clip])
        self._remove_edges(graph, lambda mid: classify_point(mid, clip, self.tol) is Containment.INSIDE)
        return self._trace_region(
            graph, lambda p: even_odd(p, subject) and classify_point(p, clip, self.tol) is not Containment.INSIDE)

    def intersect(self, loops: LoopsLike, boundary: LoopsLike) -> List[PolygonLoop]:
        """
        Clips `loops` to `boundary`.

        Edges whose midpoint is outside the boundary, or whose containment is
        UNKNOWN, are removed.
        """
        subject, clip = _as_loops(loops), _as_loops(boundary)
        graph = self._insert(subject, [clip])
        self._remove_edges(graph, lambda mid: classify_point(mid, clip, self.tol) in (Containment.OUTSIDE,
                                                                                       Containment.UNKNOWN))
        return self._trace_region(
            graph, lambda p: even_odd(p, subject) and classify_point(p, clip, self.tol) is Containment.INSIDE)

    def union(self, loop_sets: Sequence[LoopsLike]) -> List[PolygonLoop]:
        """Geometric union of several loop sets."""
        sets = [_as_loops(s) for s in loop_sets]
        sets = [s for s in sets if s]
        if not sets:
            return []
        graph = self._insert(sets[0], sets[1:])
        return self._trace_region(graph, lambda p: any(even_odd(p, s) for s in sets))

    # --- Mechanism ---

    def _insert(self, subject: List[PolygonLoop], others: List[List[PolygonLoop]]) -> PlanarGraph:
        graph = PlanarGraph(self.tol)
        subject_keys = set()
        for loop in subject:
            subject_keys |= graph.add_loop(loop.points)
        other_keys = set()
        for loops in others:
            for loop in loops:
                other_keys |= graph.add_loop(loop.points)

        # Vertex split pass: T-junctions between the inputs only touch, so
        # crossing detection alone would leave the touched edge whole.
        graph.split_at_vertices(graph.vertex_ids(other_keys), subject_keys)
        graph.split_at_vertices(graph.vertex_ids(subject_keys), other_keys)
        graph.split_all()
        return graph

    def _remove_edges(self, graph: PlanarGraph, predicate: Callable[[Point2D], bool]) -> None:
        doomed = [key for key in graph.edges if predicate(midpoint(graph.segment(key)))]
        for key in doomed:
            graph.edges.discard(key)

    def _trace_region(self, graph: PlanarGraph, in_region: Callable[[Point2D], bool]) -> List[PolygonLoop]:
        offset = SIDE_SAMPLE_FACTOR * self.tol
        boundary: List[HalfEdge] = []
        for a, b in graph.edges:
            segment = graph.segment((a, b))
            (mx, my), (nx, ny) = midpoint(segment), left_normal(segment)
            left = in_region((mx + nx * offset, my + ny * offset))
            right = in_region((mx - nx * offset, my - ny * offset))
            # Edges with the region on both sides or on neither are interior or stray.
            if left and not right:
                boundary.append((a, b))
            elif right and not left:
                boundary.append((b, a))

        loops, failures = trace_directed_loops(graph.points, boundary, collinear_tol=self.tol)
        if failures:
            self.dropped_loops += failures
            self.logger.warning(f"{failures} trimmed loop(s) failed to close and were dropped.")
        return sorted(loops, key=lambda loop: loop.points)
