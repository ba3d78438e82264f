# shadowcatcher/src/shadowcatcher/core/reconstruction.py

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Set

from shadowcatcher.core.common_types import PolygonLoop, Segment2D
from shadowcatcher.core.geometry2d import point_in_polygon
from shadowcatcher.core.planar_graph import HalfEdge, PlanarGraph, trace_directed_loops
from shadowcatcher.core.settings import DEFAULT_TOLERANCE


class PolygonReconstructor:
    """
    Turns the projected silhouette edges of one component into closed,
    simple polygon loops.

    The segment soup is split wherever segments cross or touch, dangling
    edges are pruned, and every bounded face of the resulting planar graph
    is discovered. Edges with a bounded face on both sides are interior and
    discarded; what remains is the outer outline of the shadow.

    Attributes:
        tol: Snapping and on-edge tolerance.
        dropped_loops: Number of loops dropped so far because they did not close.
    """

    def __init__(self, tol: float = DEFAULT_TOLERANCE):
        self.tol = tol
        self.dropped_loops = 0
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def reconstruct(self, segments: Iterable[Segment2D]) -> List[PolygonLoop]:
        """
        Recovers polygon loops from an unordered segment soup.

        Returns:
            Counter-clockwise outer loops (and clockwise loops for any
            unfilled regions), sorted by their points. Loops that fail to
            close are dropped with a warning.
        """
        graph = PlanarGraph(self.tol)
        graph.add_segments(segments)
        graph.split_all()
        graph.prune_filaments()
        if not graph.edges:
            return []

        filled = self._bounded_half_edges(graph)
        boundary: List[HalfEdge] = []
        for a, b in graph.edges:
            left, right = (a, b) in filled, (b, a) in filled
            if left and not right:
                boundary.append((a, b))
            elif right and not left:
                boundary.append((b, a))

        loops, failures = trace_directed_loops(graph.points, boundary, collinear_tol=self.tol)
        if failures:
            self.dropped_loops += failures
            self.logger.warning(f"{failures} shadow loop(s) failed to close and were dropped.")
        self.logger.debug(f"Reconstructed {len(loops)} loop(s) from {len(graph.edges)} edge(s).")
        return sorted(loops, key=lambda loop: loop.points)

    def _bounded_half_edges(self, graph: PlanarGraph) -> Set[HalfEdge]:
        """Half-edges whose left side lies in a bounded region of the graph."""
        cycles = graph.trace_faces()
        piece = _connected_pieces(graph)

        bounded_polygons: Dict[int, List[list]] = defaultdict(list)
        for cycle in cycles:
            if graph.cycle_area(cycle) > 0.0:
                bounded_polygons[piece[cycle[0]]].append([graph.points[v] for v in cycle])

        filled: Set[HalfEdge] = set()
        for cycle in cycles:
            if graph.cycle_area(cycle) > 0.0:
                inside = True
            else:
                # The outside of a piece is bounded when the piece sits inside
                # a bounded face of another piece.
                own = piece[cycle[0]]
                probe = graph.points[cycle[0]]
                inside = any(point_in_polygon(probe, polygon)
                             for other, polygons in bounded_polygons.items() if other != own
                             for polygon in polygons)
            if inside:
                filled.update(zip(cycle, cycle[1:] + cycle[:1]))
        return filled


def _connected_pieces(graph: PlanarGraph) -> Dict[int, int]:
    """Maps each vertex with edges to the id of its connected piece."""
    parent: Dict[int, int] = {}

    def find(v: int) -> int:
        parent.setdefault(v, v)
        while parent[v] != v:
            parent[v] = parent[parent[v]]
            v = parent[v]
        return v

    for a, b in graph.edges:
        root_a, root_b = find(a), find(b)
        if root_a != root_b:
            parent[root_b] = root_a
    return {v: find(v) for v in list(parent)}
