# shadowcatcher/src/shadowcatcher/core/planar_graph.py

"""
Planar straight-line graph used by loop reconstruction and the boolean trims.

Vertices are snapped together within a distance tolerance, so points that
are equal up to floating point noise share one vertex id. Edges are
undirected and stored once, keyed by their sorted vertex ids.
"""

import logging
import math
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from shadowcatcher.core.common_types import Point2D, PolygonLoop, Segment2D, shoelace_area
from shadowcatcher.core.errors import ReconstructionFailure
from shadowcatcher.core.geometry2d import angle, cross, lerp, proper_intersection

logger = logging.getLogger(__name__)

EdgeKey = Tuple[int, int]
HalfEdge = Tuple[int, int]


def edge_key(a: int, b: int) -> EdgeKey:
    return (a, b) if a < b else (b, a)


class PlanarGraph:
    """
    A set of plane-local vertices and the undirected edges between them.

    Attributes:
        tol: Snapping distance; also the on-edge distance of the vertex split.
        points: Vertex positions, indexed by vertex id.
        edges: Undirected edges as sorted vertex id pairs.
    """

    def __init__(self, tol: float):
        self.tol = tol
        self.points: List[Point2D] = []
        self.edges: Set[EdgeKey] = set()
        self._grid: Dict[Tuple[int, int], List[int]] = defaultdict(list)

    # --- Construction ---

    def _cell(self, point: Point2D) -> Tuple[int, int]:
        return int(math.floor(point[0] / self.tol)), int(math.floor(point[1] / self.tol))

    def find_vertex(self, point: Point2D) -> Optional[int]:
        """Id of an existing vertex within `tol` of `point`, or None."""
        cx, cy = self._cell(point)
        best, best_dist = None, self.tol
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for vid in self._grid.get((cx + dx, cy + dy), ()):
                    px, py = self.points[vid]
                    dist = math.hypot(px - point[0], py - point[1])
                    if dist <= best_dist:
                        best, best_dist = vid, dist
        return best

    def add_vertex(self, point: Point2D) -> int:
        """Adds a vertex, or returns the id of the existing one it snaps to."""
        point = (float(point[0]), float(point[1]))
        existing = self.find_vertex(point)
        if existing is not None:
            return existing
        vid = len(self.points)
        self.points.append(point)
        self._grid[self._cell(point)].append(vid)
        return vid

    def add_segment(self, start: Point2D, end: Point2D) -> Optional[EdgeKey]:
        """Adds an edge between two points. Returns None if it collapses to a point."""
        a, b = self.add_vertex(start), self.add_vertex(end)
        if a == b:
            return None
        key = edge_key(a, b)
        self.edges.add(key)
        return key

    def add_segments(self, segments: Iterable[Segment2D]) -> Set[EdgeKey]:
        keys = set()
        for start, end in segments:
            key = self.add_segment(start, end)
            if key is not None:
                keys.add(key)
        return keys

    def add_loop(self, points: Sequence[Point2D]) -> Set[EdgeKey]:
        count = len(points)
        return self.add_segments((points[i], points[(i + 1) % count]) for i in range(count))

    def segment(self, key: EdgeKey) -> Segment2D:
        return self.points[key[0]], self.points[key[1]]

    def vertex_ids(self, keys: Iterable[EdgeKey]) -> Set[int]:
        return {v for key in keys for v in key}

    # --- Splitting ---

    def _replace_edge(self, key: EdgeKey, interior: Sequence[int]) -> List[EdgeKey]:
        """Replaces `key` by the chain through the `interior` vertex ids (ordered from key[0])."""
        self.edges.discard(key)
        chain = [key[0]] + list(interior) + [key[1]]
        new_keys = []
        for a, b in zip(chain, chain[1:]):
            if a != b:
                new_key = edge_key(a, b)
                self.edges.add(new_key)
                new_keys.append(new_key)
        return new_keys

    def _ordered_on_edge(self, key: EdgeKey, vertex_ids: Iterable[int]) -> List[int]:
        a, b = self.segment(key)
        dx, dy = b[0] - a[0], b[1] - a[1]
        length_sq = dx * dx + dy * dy

        def _param(vid):
            p = self.points[vid]
            return ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq

        unique = {v for v in vertex_ids if v not in key}
        return sorted(unique, key=_param)

    def split_crossings(self) -> int:
        """
        Splits every pair of edges that cross at a point interior to both,
        inserting a shared vertex there.

        Edges that merely touch are left alone; `split_at_vertices` resolves
        those.

        Returns:
            Number of crossings found.
        """
        keys = sorted(self.edges)
        if len(keys) < 2:
            return 0
        pts = np.asarray(self.points, dtype=float)
        ends = np.array([[pts[a], pts[b]] for a, b in keys])
        lo = ends.min(axis=1) - self.tol
        hi = ends.max(axis=1) + self.tol

        splits: Dict[EdgeKey, List[int]] = defaultdict(list)
        crossings = 0
        for i, key in enumerate(keys[:-1]):
            # Bounding box prefilter against all later edges.
            overlap = np.all((lo[i + 1:] <= hi[i]) & (hi[i + 1:] >= lo[i]), axis=1)
            for offset in np.nonzero(overlap)[0]:
                other = keys[i + 1 + int(offset)]
                if set(key) & set(other):
                    continue
                seg_a, seg_b = self.segment(key), self.segment(other)
                params = proper_intersection(seg_a, seg_b, self.tol)
                if params is None:
                    continue
                vid = self.add_vertex(lerp(seg_a[0], seg_a[1], params[0]))
                splits[key].append(vid)
                splits[other].append(vid)
                crossings += 1

        for key, vids in splits.items():
            self._replace_edge(key, self._ordered_on_edge(key, vids))
        if crossings:
            logger.debug(f"Split {crossings} edge crossing(s).")
        return crossings

    def split_at_vertices(self,
                          vertex_ids: Optional[Iterable[int]] = None,
                          edge_keys: Optional[Iterable[EdgeKey]] = None) -> int:
        """
        Vertex split pass: splits each edge at every vertex lying on its
        interior (within `tol`, and more than `tol` from its endpoints).

        Segment intersection does not report T-junctions or collinear
        overlaps, because such segments touch without crossing. Splitting at
        vertices makes adjacency consistent before edges are classified.

        Args:
            vertex_ids: Vertices to test; all vertices when None.
            edge_keys: Edges to split; all edges when None.

        Returns:
            Number of edges that were split.
        """
        vids = np.array(sorted(set(range(len(self.points)) if vertex_ids is None else vertex_ids)), dtype=int)
        keys = sorted(self.edges if edge_keys is None else set(edge_keys) & self.edges)
        if not len(vids) or not keys:
            return 0
        pts = np.asarray(self.points, dtype=float)[vids]

        split_count = 0
        for key in keys:
            a, b = self.segment(key)
            dx, dy = b[0] - a[0], b[1] - a[1]
            length = math.hypot(dx, dy)
            rel_x, rel_y = pts[:, 0] - a[0], pts[:, 1] - a[1]
            t = (rel_x * dx + rel_y * dy) / (length * length)
            dist_line = np.abs(rel_x * dy - rel_y * dx) / length
            dist_a = np.hypot(rel_x, rel_y)
            dist_b = np.hypot(pts[:, 0] - b[0], pts[:, 1] - b[1])
            on_edge = (dist_line <= self.tol) & (t > 0.0) & (t < 1.0) & (dist_a > self.tol) & (dist_b > self.tol)
            hits = [int(v) for v in vids[on_edge] if v not in key]
            if hits:
                self._replace_edge(key, self._ordered_on_edge(key, hits))
                split_count += 1
        if split_count:
            logger.debug(f"Vertex split pass split {split_count} edge(s).")
        return split_count

    def split_all(self) -> None:
        """Crossing split followed by a full vertex split pass."""
        self.split_crossings()
        self.split_at_vertices()

    # --- Topology ---

    def adjacency(self) -> Dict[int, List[int]]:
        """Neighbours of each vertex, sorted counter-clockwise by angle."""
        neighbours: Dict[int, List[int]] = defaultdict(list)
        for a, b in self.edges:
            neighbours[a].append(b)
            neighbours[b].append(a)
        for v, around in neighbours.items():
            origin = self.points[v]
            around.sort(key=lambda w: angle(origin, self.points[w]))
        return neighbours

    def prune_filaments(self) -> int:
        """Repeatedly removes edges ending in a vertex of degree one."""
        degree: Dict[int, int] = defaultdict(int)
        for a, b in self.edges:
            degree[a] += 1
            degree[b] += 1
        removed = 0
        changed = True
        while changed:
            changed = False
            for key in list(self.edges):
                if degree[key[0]] == 1 or degree[key[1]] == 1:
                    self.edges.discard(key)
                    degree[key[0]] -= 1
                    degree[key[1]] -= 1
                    removed += 1
                    changed = True
        if removed:
            logger.debug(f"Pruned {removed} dangling edge(s).")
        return removed

    def trace_faces(self) -> List[List[int]]:
        """
        Traces every face cycle of the graph.

        Each half-edge belongs to exactly one cycle, with the face on its
        left. Bounded faces come out counter-clockwise (positive area); the
        unbounded face around each connected piece comes out clockwise.
        """
        neighbours = self.adjacency()
        position = {v: {w: i for i, w in enumerate(around)} for v, around in neighbours.items()}
        visited: Set[HalfEdge] = set()
        cycles: List[List[int]] = []
        for a, b in sorted(self.edges):
            for start in ((a, b), (b, a)):
                if start in visited:
                    continue
                cycle = []
                half = start
                while half not in visited:
                    visited.add(half)
                    u, v = half
                    cycle.append(u)
                    around = neighbours[v]
                    # Next edge clockwise from the way back.
                    w = around[(position[v][u] - 1) % len(around)]
                    half = (v, w)
                cycles.append(cycle)
        return cycles

    def cycle_area(self, cycle: Sequence[int]) -> float:
        return shoelace_area([self.points[v] for v in cycle])


def trace_directed_loops(points: Sequence[Point2D],
                         directed_edges: Iterable[HalfEdge],
                         collinear_tol: float = 0.0) -> Tuple[List[PolygonLoop], int]:
    """
    Chains directed boundary edges, region on their left, into loops.

    At a vertex with several outgoing edges the walk takes the first one
    clockwise from the incoming edge, so regions touching at a single vertex
    come out as separate loops. An edge given more than once is walked once
    per occurrence.

    Args:
        points: Vertex positions indexed by id.
        directed_edges: Boundary half-edges ``(from, to)``.
        collinear_tol: Interior vertices closer than this to the line through
                       their neighbours are dropped; 0 keeps every vertex.

    Returns:
        The loops and the number of walks that failed to close, which are
        dropped.
    """
    outgoing: Dict[int, List[int]] = defaultdict(list)
    remaining: Counter = Counter()
    for u, v in directed_edges:
        if (u, v) not in remaining:
            outgoing[u].append(v)
        remaining[(u, v)] += 1

    loops: List[PolygonLoop] = []
    failures = 0
    for start in sorted(remaining):
        while remaining[start] > 0:
            try:
                cycle = _walk(points, outgoing, remaining, start)
            except ReconstructionFailure as e:
                failures += 1
                logger.warning(f"Dropping polygon loop: {e}")
                continue
            loop_points = [points[v] for v in cycle]
            if collinear_tol > 0.0:
                loop_points = drop_collinear(loop_points, collinear_tol)
            if len(loop_points) >= 3:
                loops.append(PolygonLoop(tuple(loop_points)))
    return loops, failures


def _walk(points: Sequence[Point2D], outgoing: Dict[int, List[int]],
          remaining: Counter, start: HalfEdge) -> List[int]:
    cycle = []
    half = start
    for _ in range(sum(remaining.values()) + 1):
        remaining[half] -= 1
        u, v = half
        cycle.append(u)
        candidates = [w for w in outgoing[v] if remaining[(v, w)] > 0 or (v, w) == start]
        if not candidates:
            raise ReconstructionFailure(f"Walk from vertex {start[0]} dead-ends at vertex {v}.")
        back = angle(points[v], points[u])
        # Smallest clockwise turn from the way back.
        w = min(candidates, key=lambda c: (back - angle(points[v], points[c])) % (2.0 * math.pi) or 2.0 * math.pi)
        half = (v, w)
        if half == start:
            return cycle
    raise ReconstructionFailure(f"Walk from vertex {start[0]} does not close.")


def drop_collinear(points: List[Point2D], tol: float) -> List[Point2D]:
    """Removes vertices lying on the straight line through their neighbours."""
    result = list(points)
    changed = True
    while changed and len(result) > 3:
        changed = False
        for i in range(len(result)):
            prev, cur, nxt = result[i - 1], result[i], result[(i + 1) % len(result)]
            base = math.hypot(nxt[0] - prev[0], nxt[1] - prev[1])
            if base == 0.0:
                continue
            ahead = (cur[0] - prev[0]) * (nxt[0] - prev[0]) + (cur[1] - prev[1]) * (nxt[1] - prev[1])
            if abs(cross(prev, nxt, cur)) / base <= tol and 0.0 < ahead < base * base:
                del result[i]
                changed = True
                break
    return result
