# shadowcatcher/src/shadowcatcher/core/aggregate.py

import logging
from collections import Counter
from typing import Iterable, List, Optional, Sequence

from shadowcatcher.core.boolean_trim import BooleanTrimmer
from shadowcatcher.core.common_types import PolygonLoop, ShadowPolygonSet
from shadowcatcher.core.planar_graph import HalfEdge, PlanarGraph, trace_directed_loops
from shadowcatcher.core.settings import DEFAULT_TOLERANCE


class ShadowAggregator:
    """
    Merges shadow groups into one ShadowPolygonSet.

    The default merge flattens all loops into one edge collection and drops
    every edge that two loops share in opposite directions, i.e. the shared
    boundary between two adjacent faces. Identical loops (coincident faces)
    collapse into one. This is not a geometric union: loops that overlap,
    including distinct loops sharing an edge in the same direction, are kept
    as they are and their overlap is counted twice by `total_area`. With
    `exact_union` the merge uses `BooleanTrimmer.union` instead.
    """

    def __init__(self, tol: float = DEFAULT_TOLERANCE, exact_union: bool = False):
        self.tol = tol
        self.exact_union = exact_union
        self.dropped_loops = 0
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def merge(self, groups: Iterable[Sequence[PolygonLoop]], exact: Optional[bool] = None) -> ShadowPolygonSet:
        """Merges loop groups; `exact` overrides the aggregator's `exact_union` for this call."""
        groups = [list(group) for group in groups]
        use_union = self.exact_union if exact is None else exact
        if use_union:
            trimmer = BooleanTrimmer(self.tol)
            loops = trimmer.union(groups)
            self.dropped_loops += trimmer.dropped_loops
        else:
            loops = self.flatten(groups)
        merged = ShadowPolygonSet.from_loops(loops)
        self.logger.debug(f"Merged {sum(len(g) for g in groups)} loop(s) from {len(groups)} group(s) "
                          f"into {len(merged.loops)} loop(s).")
        return merged

    def flatten(self, groups: Iterable[Sequence[PolygonLoop]]) -> List[PolygonLoop]:
        """Coincident-edge flattening of loop groups."""
        # Identical loops (coincident faces) collapse into one.
        unique: List[PolygonLoop] = []
        for group in groups:
            for loop in group:
                if loop not in unique:
                    unique.append(loop)

        graph = PlanarGraph(self.tol)
        directed: Counter = Counter()
        for loop in unique:
            for start, end in loop.edges():
                a, b = graph.add_vertex(start), graph.add_vertex(end)
                if a != b:
                    directed[(a, b)] += 1

        # Each opposite pair separates two faces and cancels.
        boundary: List[HalfEdge] = []
        overlapping = 0
        for (a, b), count in directed.items():
            kept = count - directed[(b, a)]
            if kept > 0:
                boundary.append((a, b))
            # Distinct loops running the same way along an edge overlap there.
            if kept > 1:
                overlapping += 1
        if overlapping:
            self.logger.info(f"{overlapping} edge(s) bound overlapping loops; keeping the "
                             f"{len(unique)} input loop(s) unmerged.")
            return unique
        loops, failures = trace_directed_loops(graph.points, boundary, collinear_tol=self.tol)
        if failures:
            self.logger.warning(f"{failures} merged loop(s) failed to close; keeping the {len(unique)} "
                                f"input loop(s) unmerged.")
            return unique
        return loops


def total_area(shadow_set: ShadowPolygonSet) -> float:
    """Shoelace area of a polygon set; clockwise hole loops subtract."""
    return sum(loop.signed_area for loop in shadow_set.loops)
