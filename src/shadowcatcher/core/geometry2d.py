# shadowcatcher/src/shadowcatcher/core/geometry2d.py

"""
Scalar predicates on plane-local points and segments.

Points are ``(x, y)`` tuples and segments are pairs of points. All
predicates take an absolute distance tolerance.
"""

import math
from typing import Optional, Sequence, Tuple

Point = Tuple[float, float]
Segment = Tuple[Point, Point]


def cross(o: Point, a: Point, b: Point) -> float:
    """z component of (a - o) x (b - o)."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def midpoint(segment: Segment) -> Point:
    (x1, y1), (x2, y2) = segment
    return (0.5 * (x1 + x2), 0.5 * (y1 + y2))


def lerp(a: Point, b: Point, t: float) -> Point:
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def project_parameter(point: Point, segment: Segment) -> Tuple[float, float]:
    """
    Returns ``(t, d)``: the parameter of the closest point on the infinite
    line through `segment` and the distance of `point` from that line.
    """
    a, b = segment
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return 0.0, distance(point, a)
    t = ((point[0] - a[0]) * dx + (point[1] - a[1]) * dy) / length_sq
    return t, abs(cross(a, b, point)) / math.sqrt(length_sq)


def point_on_segment_interior(point: Point, segment: Segment, tol: float) -> Optional[float]:
    """
    Parameter at which `point` lies on the interior of `segment`, or None.

    The point must be within `tol` of the segment and farther than `tol`
    from both endpoints.
    """
    a, b = segment
    if distance(point, a) <= tol or distance(point, b) <= tol:
        return None
    t, d = project_parameter(point, segment)
    if d > tol or t <= 0.0 or t >= 1.0:
        return None
    return t


def point_on_segment(point: Point, segment: Segment, tol: float) -> bool:
    """True if `point` is within `tol` of the closed segment."""
    a, b = segment
    if distance(point, a) <= tol or distance(point, b) <= tol:
        return True
    t, d = project_parameter(point, segment)
    return d <= tol and 0.0 <= t <= 1.0


def proper_intersection(s1: Segment, s2: Segment, tol: float) -> Optional[Tuple[float, float]]:
    """
    Parameters ``(t1, t2)`` where two segments cross at a single point
    interior to both, or None.

    Parallel segments, and segments that only touch (an endpoint lying on
    the other segment), report None; those cases are left to the vertex
    split pass.
    """
    (p, p2), (q, q2) = s1, s2
    rx, ry = p2[0] - p[0], p2[1] - p[1]
    sx, sy = q2[0] - q[0], q2[1] - q[1]
    denom = rx * sy - ry * sx
    len_r = math.hypot(rx, ry)
    len_s = math.hypot(sx, sy)
    if len_r == 0.0 or len_s == 0.0:
        return None
    # Sine of the angle between the segments.
    if abs(denom) <= 1e-12 * len_r * len_s:
        return None
    qpx, qpy = q[0] - p[0], q[1] - p[1]
    t1 = (qpx * sy - qpy * sx) / denom
    t2 = (qpx * ry - qpy * rx) / denom
    # Interior to both by more than the tolerance, measured as a distance.
    if t1 * len_r <= tol or (1.0 - t1) * len_r <= tol:
        return None
    if t2 * len_s <= tol or (1.0 - t2) * len_s <= tol:
        return None
    return t1, t2


def segments_touch(s1: Segment, s2: Segment, tol: float) -> bool:
    """True if two segments cross, touch or overlap."""
    if proper_intersection(s1, s2, tol) is not None:
        return True
    return (point_on_segment(s1[0], s2, tol) or point_on_segment(s1[1], s2, tol)
            or point_on_segment(s2[0], s1, tol) or point_on_segment(s2[1], s1, tol))


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """
    Even-odd ray casting test. Points exactly on the boundary may report
    either result; callers that care test the boundary first.
    """
    x, y = point
    inside = False
    count = len(polygon)
    j = count - 1
    for i in range(count):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > y) != (yj > y):
            x_cross = xi + (y - yi) * (xj - xi) / (yj - yi)
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def left_normal(segment: Segment) -> Point:
    """Unit normal pointing to the left of the segment's direction."""
    (x1, y1), (x2, y2) = segment
    dx, dy = x2 - x1, y2 - y1
    length = math.hypot(dx, dy)
    return (-dy / length, dx / length)


def angle(origin: Point, target: Point) -> float:
    return math.atan2(target[1] - origin[1], target[0] - origin[0])
