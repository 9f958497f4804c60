"""Bowyer-Watson Delaunay triangulation, used for the decorative constellation lines."""
import logging

logger = logging.getLogger(__name__)

Point = tuple[float, float]
Edge = tuple[Point, Point]
Triangle = tuple[Point, Point, Point]


def make_edge(a: Point, b: Point) -> Edge:
    """Edges are undirected: the lexicographically smaller point comes first."""
    return (a, b) if a < b else (b, a)


def triangle_edges(t: Triangle) -> list[Edge]:
    return [make_edge(t[0], t[1]), make_edge(t[1], t[2]), make_edge(t[2], t[0])]


def in_circumcircle(t: Triangle, p: Point) -> bool:
    """Strictly inside the circumcircle of `t`, whatever the winding of `t`."""
    (ax, ay), (bx, by), (cx, cy) = t
    dx, dy = p
    adx, ady = ax - dx, ay - dy
    bdx, bdy = bx - dx, by - dy
    cdx, cdy = cx - dx, cy - dy
    det = (
        (adx * adx + ady * ady) * (bdx * cdy - cdx * bdy)
        - (bdx * bdx + bdy * bdy) * (adx * cdy - cdx * ady)
        + (cdx * cdx + cdy * cdy) * (adx * bdy - bdx * ady)
    )
    orientation = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
    return det * orientation > 0


def super_triangle(points: list[Point]) -> Triangle:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    min_x, max_x, min_y, max_y = min(xs), max(xs), min(ys), max(ys)
    margin = max(max_x - min_x, max_y - min_y) * 2 or 1.0
    mid_x = (min_x + max_x) / 2
    return (
        (mid_x, min_y - margin),
        (max_x + margin, max_y + margin),
        (min_x - margin, max_y + margin),
    )


def triangulate(points: list[Point]) -> set[Edge]:
    """Edge set of the Delaunay triangulation of `points`; empty for fewer than 3 distinct points."""
    unique = list(dict.fromkeys((float(x), float(y)) for x, y in points))
    if len(unique) < 3:
        return set()

    outer = super_triangle(unique)
    triangles: set[Triangle] = {outer}
    for p in unique:
        bad = {t for t in triangles if in_circumcircle(t, p)}

        # Boundary of the cavity: edges belonging to exactly one bad triangle
        polygon: set[Edge] = set()
        for t in bad:
            for e in triangle_edges(t):
                if e in polygon:
                    polygon.remove(e)
                else:
                    polygon.add(e)

        triangles -= bad
        for a, b in polygon:
            triangles.add((a, b, p))

    outer_vertices = set(outer)
    edges: set[Edge] = set()
    for t in triangles:
        if outer_vertices.isdisjoint(t):
            edges.update(triangle_edges(t))
    logger.debug("Triangulated %d points into %d edges", len(unique), len(edges))
    return edges
