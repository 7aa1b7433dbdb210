"""Common geometry manipulation utilities.

Helpers that keep boolean-operation results in the canonical polygonal form
(Polygon or MultiPolygon) used by features.
"""

from typing import List, Union

import numpy as np
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from .validation_utils import count_distinct_vertices

PolygonalGeometry = Union[Polygon, MultiPolygon]


def polygon_parts(geometry: BaseGeometry) -> List[Polygon]:
    """Return the non-empty polygon pieces contained in ``geometry``.

    Lines and points produced by boolean operations (e.g. shared edges of a
    difference) are dropped.

    Examples:
        >>> multi = MultiPolygon([poly1, poly2])
        >>> len(polygon_parts(multi))
        2
    """
    if geometry is None or geometry.is_empty:
        return []
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return [p for p in geometry.geoms if not p.is_empty]
    if isinstance(geometry, GeometryCollection):
        parts: List[Polygon] = []
        for geom in geometry.geoms:
            parts.extend(polygon_parts(geom))
        return parts
    return []


def to_polygonal(geometry: BaseGeometry) -> PolygonalGeometry:
    """Collapse a boolean-operation result into a Polygon or MultiPolygon.

    Unlike a largest-piece reduction, every fragment is kept: a single piece
    comes back as a Polygon, several pieces as a MultiPolygon, nothing as an
    empty Polygon.
    """
    parts = polygon_parts(geometry)
    if not parts:
        return Polygon()
    if len(parts) == 1:
        return parts[0]
    return MultiPolygon(parts)


def _ring_is_usable(ring, min_area: float, tolerance: float) -> bool:
    coords = np.asarray(ring.coords)
    if count_distinct_vertices(coords, tolerance) < 3:
        return False
    return Polygon(ring).area >= min_area


def remove_slivers(
    geometry: BaseGeometry,
    min_area: float,
    tolerance: float = 1e-10
) -> PolygonalGeometry:
    """Drop polygon parts and holes that collapse to (near) zero area.

    A part is a sliver when its planar area is below ``min_area`` or its
    exterior ring has fewer than 3 distinct vertices at ``tolerance``.
    Boolean operations leave such pieces along almost-shared edges; the
    geometry adapter would refuse them on the next parse.

    Examples:
        >>> sliver = Polygon([(2, 0.5), (2 + 1e-12, 0.75), (2, 1), (2, 0.5)])
        >>> remove_slivers(MultiPolygon([box(0, 0, 1, 1), sliver]), 1e-12).geom_type
        'Polygon'
    """
    kept: List[Polygon] = []
    for part in polygon_parts(geometry):
        if not _ring_is_usable(part.exterior, min_area, tolerance):
            continue
        holes = [h for h in part.interiors if _ring_is_usable(h, min_area, tolerance)]
        if len(holes) != len(part.interiors):
            part = Polygon(part.exterior, holes)
        kept.append(part)
    return to_polygonal(MultiPolygon(kept)) if kept else Polygon()


def orient_polygonal(geometry: PolygonalGeometry) -> PolygonalGeometry:
    """Orient exterior rings counter-clockwise and holes clockwise."""
    if isinstance(geometry, Polygon):
        return orient(geometry, sign=1.0) if not geometry.is_empty else geometry
    if isinstance(geometry, MultiPolygon):
        return MultiPolygon([orient(p, sign=1.0) for p in geometry.geoms])
    return geometry


__all__ = [
    'PolygonalGeometry',
    'polygon_parts',
    'to_polygonal',
    'remove_slivers',
    'orient_polygonal',
]
