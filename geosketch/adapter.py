"""Geometry adapter: conversion between drawn shapes and canonical geometry.

Every geometry that enters geosketch passes through this module. GeoJSON-like
mappings and Shapely objects are validated here and come out as Shapely
``Polygon``, ``MultiPolygon`` or ``LineString`` objects; anything malformed is
rejected with :class:`GeometryError` rather than silently repaired.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from shapely.geometry import LineString, MultiPolygon, Polygon, box, mapping
from shapely.geometry.base import BaseGeometry
from shapely.validation import explain_validity

from .core.errors import GeometryError
from .core.geometry_utils import PolygonalGeometry, orient_polygonal
from .core.validation_utils import (
    all_finite,
    count_distinct_vertices,
    in_lnglat_range,
    is_ring_closed,
)
from .metrics import GEOD, compute_area, compute_length

GeometryInput = Union[BaseGeometry, Mapping[str, Any]]

SUPPORTED_TYPES = ('Polygon', 'MultiPolygon', 'LineString')


def _as_positions(raw: Any, what: str) -> np.ndarray:
    try:
        coords = np.asarray(raw, dtype=float)
    except (TypeError, ValueError) as exc:
        raise GeometryError(f"{what}: coordinates are not numeric positions") from exc

    if coords.ndim != 2 or coords.shape[1] < 2:
        raise GeometryError(f"{what}: expected a list of [lng, lat] positions")
    coords = coords[:, :2]
    if not all_finite(coords):
        raise GeometryError(f"{what}: coordinates contain NaN or infinite values")
    if not in_lnglat_range(coords):
        raise GeometryError(f"{what}: coordinates outside longitude/latitude range")
    return coords


def _parse_ring(raw: Any, what: str) -> np.ndarray:
    coords = _as_positions(raw, what)
    if count_distinct_vertices(coords) < 3:
        raise GeometryError(f"{what}: a ring needs at least 3 distinct points")
    if not is_ring_closed(coords):
        raise GeometryError(f"{what}: ring is not closed")
    return coords


def _parse_polygon(rings: Any, what: str) -> Polygon:
    if not isinstance(rings, (list, tuple)) or not rings:
        raise GeometryError(f"{what}: polygon has no rings")
    shell = _parse_ring(rings[0], f"{what} exterior ring")
    holes = [
        _parse_ring(ring, f"{what} interior ring {i}")
        for i, ring in enumerate(rings[1:], start=1)
    ]
    return Polygon(shell, holes)


def _check_polygonal(geometry: PolygonalGeometry) -> PolygonalGeometry:
    if not geometry.is_valid:
        raise GeometryError(f"Invalid polygon: {explain_validity(geometry)}")
    if geometry.area <= 0:
        raise GeometryError("Polygon has zero area")
    return geometry


def geometry_from_geojson(geometry: GeometryInput) -> BaseGeometry:
    """Validate ``geometry`` and return its canonical Shapely form.

    Args:
        geometry: GeoJSON geometry mapping (``type`` + ``coordinates``) or a
            Shapely geometry of a supported type

    Returns:
        ``Polygon``, ``MultiPolygon`` or ``LineString``

    Raises:
        GeometryError: unsupported type, NaN or out-of-range coordinates,
            rings with fewer than 3 distinct points, open rings,
            self-intersections, zero area, or lines with fewer than 2 points

    Examples:
        >>> geom = geometry_from_geojson({
        ...     "type": "Polygon",
        ...     "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
        ... })
        >>> geom.geom_type
        'Polygon'
    """
    if isinstance(geometry, BaseGeometry):
        if geometry.is_empty:
            raise GeometryError(f"Empty {geometry.geom_type}")
        geometry = mapping(geometry)

    if not isinstance(geometry, Mapping):
        raise GeometryError(f"Expected a geometry mapping, got {type(geometry).__name__}")

    geom_type = geometry.get('type')
    coordinates = geometry.get('coordinates')
    if geom_type not in SUPPORTED_TYPES:
        raise GeometryError(f"Unsupported geometry type: {geom_type!r}")
    if coordinates is None:
        raise GeometryError(f"{geom_type} has no coordinates")

    if geom_type == 'LineString':
        coords = _as_positions(coordinates, 'LineString')
        if count_distinct_vertices(coords, tolerance=0.0) < 2:
            raise GeometryError("LineString: a line needs at least 2 distinct points")
        return LineString(coords)

    if geom_type == 'Polygon':
        return _check_polygonal(_parse_polygon(coordinates, 'Polygon'))

    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        raise GeometryError("MultiPolygon has no polygons")
    polygons = [
        _parse_polygon(rings, f"MultiPolygon part {i}")
        for i, rings in enumerate(coordinates)
    ]
    return _check_polygonal(MultiPolygon(polygons))


def to_polygon(geometry: GeometryInput) -> Optional[PolygonalGeometry]:
    """Normalize polygonal input; ``None`` for lines (exempt from overlap rules).

    Raises:
        GeometryError: if the input is malformed
    """
    geom = geometry_from_geojson(geometry)
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    return None


def to_geojson(geometry: BaseGeometry) -> Dict[str, Any]:
    """Serialize canonical geometry as a GeoJSON geometry mapping.

    Polygon exterior rings are written counter-clockwise.
    """
    if isinstance(geometry, (Polygon, MultiPolygon)):
        geometry = orient_polygonal(geometry)
    return _listify(mapping(geometry))


def _listify(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _listify(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_listify(v) for v in value]
    return value


def approximate_circle(
    center: Sequence[float],
    radius_meters: float,
    segments: int = 64,
) -> Polygon:
    """Approximate a geodesic circle by a closed ring of ``segments`` vertices.

    Vertices are placed at evenly spaced bearings around ``center``, going
    counter-clockwise from due north.

    Args:
        center: ``[lng, lat]`` of the circle center
        radius_meters: Radius in meters (> 0)
        segments: Number of distinct ring vertices (>= 3)

    Returns:
        Polygon with ``segments + 1`` exterior coordinates (closed ring)

    Examples:
        >>> ring = approximate_circle([13.4, 52.5], 500.0)
        >>> len(ring.exterior.coords)
        65
    """
    point = _as_positions([center], 'Circle center')[0]
    if not (isinstance(radius_meters, (int, float)) and math.isfinite(radius_meters)):
        raise GeometryError("Circle radius must be a finite number")
    if radius_meters <= 0:
        raise GeometryError("Circle radius must be positive")
    if segments < 3:
        raise GeometryError("A circle needs at least 3 segments")

    bearings = -np.arange(segments) * (360.0 / segments)
    lngs, lats, _ = GEOD.fwd(
        np.full(segments, point[0]),
        np.full(segments, point[1]),
        bearings,
        np.full(segments, float(radius_meters)),
    )
    ring = np.column_stack([lngs, lats])
    return _check_polygonal(Polygon(ring))


def rectangle_from_bounds(
    min_lng: float,
    min_lat: float,
    max_lng: float,
    max_lat: float,
) -> Polygon:
    """Build the rectangle ring spanning the given bounds."""
    corners = _as_positions([[min_lng, min_lat], [max_lng, max_lat]], 'Rectangle')
    if corners[0][0] >= corners[1][0] or corners[0][1] >= corners[1][1]:
        raise GeometryError("Rectangle bounds must have min < max")
    return box(min_lng, min_lat, max_lng, max_lat)


def bounding_box(geometry: GeometryInput) -> Optional[Tuple[float, float, float, float]]:
    """Return ``(min_lng, min_lat, max_lng, max_lat)`` or ``None`` if malformed."""
    try:
        geom = geometry_from_geojson(geometry)
    except GeometryError:
        return None
    return tuple(geom.bounds)


__all__ = [
    'GeometryInput',
    'SUPPORTED_TYPES',
    'geometry_from_geojson',
    'to_polygon',
    'to_geojson',
    'approximate_circle',
    'rectangle_from_bounds',
    'bounding_box',
    'compute_area',
    'compute_length',
]
