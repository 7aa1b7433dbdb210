"""Shared measurement helpers for geosketch geometries.

Feature metadata only needs two scalars: geodesic area for polygonal shapes
and geodesic length for lines. Centralizing the logic here keeps the store and
the overlap engine free from ad-hoc ``pyproj`` calls.
"""

from __future__ import annotations

from typing import Dict

from pyproj import Geod
from shapely.geometry import LineString, MultiLineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from .core.types import ShapeKind

GEOD = Geod(ellps="WGS84")


def compute_area(geometry: BaseGeometry) -> float:
    """Geodesic area of ``geometry`` in square meters (0 for non-polygons).

    Each part is oriented before measuring so that mixed ring orientations in
    a MultiPolygon cannot cancel out.
    """
    if not isinstance(geometry, (Polygon, MultiPolygon)) or geometry.is_empty:
        return 0.0

    parts = geometry.geoms if isinstance(geometry, MultiPolygon) else [geometry]
    total = 0.0
    for part in parts:
        if part.is_empty:
            continue
        area, _ = GEOD.geometry_area_perimeter(orient(part, sign=1.0))
        total += abs(area)
    return total


def compute_length(geometry: BaseGeometry) -> float:
    """Geodesic length of a line in kilometers (0 for non-lines)."""
    if not isinstance(geometry, (LineString, MultiLineString)) or geometry.is_empty:
        return 0.0
    return GEOD.geometry_length(geometry) / 1000.0


def measure_feature(geometry: BaseGeometry, kind: ShapeKind) -> Dict[str, float]:
    """Return the metadata that depends on ``geometry`` for a feature of ``kind``."""
    if kind is ShapeKind.LINE:
        return {"length": compute_length(geometry)}
    return {"area": compute_area(geometry)}


__all__ = [
    "GEOD",
    "compute_area",
    "compute_length",
    "measure_feature",
]
