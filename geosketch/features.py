"""Feature records held by the store.

A :class:`Feature` is immutable: edits produce a new record with the same id
via :meth:`Feature.with_geometry`, so snapshots in the history can share
unchanged features.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from shapely.geometry.base import BaseGeometry

from .adapter import to_geojson
from .core.types import ShapeKind
from .metrics import measure_feature


def generate_feature_id() -> str:
    """Return a fresh opaque feature id (``feature-<ms>-<random>``)."""
    return f"feature-{now_ms()}-{uuid.uuid4().hex[:12]}"


def now_ms() -> int:
    return int(time.time() * 1000)


def shape_name(kind: ShapeKind, ordinal: int) -> str:
    """Display name for the ``ordinal``-th (0-based) feature of ``kind``.

    Examples:
        >>> shape_name(ShapeKind.RECTANGLE, 0)
        'Rectangle-1'
    """
    return f"{kind.label}-{ordinal + 1}"


@dataclass(frozen=True)
class Feature:
    """One committed shape.

    Attributes:
        id: Opaque id, stable across edits and never reused
        kind: Shape kind the feature was drawn or imported as
        geometry: Canonical Shapely geometry (polygonal, or LineString for lines)
        created_at: Creation time in epoch milliseconds
        name: Display name
        area: Geodesic area in square meters (polygonal kinds)
        length: Geodesic length in kilometers (lines)
        radius: Original circle radius in meters (circles)
        center: Original circle center ``(lng, lat)`` (circles)
    """

    id: str
    kind: ShapeKind
    geometry: BaseGeometry
    created_at: int
    name: Optional[str] = None
    area: Optional[float] = None
    length: Optional[float] = None
    radius: Optional[float] = None
    center: Optional[Tuple[float, float]] = None

    @classmethod
    def build(
        cls,
        geometry: BaseGeometry,
        kind: ShapeKind,
        feature_id: Optional[str] = None,
        name: Optional[str] = None,
        created_at: Optional[int] = None,
        radius: Optional[float] = None,
        center: Optional[Tuple[float, float]] = None,
    ) -> "Feature":
        """Create a feature and compute its geometry-derived metadata."""
        return cls(
            id=feature_id or generate_feature_id(),
            kind=kind,
            geometry=geometry,
            created_at=now_ms() if created_at is None else int(created_at),
            name=name,
            radius=radius,
            center=tuple(center) if center is not None else None,
            **measure_feature(geometry, kind),
        )

    def with_geometry(self, geometry: BaseGeometry, **changes: Any) -> "Feature":
        """Return a copy with new geometry and recomputed metadata.

        ``id``, ``kind``, ``name`` and ``created_at`` are preserved.
        """
        if 'center' in changes and changes['center'] is not None:
            changes['center'] = tuple(changes['center'])
        return replace(
            self,
            geometry=geometry,
            **measure_feature(geometry, self.kind),
            **changes,
        )

    @property
    def is_polygonal(self) -> bool:
        return self.kind.is_polygonal

    def properties(self) -> Dict[str, Any]:
        """GeoJSON ``properties`` member for this feature."""
        props: Dict[str, Any] = {
            "id": self.id,
            "shapeType": self.kind.value,
            "createdAt": self.created_at,
        }
        if self.name is not None:
            props["name"] = self.name
        if self.area is not None:
            props["area"] = self.area
        if self.length is not None:
            props["length"] = self.length
        if self.radius is not None:
            props["radius"] = self.radius
        if self.center is not None:
            props["center"] = list(self.center)
        return props

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": to_geojson(self.geometry),
            "properties": self.properties(),
        }

    def __repr__(self) -> str:
        return f"Feature({self.id!r}, {self.kind.value}, name={self.name!r})"


__all__ = [
    'Feature',
    'generate_feature_id',
    'shape_name',
]
