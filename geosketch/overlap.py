"""Overlap resolution between a candidate shape and committed features.

The engine never mutates features. Given a candidate geometry it walks the
committed polygonal features in insertion order and either rejects the
candidate (full containment in either direction, or nothing left after
trimming) or returns it with every partial overlap subtracted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from .adapter import GeometryInput, geometry_from_geojson
from .config import OverlapConfig
from .core.errors import GeometryError, GeosketchError, OverlapRejected
from .core.geometry_utils import PolygonalGeometry, remove_slivers, to_polygonal
from .core.types import RejectionReason, ShapeKind
from .features import Feature
from .metrics import compute_area

logger = logging.getLogger(__name__)

# Planar area (degrees squared) below which an intersection is only a shared
# edge and a trimmed fragment is a sliver.
_AREA_EPS = 1e-12

_MESSAGES = {
    RejectionReason.FULLY_CONTAINED:
        "Cannot create a polygon that is fully contained within an existing polygon.",
    RejectionReason.CONTAINS_EXISTING:
        "Cannot create a polygon that fully contains an existing polygon.",
    RejectionReason.DEGENERATE_AFTER_TRIM:
        "Polygon would be completely removed after trimming overlaps.",
}


@dataclass(frozen=True)
class Accepted:
    """The candidate may be committed as ``geometry``.

    Attributes:
        geometry: Final geometry, trimmed if ``trimmed`` is set. May be a
            MultiPolygon when trimming split the candidate; every fragment is kept.
        trimmed: True if at least one overlap was subtracted
    """

    geometry: BaseGeometry
    trimmed: bool = False

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """The candidate (or operation) was refused.

    Attributes:
        reason: Machine-readable reason; ``reason.category`` distinguishes
            geometry, overlap, limit and not-found failures
        message: Human-readable explanation
        error: Exception that caused the rejection, if one was raised
    """

    reason: RejectionReason
    message: str
    error: Optional[GeosketchError] = field(default=None, compare=False)

    @property
    def accepted(self) -> bool:
        return False

    @classmethod
    def from_error(cls, reason: RejectionReason, error: GeosketchError) -> "Rejected":
        return cls(reason, str(error), error)

    def to_error(self) -> GeosketchError:
        """Exception matching this rejection."""
        if self.error is not None:
            return self.error
        if self.reason.category == 'geometry':
            return GeometryError(self.message)
        if self.reason.category == 'overlap':
            return OverlapRejected(self.message, self.reason)
        return GeosketchError(self.message)


Resolution = Union[Accepted, Rejected]


def resolve(
    candidate_geometry: GeometryInput,
    candidate_kind: Union[ShapeKind, str],
    committed_features: Sequence[Feature],
    exclude_id: Optional[str] = None,
    config: Optional[OverlapConfig] = None,
) -> Resolution:
    """Decide whether a candidate may coexist with committed features.

    Lines are always accepted unchanged. Polygonal candidates are compared
    with each committed polygonal feature in insertion order (skipping
    ``exclude_id``, the feature being edited):

    1. Disjoint or edge-touching features are skipped.
    2. If the overlap covers more than ``containment_ratio`` of the current
       candidate, it is rejected as fully contained.
    3. If the overlap covers more than ``containment_ratio`` of the existing
       feature, it is rejected as containing it.
    4. Otherwise the existing feature is subtracted from the candidate. An
       empty or sub-``min_area`` remainder is rejected as degenerate.

    Trims accumulate across features. Any failure of the clipping primitive is
    reported as an ``INVALID_GEOMETRY`` rejection.

    Args:
        candidate_geometry: GeoJSON mapping or Shapely geometry
        candidate_kind: Shape kind of the candidate
        committed_features: Features currently in the store, insertion order
        exclude_id: Id of the feature being edited, if any
        config: Tolerances (defaults to :class:`OverlapConfig`)

    Returns:
        :class:`Accepted` or :class:`Rejected`

    Examples:
        >>> from shapely.geometry import box
        >>> result = resolve(box(1, 1, 3, 3), ShapeKind.RECTANGLE, [feature_over_0_0_2_2])
        >>> result.trimmed
        True
    """
    kind = ShapeKind(candidate_kind)
    config = config or OverlapConfig()

    if kind is ShapeKind.LINE:
        return Accepted(candidate_geometry, trimmed=False)

    try:
        candidate = geometry_from_geojson(candidate_geometry)
    except GeometryError as exc:
        return Rejected.from_error(RejectionReason.INVALID_GEOMETRY, exc)

    if not isinstance(candidate, (Polygon, MultiPolygon)):
        return Rejected(
            RejectionReason.INVALID_GEOMETRY,
            f"A {kind.value} needs polygon geometry, got {candidate.geom_type}.",
        )

    existing = [
        f for f in committed_features
        if f.is_polygonal and f.id != exclude_id
    ]

    try:
        return _resolve_polygonal(candidate, existing, config)
    except (GEOSException, ValueError) as exc:
        logger.warning("Overlap validation failed: %s", exc)
        return Rejected(
            RejectionReason.INVALID_GEOMETRY,
            "Failed to validate polygon overlap. Please try again.",
            GeometryError(str(exc)),
        )


def _resolve_polygonal(
    candidate: PolygonalGeometry,
    existing: List[Feature],
    config: OverlapConfig,
) -> Resolution:
    current = candidate
    trimmed = False

    for feature in _overlap_candidates(candidate, existing):
        overlap = _intersection(current, feature.geometry)
        if overlap is None:
            continue

        overlap_area = compute_area(overlap)
        current_area = compute_area(current)
        existing_area = compute_area(feature.geometry)

        if current_area <= 0 or overlap_area / current_area > config.containment_ratio:
            logger.debug("Candidate is contained in %s", feature.id)
            return _rejected(RejectionReason.FULLY_CONTAINED)

        if existing_area <= 0 or overlap_area / existing_area > config.containment_ratio:
            logger.debug("Candidate contains %s", feature.id)
            return _rejected(RejectionReason.CONTAINS_EXISTING)

        remainder = _trim(current, feature.geometry)
        if remainder.is_empty or compute_area(remainder) <= config.min_area:
            logger.debug("Nothing left after trimming against %s", feature.id)
            return _rejected(RejectionReason.DEGENERATE_AFTER_TRIM)

        logger.debug(
            "Trimmed %.1f m2 overlapping %s", overlap_area, feature.id,
        )
        current = remainder
        trimmed = True

    return Accepted(current, trimmed)


def _rejected(reason: RejectionReason) -> Rejected:
    return Rejected(reason, _MESSAGES[reason])


def _overlap_candidates(
    candidate: PolygonalGeometry,
    existing: List[Feature],
) -> List[Feature]:
    """Features whose geometry intersects ``candidate``, in insertion order.

    The candidate only shrinks while it is trimmed, so features that miss the
    original candidate can never touch a trimmed one.
    """
    if not existing:
        return []
    tree = STRtree([f.geometry for f in existing])
    indices = tree.query(candidate, predicate="intersects")
    return [existing[i] for i in sorted(int(i) for i in indices)]


def _intersection(
    current: PolygonalGeometry,
    other: PolygonalGeometry,
) -> Optional[PolygonalGeometry]:
    if not current.intersects(other):
        return None
    overlap = to_polygonal(current.intersection(other))
    if overlap.is_empty or overlap.area < _AREA_EPS:
        return None
    return overlap


def _trim(current: PolygonalGeometry, other: PolygonalGeometry) -> PolygonalGeometry:
    return remove_slivers(current.difference(other), _AREA_EPS)


def find_overlapping_pairs(
    features: Sequence[Feature],
    min_area_threshold: float = _AREA_EPS,
) -> List[Tuple[str, str]]:
    """Return id pairs of polygonal features that overlap by more than an edge.

    A committed collection built through :func:`resolve` should always yield
    an empty list.
    """
    polygonal = [f for f in features if f.is_polygonal]
    if len(polygonal) < 2:
        return []

    tree = STRtree([f.geometry for f in polygonal])
    pairs = []
    seen = set()

    for i, feature in enumerate(polygonal):
        for j in tree.query(feature.geometry, predicate="intersects"):
            j = int(j)
            if j <= i or (i, j) in seen:
                continue
            seen.add((i, j))
            overlap = to_polygonal(feature.geometry.intersection(polygonal[j].geometry))
            if overlap.area > min_area_threshold:
                pairs.append((feature.id, polygonal[j].id))

    return pairs


__all__ = [
    "Accepted",
    "Rejected",
    "Resolution",
    "resolve",
    "find_overlapping_pairs",
]
