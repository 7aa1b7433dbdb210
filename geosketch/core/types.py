"""Type definitions for geosketch operations.

This module defines the closed enums used at every decision point: the shape
kind of a feature and the reason a candidate geometry was rejected.
"""

from enum import Enum


class ShapeKind(Enum):
    """Provenance tag of a committed feature.

    Rectangle and Circle are drawing-tool tags only; spatially both are stored
    as polygon rings and take part in overlap checks exactly like Polygon.

    Attributes:
        POLYGON: Free-form polygon
        RECTANGLE: Axis-aligned rectangle drawn with the rectangle tool
        CIRCLE: Circle approximated by a polygon ring
        LINE: Polyline, exempt from overlap rules

    Examples:
        >>> ShapeKind('circle').is_polygonal
        True
        >>> ShapeKind.LINE.label
        'Line'
    """
    POLYGON = 'polygon'
    RECTANGLE = 'rectangle'
    CIRCLE = 'circle'
    LINE = 'line'

    @property
    def is_polygonal(self) -> bool:
        return self is not ShapeKind.LINE

    @property
    def label(self) -> str:
        """Capitalized name used for generated display names."""
        return self.value.capitalize()


class RejectionReason(Enum):
    """Reason a candidate geometry or store operation was refused.

    Attributes:
        INVALID_GEOMETRY: Malformed or degenerate input, or a clipping failure
        FULLY_CONTAINED: Candidate lies (almost) entirely inside an existing feature
        CONTAINS_EXISTING: Candidate (almost) entirely covers an existing feature
        DEGENERATE_AFTER_TRIM: Nothing usable is left once overlaps are removed
        LIMIT_EXCEEDED: The per-kind cap is already reached
        NOT_FOUND: The referenced feature id does not exist
    """
    INVALID_GEOMETRY = 'invalid geometry'
    FULLY_CONTAINED = 'fully contained'
    CONTAINS_EXISTING = 'fully contains existing'
    DEGENERATE_AFTER_TRIM = 'degenerate after trim'
    LIMIT_EXCEEDED = 'limit exceeded'
    NOT_FOUND = 'not found'

    @property
    def category(self) -> str:
        """One of ``geometry``, ``overlap``, ``limit`` or ``not_found``."""
        return _CATEGORIES[self]


_CATEGORIES = {
    RejectionReason.INVALID_GEOMETRY: 'geometry',
    RejectionReason.FULLY_CONTAINED: 'overlap',
    RejectionReason.CONTAINS_EXISTING: 'overlap',
    RejectionReason.DEGENERATE_AFTER_TRIM: 'overlap',
    RejectionReason.LIMIT_EXCEEDED: 'limit',
    RejectionReason.NOT_FOUND: 'not_found',
}


__all__ = [
    'ShapeKind',
    'RejectionReason',
]
