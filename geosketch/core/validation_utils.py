"""Coordinate validation utilities.

Low-level checks on raw coordinate arrays, shared by the geometry adapter
before anything is handed to Shapely.
"""

import numpy as np


def is_ring_closed(
    coords: np.ndarray,
    tolerance: float = 1e-10
) -> bool:
    """Check if coordinate ring is closed (first == last).

    Args:
        coords: Coordinate array (Nx2 or Nx3)
        tolerance: Tolerance for coordinate comparison

    Returns:
        True if ring is closed (first point equals last point within tolerance)

    Examples:
        >>> coords = np.array([[0, 0], [1, 0], [1, 1], [0, 0]])
        >>> is_ring_closed(coords)
        True

        >>> coords = np.array([[0, 0], [1, 0], [1, 1]])
        >>> is_ring_closed(coords)
        False
    """
    if len(coords) < 2:
        return False

    return np.allclose(coords[0], coords[-1], atol=tolerance)


def count_distinct_vertices(
    coords: np.ndarray,
    tolerance: float = 1e-10
) -> int:
    """Count the distinct vertices of a ring or line.

    The closing vertex of a ring is not counted twice.

    Examples:
        >>> count_distinct_vertices(np.array([[0, 0], [1, 0], [1, 0], [0, 0]]))
        2
    """
    if len(coords) == 0:
        return 0

    if is_ring_closed(coords, tolerance) and len(coords) > 1:
        coords = coords[:-1]

    rounded = np.round(coords[:, :2] / tolerance) if tolerance > 0 else coords[:, :2]
    return len(np.unique(rounded, axis=0))


def all_finite(coords: np.ndarray) -> bool:
    """Return True if no coordinate is NaN or infinite."""
    return bool(np.isfinite(coords).all())


def in_lnglat_range(coords: np.ndarray) -> bool:
    """Check that every position is a valid longitude/latitude pair.

    Examples:
        >>> in_lnglat_range(np.array([[-180.0, 90.0], [0.0, 0.0]]))
        True
        >>> in_lnglat_range(np.array([[181.0, 0.0]]))
        False
    """
    if len(coords) == 0:
        return True

    lng = coords[:, 0]
    lat = coords[:, 1]
    return bool(
        (lng >= -180).all() and (lng <= 180).all()
        and (lat >= -90).all() and (lat <= 90).all()
    )


__all__ = [
    'is_ring_closed',
    'count_distinct_vertices',
    'all_finite',
    'in_lnglat_range',
]
