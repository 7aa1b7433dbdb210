"""Geosketch - spatial consistency core for interactive shape editing.

This library decides whether a newly drawn or edited polygonal region may
coexist with previously committed regions, trims partial overlaps, and keeps
an undoable, ordered history of the accepted features. Geometry is handled
with Shapely; areas and lengths are geodesic (WGS84) via pyproj.
"""


# Geometry adapter
from .adapter import (
    geometry_from_geojson,
    to_polygon,
    to_geojson,
    approximate_circle,
    rectangle_from_bounds,
    bounding_box,
)

# Measurement
from .metrics import compute_area, compute_length, measure_feature

# Overlap resolution
from .overlap import Accepted, Rejected, resolve, find_overlapping_pairs

# Features, history and store
from .features import Feature
from .history import History
from .store import FeatureStore

# Validation cache and editing workflow
from .validation import OverlapValidator, ValidationCache, fingerprint
from .editor import EditOutcome, ImportReport, ShapeEditor

# GeoJSON codec
from .geojson import (
    export_feature_collection,
    write_geojson,
    read_geojson,
    dump_state,
    load_state,
    save_state,
    read_state,
)

# Configuration
from .config import (
    ShapeLimits,
    OverlapConfig,
    CacheConfig,
    Settings,
    settings_from_mapping,
)

# Core types (enums)
from .core import ShapeKind, RejectionReason

# Core exceptions
from .core import (
    GeosketchError,
    GeometryError,
    LimitExceeded,
    OverlapRejected,
    NotFound,
    ConfigurationError,
    FormatError,
)

__all__ = [

    # Geometry adapter
    'geometry_from_geojson',
    'to_polygon',
    'to_geojson',
    'approximate_circle',
    'rectangle_from_bounds',
    'bounding_box',

    # Measurement
    'compute_area',
    'compute_length',
    'measure_feature',

    # Overlap resolution
    'Accepted',
    'Rejected',
    'resolve',
    'find_overlapping_pairs',

    # Store
    'Feature',
    'History',
    'FeatureStore',

    # Validation and editing
    'OverlapValidator',
    'ValidationCache',
    'fingerprint',
    'EditOutcome',
    'ImportReport',
    'ShapeEditor',

    # GeoJSON
    'export_feature_collection',
    'write_geojson',
    'read_geojson',
    'dump_state',
    'load_state',
    'save_state',
    'read_state',

    # Configuration
    'ShapeLimits',
    'OverlapConfig',
    'CacheConfig',
    'Settings',
    'settings_from_mapping',

    # Core types (enums)
    'ShapeKind',
    'RejectionReason',

    # Core exceptions
    'GeosketchError',
    'GeometryError',
    'LimitExceeded',
    'OverlapRejected',
    'NotFound',
    'ConfigurationError',
    'FormatError',
]
