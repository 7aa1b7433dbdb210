"""GeoJSON serialization for features and persisted store state.

Exports write ``present`` verbatim in insertion order. The persisted snapshot
used for reloads stores only the features and the shape counters; history is
never persisted.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .adapter import geometry_from_geojson
from .config import ShapeLimits
from .core.errors import FormatError
from .core.types import ShapeKind
from .features import Feature
from .store import FeatureStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

GEOJSON_SUFFIXES = ('.geojson', '.json')

_KIND_BY_GEOMETRY = {
    'Polygon': ShapeKind.POLYGON,
    'MultiPolygon': ShapeKind.POLYGON,
    'LineString': ShapeKind.LINE,
}


def export_feature_collection(features: Sequence[Feature]) -> Dict[str, Any]:
    """Build a GeoJSON FeatureCollection from ``features`` in order."""
    return {
        "type": "FeatureCollection",
        "features": [feature.to_geojson() for feature in features],
    }


def write_geojson(features: Sequence[Feature], path: PathLike, indent: int = 2) -> Path:
    """Write ``features`` as a FeatureCollection file and return its path."""
    path = Path(path)
    path.write_text(json.dumps(export_feature_collection(features), indent=indent))
    logger.info("Exported %d feature(s) to %s", len(features), path)
    return path


def detect_kind(geometry: Optional[Mapping[str, Any]]) -> Optional[ShapeKind]:
    """Shape kind implied by a GeoJSON geometry type, or None if unsupported."""
    if not isinstance(geometry, Mapping):
        return None
    return _KIND_BY_GEOMETRY.get(geometry.get('type'))


def feature_entries(document: Any) -> List[Any]:
    """Return the raw entries of a FeatureCollection, or a single Feature.

    Collection entries are returned as-is, including ones that are not JSON
    objects, so callers can account for every entry.

    Raises:
        FormatError: ``document`` is neither a Feature nor a FeatureCollection
    """
    if not isinstance(document, Mapping):
        raise FormatError("Invalid GeoJSON format. Expected Feature or FeatureCollection.")

    doc_type = document.get('type')
    if doc_type == 'FeatureCollection':
        features = document.get('features')
        if not isinstance(features, list):
            raise FormatError("FeatureCollection has no 'features' list.")
        return list(features)
    if doc_type == 'Feature':
        return [document]
    raise FormatError("Invalid GeoJSON format. Expected Feature or FeatureCollection.")


def read_geojson(path: PathLike) -> Any:
    """Load a ``.geojson``/``.json`` file.

    Raises:
        FormatError: wrong extension or unparsable JSON
    """
    path = Path(path)
    if path.suffix.lower() not in GEOJSON_SUFFIXES:
        raise FormatError("Please select a valid GeoJSON file (.geojson or .json)")
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise FormatError(f"Failed to parse GeoJSON file: {exc}") from exc


def feature_from_geojson(entry: Mapping[str, Any]) -> Feature:
    """Rebuild a stored feature (id, kind and timestamps kept) from GeoJSON.

    Raises:
        FormatError: missing or unknown ``id``/``shapeType`` properties
        GeometryError: malformed geometry
    """
    if not isinstance(entry, Mapping):
        raise FormatError(f"Stored feature is not an object: {entry!r}")
    props = entry.get('properties')
    if not isinstance(props, Mapping):
        props = {}
    try:
        kind = ShapeKind(props['shapeType'])
        feature_id = str(props['id'])
    except (KeyError, ValueError) as exc:
        raise FormatError(f"Stored feature lacks a valid id/shapeType: {exc}") from exc

    geometry = geometry_from_geojson(entry.get('geometry'))
    return Feature.build(
        geometry,
        kind,
        feature_id=feature_id,
        name=props.get('name'),
        created_at=props.get('createdAt'),
        radius=props.get('radius'),
        center=props.get('center'),
    )


def dump_state(store: FeatureStore) -> Dict[str, Any]:
    """Persistable snapshot of ``store``: present features and shape counters."""
    return {
        "features": export_feature_collection(store.features),
        "shapeCounts": {kind.value: n for kind, n in store.shape_counts.items()},
    }


def load_state(
    document: Mapping[str, Any],
    limits: Optional[ShapeLimits] = None,
    history_depth: int = 50,
) -> FeatureStore:
    """Restore a store from :func:`dump_state` output with an empty history.

    Counters are rebuilt from the features; disagreeing persisted counters
    are logged and ignored.
    """
    if not isinstance(document, Mapping) or 'features' not in document:
        raise FormatError("Persisted state has no 'features' member.")

    features = [feature_from_geojson(entry) for entry in feature_entries(document['features'])]
    store = FeatureStore(limits=limits, history_depth=history_depth)
    store.reset(features)

    persisted = document.get('shapeCounts') or {}
    actual = {kind.value: n for kind, n in store.shape_counts.items()}
    if any(persisted.get(k, 0) != v for k, v in actual.items()):
        logger.warning(
            "Persisted shape counts %s disagree with features %s; using features",
            persisted, actual,
        )
    return store


def save_state(store: FeatureStore, path: PathLike) -> Path:
    path = Path(path)
    path.write_text(json.dumps(dump_state(store)))
    return path


def read_state(
    path: PathLike,
    limits: Optional[ShapeLimits] = None,
    history_depth: int = 50,
) -> FeatureStore:
    try:
        document = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise FormatError(f"Failed to parse persisted state: {exc}") from exc
    return load_state(document, limits=limits, history_depth=history_depth)


__all__ = [
    'GEOJSON_SUFFIXES',
    'export_feature_collection',
    'write_geojson',
    'detect_kind',
    'feature_entries',
    'read_geojson',
    'feature_from_geojson',
    'dump_state',
    'load_state',
    'save_state',
    'read_state',
]
