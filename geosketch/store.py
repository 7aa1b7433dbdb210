"""Versioned feature store with bounded undo/redo.

The store exclusively owns feature lifetime. It commits facts; deciding
whether a geometry may be committed is the job of
:mod:`geosketch.overlap`, which callers consult before ``create``/``update``.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from shapely.geometry import LineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from .adapter import GeometryInput, geometry_from_geojson
from .config import ShapeLimits
from .core.errors import GeometryError, LimitExceeded, NotFound
from .core.types import ShapeKind
from .features import Feature, generate_feature_id, shape_name
from .history import History, Snapshot

logger = logging.getLogger(__name__)

KindLike = Union[ShapeKind, str]


def canonical_geometry(geometry: GeometryInput, kind: ShapeKind) -> BaseGeometry:
    """Validate ``geometry`` and check it matches the spatial form of ``kind``."""
    geom = geometry_from_geojson(geometry)
    if kind.is_polygonal and not isinstance(geom, (Polygon, MultiPolygon)):
        raise GeometryError(f"A {kind.value} needs polygon geometry, got {geom.geom_type}")
    if kind is ShapeKind.LINE and not isinstance(geom, LineString):
        raise GeometryError(f"A line needs LineString geometry, got {geom.geom_type}")
    return geom


class FeatureStore:
    """Ordered collection of committed features plus its history.

    Every mutating operation is atomic: it either commits exactly one new
    snapshot or raises without touching state. All mutations are serialized
    behind one re-entrant lock.

    Example:
        ```python
        store = FeatureStore()
        fid = store.create(square, ShapeKind.POLYGON)
        store.update(fid, bigger_square)
        store.undo()                   # back to square
        ```

    Attributes:
        limits: Per-kind caps
        selected_id: Currently selected feature id, if any
        version: Counter incremented on every state change (undo/redo included)
    """

    def __init__(
        self,
        limits: Optional[ShapeLimits] = None,
        history_depth: int = 50,
    ):
        self.limits = limits or ShapeLimits()
        self._history = History(max_depth=history_depth)
        # Every id ever committed. Features dropped by undo can return through
        # redo, so their ids stay reserved for the life of the store.
        self._issued_ids = set()
        self._lock = threading.RLock()
        self.selected_id: Optional[str] = None
        self.version = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def features(self) -> Snapshot:
        """The present snapshot, in insertion order."""
        return self._history.present

    @property
    def history(self) -> History:
        return self._history

    @property
    def shape_counts(self) -> Dict[ShapeKind, int]:
        counts = {kind: 0 for kind in ShapeKind}
        for feature in self.features:
            counts[feature.kind] += 1
        return counts

    def count(self, kind: KindLike) -> int:
        kind = ShapeKind(kind)
        return sum(1 for f in self.features if f.kind is kind)

    def can_add(self, kind: KindLike) -> bool:
        kind = ShapeKind(kind)
        return not self.limits.is_reached(kind, self.count(kind))

    def features_of_kind(self, kind: KindLike) -> List[Feature]:
        kind = ShapeKind(kind)
        return [f for f in self.features if f.kind is kind]

    def polygonal_features(self) -> List[Feature]:
        return [f for f in self.features if f.is_polygonal]

    def find(self, feature_id: Optional[str]) -> Optional[Feature]:
        for feature in self.features:
            if feature.id == feature_id:
                return feature
        return None

    def get(self, feature_id: str) -> Feature:
        feature = self.find(feature_id)
        if feature is None:
            raise NotFound(feature_id)
        return feature

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __contains__(self, feature_id: object) -> bool:
        return self.find(feature_id) is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        geometry: GeometryInput,
        kind: KindLike,
        name: Optional[str] = None,
        radius: Optional[float] = None,
        center: Optional[Sequence[float]] = None,
        created_at: Optional[int] = None,
    ) -> str:
        """Append a new feature and return its id.

        The per-kind cap is checked before anything else. The display name
        defaults to ``<Kind>-<n>`` where ``n`` is the count of that kind
        before insertion plus one.

        Raises:
            LimitExceeded: the cap for ``kind`` is already reached
            GeometryError: ``geometry`` is malformed or does not match ``kind``
        """
        kind = ShapeKind(kind)
        with self._lock:
            current = self.count(kind)
            if self.limits.is_reached(kind, current):
                raise LimitExceeded(kind, self.limits.limit_for(kind))

            geom = canonical_geometry(geometry, kind)
            feature = Feature.build(
                geom,
                kind,
                feature_id=self._new_id(),
                name=name or shape_name(kind, current),
                created_at=created_at,
                radius=radius,
                center=center,
            )
            self._commit(self.features + (feature,))
            logger.info("Created %s %s (%s)", kind.value, feature.id, feature.name)
            return feature.id

    def update(
        self,
        feature_id: str,
        geometry: GeometryInput,
        radius: Optional[float] = None,
        center: Optional[Sequence[float]] = None,
    ) -> Feature:
        """Replace the geometry of ``feature_id`` and recompute its metadata.

        ``radius``/``center`` refresh the retained circle parameters.

        Raises:
            NotFound: no feature has ``feature_id``
            GeometryError: ``geometry`` is malformed or does not match the kind
        """
        with self._lock:
            existing = self.get(feature_id)
            geom = canonical_geometry(geometry, existing.kind)
            changes = {}
            if radius is not None:
                changes['radius'] = radius
            if center is not None:
                changes['center'] = center
            updated = existing.with_geometry(geom, **changes)
            self._commit(tuple(updated if f.id == feature_id else f for f in self.features))
            logger.info("Updated %s %s", existing.kind.value, feature_id)
            return updated

    def remove(self, feature_id: str) -> Feature:
        """Remove ``feature_id``; clears the selection if it was selected.

        Raises:
            NotFound: no feature has ``feature_id``
        """
        with self._lock:
            removed = self.get(feature_id)
            self._commit(tuple(f for f in self.features if f.id != feature_id))
            logger.info("Removed %s %s", removed.kind.value, feature_id)
            return removed

    def clear(self) -> None:
        """Remove every feature in one undoable step."""
        with self._lock:
            self._commit(())
            self.selected_id = None
            logger.info("Cleared all features")

    def set_features(self, features: Iterable[Feature]) -> None:
        """Replace the whole collection in one history step."""
        with self._lock:
            batch = self._checked_batch(tuple(features), base=())
            self._commit(batch)

    def import_features(self, features: Iterable[Feature]) -> None:
        """Append externally sourced features in one history step.

        The caller is expected to have validated each feature against the
        overlap engine; the store still enforces unique ids and per-kind caps
        so that nothing is partially applied.

        Raises:
            LimitExceeded: the batch would exceed a per-kind cap
            ValueError: a feature id is already in use
        """
        with self._lock:
            batch = self._checked_batch(tuple(features), base=self.features)
            if not batch:
                return
            self._commit(self.features + batch)
            logger.info("Imported %d feature(s)", len(batch))

    def undo(self) -> bool:
        """Restore the previous snapshot. Returns False when there is none."""
        with self._lock:
            if not self._history.undo():
                return False
            self._after_change()
            return True

    def redo(self) -> bool:
        """Re-apply the most recently undone snapshot. False when there is none."""
        with self._lock:
            if not self._history.redo():
                return False
            self._after_change()
            return True

    def select(self, feature_id: Optional[str]) -> None:
        with self._lock:
            if feature_id is not None and feature_id not in self:
                raise NotFound(feature_id)
            self.selected_id = feature_id

    def reset(self, features: Iterable[Feature] = ()) -> None:
        """Load ``features`` as the present state with an empty history."""
        with self._lock:
            batch = self._checked_batch(tuple(features), base=())
            self._history.reset(batch)
            self._issued_ids.update(f.id for f in batch)
            self._after_change()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_id(self) -> str:
        feature_id = generate_feature_id()
        while feature_id in self._issued_ids:
            feature_id = generate_feature_id()
        return feature_id

    def _checked_batch(self, batch: Tuple[Feature, ...], base: Snapshot) -> Tuple[Feature, ...]:
        seen = {f.id for f in base}
        counts = {kind: 0 for kind in ShapeKind}
        for feature in base:
            counts[feature.kind] += 1

        for feature in batch:
            if feature.id in seen:
                raise ValueError(f"Duplicate feature id: {feature.id}")
            seen.add(feature.id)
            canonical_geometry(feature.geometry, feature.kind)
            counts[feature.kind] += 1
            if counts[feature.kind] > self.limits.limit_for(feature.kind):
                raise LimitExceeded(feature.kind, self.limits.limit_for(feature.kind))
        return batch

    def _commit(self, new_features: Tuple[Feature, ...]) -> None:
        self._history.push(new_features)
        self._issued_ids.update(f.id for f in new_features)
        self._after_change()

    def _after_change(self) -> None:
        self.version += 1
        if self.selected_id is not None and self.selected_id not in self:
            self.selected_id = None

    def __repr__(self) -> str:
        counts = ", ".join(f"{k.value}={v}" for k, v in self.shape_counts.items())
        return f"FeatureStore({counts}, version={self.version})"


__all__ = [
    'FeatureStore',
    'canonical_geometry',
]
