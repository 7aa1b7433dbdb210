"""Memoized overlap validation for interactive callers.

Drawing tools may ask for validation on every mouse move. Repeating the same
question within a short window is answered from a small cache keyed by a
structural fingerprint of the geometry, the excluded feature id and the store
version. The cache is an optimization only: a miss always recomputes.
"""

from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry

from .adapter import GeometryInput, geometry_from_geojson
from .config import CacheConfig, OverlapConfig
from .core.errors import GeometryError
from .core.types import RejectionReason, ShapeKind
from .features import Feature
from .overlap import Accepted, Rejected, Resolution, resolve
from .store import FeatureStore


def fingerprint(
    geometry: BaseGeometry,
    exclude_id: Optional[str],
    version: int,
    precision: int = 9,
) -> str:
    """Structural cache key for validating ``geometry`` against a store state.

    Coordinates are rounded to ``precision`` decimals so that numerically
    identical redraws share a key.
    """
    coords = np.round(shapely.get_coordinates(geometry), precision) + 0.0
    digest = hashlib.blake2b(digest_size=16)
    digest.update(geometry.geom_type.encode())
    digest.update(np.ascontiguousarray(coords).tobytes())
    digest.update(repr((exclude_id, version)).encode())
    return digest.hexdigest()


class ValidationCache:
    """Bounded, time-windowed map from fingerprint to resolution.

    Entries older than ``window_seconds`` are ignored; once ``max_entries``
    is exceeded the oldest entry is evicted first.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Resolution, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Resolution]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        result, stamp = entry
        if self._clock() - stamp >= self.config.window_seconds:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return result

    def put(self, key: str, result: Resolution) -> None:
        self._entries[key] = (result, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.config.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class OverlapValidator:
    """Validate new and edited shapes against a store's committed features."""

    def __init__(
        self,
        store: FeatureStore,
        overlap_config: Optional[OverlapConfig] = None,
        cache: Optional[ValidationCache] = None,
    ):
        self.store = store
        self.overlap_config = overlap_config or OverlapConfig()
        self.cache = cache or ValidationCache()

    def validate_new(self, geometry: GeometryInput, kind: Union[ShapeKind, str]) -> Resolution:
        return self._validate(geometry, kind, None)

    def validate_edit(
        self,
        geometry: GeometryInput,
        kind: Union[ShapeKind, str],
        feature_id: str,
    ) -> Resolution:
        return self._validate(geometry, kind, feature_id)

    def validate_against(
        self,
        geometry: GeometryInput,
        kind: Union[ShapeKind, str],
        features: Sequence[Feature],
    ) -> Resolution:
        """Uncached validation against an explicit feature sequence."""
        return resolve(geometry, kind, features, config=self.overlap_config)

    def _validate(
        self,
        geometry: GeometryInput,
        kind: Union[ShapeKind, str],
        exclude_id: Optional[str],
    ) -> Resolution:
        kind = ShapeKind(kind)
        if kind is ShapeKind.LINE:
            return Accepted(geometry, trimmed=False)

        try:
            geom = geometry_from_geojson(geometry)
        except GeometryError as exc:
            return Rejected.from_error(RejectionReason.INVALID_GEOMETRY, exc)

        key = fingerprint(
            geom, exclude_id, self.store.version, self.cache.config.precision,
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = resolve(
            geom,
            kind,
            self.store.features,
            exclude_id=exclude_id,
            config=self.overlap_config,
        )
        self.cache.put(key, result)
        return result


__all__ = [
    "fingerprint",
    "ValidationCache",
    "OverlapValidator",
]
