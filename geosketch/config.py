"""Settings for the geosketch engine and store.

All tunables live in small dataclasses so callers can override a single value
without touching the rest.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping

from .core.errors import ConfigurationError
from .core.types import ShapeKind


@dataclass
class ShapeLimits:
    """Maximum number of live features per shape kind."""

    polygon: int = 10
    rectangle: int = 5
    circle: int = 5
    line: int = 20

    def __post_init__(self):
        for kind in ShapeKind:
            if self.limit_for(kind) < 0:
                raise ConfigurationError(f"{kind.value} limit must be >= 0")

    def limit_for(self, kind: ShapeKind) -> int:
        return getattr(self, kind.value)

    def is_reached(self, kind: ShapeKind, current_count: int) -> bool:
        return current_count >= self.limit_for(kind)


@dataclass
class OverlapConfig:
    """Tolerances used by the overlap resolution engine.

    Attributes:
        containment_ratio: Intersection/area ratio above which one polygon is
            treated as fully containing the other
        min_area: Area in square meters under which a trimmed candidate is
            considered degenerate
    """

    containment_ratio: float = 0.99
    min_area: float = 1e-3

    def __post_init__(self):
        if self.containment_ratio <= 0:
            raise ConfigurationError("containment_ratio must be > 0")
        if self.min_area < 0:
            raise ConfigurationError("min_area must be >= 0")


@dataclass
class CacheConfig:
    """Memoization window for repeated validation of the same geometry."""

    window_seconds: float = 0.05
    max_entries: int = 100
    precision: int = 9

    def __post_init__(self):
        if self.window_seconds < 0:
            raise ConfigurationError("window_seconds must be >= 0")
        if self.max_entries < 1:
            raise ConfigurationError("max_entries must be >= 1")


@dataclass
class Settings:
    """Aggregate settings for an editing session."""

    limits: ShapeLimits = field(default_factory=ShapeLimits)
    overlap: OverlapConfig = field(default_factory=OverlapConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    history_depth: int = 50
    circle_segments: int = 64

    def __post_init__(self):
        if self.history_depth < 1:
            raise ConfigurationError("history_depth must be >= 1")
        if self.circle_segments < 3:
            raise ConfigurationError("circle_segments must be >= 3")


_SECTIONS = {
    'limits': ShapeLimits,
    'overlap': OverlapConfig,
    'cache': CacheConfig,
}


def _build_section(cls, values: Mapping[str, Any]):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}"
        )
    return cls(**values)


def settings_from_mapping(mapping: Mapping[str, Any]) -> Settings:
    """Build :class:`Settings` from a plain (e.g. JSON-decoded) mapping.

    Examples:
        >>> settings = settings_from_mapping({"limits": {"polygon": 3}, "history_depth": 10})
        >>> settings.limits.polygon
        3
    """
    kwargs: Dict[str, Any] = {}
    for key, value in mapping.items():
        if key in _SECTIONS:
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"{key} must be a mapping")
            kwargs[key] = _build_section(_SECTIONS[key], value)
        elif key in ('history_depth', 'circle_segments'):
            kwargs[key] = int(value)
        else:
            raise ConfigurationError(f"Unknown settings key: {key}")
    return Settings(**kwargs)


__all__ = [
    'ShapeLimits',
    'OverlapConfig',
    'CacheConfig',
    'Settings',
    'settings_from_mapping',
]
