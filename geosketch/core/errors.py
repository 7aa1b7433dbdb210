"""Exception hierarchy for geosketch.

Every rejection the engine or the store can produce maps onto one of these
classes so callers can render an accurate message.
"""

from typing import Optional


class GeosketchError(Exception):
    """Base class for all geosketch errors."""
    pass


class GeometryError(GeosketchError, ValueError):
    """Raised for malformed or degenerate geometry input."""
    pass


class LimitExceeded(GeosketchError):
    """Raised when the per-kind feature cap is already reached."""

    def __init__(self, kind, limit: int):
        self.kind = kind
        self.limit = limit
        super().__init__(
            f"Limit reached: maximum {limit} {kind.value}(s) allowed."
        )


class OverlapRejected(GeosketchError):
    """Raised when a candidate cannot coexist with committed features."""

    def __init__(self, message: str, reason=None):
        self.reason = reason
        super().__init__(message)


class NotFound(GeosketchError, KeyError):
    """Raised when an operation references an unknown feature id."""

    def __init__(self, feature_id: Optional[str]):
        self.feature_id = feature_id
        super().__init__(f"No feature with id {feature_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class ConfigurationError(GeosketchError, ValueError):
    """Raised for invalid settings values."""
    pass


class FormatError(GeosketchError, ValueError):
    """Raised when a GeoJSON document has an unexpected structure."""
    pass


__all__ = [
    'GeosketchError',
    'GeometryError',
    'LimitExceeded',
    'OverlapRejected',
    'NotFound',
    'ConfigurationError',
    'FormatError',
]
