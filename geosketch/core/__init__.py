"""Core types and utilities for geosketch.

This module provides type definitions, enums, exceptions, and core utilities
used throughout the library.
"""

from .types import (
    ShapeKind,
    RejectionReason,
)

from .errors import (
    GeosketchError,
    GeometryError,
    LimitExceeded,
    OverlapRejected,
    NotFound,
    ConfigurationError,
    FormatError,
)

__all__ = [
    # Enums
    'ShapeKind',
    'RejectionReason',

    # Exceptions
    'GeosketchError',
    'GeometryError',
    'LimitExceeded',
    'OverlapRejected',
    'NotFound',
    'ConfigurationError',
    'FormatError',
]
