"""Editing session: the workflow that connects drawing tools to the core.

A drawn or edited shape is normalized by the adapter, validated (and possibly
trimmed) by the overlap engine, then committed to the store. Each call returns
an outcome record instead of raising, so interactive callers can render the
reason for any rejection.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .adapter import GeometryInput, approximate_circle, geometry_from_geojson
from .config import Settings
from .core.errors import GeometryError, LimitExceeded, NotFound
from .core.types import RejectionReason, ShapeKind
from .features import Feature, generate_feature_id
from .geojson import (
    PathLike,
    detect_kind,
    export_feature_collection,
    feature_entries,
    read_geojson,
    write_geojson,
)
from .overlap import Rejected
from .store import FeatureStore, canonical_geometry
from .validation import OverlapValidator, ValidationCache

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    """Result of a draw or edit request.

    Attributes:
        feature_id: Id of the created or edited feature (None if rejected)
        trimmed: True if overlaps were subtracted before committing
        rejection: Why the request was refused, if it was
    """

    feature_id: Optional[str] = None
    trimmed: bool = False
    rejection: Optional[Rejected] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


@dataclass
class ImportReport:
    """Per-file import counts."""

    imported: int = 0
    trimmed: int = 0
    skipped: int = 0
    feature_ids: List[str] = field(default_factory=list)
    source: Optional[str] = None

    def summary(self) -> str:
        if not self.imported:
            return "No valid features found to import."
        message = f"Successfully imported {self.imported} feature(s)."
        if self.trimmed:
            message += f" {self.trimmed} were trimmed to avoid overlaps."
        if self.skipped:
            message += f" {self.skipped} were skipped."
        return message


class ShapeEditor:
    """Validate-then-commit front end over a :class:`FeatureStore`.

    Example:
        ```python
        editor = ShapeEditor()
        first = editor.draw(box(0, 0, 2, 2), ShapeKind.RECTANGLE)
        second = editor.draw(box(1, 1, 3, 3), ShapeKind.RECTANGLE)
        second.trimmed          # True: the overlap with the first was removed
        editor.undo()
        ```
    """

    def __init__(
        self,
        store: Optional[FeatureStore] = None,
        settings: Optional[Settings] = None,
        validator: Optional[OverlapValidator] = None,
    ):
        self.settings = settings or Settings()
        self.store = store or FeatureStore(
            limits=self.settings.limits,
            history_depth=self.settings.history_depth,
        )
        self.validator = validator or OverlapValidator(
            self.store,
            self.settings.overlap,
            ValidationCache(self.settings.cache),
        )

    # ------------------------------------------------------------------
    # Drawing and editing
    # ------------------------------------------------------------------

    def draw(
        self,
        geometry: Optional[GeometryInput] = None,
        kind: Union[ShapeKind, str] = ShapeKind.POLYGON,
        center: Optional[Sequence[float]] = None,
        radius: Optional[float] = None,
    ) -> EditOutcome:
        """Create a feature from a freshly drawn shape.

        Circles may be given as ``center`` + ``radius`` (meters); the stored
        geometry is then approximated here and the original parameters are
        retained on the feature.
        """
        kind = ShapeKind(kind)
        if not self.store.can_add(kind):
            error = LimitExceeded(kind, self.store.limits.limit_for(kind))
            return EditOutcome(rejection=Rejected.from_error(RejectionReason.LIMIT_EXCEEDED, error))

        extras = {}
        if kind is ShapeKind.CIRCLE and radius is not None:
            try:
                geometry, extras = self._circle(center, radius)
            except GeometryError as exc:
                return _geometry_rejection(exc)
        if geometry is None:
            return _geometry_rejection(GeometryError("No geometry supplied"))

        result = self.validator.validate_new(geometry, kind)
        if isinstance(result, Rejected):
            logger.info("Rejected new %s: %s", kind.value, result.message)
            return EditOutcome(rejection=result)

        try:
            feature_id = self.store.create(result.geometry, kind, **extras)
        except LimitExceeded as exc:
            return EditOutcome(rejection=Rejected.from_error(RejectionReason.LIMIT_EXCEEDED, exc))
        except GeometryError as exc:
            return _geometry_rejection(exc)

        if result.trimmed:
            logger.info("%s %s was trimmed to avoid overlap", kind.label, feature_id)
        return EditOutcome(feature_id=feature_id, trimmed=result.trimmed)

    def edit(self, feature_id: str, geometry: GeometryInput) -> EditOutcome:
        """Replace the geometry of an existing feature after validation."""
        feature = self.store.find(feature_id)
        if feature is None:
            return _not_found(feature_id)
        return self._apply_edit(feature, geometry, {})

    def edit_circle(
        self,
        feature_id: str,
        center: Sequence[float],
        radius: float,
    ) -> EditOutcome:
        """Move or resize a circle, re-approximating its ring."""
        feature = self.store.find(feature_id)
        if feature is None:
            return _not_found(feature_id)
        if feature.kind is not ShapeKind.CIRCLE:
            return _geometry_rejection(
                GeometryError(f"{feature.id} is a {feature.kind.value}, not a circle")
            )
        try:
            geometry, extras = self._circle(center, radius)
        except GeometryError as exc:
            return _geometry_rejection(exc)
        return self._apply_edit(feature, geometry, extras)

    def delete(self, feature_ids: Iterable[str]) -> int:
        """Remove the given features; unknown ids are ignored. Returns the count removed."""
        removed = 0
        for feature_id in feature_ids:
            try:
                self.store.remove(feature_id)
            except NotFound:
                logger.debug("Ignoring delete of unknown feature %s", feature_id)
                continue
            removed += 1
        return removed

    def undo(self) -> bool:
        return self.store.undo()

    def redo(self) -> bool:
        return self.store.redo()

    def clear(self) -> None:
        self.store.clear()

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def import_geojson(self, document: Any, source: Optional[str] = None) -> ImportReport:
        """Import the features of a GeoJSON Feature or FeatureCollection.

        Kinds are detected from geometry types. Every polygonal feature is
        validated against the store plus the features already accepted from
        this document, and caps count the growing batch. Rejected entries are
        skipped; the accepted ones are committed in one history step.

        Raises:
            FormatError: ``document`` is not a Feature or FeatureCollection
        """
        report = ImportReport(source=source)
        counts = self.store.shape_counts
        accepted: List[Feature] = []

        for entry in feature_entries(document):
            feature, trimmed = self._import_entry(entry, counts, accepted)
            if feature is None:
                report.skipped += 1
                continue
            accepted.append(feature)
            counts[feature.kind] += 1
            if trimmed:
                report.trimmed += 1

        if accepted:
            self.store.import_features(accepted)
        report.imported = len(accepted)
        report.feature_ids = [f.id for f in accepted]

        if report.skipped:
            logger.warning("%s: %s", source or "import", report.summary())
        else:
            logger.info("%s: %s", source or "import", report.summary())
        return report

    def import_file(self, path: PathLike) -> ImportReport:
        return self.import_geojson(read_geojson(path), source=str(path))

    def import_files(self, paths: Iterable[PathLike]) -> List[ImportReport]:
        return [self.import_file(path) for path in paths]

    def export_collection(self) -> dict:
        return export_feature_collection(self.store.features)

    def export_file(self, path: PathLike):
        return write_geojson(self.store.features, path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _circle(self, center, radius) -> Tuple[Any, dict]:
        if center is None:
            raise GeometryError("A circle needs a center")
        ring = approximate_circle(center, radius, self.settings.circle_segments)
        return ring, {"radius": float(radius), "center": (float(center[0]), float(center[1]))}

    def _apply_edit(self, feature: Feature, geometry: GeometryInput, extras: dict) -> EditOutcome:
        result = self.validator.validate_edit(geometry, feature.kind, feature.id)
        if isinstance(result, Rejected):
            logger.info("Rejected edit of %s: %s", feature.id, result.message)
            return EditOutcome(feature_id=None, rejection=result)

        try:
            self.store.update(feature.id, result.geometry, **extras)
        except NotFound:
            return _not_found(feature.id)
        except GeometryError as exc:
            return _geometry_rejection(exc)
        return EditOutcome(feature_id=feature.id, trimmed=result.trimmed)

    def _import_entry(
        self,
        entry: Any,
        counts: dict,
        accepted: List[Feature],
    ) -> Tuple[Optional[Feature], bool]:
        if not isinstance(entry, Mapping):
            return None, False
        raw_geometry = entry.get('geometry')
        kind = detect_kind(raw_geometry)
        if kind is None:
            return None, False
        if self.store.limits.is_reached(kind, counts[kind]):
            return None, False

        try:
            geometry = geometry_from_geojson(raw_geometry)
        except GeometryError as exc:
            logger.debug("Skipping malformed feature: %s", exc)
            return None, False

        trimmed = False
        if kind.is_polygonal:
            result = self.validator.validate_against(
                geometry, kind, self.store.features + tuple(accepted),
            )
            if isinstance(result, Rejected):
                logger.debug("Skipping overlapping feature: %s", result.message)
                return None, False
            geometry = result.geometry
            trimmed = result.trimmed

        try:
            geometry = canonical_geometry(geometry, kind)
        except GeometryError as exc:
            logger.debug("Skipping feature the store would refuse: %s", exc)
            return None, False

        props = entry.get('properties')
        if not isinstance(props, Mapping):
            props = {}
        name = props.get('name') or f"Imported-{kind.value}-{len(accepted) + 1}"
        created_at = props.get('createdAt')
        feature = Feature.build(
            geometry,
            kind,
            feature_id=generate_feature_id(),
            name=str(name),
            created_at=created_at if isinstance(created_at, numbers.Real) else None,
            radius=_number_or_none(props.get('radius')),
            center=_position_or_none(props.get('center')),
        )
        return feature, trimmed


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return float(value)
    return None


def _position_or_none(value: Any) -> Optional[Tuple[float, float]]:
    if (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and all(_number_or_none(v) is not None for v in value[:2])
    ):
        return float(value[0]), float(value[1])
    return None


def _geometry_rejection(error: GeometryError) -> EditOutcome:
    return EditOutcome(rejection=Rejected.from_error(RejectionReason.INVALID_GEOMETRY, error))


def _not_found(feature_id: str) -> EditOutcome:
    return EditOutcome(rejection=Rejected.from_error(RejectionReason.NOT_FOUND, NotFound(feature_id)))


__all__ = [
    'EditOutcome',
    'ImportReport',
    'ShapeEditor',
]
