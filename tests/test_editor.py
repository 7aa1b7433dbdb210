"""Tests for the validate-then-commit editing workflow."""

import json

import pytest
from shapely.geometry import LineString, Polygon, box, mapping

from geosketch.config import Settings, ShapeLimits
from geosketch.core.errors import FormatError
from geosketch.core.types import RejectionReason, ShapeKind
from geosketch.editor import ImportReport, ShapeEditor


def _feature(geometry, **properties):
    return {"type": "Feature", "geometry": mapping(geometry), "properties": properties}


def _collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


class TestDraw:
    """Tests for ShapeEditor.draw()."""

    def test_partial_overlap_is_trimmed(self):
        editor = ShapeEditor()
        first = editor.draw(box(0, 0, 2, 2), ShapeKind.RECTANGLE)
        second = editor.draw(box(1, 1, 3, 3), ShapeKind.RECTANGLE)

        assert first.accepted and not first.trimmed
        assert second.accepted and second.trimmed
        trimmed = editor.store.get(second.feature_id).geometry
        assert trimmed.area == pytest.approx(3.0)
        assert trimmed.intersection(box(0, 0, 2, 2)).area == pytest.approx(0.0, abs=1e-12)

    def test_trim_sliver_does_not_block_commit(self):
        editor = ShapeEditor()
        editor.draw(box(1, -1, 2, 2))
        outcome = editor.draw(Polygon([(0, 0), (1.5, 0), (2 + 2e-11, 0.5), (1.5, 1), (0, 1)]))

        assert outcome.accepted and outcome.trimmed
        assert editor.store.get(outcome.feature_id).geometry.area == pytest.approx(1.0)

    def test_identical_shape_rejected(self):
        editor = ShapeEditor()
        editor.draw(box(0, 0, 2, 2))
        outcome = editor.draw(box(0, 0, 2, 2))

        assert not outcome.accepted
        assert outcome.feature_id is None
        assert outcome.rejection.reason is RejectionReason.FULLY_CONTAINED
        assert outcome.rejection.message == (
            "Cannot create a polygon that is fully contained within an existing polygon."
        )
        assert len(editor.store) == 1

    def test_enclosing_shape_rejected(self):
        editor = ShapeEditor()
        editor.draw(box(1, 1, 2, 2))
        outcome = editor.draw(box(0, 0, 5, 5))
        assert outcome.rejection.reason is RejectionReason.CONTAINS_EXISTING

    def test_lines_cross_polygons(self):
        editor = ShapeEditor()
        editor.draw(box(0, 0, 2, 2))
        outcome = editor.draw(LineString([(-1, 1), (3, 1)]), ShapeKind.LINE)
        assert outcome.accepted and not outcome.trimmed
        assert editor.store.get(outcome.feature_id).geometry.equals(LineString([(-1, 1), (3, 1)]))

    def test_circle_from_center_and_radius(self):
        editor = ShapeEditor()
        outcome = editor.draw(kind=ShapeKind.CIRCLE, center=(10.0, 10.0), radius=1000.0)

        feature = editor.store.get(outcome.feature_id)
        assert feature.radius == 1000.0
        assert feature.center == (10.0, 10.0)
        assert len(feature.geometry.exterior.coords) == 65
        assert feature.name == "Circle-1"

    def test_circle_without_center_rejected(self):
        outcome = ShapeEditor().draw(kind=ShapeKind.CIRCLE, radius=100.0)
        assert outcome.rejection.reason is RejectionReason.INVALID_GEOMETRY

    def test_missing_geometry_rejected(self):
        outcome = ShapeEditor().draw(None, ShapeKind.POLYGON)
        assert outcome.rejection.reason is RejectionReason.INVALID_GEOMETRY

    def test_malformed_geometry_rejected(self):
        editor = ShapeEditor()
        outcome = editor.draw({"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]})
        assert outcome.rejection.reason is RejectionReason.INVALID_GEOMETRY
        assert not editor.store.can_undo

    def test_limit_reached(self):
        editor = ShapeEditor(settings=Settings(limits=ShapeLimits(circle=1)))
        editor.draw(kind="circle", center=(0, 0), radius=100.0)
        outcome = editor.draw(kind="circle", center=(5, 5), radius=100.0)

        assert outcome.rejection.reason is RejectionReason.LIMIT_EXCEEDED
        assert outcome.rejection.reason.category == "limit"
        assert outcome.rejection.message == "Limit reached: maximum 1 circle(s) allowed."
        assert editor.store.count(ShapeKind.CIRCLE) == 1


class TestEdit:
    """Tests for edit(), edit_circle() and delete()."""

    @pytest.fixture
    def editor(self):
        editor = ShapeEditor()
        editor.draw(box(0, 0, 2, 2))
        editor.draw(box(3, 0, 5, 2))
        return editor

    def test_edit_trims_against_others(self, editor):
        target = editor.store.features[1].id
        outcome = editor.edit(target, box(1, 0, 5, 2))

        assert outcome.accepted and outcome.trimmed
        assert outcome.feature_id == target
        assert editor.store.get(target).geometry.area == pytest.approx(6.0)

    def test_edit_ignores_own_geometry(self, editor):
        target = editor.store.features[1].id
        outcome = editor.edit(target, box(3, 0, 4.5, 2))
        assert outcome.accepted and not outcome.trimmed

    def test_rejected_edit_leaves_state(self, editor):
        target = editor.store.features[1].id
        before = editor.store.features
        depth = len(editor.store.history.past)

        outcome = editor.edit(target, box(-1, -1, 3, 3))
        assert outcome.rejection.reason is RejectionReason.CONTAINS_EXISTING
        assert editor.store.features is before
        assert len(editor.store.history.past) == depth

    def test_edit_unknown_feature(self, editor):
        outcome = editor.edit("feature-missing", box(10, 10, 11, 11))
        assert outcome.rejection.reason is RejectionReason.NOT_FOUND
        assert outcome.rejection.reason.category == "not_found"

    def test_edit_circle(self):
        editor = ShapeEditor()
        fid = editor.draw(kind=ShapeKind.CIRCLE, center=(0, 0), radius=500.0).feature_id
        outcome = editor.edit_circle(fid, (0.1, 0.0), 800.0)

        assert outcome.accepted
        feature = editor.store.get(fid)
        assert feature.radius == 800.0
        assert feature.center == (0.1, 0.0)
        assert feature.geometry.centroid.x == pytest.approx(0.1, abs=1e-3)

    def test_edit_circle_on_non_circle(self, editor):
        target = editor.store.features[0].id
        outcome = editor.edit_circle(target, (1, 1), 100.0)
        assert outcome.rejection.reason is RejectionReason.INVALID_GEOMETRY

    def test_delete_ignores_unknown(self, editor):
        ids = [f.id for f in editor.store.features]
        assert editor.delete([ids[0], "feature-missing", ids[1]]) == 2
        assert len(editor.store) == 0

    def test_undo_redo_and_clear(self, editor):
        editor.clear()
        assert len(editor.store) == 0
        assert editor.undo()
        assert len(editor.store) == 2
        assert editor.redo()
        assert len(editor.store) == 0


class TestImport:
    """Tests for GeoJSON import."""

    def test_mixed_collection(self):
        editor = ShapeEditor()
        document = _collection(
            _feature(box(0, 0, 2, 2)),
            _feature(box(1, 1, 3, 3)),
            _feature(box(0.5, 0.5, 1, 1)),
            _feature(LineString([(0, 0), (3, 3)])),
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]}},
        )
        report = editor.import_geojson(document)

        assert report.imported == 3
        assert report.trimmed == 1
        assert report.skipped == 2
        assert report.summary() == (
            "Successfully imported 3 feature(s). 1 were trimmed to avoid overlaps. "
            "2 were skipped."
        )
        assert [f.kind for f in editor.store] == [
            ShapeKind.POLYGON, ShapeKind.POLYGON, ShapeKind.LINE,
        ]
        assert [f.id for f in editor.store] == report.feature_ids

    def test_trim_sliver_is_imported(self):
        editor = ShapeEditor()
        report = editor.import_geojson(_collection(
            _feature(box(1, -1, 2, 2)),
            _feature(Polygon([(0, 0), (1.5, 0), (2 + 2e-11, 0.5), (1.5, 1), (0, 1)])),
        ))
        assert report.imported == 2
        assert report.trimmed == 1
        assert report.skipped == 0

    def test_unusable_entries_are_skipped(self):
        editor = ShapeEditor()
        document = _collection(
            {"type": "Feature", "geometry": mapping(box(0, 0, 1, 1)), "properties": "oops"},
            3,
            "feature",
        )
        report = editor.import_geojson(document)

        assert report.imported == 1
        assert report.skipped == 2
        assert editor.store.features[0].name == "Imported-polygon-1"

    def test_import_is_one_undo_step(self):
        editor = ShapeEditor()
        editor.draw(box(10, 10, 11, 11))
        editor.import_geojson(_collection(_feature(box(0, 0, 1, 1)), _feature(box(2, 0, 3, 1))))
        assert len(editor.store) == 3

        editor.undo()
        assert len(editor.store) == 1

    def test_validated_against_committed_features(self):
        editor = ShapeEditor()
        editor.draw(box(0, 0, 2, 2))
        report = editor.import_geojson(_feature(box(0, 0, 2, 2)))
        assert report.imported == 0
        assert report.skipped == 1
        assert report.summary() == "No valid features found to import."
        assert not editor.store.history.future

    def test_caps_count_the_batch(self):
        editor = ShapeEditor(settings=Settings(limits=ShapeLimits(line=1)))
        report = editor.import_geojson(_collection(
            _feature(LineString([(0, 0), (1, 1)])),
            _feature(LineString([(0, 1), (1, 0)])),
        ))
        assert report.imported == 1
        assert report.skipped == 1

    def test_names_and_properties(self):
        editor = ShapeEditor()
        editor.import_geojson(_collection(
            _feature(box(0, 0, 1, 1)),
            _feature(box(2, 0, 3, 1), name="Field", createdAt=1700000000000),
        ))
        first, second = editor.store.features
        assert first.name == "Imported-polygon-1"
        assert second.name == "Field"
        assert second.created_at == 1700000000000

    def test_imported_ids_are_fresh(self):
        editor = ShapeEditor()
        editor.import_geojson(_feature(box(0, 0, 1, 1), id="feature-original"))
        assert editor.store.features[0].id != "feature-original"

    def test_not_a_feature_document(self):
        with pytest.raises(FormatError):
            ShapeEditor().import_geojson(mapping(box(0, 0, 1, 1)))

    def test_import_file(self, tmp_path):
        path = tmp_path / "fields.geojson"
        path.write_text(json.dumps(_collection(_feature(box(0, 0, 1, 1)))))

        reports = ShapeEditor().import_files([path])
        assert len(reports) == 1
        assert isinstance(reports[0], ImportReport)
        assert reports[0].imported == 1
        assert reports[0].source == str(path)

    def test_import_file_wrong_extension(self, tmp_path):
        path = tmp_path / "fields.txt"
        path.write_text("{}")
        with pytest.raises(FormatError, match="valid GeoJSON file"):
            ShapeEditor().import_file(path)


class TestExport:
    """Tests for export_collection() and export_file()."""

    def test_export_in_insertion_order(self, tmp_path):
        editor = ShapeEditor()
        ids = [
            editor.draw(box(4, 0, 5, 1), ShapeKind.RECTANGLE).feature_id,
            editor.draw(box(0, 0, 1, 1)).feature_id,
            editor.draw(LineString([(0, 3), (1, 3)]), ShapeKind.LINE).feature_id,
        ]
        collection = editor.export_collection()
        assert [f["properties"]["id"] for f in collection["features"]] == ids
        assert [f["properties"]["shapeType"] for f in collection["features"]] == [
            "rectangle", "polygon", "line",
        ]

        path = editor.export_file(tmp_path / "out.geojson")
        assert json.loads(path.read_text()) == collection
