"""Tests for the versioned feature store."""

from unittest.mock import MagicMock, patch

import pytest
from shapely.geometry import LineString, box

from geosketch.config import ShapeLimits
from geosketch.core.errors import GeometryError, LimitExceeded, NotFound
from geosketch.core.types import ShapeKind
from geosketch.features import Feature
from geosketch.store import FeatureStore


def _unit_box(i: int):
    """The i-th of a row of disjoint unit squares."""
    return box(2 * i, 0, 2 * i + 1, 1)


class TestCreate:
    """Tests for FeatureStore.create()."""

    def test_create_appends_and_names(self):
        store = FeatureStore()
        first = store.create(_unit_box(0), ShapeKind.POLYGON)
        second = store.create(_unit_box(1), "polygon")
        rect = store.create(_unit_box(2), ShapeKind.RECTANGLE)

        assert [f.id for f in store.features] == [first, second, rect]
        assert store.get(first).name == "Polygon-1"
        assert store.get(second).name == "Polygon-2"
        assert store.get(rect).name == "Rectangle-1"

    def test_ids_are_unique(self):
        store = FeatureStore()
        ids = {store.create(LineString([(0, 0), (1, i + 1)]), ShapeKind.LINE) for i in range(10)}
        assert len(ids) == 10

    def test_metadata(self):
        store = FeatureStore()
        poly = store.get(store.create(_unit_box(0), ShapeKind.POLYGON))
        line = store.get(store.create(LineString([(0, 0), (1, 0)]), ShapeKind.LINE))

        assert poly.area > 0
        assert poly.length is None
        assert line.length == pytest.approx(111.32, rel=1e-3)
        assert line.area is None
        assert poly.created_at > 0

    def test_circle_parameters_retained(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.CIRCLE, radius=250.0, center=[0.5, 0.5])
        feature = store.get(fid)
        assert feature.radius == 250.0
        assert feature.center == (0.5, 0.5)

    def test_accepts_geojson_mapping(self):
        store = FeatureStore()
        fid = store.create(
            {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
            ShapeKind.POLYGON,
        )
        assert store.get(fid).geometry.geom_type == "Polygon"

    def test_cap_enforced(self):
        store = FeatureStore()
        for i in range(10):
            store.create(_unit_box(i), ShapeKind.POLYGON)

        with pytest.raises(LimitExceeded) as excinfo:
            store.create(_unit_box(11), ShapeKind.POLYGON)
        assert excinfo.value.limit == 10
        assert store.count(ShapeKind.POLYGON) == 10
        assert not store.can_add(ShapeKind.POLYGON)
        assert store.can_add(ShapeKind.RECTANGLE)

    def test_custom_limits(self):
        store = FeatureStore(limits=ShapeLimits(line=1))
        store.create(LineString([(0, 0), (1, 1)]), ShapeKind.LINE)
        with pytest.raises(LimitExceeded):
            store.create(LineString([(0, 0), (1, 2)]), ShapeKind.LINE)

    def test_kind_mismatch_rejected_without_side_effects(self):
        store = FeatureStore()
        with pytest.raises(GeometryError):
            store.create(LineString([(0, 0), (1, 1)]), ShapeKind.POLYGON)
        with pytest.raises(GeometryError):
            store.create(_unit_box(0), ShapeKind.LINE)
        assert len(store) == 0
        assert not store.can_undo
        assert store.version == 0


class TestUpdateRemoveClear:
    """Tests for update(), remove() and clear()."""

    def test_update_preserves_identity(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.RECTANGLE)
        before = store.get(fid)

        after = store.update(fid, box(0, 0, 2, 2))
        assert after.id == before.id
        assert after.kind is ShapeKind.RECTANGLE
        assert after.name == before.name
        assert after.created_at == before.created_at
        assert after.area == pytest.approx(4 * before.area, rel=1e-3)
        assert store.get(fid) is after

    def test_update_unknown_raises(self):
        store = FeatureStore()
        with pytest.raises(NotFound):
            store.update("feature-missing", _unit_box(0))
        assert not store.can_undo

    def test_update_circle_parameters(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.CIRCLE, radius=10.0, center=(0.5, 0.5))
        store.update(fid, _unit_box(1), radius=20.0, center=(2.5, 0.5))
        assert store.get(fid).radius == 20.0
        assert store.get(fid).center == (2.5, 0.5)

    def test_remove_clears_selection(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        other = store.create(_unit_box(1), ShapeKind.POLYGON)
        store.select(fid)

        removed = store.remove(fid)
        assert removed.id == fid
        assert fid not in store
        assert store.selected_id is None
        assert [f.id for f in store] == [other]

    def test_remove_unknown_raises(self):
        with pytest.raises(NotFound):
            FeatureStore().remove("nope")

    def test_not_found_is_key_error(self):
        with pytest.raises(KeyError):
            FeatureStore().get("nope")

    def test_clear_is_undoable(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        store.create(LineString([(0, 0), (1, 1)]), ShapeKind.LINE)

        store.clear()
        assert len(store) == 0
        assert all(n == 0 for n in store.shape_counts.values())

        assert store.undo()
        assert len(store) == 2
        assert store.shape_counts[ShapeKind.LINE] == 1

    def test_select_unknown_raises(self):
        with pytest.raises(NotFound):
            FeatureStore().select("nope")

    def test_select_takes_the_lock(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        store._lock = MagicMock()

        store.select(fid)
        assert store._lock.__enter__.called
        assert store.selected_id == fid

    def test_ids_dropped_by_undo_are_not_reissued(self):
        store = FeatureStore()
        ids = ["feature-a", "feature-a", "feature-b"]
        with patch("geosketch.store.generate_feature_id", side_effect=ids):
            first = store.create(_unit_box(0), ShapeKind.POLYGON)
            store.undo()
            second = store.create(_unit_box(1), ShapeKind.POLYGON)

        assert first == "feature-a"
        assert second == "feature-b"


class TestUndoRedo:
    """Tests for undo() and redo()."""

    def test_undo_redo_roundtrip(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        store.update(fid, box(0, 0, 1, 2))

        assert store.undo()
        assert store.get(fid).geometry.equals(_unit_box(0))
        assert store.redo()
        assert store.get(fid).geometry.equals(box(0, 0, 1, 2))

    def test_undo_empty_is_noop(self):
        store = FeatureStore()
        version = store.version
        assert store.undo() is False
        assert store.features == ()
        assert store.version == version

    def test_redo_empty_is_noop(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        before = store.features
        assert store.redo() is False
        assert store.features is before

    def test_past_is_capped(self):
        store = FeatureStore(history_depth=5)
        for i in range(8):
            store.create(LineString([(0, 0), (1, i + 1)]), ShapeKind.LINE)
        assert len(store.history.past) == 5

    def test_default_cap_is_fifty(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        for i in range(60):
            store.update(fid, box(0, 0, 1, 1 + (i + 1) / 100))
        assert len(store.history.past) == 50

    def test_mutation_after_undo_clears_future(self):
        store = FeatureStore()
        for i in range(3):
            store.create(_unit_box(i), ShapeKind.POLYGON)
        store.undo()
        store.undo()
        assert store.can_redo

        store.create(_unit_box(5), ShapeKind.POLYGON)
        assert not store.can_redo
        assert store.redo() is False

    def test_counts_follow_undo(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.CIRCLE)
        store.create(_unit_box(1), ShapeKind.CIRCLE)
        store.undo()
        assert store.count(ShapeKind.CIRCLE) == 1
        assert store.shape_counts[ShapeKind.CIRCLE] == 1
        assert len(store.features_of_kind("circle")) == 1

    def test_undo_drops_vanished_selection(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        store.select(fid)
        store.undo()
        assert store.selected_id is None

    def test_version_increments(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        store.undo()
        store.redo()
        assert store.version == 3


class TestBatchOperations:
    """Tests for import_features() and set_features()."""

    def test_import_is_one_history_step(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        batch = [
            Feature.build(_unit_box(1), ShapeKind.POLYGON),
            Feature.build(LineString([(0, 0), (1, 1)]), ShapeKind.LINE),
        ]
        store.import_features(batch)
        assert len(store) == 3
        assert len(store.history.past) == 2

        store.undo()
        assert len(store) == 1

    def test_import_empty_batch_is_noop(self):
        store = FeatureStore()
        store.import_features([])
        assert not store.can_undo

    def test_import_duplicate_id_rejected(self):
        store = FeatureStore()
        fid = store.create(_unit_box(0), ShapeKind.POLYGON)
        duplicate = Feature.build(_unit_box(1), ShapeKind.POLYGON, feature_id=fid)
        with pytest.raises(ValueError, match="Duplicate"):
            store.import_features([duplicate])
        assert len(store) == 1

    def test_import_over_cap_is_atomic(self):
        store = FeatureStore(limits=ShapeLimits(rectangle=2))
        store.create(_unit_box(0), ShapeKind.RECTANGLE)
        batch = [Feature.build(_unit_box(i), ShapeKind.RECTANGLE) for i in (1, 2)]
        with pytest.raises(LimitExceeded):
            store.import_features(batch)
        assert store.count(ShapeKind.RECTANGLE) == 1
        assert len(store.history.past) == 1

    def test_set_features_replaces_collection(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        replacement = [Feature.build(_unit_box(3), ShapeKind.RECTANGLE)]
        store.set_features(replacement)
        assert [f.kind for f in store] == [ShapeKind.RECTANGLE]
        store.undo()
        assert [f.kind for f in store] == [ShapeKind.POLYGON]

    def test_reset_starts_fresh_history(self):
        store = FeatureStore()
        store.create(_unit_box(0), ShapeKind.POLYGON)
        store.reset([Feature.build(_unit_box(1), ShapeKind.POLYGON)])
        assert len(store) == 1
        assert not store.can_undo
