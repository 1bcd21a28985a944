"""Tests for the SQLite photo store."""
import sqlite3
from pathlib import Path

import pytest

from store.photo_store import PhotoStore, ProjectNotFoundError
from store.schema import PRESET_TEMPLATES


def _add_photo(store: PhotoStore, project_id: int, name: str, file_hash: str | None = None):
    return store.insert_photo(
        project_id=project_id,
        original_filename=name,
        original_path=Path(f"/data/originals/{name}"),
        thumbnail_path=Path(f"/data/thumbnails/{name}_thumb.jpg"),
        file_hash=file_hash or f"hash-{name}",
        file_size=1234,
    )


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class TestSchema:
    def test_migrations_run_once(self, settings):
        with PhotoStore(settings.db_path) as first:
            first.create_project("A")
        with PhotoStore(settings.db_path) as second:
            names = [r["name"] for r in second.conn.execute("SELECT name FROM migrations")]
            assert names == ["001_initial_schema", "002_default_templates"]
            assert len(second.list_templates()) == len(PRESET_TEMPLATES)

    def test_in_memory_store(self):
        with PhotoStore(":memory:") as store:
            assert store.create_project("A").id == 1


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class TestProjects:
    def test_create_and_get(self, store):
        project = store.create_project("Beach", prompt="Prefer sunsets")
        loaded = store.get_project(project.id)
        assert loaded == project
        assert loaded.prompt == "Prefer sunsets"

    def test_blank_prompt_stored_as_null(self, store):
        assert store.create_project("Beach", prompt="").prompt is None

    def test_require_missing_project_raises(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.require_project(999)

    def test_update_project(self, store, project):
        updated = store.update_project(project.id, "Renamed", "Sharp focus")
        assert updated.name == "Renamed"
        assert updated.prompt == "Sharp focus"

    def test_update_missing_project_raises(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.update_project(42, "Nope")

    def test_delete_cascades_to_photos(self, store, project):
        photo = _add_photo(store, project.id, "a.jpg")
        deleted = store.delete_project(project.id)
        assert deleted.id == project.id
        assert store.get_photo(photo.id) is None

    def test_delete_missing_project_returns_none(self, store):
        assert store.delete_project(5) is None

    def test_list_projects_with_stats(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        _add_photo(store, project.id, "b.jpg")
        store.update_score(a.id, 7.5, "Nice")
        store.set_selected([a.id], True)

        [stats] = store.list_projects()
        assert stats.photo_count == 2
        assert stats.scored_count == 1
        assert stats.selected_count == 1

    def test_list_projects_empty_project_counts_zero(self, store, project):
        [stats] = store.list_projects()
        assert stats.photo_count == 0
        assert stats.selected_count == 0
        assert stats.scored_count == 0


# ---------------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------------

class TestPhotos:
    def test_insert_defaults(self, store, project):
        photo = _add_photo(store, project.id, "a.jpg")
        assert photo.score is None
        assert photo.ai_comment is None
        assert photo.selected is False
        assert photo.similarity_group_id is None
        assert photo.original_path == Path("/data/originals/a.jpg")

    def test_fingerprint_unique_per_project(self, store, project):
        _add_photo(store, project.id, "a.jpg", file_hash="same")
        with pytest.raises(sqlite3.IntegrityError):
            _add_photo(store, project.id, "b.jpg", file_hash="same")

    def test_same_fingerprint_allowed_in_other_project(self, store, project):
        other = store.create_project("Other")
        _add_photo(store, project.id, "a.jpg", file_hash="same")
        _add_photo(store, other.id, "a.jpg", file_hash="same")
        assert store.find_by_fingerprint(other.id, "same").project_id == other.id

    def test_find_by_fingerprint_missing(self, store, project):
        assert store.find_by_fingerprint(project.id, "nope") is None

    def test_score_outside_range_rejected_by_schema(self, store, project):
        photo = _add_photo(store, project.id, "a.jpg")
        with pytest.raises(sqlite3.IntegrityError):
            store.update_score(photo.id, 11.0, "too high")
        assert store.get_photo(photo.id).score is None

    def test_list_unscored_ordered_by_id(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        c = _add_photo(store, project.id, "c.jpg")
        store.update_score(b.id, 5.0, None)
        assert [p.id for p in store.list_unscored(project.id)] == [a.id, c.id]
        assert store.count_unscored(project.id) == 2

    def test_list_photos_best_first_unscored_last(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        c = _add_photo(store, project.id, "c.jpg")
        store.update_score(a.id, 3.0, None)
        store.update_score(c.id, 9.0, None)
        assert [p.id for p in store.list_photos(project.id)] == [c.id, a.id, b.id]

    def test_bulk_selection(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        c = _add_photo(store, project.id, "c.jpg")
        assert store.set_selected([a.id, c.id], True) == 2
        assert [p.id for p in store.list_selected(project.id)] == [a.id, c.id]
        store.set_selected([a.id], False)
        assert [p.id for p in store.list_selected(project.id)] == [c.id]
        assert store.get_photo(b.id).selected is False

    def test_bulk_selection_empty_list(self, store):
        assert store.set_selected([], True) == 0

    def test_delete_photo(self, store, project):
        photo = _add_photo(store, project.id, "a.jpg")
        assert store.delete_photo(photo.id).id == photo.id
        assert store.get_photo(photo.id) is None
        assert store.delete_photo(photo.id) is None


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

class TestGroups:
    def test_assign_list_count_clear(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        c = _add_photo(store, project.id, "c.jpg")
        d = _add_photo(store, project.id, "d.jpg")
        store.assign_group([a.id, b.id], 1)
        store.assign_group([c.id, d.id], 2)

        assert store.count_groups(project.id) == 2
        assert {p.id for p in store.list_group(project.id, 1)} == {a.id, b.id}

        assert store.clear_groups(project.id) == 4
        assert store.count_groups(project.id) == 0

    def test_list_group_orders_by_score_then_id(self, store, project):
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        c = _add_photo(store, project.id, "c.jpg")
        store.update_score(b.id, 8.0, None)
        store.update_score(c.id, 8.0, None)
        store.assign_group([a.id, b.id, c.id], 1)
        assert [p.id for p in store.list_group(project.id, 1)] == [b.id, c.id, a.id]

    def test_group_ids_scoped_per_project(self, store, project):
        other = store.create_project("Other")
        a = _add_photo(store, project.id, "a.jpg")
        b = _add_photo(store, project.id, "b.jpg")
        x = _add_photo(store, other.id, "x.jpg")
        y = _add_photo(store, other.id, "y.jpg")
        store.assign_group([a.id, b.id], 1)
        store.assign_group([x.id, y.id], 1)

        assert {p.id for p in store.list_group(project.id, 1)} == {a.id, b.id}
        store.clear_groups(project.id)
        assert store.count_groups(other.id) == 1


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

class TestPromptTemplates:
    def test_presets_seeded(self, store):
        templates = store.list_templates()
        assert all(t.is_preset for t in templates)
        assert {t.name for t in templates} == {name for name, _ in PRESET_TEMPLATES}

    def test_save_update_delete_user_template(self, store):
        saved = store.save_template("Mine", "Prefer dogs")
        assert saved.is_preset is False

        renamed = store.save_template("Mine v2", "Prefer cats", template_id=saved.id)
        assert renamed.name == "Mine v2"
        assert renamed.prompt == "Prefer cats"

        assert store.delete_template(saved.id) is True
        assert all(t.id != saved.id for t in store.list_templates())

    def test_presets_are_read_only(self, store):
        preset = store.list_templates()[0]
        assert store.save_template("Hacked", "x", template_id=preset.id) is None
        assert store.delete_template(preset.id) is False
        assert store.list_templates()[0].name == preset.name
