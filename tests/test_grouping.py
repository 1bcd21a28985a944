"""Tests for the grouping pass.

All OpenAI calls are mocked — no network access required.
"""
import json
from unittest.mock import MagicMock, call, patch

import pytest

from conftest import make_completion, make_image, rate_limit_error
from pipeline.grouping import best_of_group, clear, group_members, run
from pipeline.ingest import ingest
from store.photo_store import PhotoNotFoundError, ProjectNotFoundError


def _ingest_many(store, settings, project, source_dir, count):
    photos = []
    for i in range(count):
        src = make_image(source_dir / f"img_{i:03d}.jpg", size=(64, 48), color=(i, 50, 150))
        photos.append(ingest(store, settings, project, src).photo)
    return photos


def _groups(*members) -> str:
    return json.dumps({"groups": [
        {"photo_ids": list(ids), "reason": "Burst shots"} for ids in members
    ]})


def _mock_client(*texts) -> MagicMock:
    mock_client = MagicMock()
    mock_client.chat.completions.create.side_effect = [make_completion(t) for t in texts]
    return mock_client


class TestRun:
    def test_groups_persisted_with_run_local_ids(self, store, settings, project, source_dir):
        a, b, c, d, e = _ingest_many(store, settings, project, source_dir, 5)
        mock_client = _mock_client(_groups([a.id, b.id], [c.id, d.id]))
        events = []

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            count = run(store, settings, project.id, on_progress=events.append)

        assert count == 2
        assert store.get_photo(a.id).similarity_group_id == 1
        assert store.get_photo(b.id).similarity_group_id == 1
        assert store.get_photo(c.id).similarity_group_id == 2
        assert store.get_photo(e.id).similarity_group_id is None
        assert [(ev.current, ev.total, ev.message) for ev in events] == [
            (5, 5, "Grouped batch 1 of 1"),
            (5, 5, "Grouping complete!"),
        ]

    def test_instruction_is_grouping_prompt(self, store, settings, project, source_dir):
        _ingest_many(store, settings, project, source_dir, 2)
        mock_client = _mock_client('{"groups": []}')

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id) == 0

        content = mock_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "VISUALLY SIMILAR" in content[-1]["text"]

    def test_rerun_resets_previous_groups(self, store, settings, project, source_dir):
        a, b, c = _ingest_many(store, settings, project, source_dir, 3)
        mock_client = _mock_client(_groups([a.id, b.id]), _groups([b.id, c.id]))

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            run(store, settings, project.id)
            count = run(store, settings, project.id)

        assert count == 1
        assert store.get_photo(a.id).similarity_group_id is None
        assert store.get_photo(b.id).similarity_group_id == 1
        assert store.get_photo(c.id).similarity_group_id == 1

    def test_no_group_below_two_members(self, store, settings, project, source_dir):
        a, b, c = _ingest_many(store, settings, project, source_dir, 3)
        mock_client = _mock_client(_groups([a.id], [b.id, 9999], [c.id, c.id]))

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id) == 0

        assert all(store.get_photo(p.id).similarity_group_id is None for p in (a, b, c))

    def test_photo_claimed_by_first_proposal(self, store, settings, project, source_dir):
        a, b, c = _ingest_many(store, settings, project, source_dir, 3)
        mock_client = _mock_client(_groups([a.id, b.id], [b.id, c.id]))

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id) == 1

        assert store.get_photo(b.id).similarity_group_id == 1
        assert store.get_photo(c.id).similarity_group_id is None

    def test_ids_outside_batch_dropped(self, store, settings, project, source_dir):
        photos = _ingest_many(store, settings, project, source_dir, 22)
        first, second = photos[:20], photos[20:]
        mock_client = _mock_client(
            _groups([first[0].id, second[0].id, first[1].id]),
            _groups([second[0].id, second[1].id]),
        )

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id) == 2

        assert {p.id for p in store.list_group(project.id, 1)} == {first[0].id, first[1].id}
        assert {p.id for p in store.list_group(project.id, 2)} == {second[0].id, second[1].id}

    def test_single_photo_batch_skipped(self, store, settings, project, source_dir):
        _ingest_many(store, settings, project, source_dir, 21)
        mock_client = _mock_client('{"groups": []}')
        events = []

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            run(store, settings, project.id, on_progress=events.append)

        assert mock_client.chat.completions.create.call_count == 1
        assert [ev.message for ev in events] == [
            "Grouped batch 1 of 2",
            "Skipped batch 2 (single photo)",
            "Grouping complete!",
        ]
        assert events[-1].current == 21

    def test_failed_batch_continues(self, store, settings, project, source_dir):
        photos = _ingest_many(store, settings, project, source_dir, 24)
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = [
            RuntimeError("timeout"),
            make_completion(_groups([photos[20].id, photos[21].id])),
        ]
        events = []

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id, on_progress=events.append) == 1

        assert events[0].message.startswith("Error in batch 1, continuing...")
        assert store.get_photo(photos[20].id).similarity_group_id == 1

    def test_rate_limited_batch_retried(self, store, settings, project, source_dir):
        a, b = _ingest_many(store, settings, project, source_dir, 2)
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = [
            rate_limit_error(),
            rate_limit_error(),
            make_completion(_groups([a.id, b.id])),
        ]
        events = []

        with patch("pipeline.grouping.OpenAI", return_value=mock_client), \
             patch("utils.retry.time_module.sleep") as mock_sleep:
            assert run(store, settings, project.id, on_progress=events.append) == 1

        assert mock_sleep.call_args_list == [call(5.0), call(10.0)]
        assert events[0].message == "Grouped batch 1 of 1"

    def test_rate_limit_exhausted_skips_batch(self, store, settings, project, source_dir):
        _ingest_many(store, settings, project, source_dir, 2)
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = rate_limit_error()
        events = []

        with patch("pipeline.grouping.OpenAI", return_value=mock_client), \
             patch("utils.retry.time_module.sleep") as mock_sleep:
            assert run(store, settings, project.id, on_progress=events.append) == 0

        assert mock_client.chat.completions.create.call_count == 4
        assert mock_sleep.call_count == 3
        assert events[0].message.startswith("Error in batch 1, continuing...")

    def test_unparsable_response_creates_nothing(self, store, settings, project, source_dir):
        _ingest_many(store, settings, project, source_dir, 3)
        mock_client = _mock_client("These photos are all different.")

        with patch("pipeline.grouping.OpenAI", return_value=mock_client):
            assert run(store, settings, project.id) == 0

    def test_fewer_than_two_photos(self, store, settings, project, source_dir):
        _ingest_many(store, settings, project, source_dir, 1)
        with patch("pipeline.grouping.OpenAI") as mock_openai:
            assert run(store, settings, project.id) == 0
        mock_openai.assert_not_called()

    def test_missing_project_raises(self, store, settings):
        with pytest.raises(ProjectNotFoundError):
            run(store, settings, 404)


class TestQueries:
    def test_clear(self, store, settings, project, source_dir):
        a, b = _ingest_many(store, settings, project, source_dir, 2)
        store.assign_group([a.id, b.id], 1)
        assert clear(store, project.id) == 2
        assert store.count_groups(project.id) == 0

    def test_group_members_best_first(self, store, settings, project, source_dir):
        a, b, c = _ingest_many(store, settings, project, source_dir, 3)
        store.update_score(a.id, 5.0, None)
        store.update_score(b.id, 9.0, None)
        store.assign_group([a.id, b.id], 1)

        assert [p.id for p in group_members(store, a.id)] == [b.id, a.id]
        assert group_members(store, c.id) == []

    def test_group_members_missing_photo(self, store):
        with pytest.raises(PhotoNotFoundError):
            group_members(store, 31337)

    def test_best_of_group(self, store, settings, project, source_dir):
        a, b, c = _ingest_many(store, settings, project, source_dir, 3)
        store.update_score(b.id, 7.0, None)
        store.update_score(c.id, 7.0, None)
        store.assign_group([a.id, b.id, c.id], 1)

        assert best_of_group(store, project.id, 1).id == b.id
        assert best_of_group(store, project.id, 2) is None
