"""Tests for staleness decisions, the thread file index and channel directories."""

import logging

import pytest

from conftest import make_channel, make_thread
from twistsync.core.types import SyncAction, ThreadFileInfo
from twistsync.services.file_resolver import (
    ThreadFileIndex,
    as_timestamp,
    handle_channel_directory,
    needs_update,
    plan_reconcile,
)


def write_file(path, thread_id, last_updated_ts=None):
    lines = ["---", "title: T", f"thread_id: {thread_id}"]
    if last_updated_ts is not None:
        lines.append(f"last_updated_ts: {last_updated_ts}")
    lines += ["---", "", "body", ""]
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


class TestNeedsUpdate:

    @pytest.mark.parametrize("remote,local,expected", [
        (200, 100, True),
        (100, 100, False),
        (50, 100, False),
        (100, None, True),
    ])
    def test_strictly_newer(self, remote, local, expected):
        assert needs_update(remote, local) is expected

    @pytest.mark.parametrize("remote,local", [(100, 100), (50, 100), (0, None)])
    def test_force_always_updates(self, remote, local):
        assert needs_update(remote, local, force=True) is True


class TestPlanReconcile:

    def test_missing_file_creates(self, tmp_dir):
        assert plan_reconcile(make_thread(), None) is SyncAction.CREATE

    def test_stale_file_rewrites(self, tmp_dir):
        existing = ThreadFileInfo(67890, tmp_dir / "x.md", 100)
        assert plan_reconcile(make_thread(last_updated_ts=200), existing) is SyncAction.REWRITE

    def test_current_file_is_noop(self, tmp_dir):
        existing = ThreadFileInfo(67890, tmp_dir / "x.md", 200)
        assert plan_reconcile(make_thread(last_updated_ts=200), existing) is SyncAction.NOOP

    def test_force_rewrites_current_file(self, tmp_dir):
        existing = ThreadFileInfo(67890, tmp_dir / "x.md", 200)
        action = plan_reconcile(make_thread(last_updated_ts=200), existing, force=True)
        assert action is SyncAction.REWRITE


class TestThreadFileIndex:

    def test_build_indexes_thread_files(self, tmp_dir):
        write_file(tmp_dir / "1_first.md", 1, 100)
        write_file(tmp_dir / "2_second.md", 2, 200)
        (tmp_dir / "notes.md").write_text("not a thread file")
        (tmp_dir / "3_draft.txt").write_text("wrong extension")
        (tmp_dir / "4_dir.md").mkdir()

        index = ThreadFileIndex.build(tmp_dir)

        assert len(index) == 2
        assert 1 in index and 2 in index
        assert index.get(1).path == tmp_dir / "1_first.md"
        assert index.get(2).last_updated_ts == 200
        assert index.get(3) is None

    def test_build_missing_directory_is_empty(self, tmp_dir):
        assert len(ThreadFileIndex.build(tmp_dir / "nope")) == 0

    def test_id_taken_from_file_name(self, tmp_dir):
        write_file(tmp_dir / "7_renamed.md", 999, 100)
        index = ThreadFileIndex.build(tmp_dir)
        assert index.get(7).path.name == "7_renamed.md"

    def test_missing_timestamp_is_none(self, tmp_dir):
        write_file(tmp_dir / "1_first.md", 1)
        assert ThreadFileIndex.build(tmp_dir).get(1).last_updated_ts is None

    def test_unreadable_file_skipped_with_warning(self, tmp_dir, caplog):
        (tmp_dir / "5_broken.md").write_text("no front matter here\n")
        write_file(tmp_dir / "6_ok.md", 6, 100)

        with caplog.at_level(logging.WARNING, logger="twistsync"):
            index = ThreadFileIndex.build(tmp_dir)

        assert 5 not in index
        assert 6 in index
        assert "Error processing thread file" in caplog.text

    def test_duplicate_ids_keep_newer_file(self, tmp_dir, caplog):
        write_file(tmp_dir / "1_new-title.md", 1, 300)
        write_file(tmp_dir / "1_old-title.md", 1, 100)

        with caplog.at_level(logging.WARNING, logger="twistsync"):
            index = ThreadFileIndex.build(tmp_dir)

        assert len(index) == 1
        assert index.get(1).path.name == "1_new-title.md"
        assert "orphan 1_old-title.md" in caplog.text

    def test_put_replaces_entry(self, tmp_dir):
        index = ThreadFileIndex()
        index.put(ThreadFileInfo(1, tmp_dir / "1_a.md", 1))
        index.put(ThreadFileInfo(1, tmp_dir / "1_b.md", 2))

        assert index.get(1).path.name == "1_b.md"
        assert len(index) == 1


class TestHandleChannelDirectory:

    def test_existing_directory_used(self, tmp_dir):
        (tmp_dir / "111_general").mkdir()
        path = handle_channel_directory(make_channel(), tmp_dir)
        assert path == tmp_dir / "111_general"

    def test_creates_missing_directory(self, tmp_dir, caplog):
        with caplog.at_level(logging.INFO, logger="twistsync"):
            path = handle_channel_directory(make_channel(), tmp_dir)

        assert path.is_dir()
        assert "Created channel directory: 111_general" in caplog.text

    def test_renamed_channel_moves_directory(self, tmp_dir, caplog):
        old = tmp_dir / "111_old-name"
        old.mkdir()
        write_file(old / "1_t.md", 1, 100)

        with caplog.at_level(logging.INFO, logger="twistsync"):
            path = handle_channel_directory(make_channel(name="New Name"), tmp_dir)

        assert path == tmp_dir / "111_new-name"
        assert not old.exists()
        assert (path / "1_t.md").is_file()
        assert "Channel directory renamed: 111_old-name -> 111_new-name" in caplog.text

    def test_other_channel_prefix_not_matched(self, tmp_dir):
        (tmp_dir / "1111_general").mkdir()
        path = handle_channel_directory(make_channel(), tmp_dir)

        assert path == tmp_dir / "111_general"
        assert (tmp_dir / "1111_general").is_dir()


class TestAsTimestamp:

    @pytest.mark.parametrize("value,expected", [
        (100, 100), ("200", 200), (None, None), ("soon", None), ([1], None),
    ])
    def test_coercion(self, value, expected):
        assert as_timestamp(value) == expected
