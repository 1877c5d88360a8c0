#tests\test_storage.py

"""Test archiving of node storage."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from node_admin.agent.context import NodeAgentContext
from node_admin.core.errors import StorageFault
from node_admin.storage.maintainer import FileSystemStorageMaintainer


NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def maintainer(tmp_path, clock):
    return FileSystemStorageMaintainer(
        storage_root=tmp_path / "storage",
        archive_root=tmp_path / "archive",
        retention=timedelta(days=7),
        clock=clock,
    )


@pytest.fixture
def context():
    return NodeAgentContext.for_hostname("node1.example.com")


def write_live_data(maintainer, context):
    live = maintainer.live_path(context)
    (live / "logs").mkdir(parents=True)
    (live / "logs" / "vespa.log").write_text("started\n")
    (live / "state.json").write_text("{}")
    return live


class TestArchive:
    """Test moving live storage to the archive."""

    def test_archive_moves_data(self, maintainer, context, tmp_path):
        live = write_live_data(maintainer, context)

        archive = maintainer.archive_node_storage(context)

        assert archive == tmp_path / "archive" / "node1_20240301120000"
        assert (archive / "logs" / "vespa.log").read_text() == "started\n"
        assert (archive / "state.json").exists()
        assert list(live.iterdir()) == []

    def test_nothing_to_archive(self, maintainer, context):
        assert maintainer.archive_node_storage(context) is None

    def test_archive_is_repeatable(self, maintainer, context):
        write_live_data(maintainer, context)

        first = maintainer.archive_node_storage(context)
        second = maintainer.archive_node_storage(context)

        assert first is not None
        assert second is None

    def test_same_second_archives_are_kept_apart(self, maintainer, context, tmp_path):
        live = maintainer.live_path(context)
        (live / "data").mkdir(parents=True)
        (live / "data" / "owner.txt").write_text("tenant-A")
        first = maintainer.archive_node_storage(context)

        (live / "data").mkdir()
        (live / "data" / "owner.txt").write_text("tenant-B")
        second = maintainer.archive_node_storage(context)

        assert first == tmp_path / "archive" / "node1_20240301120000"
        assert second == tmp_path / "archive" / "node1_20240301120000-1"
        assert (first / "data" / "owner.txt").read_text() == "tenant-A"
        assert (second / "data" / "owner.txt").read_text() == "tenant-B"
        assert not (first / "data" / "data").exists()

    def test_no_partial_left_behind(self, maintainer, context, tmp_path):
        write_live_data(maintainer, context)

        maintainer.archive_node_storage(context)

        assert [p.name for p in (tmp_path / "archive").iterdir()] == ["node1_20240301120000"]

    def test_failure_is_storage_fault(self, maintainer, context):
        write_live_data(maintainer, context)

        with patch("node_admin.storage.maintainer.shutil.move", side_effect=OSError("No space left on device")):
            with pytest.raises(StorageFault):
                maintainer.archive_node_storage(context)

    def test_interrupted_archive_is_finished(self, maintainer, context, tmp_path):
        partial = tmp_path / "archive" / ".node1_20240229080000.partial"
        partial.mkdir(parents=True)
        (partial / "state.json").write_text("{}")

        archive = maintainer.archive_node_storage(context)

        assert archive == tmp_path / "archive" / "node1_20240229080000"
        assert (archive / "state.json").exists()
        assert not partial.exists()

    def test_interrupted_archive_finished_alongside_new_one(self, maintainer, context, tmp_path):
        partial = tmp_path / "archive" / ".node1_20240301120000.partial"
        partial.mkdir(parents=True)
        (partial / "old.log").write_text("old\n")
        write_live_data(maintainer, context)

        archive = maintainer.archive_node_storage(context)

        names = sorted(p.name for p in (tmp_path / "archive").iterdir())
        assert names == ["node1_20240301120000", "node1_20240301120000-1"]
        assert archive == tmp_path / "archive" / "node1_20240301120000-1"
        assert (tmp_path / "archive" / "node1_20240301120000" / "old.log").exists()
        assert (archive / "state.json").exists()

    def test_retry_after_failure_archives_everything(self, maintainer, context, tmp_path):
        write_live_data(maintainer, context)
        with patch("node_admin.storage.maintainer.shutil.move", side_effect=OSError("No space left on device")):
            with pytest.raises(StorageFault):
                maintainer.archive_node_storage(context)

        archive = maintainer.archive_node_storage(context)

        assert [p.name for p in (tmp_path / "archive").iterdir()] == [archive.name]
        assert (archive / "state.json").exists()


class TestCleanup:
    """Test retention of archives."""

    def test_deletes_only_expired(self, maintainer, context, clock, tmp_path):
        write_live_data(maintainer, context)
        clock.now = NOW - timedelta(days=10)
        old = maintainer.archive_node_storage(context)

        write_live_data(maintainer, context)
        clock.now = NOW - timedelta(days=1)
        recent = maintainer.archive_node_storage(context)

        clock.now = NOW
        removed = maintainer.cleanup_after_archive()

        assert removed == [old]
        assert not old.exists()
        assert recent.exists()

    def test_suffixed_archives_expire(self, maintainer, context, clock, tmp_path):
        clock.now = NOW - timedelta(days=10)
        write_live_data(maintainer, context)
        first = maintainer.archive_node_storage(context)
        write_live_data(maintainer, context)
        second = maintainer.archive_node_storage(context)

        clock.now = NOW
        removed = maintainer.cleanup_after_archive()

        assert second.name.endswith("-1")
        assert removed == [first, second]

    def test_ignores_unrecognised_entries(self, maintainer, tmp_path):
        (tmp_path / "archive" / "notes").mkdir(parents=True)

        assert maintainer.cleanup_after_archive() == []
        assert (tmp_path / "archive" / "notes").exists()

    def test_no_archive_root(self, maintainer):
        assert maintainer.cleanup_after_archive() == []
