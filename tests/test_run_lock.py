"""
Tests for the RunLock — exclusive runs and stale lock takeover.
"""

import json
import os
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from src.errors import RunInProgressError
from src.persistence.run_lock import RunLock


class TestRunLock:

    def test_acquire_writes_pid_and_release_removes(self, tmp_path):
        lock = RunLock(tmp_path / "state" / "run.lock")

        with lock:
            info = json.loads(lock.path.read_text())
            assert info["pid"] == os.getpid()
            assert "started_at" in info
            assert lock.held

        assert not lock.path.exists()
        assert not lock.held

    def test_second_run_is_refused(self, tmp_path):
        path = tmp_path / "run.lock"

        with RunLock(path):
            with pytest.raises(RunInProgressError, match="Another run"):
                RunLock(path).acquire()

        assert not path.exists()

    def test_refused_run_does_not_remove_foreign_lock(self, tmp_path):
        path = tmp_path / "run.lock"
        first = RunLock(path)
        first.acquire()

        second = RunLock(path)
        with pytest.raises(RunInProgressError):
            second.acquire()
        second.release()

        assert path.exists()
        first.release()

    def test_stale_lock_taken_over(self, tmp_path, caplog):
        path = tmp_path / "run.lock"
        old = datetime.now(timezone.utc) - timedelta(hours=30)
        path.write_text(json.dumps({"pid": 1, "started_at": old.isoformat()}))

        with caplog.at_level("WARNING"):
            lock = RunLock(path)
            lock.acquire()

        assert lock.held
        assert json.loads(path.read_text())["pid"] == os.getpid()
        assert any("stale" in r.getMessage() for r in caplog.records)
        lock.release()
        assert list(tmp_path.glob("*.stale-*")) == []

    def test_custom_stale_threshold(self, tmp_path):
        path = tmp_path / "run.lock"
        now = datetime(2026, 2, 4, 16, 0, tzinfo=timezone.utc)
        path.write_text(json.dumps({"pid": 1, "started_at": (now - timedelta(minutes=10)).isoformat()}))

        with pytest.raises(RunInProgressError):
            RunLock(path, stale_after=timedelta(hours=1)).acquire(now=now)

        RunLock(path, stale_after=timedelta(minutes=5)).acquire(now=now)

    def test_unreadable_lock_uses_file_age(self, tmp_path):
        path = tmp_path / "run.lock"
        path.write_text("garbage")

        with pytest.raises(RunInProgressError):
            RunLock(path).acquire()

    def test_read_without_lock(self, tmp_path):
        assert RunLock(tmp_path / "none.lock").read() is None

    def test_stale_lock_replaced_by_another_run_is_restored(self, tmp_path):
        """A run that judged the lock stale backs off if someone else took it over first."""
        path = tmp_path / "run.lock"
        now = datetime(2026, 2, 4, 16, 0, tzinfo=timezone.utc)
        path.write_text(json.dumps({"pid": 4242, "started_at": now.isoformat()}))
        lock = RunLock(path)
        real_age = RunLock._age

        # First check sees the old stale lock; the moved file is the fresh one
        ages = iter([timedelta(hours=30)])

        def age(self, at, moved=None):
            if moved is None:
                return next(ages)
            return real_age(self, at, moved)

        with mock.patch.object(RunLock, "_age", age):
            with pytest.raises(RunInProgressError, match="Lost the race"):
                lock.acquire(now=now)

        assert not lock.held
        assert json.loads(path.read_text())["pid"] == 4242
        assert list(tmp_path.glob("*.stale-*")) == []

    def test_stale_lock_moved_away_by_another_run(self, tmp_path):
        path = tmp_path / "run.lock"
        old = datetime.now(timezone.utc) - timedelta(hours=30)
        path.write_text(json.dumps({"pid": 1, "started_at": old.isoformat()}))
        lock = RunLock(path)

        def rename(src, dst):
            path.unlink()
            raise FileNotFoundError(src)

        with mock.patch("src.persistence.run_lock.os.rename", side_effect=rename):
            lock.acquire()

        assert lock.held
        lock.release()
