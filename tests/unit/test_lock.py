"""Unit tests for clusterctl.controller.lock: DataDirLock."""
from __future__ import annotations

from pathlib import Path

import pytest

from clusterctl.controller import DataDirLock
from clusterctl.errors import ClusterLockedError, ClusterStateError


class TestDataDirLock:
    def test_context_manager_acquires_and_releases(self, tmp_path: Path) -> None:
        lock = DataDirLock(tmp_path / ".data.lock")
        with lock as held:
            assert held.held
            assert lock.path.exists()
        assert not lock.held

    def test_second_holder_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / ".data.lock"
        with DataDirLock(path):
            with pytest.raises(ClusterLockedError) as exc_info:
                DataDirLock(path).acquire()
        assert exc_info.value.lock_path == str(path)

    def test_locked_error_is_user_facing(self, tmp_path: Path) -> None:
        path = tmp_path / ".data.lock"
        with DataDirLock(path):
            with pytest.raises(ClusterStateError):
                DataDirLock(path).acquire()

    def test_released_on_exception(self, tmp_path: Path) -> None:
        path = tmp_path / ".data.lock"
        with pytest.raises(RuntimeError):
            with DataDirLock(path):
                raise RuntimeError("boom")
        with DataDirLock(path) as lock:
            assert lock.held

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / ".data.lock"
        with DataDirLock(path):
            assert path.parent.is_dir()

    def test_acquire_twice_is_noop(self, tmp_path: Path) -> None:
        lock = DataDirLock(tmp_path / ".data.lock")
        lock.acquire()
        lock.acquire()
        lock.release()
        lock.release()
        assert not lock.held
