# tests/conftest.py

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from pomo.config import Settings
from pomo.tasks.models import new_task
from pomo.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeTaskRepo


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a per-test data dir."""
    return Settings.from_env(tmp_path)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    # Real SQLite: the store's transactional behavior is part of what we test.
    return TaskStore(tmp_path / "pomo.db")


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def stored_task(repo: FakeTaskRepo):
    task = new_task(message="write report", duration=25 * 60, pomodoros=4, tags=["work"])
    repo.write_task(task)
    return task


@pytest.fixture()
def socket_path() -> Iterator[Path]:
    """
    Short socket path: AF_UNIX paths are limited to ~100 bytes and pytest's
    tmp_path can get close to that.
    """
    d = tempfile.mkdtemp(prefix="pomo-")
    try:
        yield Path(d) / "s.sock"
    finally:
        shutil.rmtree(d, ignore_errors=True)
