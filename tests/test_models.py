# tests/test_models.py

from __future__ import annotations

import pytest

from pomo.errors import InvalidArgument
from pomo.tasks.models import (
    Pomodoro,
    PomodoroState,
    Task,
    format_duration,
    new_pomodoros,
    new_task,
    parse_duration,
)


@pytest.mark.parametrize("count", [1, 4, 12])
def test_new_pomodoros_are_pending(count: int) -> None:
    pomodoros = new_pomodoros(count)
    assert len(pomodoros) == count
    assert all(p.state(60.0, now=1e9) == PomodoroState.PENDING for p in pomodoros)
    assert all(p.start is None and p.end is None for p in pomodoros)


@pytest.mark.parametrize("count", [0, -3])
def test_new_pomodoros_rejects_non_positive(count: int) -> None:
    with pytest.raises(InvalidArgument):
        new_pomodoros(count)


def test_new_task_validates_inputs() -> None:
    with pytest.raises(InvalidArgument):
        new_task(message="  ", duration=60, pomodoros=1)
    with pytest.raises(InvalidArgument):
        new_task(message="x", duration=0, pomodoros=1)

    task = new_task(message=" write report ", duration=1500, pomodoros=4, tags=["a", "a"])
    assert task.id == 0
    assert task.message == "write report"
    assert task.tags == ["a", "a"]
    assert len(task.pomodoros) == 4


def test_pomodoro_derived_states() -> None:
    duration = 100.0
    assert Pomodoro().state(duration, 50) == PomodoroState.PENDING
    assert Pomodoro(start=0).state(duration, 50) == PomodoroState.RUNNING
    # Elapsed but not yet finalized still reports wall-clock truth.
    assert Pomodoro(start=0).state(duration, 150) == PomodoroState.COMPLETED
    assert Pomodoro(start=0, end=100).state(duration, 150) == PomodoroState.COMPLETED
    assert Pomodoro(start=0, end=40).state(duration, 150) == PomodoroState.STOPPED_EARLY


def test_task_equality_by_id() -> None:
    a = Task(id=3, message="a")
    b = Task(id=3, message="b")
    assert a == b
    assert hash(a) == hash(b)

    unsaved_1 = Task(message="same")
    unsaved_2 = Task(message="same")
    assert unsaved_1 != unsaved_2
    assert unsaved_1 == unsaved_1


def test_task_dict_ignores_unknown_fields() -> None:
    task = Task(
        id=7,
        message="m",
        tags=["x"],
        duration=60.0,
        pomodoros=[Pomodoro(start=10.0, end=70.0), Pomodoro()],
        subtasks=[Task(id=8, message="child", duration=60.0)],
    )
    raw = task.to_dict()
    raw["future_field"] = {"anything": True}

    back = Task.from_dict(raw)
    assert back.id == 7
    assert back.pomodoros[0].end == 70.0
    assert back.pomodoros[1].start is None
    assert back.subtasks[0].message == "child"


def test_pomodoro_from_dict_keeps_zero_timestamps() -> None:
    p = Pomodoro.from_dict({"start": 0.0, "end": 0})
    assert p.start == 0.0
    assert p.end == 0.0
    assert p.finished


def test_task_info_and_started_at() -> None:
    task = Task(
        id=2,
        message="read",
        tags=["book"],
        duration=1500.0,
        pomodoros=[Pomodoro(start=200.0, end=1700.0), Pomodoro(start=100.0, end=150.0), Pomodoro()],
    )
    assert task.started_at == 100.0
    assert task.info(now=5000.0) == "[2] [1/3] 25m - read [book]"
    assert Task(id=1).started_at is None


@pytest.mark.parametrize(
    "raw,seconds",
    [
        ("25m", 1500.0),
        ("1h30m", 5400.0),
        ("90s", 90.0),
        ("1.5h", 5400.0),
        ("250ms", 0.25),
        (" 2M ", 120.0),
    ],
)
def test_parse_duration(raw: str, seconds: float) -> None:
    assert parse_duration(raw) == pytest.approx(seconds)


@pytest.mark.parametrize("raw", ["", "25", "m", "25x", "1h 30m", "-5m", "0s", "m25"])
def test_parse_duration_rejects_malformed(raw: str) -> None:
    with pytest.raises(InvalidArgument):
        parse_duration(raw)


def test_format_duration() -> None:
    assert format_duration(1500) == "25m"
    assert format_duration(5400) == "1h30m"
    assert format_duration(45) == "45s"
    assert format_duration(0.05) == "50ms"
    assert format_duration(3600) == "1h"
