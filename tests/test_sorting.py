# tests/test_sorting.py

from __future__ import annotations

import random

from pomo.tasks.models import Pomodoro, Task
from pomo.tasks.sorting import by_id, by_start, sort_tasks


def _tasks() -> list[Task]:
    return [
        Task(id=5, pomodoros=[Pomodoro(start=300.0)]),
        Task(id=2, pomodoros=[Pomodoro()]),
        Task(id=9, pomodoros=[Pomodoro(start=100.0), Pomodoro(start=50.0)]),
        Task(id=1, pomodoros=[Pomodoro(start=300.0)]),
        Task(id=7),
    ]


def test_by_id_ascending() -> None:
    tasks = _tasks()
    sort_tasks(tasks, by_id)
    assert [t.id for t in tasks] == [1, 2, 5, 7, 9]


def test_by_start_puts_unstarted_first() -> None:
    tasks = _tasks()
    sort_tasks(tasks, by_start)
    # 2 and 7 never started (oldest, tie broken by id), then 9 (50), 1 and 5 (300).
    assert [t.id for t in tasks] == [2, 7, 9, 1, 5]


def test_descending_is_reverse_of_ascending() -> None:
    rng = random.Random(42)
    for key in (by_id, by_start):
        for _ in range(20):
            tasks = _tasks()
            rng.shuffle(tasks)

            asc = list(tasks)
            sort_tasks(asc, key)
            desc = list(tasks)
            sort_tasks(desc, key, descending=True)

            assert [t.id for t in reversed(asc)] == [t.id for t in desc]
