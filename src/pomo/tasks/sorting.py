# src/pomo/tasks/sorting.py

"""
Sort keys for task lists.

Both keys are total (ties fall back to the id), so sorting descending is
exactly the reverse of sorting ascending.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .models import Task

SortKey = Callable[[Task], Any]


def by_id(task: Task) -> int:
    return task.id


def by_start(task: Task) -> tuple[float, int]:
    # Never-started tasks sort as the oldest.
    started = task.started_at
    return (float("-inf") if started is None else started, task.id)


def sort_tasks(tasks: list[Task], key: SortKey = by_id, *, descending: bool = False) -> None:
    tasks.sort(key=key, reverse=descending)
