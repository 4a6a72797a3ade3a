# src/pomo/tasks/functional.py

"""
Generic operations over a task tree.

Traversal is always pre-order (parent before children). Nothing here inserts
or removes nodes while walking; filtering returns new lists (or, for
filter_tree, new container nodes) that reference the original Task values.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Protocol

from ..errors import InvalidArgument
from .models import Task


class Filter(Protocol):
    def __call__(self, task: Task) -> bool: ...


@dataclass(frozen=True, slots=True)
class TagFilter:
    tag: str

    def __call__(self, task: Task) -> bool:
        return self.tag in task.tags


@dataclass(frozen=True, slots=True)
class IdFilter:
    task_id: int

    def __call__(self, task: Task) -> bool:
        return task.id == self.task_id


@dataclass(frozen=True, slots=True)
class MessageFilter:
    substring: str

    def __call__(self, task: Task) -> bool:
        return self.substring.lower() in task.message.lower()


def filters_from_strings(args: Iterable[str]) -> list[Filter]:
    """
    Build typed filters from CLI arguments.

    Accepted forms: "tag:x", "id:3", "message:foo", or a bare word which
    is treated as a message substring.
    """
    out: list[Filter] = []
    for raw in args:
        arg = raw.strip()
        if not arg:
            continue
        key, sep, value = arg.partition(":")
        if not sep:
            out.append(MessageFilter(arg))
            continue

        key = key.strip().lower()
        value = value.strip()
        if not value:
            raise InvalidArgument(f"empty filter value: {raw!r}")

        if key == "tag":
            out.append(TagFilter(value))
        elif key == "id":
            try:
                out.append(IdFilter(int(value)))
            except ValueError:
                raise InvalidArgument(f"task id must be an integer: {raw!r}") from None
        elif key in ("message", "msg"):
            out.append(MessageFilter(value))
        else:
            raise InvalidArgument(f"unknown filter {key!r} (expected tag, id or message)")
    return out


def for_each(task: Task, fn: Callable[[Task], None]) -> None:
    fn(task)
    for child in task.subtasks:
        for_each(child, fn)


def for_each_mutate(task: Task, fn: Callable[[Task], None]) -> None:
    """
    Like for_each, but fn may reorder or edit the visited task in place.
    Children are visited through their slots after fn has run on the parent.
    """
    fn(task)
    for i in range(len(task.subtasks)):
        for_each_mutate(task.subtasks[i], fn)


def find_many(tasks: Iterable[Task], *filters: Filter) -> list[Task]:
    """Return the tasks matching every filter, in their original order."""
    return [t for t in tasks if all(f(t) for f in filters)]


def flatten(task: Task) -> list[Task]:
    out: list[Task] = []
    for_each(task, out.append)
    if out and out[0].is_root:
        out.pop(0)
    return out


def filter_tree(root: Task, *filters: Filter) -> Task:
    """
    Display policy for filtered trees.

    A matching task keeps its whole subtree. A non-matching task survives
    only when some descendant matches, and then only with those branches.
    The root container itself is always returned.
    """

    def prune(task: Task) -> Task | None:
        if all(f(task) for f in filters):
            return task
        kept = [c for c in (prune(child) for child in task.subtasks) if c is not None]
        if not kept:
            return None
        return replace(task, subtasks=kept)

    if not filters:
        return root
    kept = [c for c in (prune(child) for child in root.subtasks) if c is not None]
    return replace(root, subtasks=kept)


def after(timestamp: float, tasks: Iterable[Task]) -> list[Task]:
    """Tasks whose first pomodoro started at or after timestamp."""
    out: list[Task] = []
    for t in tasks:
        started = t.started_at
        if started is not None and started >= timestamp:
            out.append(t)
    return out
