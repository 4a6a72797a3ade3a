# tests/test_functional.py

from __future__ import annotations

import pytest

from pomo.errors import InvalidArgument
from pomo.tasks.functional import (
    IdFilter,
    MessageFilter,
    TagFilter,
    after,
    filter_tree,
    filters_from_strings,
    find_many,
    flatten,
    for_each,
    for_each_mutate,
)
from pomo.tasks.models import Pomodoro, Task


def _tree() -> Task:
    """
    root
    ├── 1 write report [work]
    │   ├── 2 outline [work draft]
    │   └── 3 proofread
    └── 4 read book [home]
        └── 5 chapter one [draft]
    """
    return Task(
        id=0,
        subtasks=[
            Task(
                id=1,
                message="write report",
                tags=["work"],
                subtasks=[
                    Task(id=2, message="outline", tags=["work", "draft"]),
                    Task(id=3, message="proofread"),
                ],
            ),
            Task(
                id=4,
                message="read book",
                tags=["home"],
                subtasks=[Task(id=5, message="chapter one", tags=["draft"])],
            ),
        ],
    )


def test_for_each_is_pre_order() -> None:
    seen: list[int] = []
    for_each(_tree(), lambda t: seen.append(t.id))
    assert seen == [0, 1, 2, 3, 4, 5]


def test_for_each_mutate_visits_children_after_parent_edit() -> None:
    root = _tree()
    seen: list[int] = []

    def reverse_children(task: Task) -> None:
        seen.append(task.id)
        task.subtasks.reverse()

    for_each_mutate(root, reverse_children)

    assert seen == [0, 4, 5, 1, 3, 2]
    assert [t.id for t in root.subtasks] == [4, 1]
    assert [t.id for t in root.subtasks[1].subtasks] == [3, 2]


def test_find_many_by_tag_preserves_order() -> None:
    tasks = [
        Task(id=1, tags=["x"]),
        Task(id=2, tags=["y"]),
        Task(id=3, tags=["y", "x"]),
        Task(id=4, tags=[]),
    ]
    assert [t.id for t in find_many(tasks, TagFilter("x"))] == [1, 3]
    assert find_many([], TagFilter("x")) == []
    assert find_many(tasks, TagFilter("nope")) == []


def test_find_many_combines_filters_with_and() -> None:
    tasks = _tree().subtasks[0].subtasks + _tree().subtasks
    found = find_many(tasks, TagFilter("work"), MessageFilter("OUT"))
    assert [t.id for t in found] == [2]
    assert [t.id for t in find_many(tasks)] == [t.id for t in tasks]


def test_find_many_does_not_search_subtasks() -> None:
    root = _tree()
    assert find_many(root.subtasks, TagFilter("draft")) == []


def test_find_many_returns_new_list_of_same_objects() -> None:
    root = _tree()
    found = find_many(root.subtasks, IdFilter(4))
    assert found[0] is root.subtasks[1]
    found.clear()
    assert len(root.subtasks) == 2


def test_filters_from_strings() -> None:
    filters = filters_from_strings(["tag:work", "id:3", "message:Report", "book", " "])
    assert filters == [TagFilter("work"), IdFilter(3), MessageFilter("Report"), MessageFilter("book")]


@pytest.mark.parametrize("raw", ["id:abc", "color:red", "tag:"])
def test_filters_from_strings_rejects_bad_input(raw: str) -> None:
    with pytest.raises(InvalidArgument):
        filters_from_strings([raw])


def test_flatten_skips_synthetic_root() -> None:
    assert [t.id for t in flatten(_tree())] == [1, 2, 3, 4, 5]
    assert [t.id for t in flatten(_tree().subtasks[1])] == [4, 5]


def test_filter_tree_keeps_matching_subtree_and_prunes_the_rest() -> None:
    root = _tree()

    by_work = filter_tree(root, TagFilter("work"))
    # Task 1 matches: its whole subtree stays, including non-matching task 3.
    assert [t.id for t in by_work.subtasks] == [1]
    assert [t.id for t in by_work.subtasks[0].subtasks] == [2, 3]

    by_draft = filter_tree(root, TagFilter("draft"))
    # Parents survive only as the path to matching descendants.
    assert [t.id for t in by_draft.subtasks] == [1, 4]
    assert [t.id for t in by_draft.subtasks[0].subtasks] == [2]
    assert [t.id for t in by_draft.subtasks[1].subtasks] == [5]

    # Input untouched.
    assert [t.id for t in root.subtasks[0].subtasks] == [2, 3]
    assert filter_tree(root) is root
    assert filter_tree(root, TagFilter("none")).subtasks == []


def test_after_uses_first_start() -> None:
    tasks = [
        Task(id=1, pomodoros=[Pomodoro(start=100.0)]),
        Task(id=2, pomodoros=[Pomodoro(start=50.0), Pomodoro(start=300.0)]),
        Task(id=3, pomodoros=[Pomodoro()]),
    ]
    assert [t.id for t in after(100.0, tasks)] == [1]
