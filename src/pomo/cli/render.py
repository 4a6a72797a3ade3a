# src/pomo/cli/render.py

"""Text rendering for tasks and live status. Produces strings only."""

from __future__ import annotations

from datetime import datetime

from ..session.runtime import SessionState, SessionStatus
from ..tasks.models import PomodoroState, Task, format_duration

GLYPHS = {
    PomodoroState.PENDING: "○",
    PomodoroState.RUNNING: "◔",
    PomodoroState.COMPLETED: "●",
    PomodoroState.STOPPED_EARLY: "◌",
}

NO_SESSION = "no active session"


def _ts_local(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _clock(seconds: float) -> str:
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def pomodoro_bar(task: Task, now: float) -> str:
    return "".join(GLYPHS[p.state(task.duration, now)] for p in task.pomodoros)


def render_tree(root: Task, *, now: float, show_pomodoros: bool = True) -> str:
    """
    Render a task tree. The synthetic root (id 0) is not printed; its
    subtasks are rendered as a forest.
    """
    lines: list[str] = []

    def label(task: Task) -> str:
        text = task.info(now)
        if show_pomodoros and task.pomodoros:
            text += f" {pomodoro_bar(task, now)}"
        return text

    def walk(task: Task, prefix: str) -> None:
        for i, child in enumerate(task.subtasks):
            last = i == len(task.subtasks) - 1
            lines.append(f"{prefix}{'└── ' if last else '├── '}{label(child)}")
            walk(child, prefix + ("    " if last else "│   "))

    if root.is_root:
        walk(root, "")
    else:
        lines.append(label(root))
        walk(root, "")
    return "\n".join(lines)


def summarize(tasks: list[Task], *, now: float) -> str:
    lines: list[str] = []
    total = 0.0
    for task in tasks:
        done = task.completed_count(now)
        spent = done * task.duration
        total += spent
        lines.append(f"{_ts_local(task.started_at)}  {task.info(now)}  {pomodoro_bar(task, now)}")
    lines.append(f"{len(tasks)} task(s), {format_duration(total)} completed")
    return "\n".join(lines)


def status_line(status: SessionStatus | None) -> str:
    if status is None:
        return NO_SESSION

    done = sum(1 for p in status.pomodoros if p.state == PomodoroState.COMPLETED)
    head = f"[{status.task_id}] {status.message} {done}/{len(status.pomodoros)}"
    bar = "".join(GLYPHS[p.state] for p in status.pomodoros)

    if status.state == SessionState.RUNNING:
        remaining = status.remaining or 0.0
        return f"{head} {bar} running #{(status.active_index or 0) + 1} {_clock(remaining)} left"
    if status.state == SessionState.STOPPED:
        return f"{head} {bar} stopped at #{(status.active_index or 0) + 1}"
    return f"{head} {bar} {status.state.value}"
