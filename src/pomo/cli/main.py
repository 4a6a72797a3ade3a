# src/pomo/cli/main.py

"""
CLI entrypoint.

Usage:
    pomo init                        # create the database
    pomo config                      # show settings as JSON
    pomo create -d 25m -p 4 MESSAGE  # create a task, print its id
    pomo start -d 25m -p 4 MESSAGE   # create a task and run a session
    pomo begin TASK_ID               # run (or resume) a session for a stored task
    pomo list [-d 24h] [FILTER...]   # history summary
    pomo get [--tree] [FILTER...]    # task tree
    pomo delete TASK_ID
    pomo status                      # live status of the running session

Filters: tag:NAME, id:N, message:TEXT or a bare word (message substring).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from .. import __version__
from ..config import Settings, get_settings
from ..errors import EndpointUnavailable, PomoError
from ..logging_setup import setup_logging
from ..session.client import SocketClient, endpoint_alive
from ..session.host import SessionHost
from ..session.runtime import Session, SessionStatus
from ..tasks.functional import filter_tree, filters_from_strings, find_many, flatten, for_each_mutate
from ..tasks.models import Task, new_task, parse_duration
from ..tasks.sorting import by_id, by_start, sort_tasks
from ..tasks.task_store import TaskStore
from . import render

logger = logging.getLogger(__name__)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _open_store(settings: Settings) -> TaskStore:
    return TaskStore(settings.db_path)


# ---- session foreground ----


def _draw(line: str, *, final: bool = False) -> None:
    """Redraw the progress line in place on a TTY; plain lines otherwise."""
    if sys.stdout.isatty():
        sys.stdout.write("\r\033[2K" + line + ("\n" if final else ""))
        sys.stdout.flush()
    else:
        print(line, flush=True)


def _run_session(settings: Settings, store: TaskStore, task: Task) -> SessionStatus:
    """
    Host the session in the background and show its progress until it ends.

    Ctrl+C at any point stops the session; raises PomoError if the host
    did not finish.
    """
    session = Session(task, store)
    host = SessionHost(session, settings.socket_path, poll_interval=settings.poll_interval)
    client = SocketClient(settings.socket_path, timeout=settings.client_timeout)

    last = ""
    try:
        host.start()
        while host.is_alive:
            status = client.status()
            if status is not None:
                line = render.status_line(status)
                if sys.stdout.isatty() or line != last:
                    _draw(line)
                    last = line
            host.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping task=%s", task.id)
        if client.stop() is None:
            host.stop()

    try:
        final = host.wait(timeout=10.0)
    except KeyboardInterrupt:
        host.stop()
        raise PomoError(f"interrupted while saving task {task.id}") from None

    if final is None or host.is_alive:
        raise PomoError(f"session for task {task.id} did not finish")
    _draw(render.status_line(final), final=True)
    return final


# ---- commands ----


def cmd_init(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    print(f"initialized {store.db_path}")
    return 0


def cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    _print_json(settings.to_dict())
    return 0


def _task_from_args(args: argparse.Namespace, settings: Settings) -> Task:
    duration = parse_duration(args.duration or settings.default_duration)
    count = args.pomodoros if args.pomodoros is not None else settings.default_pomodoros
    return new_task(message=args.message, duration=duration, pomodoros=count, tags=args.tag)


def cmd_create(args: argparse.Namespace, settings: Settings) -> int:
    task = _task_from_args(args, settings)
    store = _open_store(settings)
    if args.parent is not None:
        store.read_task(args.parent)
    task_id = store.write_task(task, parent_id=args.parent)
    print(task_id)
    return 0


def cmd_start(args: argparse.Namespace, settings: Settings) -> int:
    task = _task_from_args(args, settings)
    if endpoint_alive(settings.socket_path):
        raise EndpointUnavailable(f"a session is already running at {settings.socket_path}")
    store = _open_store(settings)
    store.write_task(task)
    _run_session(settings, store, task)
    return 0


def cmd_begin(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    task = store.read_task(args.task_id)
    _run_session(settings, store, task)
    return 0


def cmd_list(args: argparse.Namespace, settings: Settings) -> int:
    now = time.time()
    since = None if args.all or not args.duration else now - parse_duration(args.duration)
    store = _open_store(settings)

    tasks = find_many(store.read_tasks(since=since), *filters_from_strings(args.filters))
    if args.ascend:
        sort_tasks(tasks, by_id)
    else:
        sort_tasks(tasks, by_start, descending=True)
    if args.limit and args.limit > 0:
        tasks = tasks[: args.limit]

    if args.json or settings.json:
        _print_json([t.to_dict() for t in tasks])
    else:
        print(render.summarize(tasks, now=now))
    return 0


def cmd_get(args: argparse.Namespace, settings: Settings) -> int:
    now = time.time()
    store = _open_store(settings)
    root = filter_tree(store.read_task(0), *filters_from_strings(args.filters))

    def order(task: Task) -> None:
        # --ascend wins over --recent when both are given.
        if args.ascend:
            sort_tasks(task.subtasks, by_id)
        elif args.recent:
            sort_tasks(task.subtasks, by_start, descending=True)

    for_each_mutate(root, order)

    if args.json or settings.json:
        _print_json(root.to_dict())
    elif args.flatten:
        for task in flatten(root):
            print(task.info(now))
    else:
        print(render.render_tree(root, now=now, show_pomodoros=args.pomodoros))
    return 0


def cmd_delete(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    store.delete_task(args.task_id)
    return 0


def cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    status = SocketClient(settings.socket_path, timeout=settings.client_timeout).status()
    if args.json or settings.json:
        _print_json(status.to_dict() if status is not None else {})
    else:
        print(render.status_line(status))
    return 0


# ---- parser ----


def _add_task_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("message", help="descriptive name of the task")
    p.add_argument("-d", "--duration", default=None, help="length of each pomodoro (e.g. 25m)")
    p.add_argument("-p", "--pomodoros", type=int, default=None, help="number of pomodoros")
    p.add_argument("-t", "--tag", action="append", default=[], help="tag (repeatable)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pomo",
        description="Pomodoro CLI: track what you did and how long it took.",
    )
    parser.add_argument("--path", default=None, help="data directory (default: $POMO_DATA_DIR or ~/.pomo)")
    parser.add_argument("--version", action="version", version=f"pomo {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log to the console at INFO")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="initialize the database")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("config", aliases=["cf"], help="display the current configuration")
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("create", aliases=["c"], help="create a new task without starting it")
    _add_task_options(p)
    p.add_argument("--parent", type=int, default=None, help="id of the parent task")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("start", aliases=["s"], help="create a new task and start it")
    _add_task_options(p)
    p.set_defaults(func=cmd_start)

    p = sub.add_parser("begin", aliases=["b"], help="begin (or resume) a stored task")
    p.add_argument("task_id", type=int)
    p.set_defaults(func=cmd_begin)

    p = sub.add_parser("list", aliases=["l"], help="list historical tasks")
    p.add_argument("filters", nargs="*", help="tag:NAME, id:N, message:TEXT or a word")
    p.add_argument("--json", action="store_true", help="output as JSON")
    p.add_argument("--ascend", action="store_true", help="oldest first (by id)")
    p.add_argument("-n", "--limit", type=int, default=0, help="show at most n tasks")
    p.add_argument("-d", "--duration", default=None, help="only tasks started within this window (e.g. 24h)")
    p.add_argument("-a", "--all", action="store_true", help="ignore --duration")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("get", aliases=["g"], help="show tasks as a tree")
    p.add_argument("filters", nargs="*", help="tag:NAME, id:N, message:TEXT or a word")
    p.add_argument("--json", action="store_true", help="output as JSON")
    p.add_argument("-f", "--flatten", action="store_true", help="one line per task, no tree")
    p.add_argument(
        "--no-pomodoros", dest="pomodoros", action="store_false", help="hide per-pomodoro status"
    )
    p.add_argument("-r", "--recent", action="store_true", default=True, help="most recent first (default)")
    p.add_argument("-a", "--ascend", action="store_true", help="oldest first (by id); wins over --recent")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("delete", aliases=["d"], help="delete a stored task")
    p.add_argument("task_id", type=int)
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("status", aliases=["st"], help="output the current session status")
    p.add_argument("--json", action="store_true", help="output as JSON")
    p.set_defaults(func=cmd_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env(args.path) if args.path else get_settings()

    level_name = "INFO" if args.verbose else str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.WARNING)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.debug("pomo %s command=%s data_dir=%s", __version__, args.command, settings.data_dir)

    try:
        return int(args.func(args, settings) or 0)
    except KeyboardInterrupt:
        logger.info("Command %s interrupted", args.command)
        print("interrupted", file=sys.stderr)
        return 130
    except PomoError as e:
        logger.debug("Command %s failed: %r", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Command %s crashed.", args.command)
        print(f"error: {e}", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
