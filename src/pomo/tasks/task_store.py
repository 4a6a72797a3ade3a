# src/pomo/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..errors import NotFound, PersistenceFailure
from .models import ROOT_TASK_ID, Pomodoro, Task

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - writes run inside BEGIN IMMEDIATE, so there is a single writer and a
      reader never observes a task half-written
    """

    def __init__(self, db_path: str | Path = "pomo.db") -> None:
        self._db_path = Path(db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceFailure(f"cannot create {self._db_path.parent}: {e}") from e
        self.init()
        logger.debug("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _tx(self, *, write: bool = False) -> Iterator[sqlite3.Cursor]:
        """One connection, one transaction. sqlite errors surface as PersistenceFailure."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"cannot open {self._db_path}: {e}") from e
        try:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield cur
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    cur.execute("ROLLBACK")
                raise
            cur.execute("COMMIT")
        except sqlite3.Error as e:
            raise PersistenceFailure(f"sqlite error on {self._db_path}: {e}") from e
        finally:
            conn.close()

    def init(self) -> None:
        with self._tx(write=True) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    parent_id INTEGER REFERENCES tasks(id),
                    message TEXT NOT NULL,
                    duration REAL NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS pomodoros (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id),
                    position INTEGER NOT NULL,
                    start REAL,
                    "end" REAL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("parent_id", "INTEGER REFERENCES tasks(id)")
            add_col("tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_pomodoros_task ON pomodoros(task_id, position)")

    @staticmethod
    def _tags_to_str(tags: list[str]) -> str:
        return json.dumps(list(tags), ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Unreadable tags column %r; treating as empty.", s)
            return []
        return [str(t) for t in val] if isinstance(val, list) else []

    def _load(self, cur: sqlite3.Cursor, row: sqlite3.Row) -> Task:
        """Build a Task (with pomodoros and subtasks) from its row."""
        task_id = int(row["id"])

        cur.execute(
            'SELECT start, "end" FROM pomodoros WHERE task_id = ? ORDER BY position ASC',
            (task_id,),
        )
        pomodoros = [
            Pomodoro(
                start=float(p["start"]) if p["start"] is not None else None,
                end=float(p["end"]) if p["end"] is not None else None,
            )
            for p in cur.fetchall()
        ]

        cur.execute("SELECT * FROM tasks WHERE parent_id = ? ORDER BY id ASC", (task_id,))
        children = cur.fetchall()

        return Task(
            id=task_id,
            message=str(row["message"] or ""),
            tags=self._str_to_tags(row["tags"]),
            duration=float(row["duration"] or 0.0),
            pomodoros=pomodoros,
            subtasks=[self._load(cur, child) for child in children],
        )

    def _write(
        self,
        cur: sqlite3.Cursor,
        task: Task,
        parent_id: int | None,
        now: float,
        created: list[Task],
    ) -> int:
        tags = self._tags_to_str(task.tags)

        if task.id == ROOT_TASK_ID:
            cur.execute(
                """
                INSERT INTO tasks(parent_id, message, duration, tags, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (parent_id, task.message, float(task.duration), tags, now, now),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceFailure("SQLite did not return lastrowid for tasks insert")
            task.id = int(rowid)
            created.append(task)
        else:
            fields: list[str] = ["message = ?", "duration = ?", "tags = ?", "updated_at = ?"]
            params: list[Any] = [task.message, float(task.duration), tags, now]
            # parent_id=None on an update keeps the existing parent.
            if parent_id is not None:
                fields.append("parent_id = ?")
                params.append(parent_id)
            params.append(task.id)
            cur.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            if cur.rowcount != 1:
                raise NotFound(f"task {task.id} not found")
            cur.execute("DELETE FROM pomodoros WHERE task_id = ?", (task.id,))

        cur.executemany(
            'INSERT INTO pomodoros(task_id, position, start, "end") VALUES (?, ?, ?, ?)',
            [(task.id, i, p.start, p.end) for i, p in enumerate(task.pomodoros)],
        )

        kept = [self._write(cur, child, task.id, now, created) for child in task.subtasks]

        cur.execute("SELECT id FROM tasks WHERE parent_id = ?", (task.id,))
        stale = [int(r["id"]) for r in cur.fetchall() if int(r["id"]) not in kept]
        for child_id in stale:
            self._delete_subtree(cur, child_id)

        return task.id

    @staticmethod
    def _delete_subtree(cur: sqlite3.Cursor, task_id: int) -> int:
        cur.execute(
            """
            WITH RECURSIVE sub(id) AS (
                SELECT id FROM tasks WHERE id = ?
                UNION ALL
                SELECT t.id FROM tasks t JOIN sub ON t.parent_id = sub.id
            )
            SELECT id FROM sub
            """,
            (task_id,),
        )
        ids = [int(r["id"]) for r in cur.fetchall()]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        cur.execute(f"DELETE FROM pomodoros WHERE task_id IN ({placeholders})", ids)
        # Children first so the parent_id references stay valid.
        for tid in reversed(ids):
            cur.execute("DELETE FROM tasks WHERE id = ?", (tid,))
        return len(ids)

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._tx() as cur:
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)

    def read_task(self, task_id: int) -> Task:
        """
        Read one task with its pomodoros and subtasks.

        task_id 0 returns the synthetic root whose subtasks are every
        top-level task.
        """
        with self._tx() as cur:
            if int(task_id) == ROOT_TASK_ID:
                cur.execute("SELECT * FROM tasks WHERE parent_id IS NULL ORDER BY id ASC")
                rows = cur.fetchall()
                return Task(id=ROOT_TASK_ID, subtasks=[self._load(cur, r) for r in rows])

            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            if row is None:
                raise NotFound(f"task {task_id} not found")
            return self._load(cur, row)

    def read_tasks(self, *, since: float | None = None, until: float | None = None) -> list[Task]:
        """
        Top-level tasks whose first pomodoro started within [since, until).

        With no bounds every top-level task is returned, started or not.
        """
        with self._tx() as cur:
            cur.execute(
                """
                SELECT t.*
                FROM tasks t
                LEFT JOIN (
                    SELECT task_id, MIN(start) AS first_start
                    FROM pomodoros
                    WHERE start IS NOT NULL
                    GROUP BY task_id
                ) p ON p.task_id = t.id
                WHERE t.parent_id IS NULL
                  AND (? IS NULL OR p.first_start >= ?)
                  AND (? IS NULL OR p.first_start < ?)
                ORDER BY t.id ASC
                """,
                (since, since, until, until),
            )
            rows = cur.fetchall()
            return [self._load(cur, r) for r in rows]

    def write_task(self, task: Task, *, parent_id: int | None = None) -> int:
        """
        Create (id == 0) or fully replace a task, its pomodoros and subtasks.

        New tasks get their ids assigned in place. Subtasks missing from an
        update are deleted. Everything happens in one transaction.
        """
        created: list[Task] = []
        try:
            with self._tx(write=True) as cur:
                task_id = self._write(cur, task, parent_id, time.time(), created)
        except BaseException:
            # Rolled back: the assigned ids do not exist.
            for t in created:
                t.id = ROOT_TASK_ID
            raise

        logger.debug(
            "Task written id=%s pomodoros=%d subtasks=%d new=%d",
            task_id,
            len(task.pomodoros),
            len(task.subtasks),
            len(created),
        )
        return task_id

    def write_pomodoros(self, task: Task) -> None:
        """
        Replace only the pomodoros of an existing task.

        The task row, its parent and its subtasks are left alone, so a
        running session does not clobber subtasks edited elsewhere.
        """
        with self._tx(write=True) as cur:
            cur.execute("UPDATE tasks SET updated_at = ? WHERE id = ?", (time.time(), int(task.id)))
            if cur.rowcount != 1:
                raise NotFound(f"task {task.id} not found")
            cur.execute("DELETE FROM pomodoros WHERE task_id = ?", (task.id,))
            cur.executemany(
                'INSERT INTO pomodoros(task_id, position, start, "end") VALUES (?, ?, ?, ?)',
                [(task.id, i, p.start, p.end) for i, p in enumerate(task.pomodoros)],
            )
        logger.debug("Pomodoros written id=%s count=%d", task.id, len(task.pomodoros))

    def delete_task(self, task_id: int) -> None:
        with self._tx(write=True) as cur:
            removed = self._delete_subtree(cur, int(task_id))
            if not removed:
                raise NotFound(f"task {task_id} not found")
        logger.info("Task deleted id=%s (%d rows incl. subtasks)", task_id, removed)
