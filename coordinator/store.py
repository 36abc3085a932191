"""
Case History — Instance Lookup

Point reads of case instances and tasks by id, used to derive the
owning case definition of link records.

Implementations:
  - InMemoryInstanceLookup: dev/test, same process
  - SQLiteInstanceStore:    single-file SQLite, shared across processes
"""

from __future__ import annotations

import abc
import sqlite3
import threading
from pathlib import Path

from coordinator.types import (
    CaseInstance,
    CaseInstanceState,
    TaskRecord,
)


class InstanceLookup(abc.ABC):
    """Read access to runtime records. A missing id returns None."""

    @abc.abstractmethod
    def find_case_instance(self, case_instance_id: str) -> CaseInstance | None:
        ...

    @abc.abstractmethod
    def find_task(self, task_id: str) -> TaskRecord | None:
        ...


class InMemoryInstanceLookup(InstanceLookup):

    def __init__(self):
        self._case_instances: dict[str, CaseInstance] = {}
        self._tasks: dict[str, TaskRecord] = {}

    def save_case_instance(self, case_instance: CaseInstance) -> None:
        self._case_instances[case_instance.id] = case_instance

    def save_task(self, task: TaskRecord) -> None:
        self._tasks[task.id] = task

    def find_case_instance(self, case_instance_id: str) -> CaseInstance | None:
        return self._case_instances.get(case_instance_id)

    def find_task(self, task_id: str) -> TaskRecord | None:
        return self._tasks.get(task_id)


class SQLiteInstanceStore(InstanceLookup):
    """SQLite-backed case instance and task records."""

    def __init__(self, db_path: str | Path = "case_history.db"):
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA busy_timeout=5000")
        if self.db_path != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS case_instances (
                id TEXT PRIMARY KEY,
                case_definition_id TEXT NOT NULL,
                state TEXT NOT NULL DEFAULT 'active',
                business_key TEXT DEFAULT '',
                tenant_id TEXT DEFAULT '',
                start_time REAL NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                name TEXT DEFAULT '',
                scope_id TEXT,
                scope_type TEXT,
                scope_definition_id TEXT,
                sub_scope_id TEXT,
                assignee TEXT DEFAULT '',
                create_time REAL NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_case_instances_definition
                ON case_instances(case_definition_id);
            CREATE INDEX IF NOT EXISTS idx_tasks_scope ON tasks(scope_id);
        """)
        self.conn.commit()

    # ─── Case Instance CRUD ──────────────────────────────────────────

    def save_case_instance(self, case_instance: CaseInstance) -> None:
        with self._lock:
            self.conn.execute("""
                INSERT OR REPLACE INTO case_instances
                (id, case_definition_id, state, business_key, tenant_id, start_time)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                case_instance.id, case_instance.case_definition_id,
                case_instance.state.value, case_instance.business_key,
                case_instance.tenant_id, case_instance.start_time,
            ))
            self.conn.commit()

    def find_case_instance(self, case_instance_id: str) -> CaseInstance | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM case_instances WHERE id = ?", (case_instance_id,)
            ).fetchone()
        if not row:
            return None
        return CaseInstance(
            id=row["id"],
            case_definition_id=row["case_definition_id"],
            state=CaseInstanceState(row["state"]),
            business_key=row["business_key"],
            tenant_id=row["tenant_id"],
            start_time=row["start_time"],
        )

    # ─── Task CRUD ───────────────────────────────────────────────────

    def save_task(self, task: TaskRecord) -> None:
        with self._lock:
            self.conn.execute("""
                INSERT OR REPLACE INTO tasks
                (id, name, scope_id, scope_type, scope_definition_id,
                 sub_scope_id, assignee, create_time)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                task.id, task.name, task.scope_id, task.scope_type,
                task.scope_definition_id, task.sub_scope_id,
                task.assignee, task.create_time,
            ))
            self.conn.commit()

    def find_task(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        if not row:
            return None
        return TaskRecord(
            id=row["id"],
            name=row["name"],
            scope_id=row["scope_id"],
            scope_type=row["scope_type"],
            scope_definition_id=row["scope_definition_id"],
            sub_scope_id=row["sub_scope_id"],
            assignee=row["assignee"],
            create_time=row["create_time"],
        )

    def close(self):
        self.conn.close()
