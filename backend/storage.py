"""
storage.py

SQLite persistence for lists and todos. Each call opens its own connection
and commits before returning; the in-memory session never has pending
writes. Any sqlite3 failure is re-raised as PersistenceError.
"""

import os
import sqlite3
from contextlib import closing, contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from todogpt.config import config
from todogpt.errors import PersistenceError
from todogpt.schema import TodoItem, TodoList


class SQLiteTodoStore:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = str(db_path or os.environ.get("TODO_GPT_DB_PATH") or config['db_path'])

    # ── connection helpers ──

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn:
                with conn:
                    yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(operation, exc) from exc

    def init_db(self) -> None:
        if self.db_path != ":memory:":
            try:
                Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise PersistenceError("create the data directory", exc) from exc

        with self._transaction("initialize the database") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS todos (
                    id TEXT PRIMARY KEY,
                    list_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    due_date TEXT,
                    priority TEXT CHECK(priority IN ('high', 'medium', 'low')),
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY(list_id) REFERENCES lists(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS todo_categories (
                    todo_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    PRIMARY KEY(todo_id, category),
                    FOREIGN KEY(todo_id) REFERENCES todos(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS todo_tags (
                    todo_id TEXT NOT NULL,
                    tag TEXT NOT NULL,
                    PRIMARY KEY(todo_id, tag),
                    FOREIGN KEY(todo_id) REFERENCES todos(id) ON DELETE CASCADE
                )
                """
            )
            _ensure_columns(conn, "todos", {"position": "INTEGER NOT NULL DEFAULT 0"})

    # ── lists ──

    def load_lists(self) -> List[TodoList]:
        with self._transaction("load lists") as conn:
            list_rows = conn.execute(
                "SELECT * FROM lists ORDER BY created_at, rowid"
            ).fetchall()
            todo_rows = conn.execute(
                "SELECT * FROM todos ORDER BY position, created_at"
            ).fetchall()
            categories = _group_labels(conn, "todo_categories", "category")
            tags = _group_labels(conn, "todo_tags", "tag")

        todos_by_list: Dict[str, List[TodoItem]] = {}
        for row in todo_rows:
            todo = TodoItem(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                priority=row["priority"],
                due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
                completed=bool(row["completed"]),
                categories=categories.get(row["id"], []),
                tags=tags.get(row["id"], []),
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            todos_by_list.setdefault(row["list_id"], []).append(todo)

        return [
            TodoList(
                id=row["id"],
                name=row["name"],
                todos=todos_by_list.get(row["id"], []),
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            for row in list_rows
        ]

    def create_list(self, todo_list: TodoList) -> None:
        with self._transaction(f"create list '{todo_list.name}'") as conn:
            conn.execute(
                "INSERT INTO lists (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (
                    todo_list.id,
                    todo_list.name,
                    todo_list.created_at.isoformat(),
                    todo_list.updated_at.isoformat(),
                ),
            )

    def delete_list(self, list_id: str) -> None:
        with self._transaction("delete list") as conn:
            conn.execute("DELETE FROM lists WHERE id = ?", (list_id,))

    # ── todos ──

    def persist_create(self, todo: TodoItem, list_id: str) -> None:
        with self._transaction(f'save "{todo.title}"') as conn:
            self._insert_todo(conn, todo, list_id)
            _touch_list(conn, list_id)

    def persist_create_many(self, todos: List[TodoItem], list_id: str) -> None:
        """Insert ``todos`` in one transaction; a failure leaves none of them saved."""
        with self._transaction(f"save {len(todos)} todos") as conn:
            for todo in todos:
                self._insert_todo(conn, todo, list_id)
            _touch_list(conn, list_id)

    def _insert_todo(self, conn: sqlite3.Connection, todo: TodoItem, list_id: str) -> None:
        position = _next_position(conn, list_id)
        conn.execute(
            """
            INSERT INTO todos (
                id, list_id, position, title, description, due_date,
                priority, completed, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                todo.id,
                list_id,
                position,
                todo.title,
                todo.description,
                todo.due_date.isoformat() if todo.due_date else None,
                todo.priority,
                1 if todo.completed else 0,
                todo.created_at.isoformat(),
                todo.updated_at.isoformat(),
            ),
        )
        _replace_labels(conn, "todo_categories", "category", todo.id, todo.categories)
        _replace_labels(conn, "todo_tags", "tag", todo.id, todo.tags)

    def persist_update(self, todo: TodoItem) -> None:
        with self._transaction(f'update "{todo.title}"') as conn:
            cur = conn.execute(
                """
                UPDATE todos
                SET title = ?, description = ?, due_date = ?, priority = ?,
                    completed = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    todo.title,
                    todo.description,
                    todo.due_date.isoformat() if todo.due_date else None,
                    todo.priority,
                    1 if todo.completed else 0,
                    todo.updated_at.isoformat(),
                    todo.id,
                ),
            )
            if cur.rowcount == 0:
                raise sqlite3.IntegrityError(f"todo {todo.short_id} does not exist")
            _replace_labels(conn, "todo_categories", "category", todo.id, todo.categories)
            _replace_labels(conn, "todo_tags", "tag", todo.id, todo.tags)

    def persist_delete(self, todo_id: str) -> None:
        with self._transaction("delete todo") as conn:
            conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))

    def persist_clear(self, list_id: str) -> None:
        with self._transaction("clear list") as conn:
            conn.execute("DELETE FROM todos WHERE list_id = ?", (list_id,))
            _touch_list(conn, list_id)

    def persist_move(self, todo: TodoItem, list_id: str) -> None:
        with self._transaction(f'move "{todo.title}"') as conn:
            position = _next_position(conn, list_id)
            conn.execute(
                "UPDATE todos SET list_id = ?, position = ?, updated_at = ? WHERE id = ?",
                (list_id, position, todo.updated_at.isoformat(), todo.id),
            )
            _touch_list(conn, list_id)

    # ── inspection (scripts/inspect_db.py) ──

    def list_tables(self) -> List[str]:
        with self._transaction("list tables") as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
        return [row["name"] for row in rows]

    def fetch_rows(self, table: str, limit: int = 10) -> List[Dict[str, Any]]:
        if table not in self.list_tables():
            raise ValueError(f"Table '{table}' does not exist")
        with self._transaction(f"read {table}") as conn:
            rows = conn.execute(f"SELECT * FROM {table} LIMIT ?", (limit,)).fetchall()
        return [dict(row) for row in rows]


def _ensure_columns(conn: sqlite3.Connection, table: str, columns: Dict[str, str]) -> None:
    existing = {
        row["name"]
        for row in conn.execute(f"PRAGMA table_info({table})").fetchall()
    }
    for name, col_type in columns.items():
        if name in existing:
            continue
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {col_type}")


def _next_position(conn: sqlite3.Connection, list_id: str) -> int:
    row = conn.execute(
        "SELECT COALESCE(MAX(position), 0) + 1 AS next FROM todos WHERE list_id = ?",
        (list_id,),
    ).fetchone()
    return int(row["next"])


def _touch_list(conn: sqlite3.Connection, list_id: str) -> None:
    conn.execute(
        "UPDATE lists SET updated_at = ? WHERE id = ?",
        (datetime.now().isoformat(), list_id),
    )


def _replace_labels(conn: sqlite3.Connection, table: str, column: str,
                    todo_id: str, labels: Iterable[str]) -> None:
    conn.execute(f"DELETE FROM {table} WHERE todo_id = ?", (todo_id,))
    rows = [(todo_id, label) for label in dict.fromkeys(labels)]
    if not rows:
        return
    conn.executemany(f"INSERT INTO {table} (todo_id, {column}) VALUES (?, ?)", rows)


def _group_labels(conn: sqlite3.Connection, table: str, column: str) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for row in conn.execute(f"SELECT todo_id, {column} FROM {table} ORDER BY rowid").fetchall():
        grouped.setdefault(row["todo_id"], []).append(row[column])
    return grouped
