from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from .errors import DuplicateKeyError
from .models import TodoEntity, UserEntity
from .repositories import TodoQuery, TodoRepository, UserRepository, compile_search
from .utils import new_object_id


@dataclass(frozen=True)
class _UserCols:
    table: str = "users"
    id: str = "id"
    name: str = "name"
    username: str = "username"
    email: str = "email"
    password_hash: str = "password_hash"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


@dataclass(frozen=True)
class _TodoCols:
    table: str = "todos"
    id: str = "id"
    body: str = "body"
    completed: str = "completed"
    completed_at: str = "completed_at"
    starred: str = "starred"
    priority: str = "priority"
    due_date: str = "due_date"
    owner_id: str = "owner_id"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_U = _UserCols()
_T = _TodoCols()

_DATETIME_FIELDS = {"completed_at", "due_date", "created_at", "updated_at"}
_BOOL_FIELDS = {"completed", "starred"}


def _regexp(pattern: str, value: Optional[str]) -> bool:
    if value is None:
        return False
    return compile_search(pattern).search(value) is not None


def _to_db(field: str, value: Any) -> Any:
    if value is None:
        return None
    if field in _BOOL_FIELDS:
        return 1 if value else 0
    if field in _DATETIME_FIELDS:
        return value.isoformat()
    return value


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class _SQLiteStore:
    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.create_function("REGEXP", 2, _regexp)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        raise NotImplementedError


class SQLiteUserRepository(_SQLiteStore, UserRepository):
    """
    SQLite user store. A unique index on email backs the duplicate check.
    """

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_U.table} (
                    {_U.id} TEXT PRIMARY KEY,
                    {_U.name} TEXT NOT NULL,
                    {_U.username} TEXT NOT NULL,
                    {_U.email} TEXT NOT NULL,
                    {_U.password_hash} TEXT NOT NULL,
                    {_U.created_at} TEXT NOT NULL,
                    {_U.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{_U.table}_email ON {_U.table}({_U.email})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> UserEntity:
        return {
            "id": str(row[_U.id]),
            "name": str(row[_U.name]),
            "username": str(row[_U.username]),
            "email": str(row[_U.email]),
            "password_hash": str(row[_U.password_hash]),
            "created_at": _parse_dt(row[_U.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[_U.updated_at]),  # type: ignore
        }

    def _fetch(self, conn: sqlite3.Connection, user_id: str) -> Optional[UserEntity]:
        row = conn.execute(f"SELECT * FROM {_U.table} WHERE {_U.id} = ?", (user_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def insert(self, values: Dict[str, Any]) -> UserEntity:
        user_id = new_object_id()
        with self._conn() as conn:
            try:
                conn.execute(
                    f"""
                    INSERT INTO {_U.table} ({_U.id}, {_U.name}, {_U.username}, {_U.email},
                        {_U.password_hash}, {_U.created_at}, {_U.updated_at})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        values["name"],
                        values["username"],
                        values["email"],
                        values["password_hash"],
                        _to_db("created_at", values["created_at"]),
                        _to_db("updated_at", values["updated_at"]),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateKeyError("email") from e
            row = self._fetch(conn, user_id)
            assert row is not None
            return row

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._conn() as conn:
            return self._fetch(conn, user_id)

    def find_by_email(self, email: str) -> Optional[UserEntity]:
        with self._conn() as conn:
            row = conn.execute(f"SELECT * FROM {_U.table} WHERE {_U.email} = ?", (email,)).fetchone()
            return self._row_to_entity(row) if row else None

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserEntity]:
        allowed = {_U.name, _U.username, _U.updated_at}
        fields = [f for f in changes if f in allowed]
        with self._conn() as conn:
            if fields:
                assignments = ", ".join(f"{f} = ?" for f in fields)
                conn.execute(
                    f"UPDATE {_U.table} SET {assignments} WHERE {_U.id} = ?",
                    [*(_to_db(f, changes[f]) for f in fields), user_id],
                )
            return self._fetch(conn, user_id)


class SQLiteTodoRepository(_SQLiteStore, TodoRepository):
    """
    SQLite todo store. Conditional updates and the completion toggle are
    single UPDATE statements.
    """

    _WRITABLE = {
        _T.body,
        _T.completed,
        _T.completed_at,
        _T.starred,
        _T.priority,
        _T.due_date,
        _T.owner_id,
        _T.updated_at,
    }

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_T.table} (
                    {_T.id} TEXT PRIMARY KEY,
                    {_T.body} TEXT NOT NULL,
                    {_T.completed} INTEGER NOT NULL DEFAULT 0,
                    {_T.completed_at} TEXT NULL,
                    {_T.starred} INTEGER NOT NULL DEFAULT 0,
                    {_T.priority} TEXT NULL,
                    {_T.due_date} TEXT NULL,
                    {_T.owner_id} TEXT NULL,
                    {_T.created_at} TEXT NOT NULL,
                    {_T.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_owner_id ON {_T.table}({_T.owner_id})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_T.table}_created_at ON {_T.table}({_T.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": str(row[_T.id]),
            "body": str(row[_T.body]),
            "completed": bool(row[_T.completed]),
            "completed_at": _parse_dt(row[_T.completed_at]),
            "starred": bool(row[_T.starred]),
            "priority": row[_T.priority],
            "due_date": _parse_dt(row[_T.due_date]),
            "owner_id": row[_T.owner_id],
            "created_at": _parse_dt(row[_T.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[_T.updated_at]),  # type: ignore
        }

    def _fetch(self, conn: sqlite3.Connection, todo_id: str) -> Optional[TodoEntity]:
        row = conn.execute(f"SELECT * FROM {_T.table} WHERE {_T.id} = ?", (todo_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def insert(self, values: Dict[str, Any]) -> TodoEntity:
        todo_id = new_object_id()
        cols = [
            _T.body,
            _T.completed,
            _T.completed_at,
            _T.starred,
            _T.priority,
            _T.due_date,
            _T.owner_id,
            _T.created_at,
            _T.updated_at,
        ]
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_T.table} ({_T.id}, {", ".join(cols)})
                VALUES (?, {", ".join("?" for _ in cols)})
                """,
                [todo_id, *(_to_db(c, values.get(c)) for c in cols)],
            )
            row = self._fetch(conn, todo_id)
            assert row is not None
            return row

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        with self._conn() as conn:
            return self._fetch(conn, todo_id)

    def update(
        self,
        todo_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        fields = [f for f in changes if f in self._WRITABLE]
        if not fields:
            raise ValueError("update() needs at least one writable field")
        unknown = set(expected or {}) - self._WRITABLE
        if unknown:
            raise ValueError(f"cannot condition an update on {sorted(unknown)}")
        assignments = ", ".join(f"{f} = ?" for f in fields)
        params: List[Any] = [_to_db(f, changes[f]) for f in fields]

        where = [f"{_T.id} = ?"]
        params.append(todo_id)
        for field, value in (expected or {}).items():
            # IS compares NULL as equal to NULL
            where.append(f"{field} IS ?")
            params.append(_to_db(field, value))

        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE {_T.table} SET {assignments} WHERE {' AND '.join(where)}",
                params,
            )
            return cur.rowcount > 0

    def toggle_completed(self, todo_id: str, now: datetime) -> Optional[TodoEntity]:
        stamp = now.isoformat()
        with self._conn() as conn:
            # Right-hand sides see the row as it was before the update.
            conn.execute(
                f"""
                UPDATE {_T.table}
                SET {_T.completed} = 1 - {_T.completed},
                    {_T.completed_at} = CASE WHEN {_T.completed} = 0 THEN ? ELSE NULL END,
                    {_T.updated_at} = ?
                WHERE {_T.id} = ?
                """,
                (stamp, stamp, todo_id),
            )
            return self._fetch(conn, todo_id)

    def delete(self, todo_id: str) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_T.table} WHERE {_T.id} = ?", (todo_id,))
            return cur.rowcount > 0

    def list(self, query: Optional[TodoQuery] = None) -> List[TodoEntity]:
        q = query or TodoQuery()
        clauses = []
        params: list = []

        if q.visible_to is not None:
            clauses.append(f"({_T.owner_id} = ? OR {_T.owner_id} IS NULL)")
            params.append(q.visible_to)

        if q.completed is not None:
            clauses.append(f"{_T.completed} = ?")
            params.append(1 if q.completed else 0)

        if q.priority:
            clauses.append(f"{_T.priority} = ?")
            params.append(q.priority)

        if q.starred is not None:
            clauses.append(f"{_T.starred} = ?")
            params.append(1 if q.starred else 0)

        if q.search:
            clauses.append(f"{_T.body} REGEXP ?")
            params.append(q.search)

        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_T.table}
                {where_sql}
                ORDER BY {_T.created_at} DESC, rowid DESC
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
