from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from .errors import DuplicateKeyError
from .models import TodoEntity, UserEntity
from .settings import Settings, get_settings
from .utils import new_object_id


@dataclass(frozen=True)
class TodoQuery:
    """
    Store-level filters for listing todos.

    visible_to: when set, only todos owned by that user or unowned todos match.
    """
    search: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[str] = None
    starred: Optional[bool] = None
    visible_to: Optional[str] = None


def compile_search(pattern: str) -> Pattern[str]:
    """
    Compile a case-insensitive body search pattern. Input that is not a valid
    regular expression is matched literally.
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


def _matches_expected(doc: Dict[str, Any], expected: Optional[Dict[str, Any]]) -> bool:
    if not expected:
        return True
    return all(doc.get(k) == v for k, v in expected.items())


# PUBLIC_INTERFACE
class UserRepository(ABC):
    """Abstract repository contract for user accounts."""

    @abstractmethod
    def insert(self, values: Dict[str, Any]) -> UserEntity:
        """
        Store a new user and return it with a generated id.

        Raises:
            DuplicateKeyError: if the email is already taken.
        """

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserEntity]:
        """Return a user by id, or None if not found."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserEntity]:
        """Return the user with this (already lower-cased) email, or None."""

    @abstractmethod
    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserEntity]:
        """Set the given fields. Return the updated user or None if not found."""


# PUBLIC_INTERFACE
class TodoRepository(ABC):
    """Abstract repository contract for todo storage backends."""

    @abstractmethod
    def insert(self, values: Dict[str, Any]) -> TodoEntity:
        """Store a new todo and return it with a generated id."""

    @abstractmethod
    def get(self, todo_id: str) -> Optional[TodoEntity]:
        """Return a todo by id, or None if not found."""

    @abstractmethod
    def update(
        self,
        todo_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Atomically set the given fields on one todo.

        When `expected` is given, the write only applies if every listed field
        currently holds the expected value (None matches an absent value).
        Returns True if a todo matched and was written.
        """

    @abstractmethod
    def toggle_completed(self, todo_id: str, now: datetime) -> Optional[TodoEntity]:
        """
        Atomically flip `completed`, set or clear `completed_at` and refresh
        `updated_at`. Returns the updated todo or None if not found.
        """

    @abstractmethod
    def delete(self, todo_id: str) -> bool:
        """Delete a todo by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list(self, query: Optional[TodoQuery] = None) -> List[TodoEntity]:
        """
        Return todos matching the query, newest first.
        - Case-insensitive regex search on body
        - Filter by completed / priority / starred
        - Restrict to owner-or-unowned when query.visible_to is set
        """


class InMemoryUserRepository(UserRepository):
    """
    Thread-safe in-memory user store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, UserEntity] = {}

    def insert(self, values: Dict[str, Any]) -> UserEntity:
        with self._lock:
            # Unique index on email
            if any(u["email"] == values["email"] for u in self._items.values()):
                raise DuplicateKeyError("email")
            entity: UserEntity = {**values, "id": new_object_id()}  # type: ignore[typeddict-item]
            self._items[entity["id"]] = entity
            return entity.copy()

    def get(self, user_id: str) -> Optional[UserEntity]:
        with self._lock:
            item = self._items.get(user_id)
            return None if item is None else item.copy()

    def find_by_email(self, email: str) -> Optional[UserEntity]:
        with self._lock:
            for item in self._items.values():
                if item["email"] == email:
                    return item.copy()
            return None

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserEntity]:
        with self._lock:
            existing = self._items.get(user_id)
            if existing is None:
                return None
            updated: UserEntity = {**existing, **changes}  # type: ignore[typeddict-item]
            self._items[user_id] = updated
            return updated.copy()


class InMemoryTodoRepository(TodoRepository):
    """
    Thread-safe in-memory todo store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, TodoEntity] = {}
        # insertion order, breaks created_at ties
        self._order: dict[str, int] = {}
        self._seq = 0

    def insert(self, values: Dict[str, Any]) -> TodoEntity:
        entity: TodoEntity = {**values, "id": new_object_id()}  # type: ignore[typeddict-item]
        with self._lock:
            self._items[entity["id"]] = entity
            self._seq += 1
            self._order[entity["id"]] = self._seq
        return entity.copy()

    def get(self, todo_id: str) -> Optional[TodoEntity]:
        with self._lock:
            item = self._items.get(todo_id)
            return None if item is None else item.copy()

    def update(
        self,
        todo_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None or not _matches_expected(existing, expected):  # type: ignore[arg-type]
                return False
            self._items[todo_id] = {**existing, **changes}  # type: ignore[typeddict-item]
            return True

    def toggle_completed(self, todo_id: str, now: datetime) -> Optional[TodoEntity]:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                return None
            completed = not existing["completed"]
            updated = existing.copy()
            updated["completed"] = completed
            updated["completed_at"] = now if completed else None
            updated["updated_at"] = now
            self._items[todo_id] = updated
            return updated.copy()

    def delete(self, todo_id: str) -> bool:
        with self._lock:
            self._order.pop(todo_id, None)
            return self._items.pop(todo_id, None) is not None

    def list(self, query: Optional[TodoQuery] = None) -> List[TodoEntity]:
        q = query or TodoQuery()
        with self._lock:
            items: Iterable[TodoEntity] = self._items.values()

            if q.visible_to is not None:
                items = [t for t in items if t["owner_id"] in (None, q.visible_to)]
            if q.completed is not None:
                items = [t for t in items if t["completed"] == q.completed]
            if q.priority:
                items = [t for t in items if t["priority"] == q.priority]
            if q.starred is not None:
                items = [t for t in items if t["starred"] == q.starred]
            if q.search:
                rx = compile_search(q.search)
                items = [t for t in items if rx.search(t["body"] or "")]

            def sort_key(t: TodoEntity) -> Tuple[datetime, int]:
                return t["created_at"], self._order[t["id"]]

            # Return copies to avoid external mutation
            return [t.copy() for t in sorted(items, key=sort_key, reverse=True)]


# PUBLIC_INTERFACE
def get_repositories(settings: Optional[Settings] = None) -> Tuple[UserRepository, TodoRepository]:
    """
    Factory returning the configured (users, todos) repositories.
    - memory: in-memory stores (data is lost on restart)
    - sqlite: SQLite stores sharing one database file
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteTodoRepository, SQLiteUserRepository

        return (
            SQLiteUserRepository(settings.sqlite_db_path),
            SQLiteTodoRepository(settings.sqlite_db_path),
        )
    return InMemoryUserRepository(), InMemoryTodoRepository()
