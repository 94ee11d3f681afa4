"""
Todo ownership and mutation rules.

Ownership moves at most once, from unowned to a single user: either at
creation by an authenticated requester or by the first user who stars an
unowned todo ("claim on star"). Owned todos can be starred and deleted only
by their owner; unowned todos can be deleted by anyone.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from .errors import Forbidden, InvalidArgument, NotFound, Unauthenticated, ValidationError
from .models import TodoEntity
from .repositories import TodoQuery, TodoRepository
from .schemas import TodoUpdate
from .utils import as_utc, parse_object_id, utcnow

log = structlog.get_logger(__name__)

_STATUS_FILTERS = {"active": False, "completed": True}


@dataclass(frozen=True)
class TodoFilters:
    """
    Listing filters as received from the client.

    status: 'active' or 'completed'; any other value is ignored.
    """
    search: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    starred: Optional[bool] = None


def _completion_fields(completed: bool, now: datetime) -> Dict[str, Any]:
    return {"completed": completed, "completed_at": now if completed else None}


# PUBLIC_INTERFACE
class TodoService:
    """Applies the todo business rules on top of a TodoRepository."""

    def __init__(self, todos: TodoRepository) -> None:
        self._todos = todos

    def list(self, filters: Optional[TodoFilters] = None, requester: Optional[str] = None) -> List[TodoEntity]:
        """
        Return matching todos, newest first.

        An authenticated requester sees their own todos plus unowned ones;
        an anonymous requester sees everything.
        """
        f = filters or TodoFilters()
        query = TodoQuery(
            search=f.search or None,
            completed=_STATUS_FILTERS.get((f.status or "").strip().lower()),
            priority=f.priority or None,
            starred=f.starred,
            visible_to=requester,
        )
        return self._todos.list(query)

    def create(
        self,
        body: Optional[str],
        priority: Optional[str] = None,
        due_date: Optional[datetime] = None,
        starred: bool = False,
        requester: Optional[str] = None,
    ) -> TodoEntity:
        if not body or not body.strip():
            raise ValidationError("Todo Body cannot be empty")

        now = utcnow()
        todo = self._todos.insert(
            {
                "body": body,
                "completed": False,
                "completed_at": None,
                "starred": bool(starred),
                "priority": priority or None,
                "due_date": as_utc(due_date) if due_date else None,
                "owner_id": requester,
                "created_at": now,
                "updated_at": now,
            }
        )
        log.info("todo created", todo_id=todo["id"], owner_id=requester)
        return todo

    def update(self, todo_id: str, changes: TodoUpdate, requester: Optional[str] = None) -> None:
        """
        Apply a partial update.

        - body / priority / dueDate are set as given; a dueDate before today
          (UTC calendar date) is rejected, null clears it.
        - completed sets the flag and stamps or clears completed_at.
        - starred needs an authenticated requester and claims unowned todos.
        - with none of the above present, the completion flag is toggled.

        Raises:
            InvalidArgument, ValidationError, Unauthenticated, NotFound, Forbidden
        """
        oid = self._parse_id(todo_id)
        now = utcnow()
        fields: Dict[str, Any] = {"updated_at": now}

        if changes.body is not None:
            fields["body"] = changes.body
        if changes.priority is not None:
            fields["priority"] = changes.priority
        if changes.due_date_provided:
            fields["due_date"] = self._check_due_date(changes.due_date, now)
        if changes.completed is not None:
            fields.update(_completion_fields(changes.completed, now))

        if changes.starred is not None:
            if requester is None:
                raise Unauthenticated("Login required to star todos")
            self._write_as_owner(oid, changes.starred, requester, fields)
            return

        if len(fields) == 1:
            # Empty payload: flip the completion flag. This mirrors the
            # behaviour existing clients depend on; do not extend it.
            toggled = self._todos.toggle_completed(oid, now)
            if toggled is None:
                raise NotFound("Todo not found")
            log.info("todo completion toggled", todo_id=oid, completed=toggled["completed"])
            return

        if not self._todos.update(oid, fields):
            raise NotFound("Todo not found")

    def set_starred(self, todo_id: str, starred: bool, requester: Optional[str]) -> None:
        """Star or unstar a todo as `requester`, claiming it if unowned."""
        oid = self._parse_id(todo_id)
        if requester is None:
            raise Unauthenticated("Login required to star todos")
        self._write_as_owner(oid, starred, requester, {"updated_at": utcnow()})

    def delete(self, todo_id: str, requester: Optional[str] = None) -> None:
        oid = self._parse_id(todo_id)
        existing = self._todos.get(oid)
        if existing is None:
            raise NotFound("Todo not found")
        owner = existing["owner_id"]
        if owner is not None and owner != requester:
            log.info("delete refused, not owner", todo_id=oid, requester=requester)
            raise Forbidden("You do not own this todo")
        if not self._todos.delete(oid):
            raise NotFound("Todo not found")
        log.info("todo deleted", todo_id=oid, requester=requester)

    @staticmethod
    def _parse_id(todo_id: str) -> str:
        oid = parse_object_id(todo_id)
        if oid is None:
            raise InvalidArgument("Invalid todo ID")
        return oid

    @staticmethod
    def _check_due_date(due_date: Optional[datetime], now: datetime) -> Optional[datetime]:
        if due_date is None:
            return None
        due = as_utc(due_date)
        if due.date() < now.date():
            raise ValidationError("Due date cannot be in the past")
        return due

    def _write_as_owner(self, todo_id: str, starred: bool, requester: str, fields: Dict[str, Any]) -> None:
        existing = self._todos.get(todo_id)
        if existing is None:
            raise NotFound("Todo not found")

        owner = existing["owner_id"]
        if owner is not None and owner != requester:
            log.info("star refused, not owner", todo_id=todo_id, requester=requester)
            raise Forbidden("You do not own this todo")

        changes = {**fields, "starred": starred}
        if owner is None:
            changes["owner_id"] = requester

        # Compare-and-set on owner_id so two users cannot both claim the todo.
        if self._todos.update(todo_id, changes, expected={"owner_id": owner}):
            if owner is None:
                log.info("todo claimed", todo_id=todo_id, owner_id=requester)
            return

        # Owner changed between read and write: re-check once.
        current = self._todos.get(todo_id)
        if current is None:
            raise NotFound("Todo not found")
        if current["owner_id"] != requester:
            raise Forbidden("You do not own this todo")
        if not self._todos.update(todo_id, changes, expected={"owner_id": requester}):
            raise NotFound("Todo not found")
