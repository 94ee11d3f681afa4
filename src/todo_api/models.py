from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """
    A stored user account.

    Fields:
    - id: 24-hex identifier generated by the store
    - name: Display name (trimmed)
    - username: Handle; defaults to the name when left blank at registration
    - email: Lower-cased, unique across users
    - password_hash: bcrypt hash, never serialized to clients
    - created_at / updated_at: UTC timestamps
    """

    id: str
    name: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A stored todo item.

    Fields:
    - id: 24-hex identifier generated by the store
    - body: Todo text
    - completed: Completion flag
    - completed_at: Set while completed is True, None otherwise
    - starred: Starred ("wishlist") flag
    - priority: Free-form priority label, optional
    - due_date: Optional due datetime
    - owner_id: Owning user id; None means unowned and visible to everyone
    - created_at / updated_at: UTC timestamps
    """

    id: str
    body: str
    completed: bool
    completed_at: Optional[datetime]
    starred: bool
    priority: Optional[str]
    due_date: Optional[datetime]
    owner_id: Optional[str]
    created_at: datetime
    updated_at: datetime
