from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Shared type for incoming dueDate which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]

_WIRE_CONFIG = dict(alias_generator=to_camel, populate_by_name=True)


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize dueDate input into a datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        # Promote a date to a datetime at midnight
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            # If only a date is provided, convert to midnight
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid dueDate format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00Z')."
                ) from e

    raise ValueError("Invalid type for dueDate; expected date, datetime, or ISO8601 string.")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class RegisterRequest(BaseModel):
    """
    Registration payload. Field rules are checked by the account service so
    that the first failing rule (name, email, password) determines the error.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Ann",
                "username": "ann",
                "email": "ann@example.com",
                "password": "secret1",
            }
        }
    )

    name: Optional[str] = Field(default=None, description="Display name, at least 2 characters")
    username: Optional[str] = Field(default=None, description="Handle; defaults to the name")
    email: Optional[str] = Field(default=None, description="Email address, unique per account")
    password: Optional[str] = Field(default=None, description="Password, at least 6 characters")


# PUBLIC_INTERFACE
class LoginRequest(BaseModel):
    """Login payload."""

    email: Optional[str] = Field(default=None, description="Registered email (case-insensitive)")
    password: Optional[str] = Field(default=None, description="Account password")


# PUBLIC_INTERFACE
class ProfileUpdate(BaseModel):
    """
    Partial profile update. Blank values are ignored; at least one field must
    be non-blank.
    """

    name: Optional[str] = Field(default=None, description="New display name")
    username: Optional[str] = Field(default=None, description="New handle")


# PUBLIC_INTERFACE
class UserOut(BaseModel):
    """
    Public representation of a user. The password hash is never included.
    """

    model_config = ConfigDict(
        **_WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "_id": "66f1c2a9e4b0a1b2c3d4e5f6",
                "name": "Ann",
                "username": "ann",
                "email": "ann@example.com",
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "updatedAt": "2025-01-25T10:15:30.123456Z",
            }
        },
    )

    id: str = Field(..., alias="_id", description="User identifier (24-char hex)")
    name: str
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class AuthResponse(BaseModel):
    """Token plus the authenticated user."""

    token: str = Field(..., description="Bearer token for the Authorization header")
    user: UserOut


# ---------------------------------------------------------------------------
# Todos
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        **_WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "body": "Buy groceries",
                "priority": "high",
                "dueDate": "2025-02-01",
                "starred": False,
            }
        },
    )

    body: Optional[str] = Field(default=None, description="Todo text; must not be empty")
    priority: Optional[str] = Field(default=None, description="Free-form priority label (e.g. low/medium/high)")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    starred: bool = Field(default=False, description="Starred flag")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.

    All fields are optional; only provided fields are applied. Sending
    "dueDate": null clears the due date. A payload with none of these fields
    toggles the completion flag.
    """

    model_config = ConfigDict(
        **_WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "body": "Buy groceries and supplies",
                "completed": True,
                "dueDate": "2025-02-02T09:30:00Z",
            }
        },
    )

    body: Optional[str] = Field(default=None, description="New todo text")
    completed: Optional[bool] = Field(default=None, description="Completion flag")
    starred: Optional[bool] = Field(default=None, description="Starred flag; requires authentication")
    priority: Optional[str] = Field(default=None, description="Priority label")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time, or null to clear")

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @property
    def due_date_provided(self) -> bool:
        """True when dueDate was present in the payload, including an explicit null."""
        return "due_date" in self.model_fields_set


# PUBLIC_INTERFACE
class StarRequest(BaseModel):
    """Payload for the dedicated star endpoint."""

    starred: bool = Field(..., description="New starred flag")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item. Unset optional fields are
    omitted from responses.
    """

    model_config = ConfigDict(
        **_WIRE_CONFIG,
        json_schema_extra={
            "example": {
                "_id": "66f1c2a9e4b0a1b2c3d4e5f7",
                "body": "Buy groceries",
                "completed": False,
                "starred": True,
                "priority": "high",
                "dueDate": "2025-02-01T00:00:00Z",
                "ownerId": "66f1c2a9e4b0a1b2c3d4e5f6",
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "updatedAt": "2025-01-26T09:00:00.000001Z",
            }
        },
    )

    id: str = Field(..., alias="_id", description="Todo identifier (24-char hex)")
    body: str
    completed: bool
    starred: bool = False
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    owner_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class SuccessResponse(BaseModel):
    success: bool = True
