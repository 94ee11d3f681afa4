"""
User accounts: registration, login and profile management.
"""
from __future__ import annotations

import re
from typing import Optional, Tuple

import bcrypt
import structlog

from .errors import Conflict, DuplicateKeyError, InvalidCredentials, NoChanges, NotFound, ValidationError
from .models import UserEntity
from .repositories import UserRepository
from .tokens import TokenService
from .utils import parse_object_id, utcnow

log = structlog.get_logger(__name__)

EMAIL_RE = re.compile(r"^[\w.-]+@[\w.-]+\.[a-zA-Z]{2,}$", re.ASCII)

# bcrypt only looks at the first 72 bytes of a password and newer releases
# refuse longer input outright.
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt() if rounds is None else bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Over-long password or corrupt stored hash
        return False


def validate_registration(name: str, email: str, password: str) -> None:
    """
    Check registration fields in order: name, email, password.

    Raises:
        ValidationError: describing the first rule that failed.
    """
    if len(name.strip()) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if not EMAIL_RE.fullmatch(email):
        raise ValidationError("Invalid email")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError("Password must be at most 72 bytes")


# PUBLIC_INTERFACE
class AccountService:
    """Registration, login and profile operations over a UserRepository."""

    def __init__(
        self,
        users: UserRepository,
        tokens: TokenService,
        bcrypt_rounds: Optional[int] = None,
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._bcrypt_rounds = bcrypt_rounds

    def register(
        self,
        name: Optional[str],
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> Tuple[UserEntity, str]:
        """
        Create an account and return it with a fresh token.

        Raises:
            ValidationError: invalid name, email or password.
            Conflict: the email is already registered.
        """
        name = name or ""
        email = email or ""
        password = password or ""
        validate_registration(name, email, password)

        email = email.lower()
        if self._users.find_by_email(email) is not None:
            log.info("registration rejected, email taken", email=email)
            raise Conflict("Email already registered")

        now = utcnow()
        display_name = name.strip()
        try:
            user = self._users.insert(
                {
                    "name": display_name,
                    "username": (username or "").strip() or display_name,
                    "email": email,
                    "password_hash": hash_password(password, self._bcrypt_rounds),
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration for the same email
            log.info("registration rejected by unique index", email=email)
            raise Conflict("Email already registered") from e

        log.info("user registered", user_id=user["id"])
        return user, self._tokens.issue(user["id"])

    def login(self, email: Optional[str], password: Optional[str]) -> Tuple[UserEntity, str]:
        """
        Check credentials and return the user with a fresh token.

        Raises:
            InvalidCredentials: unknown email or wrong password (indistinguishable).
        """
        user = self._users.find_by_email((email or "").lower())
        if user is None or not verify_password(password or "", user["password_hash"]):
            log.info("login failed")
            raise InvalidCredentials("Invalid credentials")
        log.info("user logged in", user_id=user["id"])
        return user, self._tokens.issue(user["id"])

    def get_profile(self, user_id: str) -> UserEntity:
        oid = parse_object_id(user_id)
        user = self._users.get(oid) if oid else None
        if user is None:
            raise NotFound("User not found")
        return user

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> UserEntity:
        """
        Set the non-blank fields among name/username.

        Raises:
            NoChanges: both fields blank or missing.
            NotFound: the user does not exist.
        """
        changes = {}
        if name and name.strip():
            changes["name"] = name.strip()
        if username and username.strip():
            changes["username"] = username.strip()
        if not changes:
            raise NoChanges("No changes")
        changes["updated_at"] = utcnow()

        oid = parse_object_id(user_id)
        user = self._users.update(oid, changes) if oid else None
        if user is None:
            raise NotFound("User not found")
        return user
