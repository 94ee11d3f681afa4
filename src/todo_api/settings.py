from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

import structlog

log = structlog.get_logger(__name__)

DEFAULT_JWT_SECRET = "dev-secret-change-me"
DEFAULT_TOKEN_TTL = timedelta(hours=24)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - ENV: 'development' (default) or 'production'
    - LOG_LEVEL: logging level name. Default 'INFO'
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - JWT_SECRET: HMAC secret for signing tokens. Falls back to an insecure development value
    - JWT_EXPIRES_IN: token lifetime as a duration string ('24h', '90m', '1h30m'). Default 24h
    - JWT_ISSUER: issuer claim written into tokens. Default 'todo-api'
    - BCRYPT_ROUNDS: bcrypt cost factor; unset means the bcrypt library default
    - PORT: port used by the uvicorn entrypoint. Default 4000
    """

    env: str
    log_level: str
    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    jwt_secret: str
    jwt_expires_in: timedelta
    jwt_issuer: str
    bcrypt_rounds: Optional[int]
    port: int

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: Optional[str], default: Optional[int]) -> Optional[int]:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as '24h', '90m', '1h30m', '1.5h' or '500ms'.

    An optional leading sign is accepted. A bare '0' is a zero duration.

    Raises:
        ValueError: if the string is not a sequence of number+unit pairs.
    """
    s = value.strip()
    sign = 1.0
    if s[:1] in {"+", "-"}:
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {value!r}")

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(s):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(s):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


def _parse_ttl(raw: Optional[str]) -> timedelta:
    if raw is None or raw.strip() == "":
        return DEFAULT_TOKEN_TTL
    try:
        return parse_duration(raw)
    except ValueError:
        log.warning("invalid JWT_EXPIRES_IN, using default", value=raw, default="24h")
        return DEFAULT_TOKEN_TTL


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """
    Return application settings loaded from environment variables.

    Raises:
        ValueError: when ENV=production and JWT_SECRET is not configured.
    """
    env = _get_env("ENV", "development").strip().lower()

    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/todos.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    secret = _get_env("JWT_SECRET", DEFAULT_JWT_SECRET)
    if env == "production" and secret == DEFAULT_JWT_SECRET:
        raise ValueError("JWT_SECRET must be set when ENV=production")

    return Settings(
        env=env,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        jwt_secret=secret,
        jwt_expires_in=_parse_ttl(os.getenv("JWT_EXPIRES_IN")),
        jwt_issuer=_get_env("JWT_ISSUER", "todo-api").strip(),
        bcrypt_rounds=_parse_int(os.getenv("BCRYPT_ROUNDS"), None),
        port=_parse_int(os.getenv("PORT"), 4000) or 4000,
    )
