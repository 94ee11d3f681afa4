from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .accounts import AccountService
from .errors import TodoApiError, todo_api_error_handler, validation_exception_handler
from .logging_config import setup_logging
from .middleware import RequestLoggerMiddleware
from .repositories import TodoRepository, UserRepository, get_repositories
from .routers import auth as auth_router
from .routers import todos as todos_router
from .settings import Settings, get_settings
from .todos import TodoService
from .tokens import TokenService

log = structlog.get_logger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Registration, login and the current user's profile."},
    {
        "name": "todos",
        "description": "Todo items with filtering, starring and single-owner access rules.",
    },
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    users: Optional[UserRepository] = None,
    todos: Optional[TodoRepository] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Repositories not passed in are created from settings (PERSISTENCE_BACKEND).
    The services built around them live on app.state.
    """
    settings = settings or get_settings()
    setup_logging(settings.env, settings.log_level)

    if users is None or todos is None:
        default_users, default_todos = get_repositories(settings)
        users = users or default_users
        todos = todos or default_todos

    app = FastAPI(
        title="Todo Backend",
        description="Todo list API with token-based user accounts.",
        version="0.2.0",
        openapi_tags=openapi_tags,
    )

    tokens = TokenService.from_settings(settings)
    app.state.settings = settings
    app.state.tokens = tokens
    app.state.accounts = AccountService(users, tokens, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.todos = TodoService(todos)

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback.
    # Auth travels in the Authorization header, so credentials are not needed.
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )
    app.add_middleware(RequestLoggerMiddleware)

    app.add_exception_handler(TodoApiError, todo_api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    @app.get("/api/health", summary="Liveness probe", tags=["health"], response_class=PlainTextResponse)
    def health() -> str:
        return "ok"

    app.include_router(auth_router.router)
    app.include_router(todos_router.router)

    log.info("app configured", env=settings.env, backend=settings.persistence_backend)
    return app


app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Console entrypoint: serve the app with uvicorn on settings.port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("todo_api.main:app", host="0.0.0.0", port=settings.port)
