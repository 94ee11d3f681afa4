from __future__ import annotations

from fastapi import Request

from .accounts import AccountService
from .todos import TodoService
from .tokens import TokenService


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_account_service(request: Request) -> AccountService:
    return request.app.state.accounts


def get_todo_service(request: Request) -> TodoService:
    return request.app.state.todos
