from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth import optional_user, require_user
from ..dependencies import get_todo_service
from ..schemas import StarRequest, SuccessResponse, TodoCreate, TodoOut, TodoUpdate
from ..todos import TodoFilters, TodoService

router = APIRouter(
    prefix="/api/todos",
    tags=["todos"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    response_model_exclude_none=True,
    summary="List Todos",
    description=(
        "List todos, newest first.\n\n"
        "Query parameters:\n"
        "- search: case-insensitive pattern matched against the body\n"
        "- status: 'active' or 'completed'\n"
        "- priority: exact priority label\n"
        "- starred: only starred (true) or unstarred (false) todos\n\n"
        "With a valid bearer token the list is limited to the caller's todos plus "
        "unowned ones. Without one (or with an invalid one) all todos are listed."
    ),
    responses={200: {"description": "List retrieved successfully"}},
)
def list_todos(
    search: Optional[str] = Query(None, description="Search pattern for the todo body"),
    status_: Optional[str] = Query(None, alias="status", description="'active' or 'completed'"),
    priority: Optional[str] = Query(None, description="Priority label"),
    starred: Optional[bool] = Query(None, description="Filter by starred flag"),
    requester: Optional[str] = Depends(optional_user),
    service: TodoService = Depends(get_todo_service),
) -> List[TodoOut]:
    filters = TodoFilters(search=search, status=status_, priority=priority, starred=starred)
    return [TodoOut.model_validate(t) for t in service.list(filters, requester)]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a todo owned by the authenticated caller.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Empty body or invalid payload"},
        401: {"description": "Missing or invalid token"},
    },
)
def create_todo(
    payload: TodoCreate,
    requester: str = Depends(require_user),
    service: TodoService = Depends(get_todo_service),
) -> TodoOut:
    created = service.create(
        payload.body,
        priority=payload.priority,
        due_date=payload.due_date,
        starred=payload.starred,
        requester=requester,
    )
    return TodoOut.model_validate(created)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=SuccessResponse,
    summary="Update Todo",
    description=(
        "Partially update a todo. Setting 'starred' requires a token and claims "
        "unowned todos for the caller. An empty payload toggles 'completed'."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Invalid id or due date in the past"},
        401: {"description": "Starring without a valid token"},
        403: {"description": "Todo owned by another user"},
        404: {"description": "Todo not found"},
    },
)
def patch_todo(
    todo_id: str,
    payload: Optional[TodoUpdate] = None,
    requester: Optional[str] = Depends(optional_user),
    service: TodoService = Depends(get_todo_service),
) -> SuccessResponse:
    service.update(todo_id, payload or TodoUpdate(), requester)
    return SuccessResponse()


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}/star",
    response_model=SuccessResponse,
    summary="Star Todo",
    description="Star or unstar a todo. Unowned todos are claimed by the caller.",
    responses={
        200: {"description": "Starred flag updated"},
        400: {"description": "Invalid id"},
        401: {"description": "Missing or invalid token"},
        403: {"description": "Todo owned by another user"},
        404: {"description": "Todo not found"},
    },
)
def star_todo(
    todo_id: str,
    payload: StarRequest,
    requester: str = Depends(require_user),
    service: TodoService = Depends(get_todo_service),
) -> SuccessResponse:
    service.set_starred(todo_id, payload.starred, requester)
    return SuccessResponse()


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=SuccessResponse,
    summary="Delete Todo",
    description="Delete a todo. Owned todos can only be deleted by their owner.",
    responses={
        200: {"description": "Todo deleted"},
        400: {"description": "Invalid id"},
        403: {"description": "Todo owned by another user"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(
    todo_id: str,
    requester: Optional[str] = Depends(optional_user),
    service: TodoService = Depends(get_todo_service),
) -> SuccessResponse:
    service.delete(todo_id, requester)
    return SuccessResponse()
