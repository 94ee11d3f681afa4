from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..accounts import AccountService
from ..auth import require_user
from ..dependencies import get_account_service
from ..schemas import AuthResponse, LoginRequest, ProfileUpdate, RegisterRequest, UserOut

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Create an account and return a bearer token for it.",
    responses={
        201: {"description": "Account created"},
        400: {"description": "Invalid name, email or password"},
        409: {"description": "Email already registered"},
    },
)
def register(payload: RegisterRequest, accounts: AccountService = Depends(get_account_service)) -> AuthResponse:
    user, token = accounts.register(payload.name, payload.username, payload.email, payload.password)
    return AuthResponse(token=token, user=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Exchange email and password for a bearer token.",
    responses={
        200: {"description": "Logged in"},
        401: {"description": "Invalid credentials"},
    },
)
def login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)) -> AuthResponse:
    user, token = accounts.login(payload.email, payload.password)
    return AuthResponse(token=token, user=UserOut.model_validate(user))


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserOut,
    summary="Current user",
    responses={
        200: {"description": "Profile of the token's user"},
        401: {"description": "Missing or invalid token"},
        404: {"description": "User not found"},
    },
)
def me(
    user_id: str = Depends(require_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserOut:
    return UserOut.model_validate(accounts.get_profile(user_id))


# PUBLIC_INTERFACE
@router.patch(
    "/me",
    response_model=UserOut,
    summary="Update current user",
    description="Change name and/or username. Blank values are ignored.",
    responses={
        200: {"description": "Profile updated"},
        400: {"description": "No changes"},
        401: {"description": "Missing or invalid token"},
        404: {"description": "User not found"},
    },
)
def update_me(
    payload: ProfileUpdate,
    user_id: str = Depends(require_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserOut:
    return UserOut.model_validate(accounts.update_profile(user_id, payload.name, payload.username))
