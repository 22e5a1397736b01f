"""Authentication routes for email and password sign-in."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from backend import config
from backend.auth import (
    clear_session_cookie,
    create_jwt,
    get_current_user,
    hash_password,
    normalize_email,
    set_session_cookie,
    verify_password,
)
from backend.middleware.rate_limit import rate_limiter
from backend.models.auth import LoginRequest, LogoutResponse, RegisterRequest
from backend.models.user import User, UserPublic
from backend.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
user_repo = UserRepo()

INVALID_CREDENTIALS = "Invalid email or password."


@router.post("/register", status_code=201)
async def register_endpoint(req: RegisterRequest, response: Response) -> UserPublic:
    """
    Create an account and start a session.

    409 if the email is already registered.
    """
    email = normalize_email(req.email)
    user = await user_repo.create(email, req.display_name, hash_password(req.password))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists.",
        )

    logger.info("auth: registered user_id=%s", user.id)
    set_session_cookie(response, create_jwt(user.id))
    return UserPublic.from_user(user)


@router.post("/login", status_code=200)
async def login_endpoint(req: LoginRequest, request: Request, response: Response) -> UserPublic:
    """
    Sign in with email and password.

    Rate limit: LOGIN_RATE_LIMIT_PER_IP attempts per IP per hour.
    """
    client_ip = request.client.host if request.client else "unknown"

    if not rate_limiter.check_rate_limit(
        f"login:{client_ip}",
        max_requests=config.settings.LOGIN_RATE_LIMIT_PER_IP,
        window_minutes=60,
    ):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many sign-in attempts. Please try again later.",
            headers={"Retry-After": "3600"},
        )

    user = await user_repo.get_by_email(normalize_email(req.email))
    if user is None or not verify_password(req.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )

    set_session_cookie(response, create_jwt(user.id))
    return UserPublic.from_user(user)


@router.get("/me", status_code=200)
async def get_current_user_endpoint(
    user: User = Depends(get_current_user),
) -> UserPublic:
    """
    Get the current authenticated user.

    Requires valid session cookie.
    """
    return UserPublic.from_user(user)


@router.post("/logout", status_code=200)
async def logout_endpoint(response: Response) -> LogoutResponse:
    """
    Logout the current user.

    Clears the session cookie.
    """
    clear_session_cookie(response)
    return LogoutResponse()
