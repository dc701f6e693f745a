from datetime import timedelta
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel

from jellyfin_manager.adapters.sqlite.repos import SQLiteUserRepo
from jellyfin_manager.api.auth_utils import create_access_token
from jellyfin_manager.api.deps import (
    client_ip,
    get_auth_adapter,
    get_clock,
    get_current_user,
    get_rate_limiter,
    get_rules,
    get_user_repo,
)
from jellyfin_manager.app_shell.rate_limit import RateLimiter
from jellyfin_manager.components.auth import LoginInput, run_login
from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.rules.models import Rules

router = APIRouter()


class Token(BaseModel):
    access_token: str
    token_type: str


@router.post("/login", response_model=Token)
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth_adapter: Any = Depends(get_auth_adapter),
    clock: Any = Depends(get_clock),
    rules: Rules = Depends(get_rules),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Token:
    """Authenticate a dashboard account and return an access token."""
    if not limiter.check_login(client_ip(request)):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts, try again later",
        )

    result = run_login(
        LoginInput(username=form_data.username, password=form_data.password),
        user_repo,
        auth_adapter,
        clock,
    )
    if not result.success or result.user is None:
        if result.error == "Invalid credentials":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result.error)

    ttl_minutes = rules.auth.sessions.ttl_minutes
    access_token = create_access_token(
        data={"sub": str(result.user.id)},
        expires_delta=timedelta(minutes=ttl_minutes),
        now_utc=clock.now_utc(),
    )

    cookie = rules.auth.sessions.cookie
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=cookie.http_only,
        max_age=ttl_minutes * 60,
        expires=ttl_minutes * 60,
        samesite=cookie.same_site,
        secure=cookie.secure,
    )

    return Token(access_token=access_token, token_type="bearer")


@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    """Log out by clearing the cookie."""
    response.delete_cookie(key="access_token")
    return {"status": "success"}


@router.get("/me")
def read_users_me(
    current_user: AppUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Get current account info."""
    return {
        "id": str(current_user.id),
        "username": current_user.username,
        "email": current_user.email,
        "is_admin": current_user.is_admin,
        "roles": current_user.roles,
        "expires_at": current_user.expires_at.isoformat() if current_user.expires_at else None,
    }
