"""Auth routes: register, login, logout, me. Cookie session or bearer token."""
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.security import (
    create_access_token,
    create_session_token,
    hash_password,
    user_id_from_access_token,
    verify_password,
    verify_session_token,
)
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import CredentialsSchema, TokenOutSchema, UserOutSchema

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _resolve_user_id(request: Request) -> int | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return user_id_from_access_token(auth_header[7:].strip())
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return verify_session_token(token)
    return None


async def get_current_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Resolved identity for the request; 401 if missing or invalid."""
    user_id = _resolve_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def _login_response(response: Response, user: User) -> TokenOutSchema:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=create_session_token(user.id),
        max_age=settings.auth_cookie_max_age,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return TokenOutSchema(access_token=create_access_token(user.id), user_id=user.id)


@router.post("/register", response_model=TokenOutSchema, status_code=201)
async def register(
    body: CredentialsSchema,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    email = _normalize_email(body.email)
    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=422, detail="Invalid email")
    # bcrypt hard limit: 72 bytes (UTF-8)
    if len(body.password.encode("utf-8")) > 72:
        raise HTTPException(status_code=422, detail="Password too long")

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(email=email, hashed_password=hash_password(body.password))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return _login_response(response, user)


@router.post("/login", response_model=TokenOutSchema)
async def login(
    body: CredentialsSchema,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = await db.execute(select(User).where(User.email == _normalize_email(body.email)))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _login_response(response, user)


@router.post("/logout", status_code=204)
async def logout(response: Response):
    # path must match the one used in set_cookie()
    response.delete_cookie(settings.auth_cookie_name, path="/")


@router.get("/me", response_model=UserOutSchema)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user
