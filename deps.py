# deps.py
# Dependency injections for routes, authentication and admin validation.

import logging
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

import auth_utils
import crud
from cache_service import TTLCache
from database import SessionLocal
from models import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


# -----------------------
#  DATABASE DEPENDENCY
# -----------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session

SessionDep = Annotated[AsyncSession, Depends(get_db)]


# ------------------------------------------------
#  BEARER TOKEN HANDLING
# ------------------------------------------------
async def get_current_user(
    db: SessionDep,
    bearer_token: Annotated[Optional[str], Depends(oauth2_scheme)] = None,
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if bearer_token is None:
        logging.warning("Authentication failed: No token provided.")
        raise credentials_exception

    email = auth_utils.decode_access_token(bearer_token)
    if email is None:
        logging.warning("Authentication failed: Invalid or expired token.")
        raise credentials_exception

    user = await crud.get_user_by_email(db, email=email)
    if user is None:
        logging.warning(f"Authentication failed: User {email} not found.")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


# -----------------------
#  ADMIN CHECK
# -----------------------
async def get_current_admin_user(current_user: CurrentUserDep) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not an admin user"
        )
    return current_user

AdminUserDep = Annotated[User, Depends(get_current_admin_user)]


# -----------------------
#  APPLICATION-OWNED CACHE
# -----------------------
def get_summary_cache(request: Request) -> TTLCache:
    return request.app.state.summary_cache

SummaryCacheDep = Annotated[TTLCache, Depends(get_summary_cache)]
