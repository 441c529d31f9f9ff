from datetime import timedelta
from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm

import auth_utils
import crud
from config import settings
from deps import CurrentUserDep, SessionDep
from schemas import Token, User, UserCreate
from service_result import ErrorKind

auth_router = APIRouter(tags=["auth"])
log = logging.getLogger(__name__)


@auth_router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, db_session: SessionDep):
    """Create a business owner, or a customer invited by one."""
    if await crud.get_user_by_email(db_session, email=user_in.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": ErrorKind.ALREADY_EXISTS.value, "message": "Email already registered"},
        )

    if user_in.invited_by_id is not None:
        inviter = await crud.get_user(db_session, user_in.invited_by_id)
        if inviter is None or inviter.role != "business_owner":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": ErrorKind.INVALID_RECIPIENT.value, "message": "Inviting business owner not found"},
            )

    if user_in.currency:
        user_in.currency = user_in.currency.upper()
        if user_in.currency not in settings.WALLET_SUPPORTED_CURRENCIES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": ErrorKind.INVALID_ACCOUNT.value, "message": f"Unsupported currency {user_in.currency}"},
            )

    user = await crud.create_user(db_session, user_in)
    log.info(f"Registered {user.role} {user.email}")
    return user


@auth_router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db_session: SessionDep,
    response: Response,
):
    user = await crud.get_user_by_email(db_session, email=form_data.username.strip())
    if not user or not auth_utils.verify_password(form_data.password, user.hashed_password):
        log.warning(f"Failed login for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = auth_utils.create_access_token(
        data={"sub": user.email}, expires_delta=access_token_expires
    )

    # The WebSocket endpoint also accepts the token from this cookie
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="Lax",
        path="/",
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "full_name": user.full_name,
    }


@auth_router.get("/me", response_model=User)
async def read_current_user(current_user: CurrentUserDep):
    return current_user
