from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

import schemas
from auth_utils import get_password_hash
from models import User


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)

async def get_user_by_email(db: AsyncSession, email: str, options: list = None) -> Optional[User]:
    query = select(User).filter(User.email == email.lower())
    if options:
        query = query.options(*options)
    result = await db.execute(query)
    return result.scalars().first()

async def get_customers_of(db: AsyncSession, business_owner_id: int, skip: int = 0, limit: int = 200):
    result = await db.execute(
        select(User)
        .filter(User.invited_by_id == business_owner_id, User.role == "customer", User.is_active.is_(True))
        .order_by(User.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()

async def create_user(db: AsyncSession, user: schemas.UserCreate) -> User:
    db_user = User(
        full_name=user.full_name,
        email=user.email.lower(),
        phone=user.phone,
        hashed_password=get_password_hash(user.password),
        role=user.role,
        currency=user.currency,
        invited_by_id=user.invited_by_id,
        is_active=True,
    )
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    return db_user
