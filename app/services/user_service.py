"""
User service — registration and lookup for the User aggregate.

Users are the authors of posts and comments; the id is the ``sub`` of
the bearer tokens that identify an actor.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound
from app.jsonapi import isoformat
from app.models import User
from app.schemas import UserAttributes


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "created_at": isoformat(user.created_at),
    }


async def get_user(db: AsyncSession, user_id: int) -> dict:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user_to_dict(user)


async def create_user(db: AsyncSession, data: UserAttributes) -> dict:
    """
    Create a new user.

    Email and username uniqueness is enforced at the database level; the
    router is responsible for translating integrity errors into 409
    responses.
    """
    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
    )
    db.add(user)
    await db.flush()
    return user_to_dict(user)
