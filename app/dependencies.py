from typing import Annotated

from fastapi import Depends, Path, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.errors import Unauthorized
from app.models import MAX_ID, User
from app.policies import ANONYMOUS, Actor
from app.security import decode_access_token

# Path ids outside the primary key range cannot name a row; they fail
# validation and are reported as 404.
ResourceId = Annotated[int, Path(ge=1, le=MAX_ID)]


class PageParams:
    """
    Reusable FastAPI dependency that parses JSON:API pagination query
    parameters.

    Usage in a router::

        @router.get("/posts")
        async def list_posts(page: PageParams = Depends(PageParams)):
            ...

    Attributes
    ----------
    number:
        1-based page number taken from ``page[number]`` (1 to ``MAX_ID``).
    size:
        Items per page from ``page[size]``; falls back to
        ``settings.DEFAULT_PAGE_SIZE`` and is clamped to
        ``settings.MAX_PAGE_SIZE``.
    offset:
        Computed SQL OFFSET derived from *number* and *size*.
    """

    def __init__(
        self,
        number: int = Query(
            1,
            alias="page[number]",
            ge=1,
            le=MAX_ID,
            description="Page number (1-based).",
        ),
        size: int | None = Query(
            None,
            alias="page[size]",
            ge=1,
            description="Number of items returned per page.",
        ),
    ) -> None:
        self.number = number
        self.size = min(size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

    @classmethod
    def of(cls, number: int = 1, size: int | None = None) -> "PageParams":
        """Build page parameters outside a request (services, scripts, tests)."""
        return cls(number=number, size=size)

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page number and size."""
        return (self.number - 1) * self.size


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("Malformed Authorization header")
    return parts[1]


async def get_actor(request: Request, db: AsyncSession = Depends(get_db)) -> Actor:
    """
    Resolve the requesting actor.

    No Authorization header means an anonymous actor; a header that does
    not carry a valid token for an existing user is rejected with 401.
    """
    token = _bearer_token(request)
    if token is None:
        return ANONYMOUS

    user_id = decode_access_token(token)
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise Unauthorized("Could not validate credentials")
    return Actor(user_id=user_id)
