"""
Tag service — tags are shared labels referenced by posts through the
``tags`` to-many relationship.  They are created explicitly; the post
validator rejects identifiers of tags that do not exist.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFound
from app.models import Tag
from app.policies import Actor, require_authenticated
from app.schemas import TagAttributes


def tag_to_dict(tag: Tag) -> dict:
    return {"id": tag.id, "name": tag.name}


async def list_tags(db: AsyncSession) -> list[dict]:
    """All tags, alphabetically."""
    result = await db.execute(select(Tag).order_by(Tag.name.asc()))
    return [tag_to_dict(t) for t in result.scalars().all()]


async def get_tag(db: AsyncSession, tag_id: int) -> dict:
    tag = (await db.execute(select(Tag).where(Tag.id == tag_id))).scalar_one_or_none()
    if tag is None:
        raise NotFound(f"Tag {tag_id} not found")
    return tag_to_dict(tag)


async def create_tag(db: AsyncSession, data: TagAttributes, actor: Actor) -> dict:
    """
    Create a tag.  Name uniqueness is enforced by the database; the router
    translates the integrity error into a 409.
    """
    require_authenticated(actor)
    tag = Tag(name=data.name)
    db.add(tag)
    await db.flush()
    return tag_to_dict(tag)
