"""
Post service — business logic for the Post aggregate.

Design notes
------------
- Visibility is decided by ``app.policies``; this module only loads rows
  and asks the policy.  ``find_post`` is the single place a post id is
  resolved, so every caller gets the same NotFound behaviour.
- Writes go through ``PostValidator`` before anything touches the
  session; authorization is checked before validation.
- ``selectinload(Post.tags)`` is used wherever the tag relationship is
  serialised (relationships are ``lazy="noload"`` on the model).
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.cache import cache
from app.dependencies import PageParams
from app.errors import NotFound, ValidationFailure
from app.jsonapi import isoformat
from app.models import Post, Tag
from app.policies import (
    Actor,
    authorize_view,
    authorize_write,
    can_update_post,
    can_view_post,
    require_authenticated,
)
from app.schemas import PostPage, ResourceObject
from app.services.tag_service import tag_to_dict
from app.validation import PostValidator, relationship_ids

logger = logging.getLogger(__name__)

# Attributes a client may set on create / update.
_EDITABLE_ATTRIBUTES = ("title", "slug", "content", "is_published")

_validator = PostValidator()


def post_to_dict(post: Post) -> dict:
    """Serialise a Post (tags loaded) to a plain dict."""
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "is_published": post.is_published,
        "published_at": isoformat(post.published_at),
        "created_at": isoformat(post.created_at),
        "updated_at": isoformat(post.updated_at),
        "author_id": post.author_id,
        "tag_ids": sorted(tag.id for tag in post.tags),
    }


async def _load_tags(db: AsyncSession, tag_ids: list[int]) -> list[Tag]:
    if not tag_ids:
        return []
    result = await db.execute(select(Tag).where(Tag.id.in_(tag_ids)).order_by(Tag.id))
    return list(result.scalars().all())


def _slug_taken() -> ValidationFailure:
    return ValidationFailure([("The slug has already been taken.", "/data/attributes/slug")])


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def find_post(db: AsyncSession, post_id: int, *, with_tags: bool = False) -> Post:
    """Return the Post for *post_id* or raise NotFound.  No visibility check."""
    q = select(Post).where(Post.id == post_id)
    if with_tags:
        q = q.options(selectinload(Post.tags))
    post = (await db.execute(q)).scalar_one_or_none()
    if post is None:
        raise NotFound(f"Post {post_id} not found")
    return post


async def get_visible_post(db: AsyncSession, post_id: int, actor: Actor, *, with_tags: bool = False) -> Post:
    """Resolve *post_id* and apply the visibility rule (404, then 401)."""
    post = await find_post(db, post_id, with_tags=with_tags)
    authorize_view(can_view_post(post, actor))
    return post


async def get_post(db: AsyncSession, post_id: int, actor: Actor) -> dict:
    post = await get_visible_post(db, post_id, actor, with_tags=True)
    return post_to_dict(post)


async def get_post_tags(db: AsyncSession, post_id: int, actor: Actor) -> list[dict]:
    post = await get_visible_post(db, post_id, actor, with_tags=True)
    return [tag_to_dict(tag) for tag in sorted(post.tags, key=lambda t: t.id)]


async def list_posts(db: AsyncSession, actor: Actor, page: PageParams) -> PostPage:
    """
    Return one page of the posts visible to *actor*: every published post
    plus the actor's own drafts, in ascending id order.
    """
    visible = Post.is_published.is_(True)
    if not actor.is_anonymous:
        visible = or_(visible, Post.author_id == actor.user_id)

    total: int = (
        await db.execute(select(func.count()).select_from(Post).where(visible))
    ).scalar_one()

    q = (
        select(Post)
        .where(visible)
        .options(selectinload(Post.tags))
        .order_by(Post.id.asc())
        .offset(page.offset)
        .limit(page.size)
    )
    posts = (await db.execute(q)).scalars().all()
    return PostPage(
        items=[post_to_dict(p) for p in posts],
        total=total,
        number=page.number,
        size=page.size,
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, resource: ResourceObject, actor: Actor) -> dict:
    """
    Create a post authored by *actor*.

    ``published_at`` is stamped when the post is created already
    published.  A slug collision that slips past validation (concurrent
    insert) is reported as the same 422 slug error.
    """
    require_authenticated(actor)
    values = await _validator.validate(db, resource)

    post = Post(
        title=values["title"],
        slug=values["slug"],
        content=values["content"],
        is_published=bool(values.get("is_published")),
        author_id=actor.user_id,
    )
    post.tags = await _load_tags(db, relationship_ids(values["tags"]) if "tags" in values else [])
    if post.is_published:
        post.published_at = datetime.now(timezone.utc)

    db.add(post)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise _slug_taken() from exc

    logger.info("Post %d created by user %d", post.id, actor.user_id)
    return post_to_dict(post)


async def update_post(db: AsyncSession, post_id: int, resource: ResourceObject, actor: Actor) -> dict:
    """
    Partially update a post.  Only its author may do so.

    Supplied attributes are merged over the stored ones and the whole set
    is re-validated; the slug uniqueness check ignores this post.  A
    ``tags`` relationship in the document replaces the current tags.
    """
    post = await find_post(db, post_id, with_tags=True)
    authorize_write(can_update_post(post, actor), actor)

    existing = {field: getattr(post, field) for field in _EDITABLE_ATTRIBUTES}
    values = await _validator.validate(db, resource, existing=existing, ignore_id=post.id)

    for field in _EDITABLE_ATTRIBUTES:
        if field in values:
            setattr(post, field, values[field])

    # Stamp published_at the first time the post is published.
    if post.is_published and not post.published_at:
        post.published_at = datetime.now(timezone.utc)

    if "tags" in values:
        post.tags = await _load_tags(db, relationship_ids(values["tags"]))

    try:
        await db.flush()
    except IntegrityError as exc:
        raise _slug_taken() from exc

    cache.invalidate_post_comments_after_commit(db, post.id)
    return post_to_dict(post)
