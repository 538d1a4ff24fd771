"""
Comment service — visibility-filtered listing and creation of comments.

``list_comments`` is the read path behind both
``/posts/{id}/relationships/comments`` and ``/posts/{id}/comments``:

1. resolve the post (404 when unknown);
2. refuse an unpublished post to anyone but its author (401);
3. select the post's comments only, published ones unless the actor is
   the post's author;
4. order by ascending id and slice ``[(number - 1) * size, number * size)``.

The published-only view is the same for every non-author, so it is
cached per ``(post, page number, page size)`` and dropped whenever a
comment is added or the post is updated.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache, comment_page_key
from app.config import settings
from app.dependencies import PageParams
from app.errors import NotFound
from app.jsonapi import isoformat
from app.models import Comment
from app.policies import (
    Actor,
    authorize_view,
    can_view_comment,
    can_view_post,
    can_view_unpublished_comments,
    require_authenticated,
)
from app.schemas import CommentPage, ResourceObject
from app.services.post_service import find_post
from app.validation import CommentValidator, relationship_id

logger = logging.getLogger(__name__)

_validator = CommentValidator()


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "is_published": comment.is_published,
        "post_id": comment.post_id,
        "author_id": comment.author_id,
        "created_at": isoformat(comment.created_at),
        "updated_at": isoformat(comment.updated_at),
    }


async def list_comments(
    db: AsyncSession,
    post_id: int,
    actor: Actor,
    page: PageParams,
) -> CommentPage:
    """
    Return the page of *post_id*'s comments that *actor* may see.

    Raises NotFound for an unknown post and Unauthorized when the post is
    unpublished and *actor* is not its author.  Read-only.
    """
    post = await find_post(db, post_id)
    authorize_view(can_view_post(post, actor))

    include_unpublished = can_view_unpublished_comments(post, actor)
    cache_key = None
    if not include_unpublished:
        cache_key = comment_page_key(post.id, page.number, page.size)
        cached = await cache.get(cache_key)
        if cached:
            return CommentPage(**cached)

    filters = [Comment.post_id == post.id]
    if not include_unpublished:
        filters.append(Comment.is_published.is_(True))

    total: int = (
        await db.execute(select(func.count()).select_from(Comment).where(*filters))
    ).scalar_one()

    q = (
        select(Comment)
        .where(*filters)
        .order_by(Comment.id.asc())
        .offset(page.offset)
        .limit(page.size)
    )
    comments = (await db.execute(q)).scalars().all()

    result = CommentPage(
        items=[comment_to_dict(c) for c in comments],
        total=total,
        number=page.number,
        size=page.size,
    )
    if cache_key is not None:
        await cache.set(cache_key, result.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return result


async def get_comment(db: AsyncSession, comment_id: int, actor: Actor) -> dict:
    comment = (
        await db.execute(select(Comment).where(Comment.id == comment_id))
    ).scalar_one_or_none()
    if comment is None:
        raise NotFound(f"Comment {comment_id} not found")

    post = await find_post(db, comment.post_id)
    authorize_view(can_view_comment(comment, post, actor))
    return comment_to_dict(comment)


async def create_comment(db: AsyncSession, resource: ResourceObject, actor: Actor) -> dict:
    """
    Add a comment by *actor* to the post named in the ``post``
    relationship.  The post must be visible to the actor.
    """
    require_authenticated(actor)
    values = await _validator.validate(db, resource)

    post = await find_post(db, relationship_id(values["post"]))
    authorize_view(can_view_post(post, actor))

    comment = Comment(
        content=values["content"],
        is_published=bool(values.get("is_published")),
        post_id=post.id,
        author_id=actor.user_id,
    )
    db.add(comment)
    await db.flush()

    cache.invalidate_post_comments_after_commit(db, post.id)
    logger.info("Comment %d added to post %d by user %d", comment.id, post.id, actor.user_id)
    return comment_to_dict(comment)
