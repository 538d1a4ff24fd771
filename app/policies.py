"""
Authorization policy for posts and comments.

Every check takes the resource and the requesting ``Actor`` and returns a
plain allow/deny boolean; services call ``authorize_view`` /
``authorize_write`` to turn a denial into the matching error.

Visibility rules
----------------
- A published post is visible to everyone; an unpublished post only to
  its author.
- A comment is visible when both it and its post are published, or when
  the requester is the post's author (who also sees unpublished comments).
- Hidden resources surface as 401 rather than 403.
"""
from dataclasses import dataclass

from app.errors import Forbidden, Unauthorized
from app.models import Comment, Post


@dataclass(frozen=True)
class Actor:
    """The requester: an authenticated user id, or anonymous (``None``)."""

    user_id: int | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


ANONYMOUS = Actor()


def is_post_author(post: Post, actor: Actor) -> bool:
    return not actor.is_anonymous and post.author_id == actor.user_id


def can_view_post(post: Post, actor: Actor) -> bool:
    return post.is_published or is_post_author(post, actor)


def can_view_unpublished_comments(post: Post, actor: Actor) -> bool:
    return is_post_author(post, actor)


def can_view_comment(comment: Comment, post: Post, actor: Actor) -> bool:
    if is_post_author(post, actor):
        return True
    return post.is_published and comment.is_published


def can_update_post(post: Post, actor: Actor) -> bool:
    return is_post_author(post, actor)


def authorize_view(allowed: bool) -> None:
    if not allowed:
        raise Unauthorized("This resource is not visible to the requester")


def authorize_write(allowed: bool, actor: Actor) -> None:
    if allowed:
        return
    if actor.is_anonymous:
        raise Unauthorized("Authentication is required")
    raise Forbidden("Only the author may modify this resource")


def require_authenticated(actor: Actor) -> None:
    if actor.is_anonymous:
        raise Unauthorized("Authentication is required")
