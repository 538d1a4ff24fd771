from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PageParams, ResourceId, get_actor
from app.jsonapi import (
    API_PREFIX,
    JsonApiResponse,
    comment_resource,
    document,
    identifier,
    paginated_document,
    post_resource,
    tag_resource,
)
from app.policies import Actor
from app.schemas import ResourceDocument
from app.services import comment_service, post_service

router = APIRouter(prefix=f"{API_PREFIX}/posts", tags=["posts"])


def _base(request: Request) -> str:
    return str(request.base_url)


def _related_url(request: Request, post_id: int, name: str) -> str:
    return f"{_base(request).rstrip('/')}{API_PREFIX}/posts/{post_id}/{name}"


@router.get("")
async def list_posts(
    request: Request,
    page: PageParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await post_service.list_posts(db, actor, page)
    return JsonApiResponse(paginated_document(
        [post_resource(p, _base(request)) for p in result.items],
        request.url, result.number, result.size, result.total,
    ))


@router.get("/{post_id}")
async def get_post(
    post_id: ResourceId,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.get_post(db, post_id, actor)
    return JsonApiResponse(document(post_resource(post, _base(request))))


@router.post("", status_code=201)
async def create_post(
    body: ResourceDocument,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.create_post(db, body.data, actor)
    resource = post_resource(post, _base(request))
    return JsonApiResponse(
        document(resource),
        status_code=201,
        headers={"Location": resource["links"]["self"]},
    )


@router.patch("/{post_id}")
async def update_post(
    post_id: ResourceId,
    body: ResourceDocument,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.update_post(db, post_id, body.data, actor)
    return JsonApiResponse(document(post_resource(post, _base(request))))


# ---------------------------------------------------------------------------
# Comments of a post
# ---------------------------------------------------------------------------

@router.get("/{post_id}/relationships/comments")
async def list_comment_identifiers(
    post_id: ResourceId,
    request: Request,
    page: PageParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.list_comments(db, post_id, actor, page)
    return JsonApiResponse(paginated_document(
        [identifier("comments", c["id"]) for c in result.items],
        request.url, result.number, result.size, result.total,
        links={
            "self": str(request.url),
            "related": _related_url(request, post_id, "comments"),
        },
    ))


@router.get("/{post_id}/comments")
async def list_comments(
    post_id: ResourceId,
    request: Request,
    page: PageParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await comment_service.list_comments(db, post_id, actor, page)
    return JsonApiResponse(paginated_document(
        [comment_resource(c, _base(request)) for c in result.items],
        request.url, result.number, result.size, result.total,
    ))


# ---------------------------------------------------------------------------
# Tags of a post
# ---------------------------------------------------------------------------

@router.get("/{post_id}/relationships/tags")
async def list_tag_identifiers(
    post_id: ResourceId,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    tags = await post_service.get_post_tags(db, post_id, actor)
    return JsonApiResponse(document(
        [identifier("tags", t["id"]) for t in tags],
        links={
            "self": str(request.url),
            "related": _related_url(request, post_id, "tags"),
        },
    ))


@router.get("/{post_id}/tags")
async def list_tags(
    post_id: ResourceId,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    tags = await post_service.get_post_tags(db, post_id, actor)
    return JsonApiResponse(document([tag_resource(t, _base(request)) for t in tags]))
