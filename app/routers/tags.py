from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import ResourceId, get_actor
from app.errors import Conflict
from app.jsonapi import API_PREFIX, JsonApiResponse, document, tag_resource
from app.policies import Actor
from app.schemas import TagDocument
from app.services import tag_service

router = APIRouter(prefix=f"{API_PREFIX}/tags", tags=["tags"])


@router.get("")
async def list_tags(request: Request, db: AsyncSession = Depends(get_db)):
    tags = await tag_service.list_tags(db)
    return JsonApiResponse(document([tag_resource(t, str(request.base_url)) for t in tags]))


@router.get("/{tag_id}")
async def get_tag(tag_id: ResourceId, request: Request, db: AsyncSession = Depends(get_db)):
    tag = await tag_service.get_tag(db, tag_id)
    return JsonApiResponse(document(tag_resource(tag, str(request.base_url))))


@router.post("", status_code=201)
async def create_tag(
    body: TagDocument,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    if body.data.type != "tags":
        raise Conflict("Resource type must be 'tags'", source={"pointer": "/data/type"})
    try:
        tag = await tag_service.create_tag(db, body.data.attributes, actor)
    except IntegrityError:
        raise Conflict(f"Tag {body.data.attributes.name!r} already exists")
    resource = tag_resource(tag, str(request.base_url))
    return JsonApiResponse(
        document(resource),
        status_code=201,
        headers={"Location": resource["links"]["self"]},
    )
