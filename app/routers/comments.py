from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import ResourceId, get_actor
from app.jsonapi import API_PREFIX, JsonApiResponse, comment_resource, document
from app.policies import Actor
from app.schemas import ResourceDocument
from app.services import comment_service

router = APIRouter(prefix=f"{API_PREFIX}/comments", tags=["comments"])


@router.get("/{comment_id}")
async def get_comment(
    comment_id: ResourceId,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.get_comment(db, comment_id, actor)
    return JsonApiResponse(document(comment_resource(comment, str(request.base_url))))


@router.post("", status_code=201)
async def create_comment(
    body: ResourceDocument,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, body.data, actor)
    resource = comment_resource(comment, str(request.base_url))
    return JsonApiResponse(
        document(resource),
        status_code=201,
        headers={"Location": resource["links"]["self"]},
    )
