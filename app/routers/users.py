from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import ResourceId
from app.errors import Conflict
from app.jsonapi import API_PREFIX, JsonApiResponse, document, user_resource
from app.schemas import UserDocument
from app.services import user_service

router = APIRouter(prefix=f"{API_PREFIX}/users", tags=["users"])


@router.get("/{user_id}")
async def get_user(user_id: ResourceId, request: Request, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    return JsonApiResponse(document(user_resource(user, str(request.base_url))))


@router.post("", status_code=201)
async def create_user(body: UserDocument, request: Request, db: AsyncSession = Depends(get_db)):
    if body.data.type != "users":
        raise Conflict("Resource type must be 'users'", source={"pointer": "/data/type"})
    try:
        user = await user_service.create_user(db, body.data.attributes)
    except IntegrityError:
        raise Conflict("A user with this username or email already exists")
    resource = user_resource(user, str(request.base_url))
    return JsonApiResponse(
        document(resource),
        status_code=201,
        headers={"Location": resource["links"]["self"]},
    )
