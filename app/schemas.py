from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- JSON:API request documents ---
#
# These models only check the document envelope.  Field-level rules for
# posts and comments live in app.validation so every failing attribute is
# reported together with a JSON:API source pointer.

class ResourceObject(BaseModel):
    type: str
    id: str | None = None
    attributes: dict[str, Any] = {}
    relationships: dict[str, Any] = {}
    model_config = ConfigDict(extra="ignore")


class ResourceDocument(BaseModel):
    data: ResourceObject


# --- User ---

class UserAttributes(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    display_name: str | None = Field(None, max_length=150)


class UserResourceObject(BaseModel):
    type: str
    attributes: UserAttributes


class UserDocument(BaseModel):
    data: UserResourceObject


# --- Tag ---

class TagAttributes(BaseModel):
    name: str = Field(min_length=1, max_length=50)


class TagResourceObject(BaseModel):
    type: str
    attributes: TagAttributes


class TagDocument(BaseModel):
    data: TagResourceObject


# --- Paginated service results ---

class CommentPage(BaseModel):
    """One page of comments plus what a client needs to navigate."""

    items: list[dict]
    total: int
    number: int
    size: int


class PostPage(BaseModel):
    items: list[dict]
    total: int
    number: int
    size: int
