"""
Field-level validation for JSON:API resource documents.

Each resource type has a validator object that enumerates its fields and
the constraint list applied to each one, e.g.::

    "slug": [Required(), String(), Unique(Post, "slug")]

Rules run in order per field and stop at the first failure for that
field; failures across fields are collected and raised together as one
``ValidationFailure`` (422) with a source pointer per field.  A field that
is absent from the document is only checked by ``Required``.
"""
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Conflict, ValidationFailure
from app.models import MAX_ID, Post, Tag
from app.schemas import ResourceObject

_MISSING = object()


def _label(field: str) -> str:
    return field.replace("_", " ")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class Rule:
    #: Relationship rules read from ``data.relationships`` instead of attributes.
    relationship = False

    async def check(self, db: AsyncSession, field: str, value: Any, ignore_id: int | None) -> str | None:
        raise NotImplementedError


class Required(Rule):
    async def check(self, db, field, value, ignore_id):
        if value is _MISSING or value is None or (isinstance(value, str) and not value.strip()):
            return f"The {_label(field)} field is required."
        if isinstance(value, dict) and value.get("data") is None:
            return f"The {_label(field)} field is required."
        return None


class Nullable(Rule):
    """Marker: a null value passes and skips the remaining rules."""

    async def check(self, db, field, value, ignore_id):
        return None


class String(Rule):
    def __init__(self, max_length: int | None = None) -> None:
        self.max_length = max_length

    async def check(self, db, field, value, ignore_id):
        if not isinstance(value, str):
            return f"The {_label(field)} must be a string."
        if self.max_length is not None and len(value) > self.max_length:
            return f"The {_label(field)} may not be greater than {self.max_length} characters."
        return None


class Boolean(Rule):
    async def check(self, db, field, value, ignore_id):
        if not isinstance(value, bool):
            return f"The {_label(field)} field must be true or false."
        return None


class Unique(Rule):
    """Value must not already exist in *column* of *model* (ignoring ``ignore_id``)."""

    def __init__(self, model, column: str) -> None:
        self.model = model
        self.column = column

    async def check(self, db, field, value, ignore_id):
        q = select(func.count()).select_from(self.model).where(
            getattr(self.model, self.column) == value
        )
        if ignore_id is not None:
            q = q.where(self.model.id != ignore_id)
        if (await db.execute(q)).scalar_one() > 0:
            return f"The {_label(field)} has already been taken."
        return None


def _parse_identifier(item: Any, type_: str) -> int | None:
    if not isinstance(item, dict) or item.get("type") != type_:
        return None
    raw = item.get("id")
    # isdigit() alone admits non-ASCII digits such as "²" that int() rejects.
    if not isinstance(raw, str) or not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value <= MAX_ID else None


async def _missing_ids(db: AsyncSession, model, ids: set[int]) -> set[int]:
    if not ids:
        return set()
    result = await db.execute(select(model.id).where(model.id.in_(ids)))
    return ids - set(result.scalars().all())


class ToMany(Rule):
    """``{"data": [identifier, ...]}`` naming existing resources of one type."""

    relationship = True

    def __init__(self, type_: str, model) -> None:
        self.type_ = type_
        self.model = model

    async def check(self, db, field, value, ignore_id):
        if not isinstance(value, dict) or not isinstance(value.get("data"), list):
            return f"The {_label(field)} field must be a to-many relationship containing {self.type_} resources."
        ids = [_parse_identifier(item, self.type_) for item in value["data"]]
        if None in ids:
            return f"The {_label(field)} field must be a to-many relationship containing {self.type_} resources."
        if await _missing_ids(db, self.model, set(ids)):
            return f"The {_label(field)} field contains resources that do not exist."
        return None


class ToOne(Rule):
    """``{"data": identifier}`` naming an existing resource."""

    relationship = True

    def __init__(self, type_: str, model) -> None:
        self.type_ = type_
        self.model = model

    async def check(self, db, field, value, ignore_id):
        if not isinstance(value, dict) or "data" not in value:
            return f"The {_label(field)} field must be a to-one relationship containing {self.type_} resources."
        if value["data"] is None:
            return None
        resource_id = _parse_identifier(value["data"], self.type_)
        if resource_id is None:
            return f"The {_label(field)} field must be a to-one relationship containing {self.type_} resources."
        if await _missing_ids(db, self.model, {resource_id}):
            return f"The {_label(field)} field contains a resource that does not exist."
        return None


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

class ResourceValidator:
    resource_type: str = ""
    rules: dict[str, list[Rule]] = {}

    def is_relationship(self, field: str) -> bool:
        return any(rule.relationship for rule in self.rules[field])

    def check_envelope(self, resource: ResourceObject, resource_id: int | None = None) -> None:
        """JSON:API requires 409 when the type (or id on update) does not match the endpoint."""
        if resource.type != self.resource_type:
            raise Conflict(
                f"Resource type {resource.type!r} does not match endpoint type {self.resource_type!r}",
                source={"pointer": "/data/type"},
            )
        if resource_id is not None and resource.id is not None and resource.id != str(resource_id):
            raise Conflict(
                "Resource id does not match the endpoint",
                source={"pointer": "/data/id"},
            )

    async def validate(
        self,
        db: AsyncSession,
        resource: ResourceObject,
        *,
        existing: dict | None = None,
        ignore_id: int | None = None,
    ) -> dict:
        """
        Validate *resource* and return the accepted field values.

        On update, *existing* holds the stored attribute values; the
        document's attributes are merged over them before the rules run, so
        required fields need not be resent.  Relationship fields return the
        raw ``{"data": ...}`` object and are only present when supplied.
        """
        self.check_envelope(resource, ignore_id)
        attributes = dict(existing or {})
        attributes.update(resource.attributes)

        failures: list[tuple[str, str]] = []
        values: dict = {}
        for field, rules in self.rules.items():
            relationship = self.is_relationship(field)
            source = resource.relationships if relationship else attributes
            value = source.get(field, _MISSING)
            pointer = f"/data/{'relationships' if relationship else 'attributes'}/{field}"

            for rule in rules:
                if isinstance(rule, Required):
                    message = await rule.check(db, field, value, ignore_id)
                elif value is _MISSING:
                    break
                elif isinstance(rule, Nullable):
                    if value is None:
                        break
                    continue
                else:
                    message = await rule.check(db, field, value, ignore_id)
                if message:
                    failures.append((message, pointer))
                    break
            else:
                if value is not _MISSING:
                    values[field] = value

        if failures:
            raise ValidationFailure(failures)
        return values


class PostValidator(ResourceValidator):
    resource_type = "posts"
    rules = {
        "content": [Required(), String()],
        "is_published": [Nullable(), Boolean()],
        "slug": [Required(), String(max_length=350), Unique(Post, "slug")],
        "tags": [ToMany("tags", Tag)],
        "title": [Required(), String(max_length=300)],
    }


class CommentValidator(ResourceValidator):
    resource_type = "comments"
    rules = {
        "content": [Required(), String()],
        "is_published": [Nullable(), Boolean()],
        "post": [Required(), ToOne("posts", Post)],
    }


def relationship_ids(value: dict) -> list[int]:
    """Ids from a validated to-many relationship object, in document order."""
    return [int(item["id"]) for item in value["data"]]


def relationship_id(value: dict) -> int | None:
    """Id from a validated to-one relationship object (``None`` when cleared)."""
    return int(value["data"]["id"]) if value["data"] is not None else None
