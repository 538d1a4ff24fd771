"""
JSON:API document builders.

Services hand back plain dicts (cache-friendly); this module turns them
into resource objects, resource-identifier objects and top-level
documents.  Links are absolute, rooted at the request's base URL.
"""
import math
from datetime import datetime, timezone

from fastapi.responses import JSONResponse
from starlette.datastructures import URL

MEDIA_TYPE = "application/vnd.api+json"
JSONAPI_OBJECT = {"version": "1.0"}
API_PREFIX = "/api/v1"


class JsonApiResponse(JSONResponse):
    media_type = MEDIA_TYPE


def isoformat(value: datetime | None) -> str | None:
    """
    Timestamp attribute value, always with a UTC offset.  Some backends
    (SQLite) hand stored timestamps back naive; those are UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _resource_url(base_url: str, type_: str, id_) -> str:
    return f"{base_url.rstrip('/')}{API_PREFIX}/{type_}/{id_}"


def identifier(type_: str, id_) -> dict:
    return {"type": type_, "id": str(id_)}


def _relationship(
    base_url: str,
    type_: str,
    id_,
    name: str,
    data=None,
    include_data: bool = False,
) -> dict:
    self_url = _resource_url(base_url, type_, id_)
    rel = {
        "links": {
            "self": f"{self_url}/relationships/{name}",
            "related": f"{self_url}/{name}",
        }
    }
    if include_data:
        rel["data"] = data
    return rel


# ---------------------------------------------------------------------------
# Resource objects
# ---------------------------------------------------------------------------

def post_resource(post: dict, base_url: str) -> dict:
    return {
        "type": "posts",
        "id": str(post["id"]),
        "attributes": {
            "title": post["title"],
            "slug": post["slug"],
            "content": post["content"],
            "is_published": post["is_published"],
            "published_at": post["published_at"],
            "created_at": post["created_at"],
            "updated_at": post["updated_at"],
        },
        "relationships": {
            "author": {"data": identifier("users", post["author_id"])},
            "comments": _relationship(base_url, "posts", post["id"], "comments"),
            "tags": _relationship(
                base_url, "posts", post["id"], "tags",
                [identifier("tags", tag_id) for tag_id in post["tag_ids"]], include_data=True,
            ),
        },
        "links": {"self": _resource_url(base_url, "posts", post["id"])},
    }


def comment_resource(comment: dict, base_url: str) -> dict:
    return {
        "type": "comments",
        "id": str(comment["id"]),
        "attributes": {
            "content": comment["content"],
            "is_published": comment["is_published"],
            "created_at": comment["created_at"],
            "updated_at": comment["updated_at"],
        },
        "relationships": {
            "post": {"data": identifier("posts", comment["post_id"])},
            "author": {"data": identifier("users", comment["author_id"])},
        },
        "links": {"self": _resource_url(base_url, "comments", comment["id"])},
    }


def user_resource(user: dict, base_url: str) -> dict:
    return {
        "type": "users",
        "id": str(user["id"]),
        "attributes": {
            "username": user["username"],
            "email": user["email"],
            "display_name": user["display_name"],
            "created_at": user["created_at"],
        },
        "links": {"self": _resource_url(base_url, "users", user["id"])},
    }


def tag_resource(tag: dict, base_url: str) -> dict:
    return {
        "type": "tags",
        "id": str(tag["id"]),
        "attributes": {"name": tag["name"]},
        "links": {"self": _resource_url(base_url, "tags", tag["id"])},
    }


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

def last_page(total: int, size: int) -> int:
    """Last 1-based page number; an empty set still has page 1."""
    return max(math.ceil(total / size), 1)


def page_meta(number: int, size: int, total: int, count: int) -> dict:
    """
    ``meta.page`` block: ``from``/``to`` are 1-based positions of the first
    and last item on this page, null when the page is empty.
    """
    offset = (number - 1) * size
    return {
        "currentPage": number,
        "from": offset + 1 if count else None,
        "lastPage": last_page(total, size),
        "perPage": size,
        "to": offset + count if count else None,
        "total": total,
    }


def page_links(url: URL, number: int, size: int, total: int) -> dict:
    """first/prev/next/last links; other query parameters are preserved."""
    last = last_page(total, size)

    def link(page_number: int) -> str:
        return str(url.include_query_params(**{
            "page[number]": page_number,
            "page[size]": size,
        }))

    links = {"first": link(1), "last": link(last)}
    if number > 1:
        links["prev"] = link(min(number - 1, last))
    if number < last:
        links["next"] = link(number + 1)
    return links


# ---------------------------------------------------------------------------
# Top-level documents
# ---------------------------------------------------------------------------

def document(data, *, links: dict | None = None, meta: dict | None = None) -> dict:
    doc = {"jsonapi": JSONAPI_OBJECT}
    if meta:
        doc["meta"] = meta
    if links:
        doc["links"] = links
    doc["data"] = data
    return doc


def error_document(errors: list[dict]) -> dict:
    return {"jsonapi": JSONAPI_OBJECT, "errors": errors}


def paginated_document(data: list, url: URL, number: int, size: int, total: int,
                       links: dict | None = None) -> dict:
    """Collection document with pagination links and ``meta.page``."""
    all_links = dict(links or {})
    all_links.update(page_links(url, number, size, total))
    return document(
        data,
        links=all_links,
        meta={"page": page_meta(number, size, total, len(data))},
    )
