"""
Feature tests for listing the comments of a post.

``GET /api/v1/posts/{id}/relationships/comments`` returns resource
identifiers for the comments the requester may see:

- published post: its published comments, in id order, paginated;
- unpublished post: 401 for anyone but the author;
- the post's author: every comment, published or not;
- comments of other posts never leak into the listing.
"""
import httpx
import pytest
from httpx import AsyncClient


def _url(post) -> str:
    return f"/api/v1/posts/{post.id}/relationships/comments"


def _ids(resp) -> list[str]:
    return [item["id"] for item in resp.json()["data"]]


def _expected(comments) -> list[str]:
    return [str(c.id) for c in comments]


def _page_param(link: str, name: str) -> str:
    return httpx.URL(link).params[f"page[{name}]"]


# ---------------------------------------------------------------------------
# Published posts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_see_comments_of_public_post(async_client: AsyncClient, make_user, make_post, make_comments):
    """Every published comment of a published post is listed, in creation order."""
    user = await make_user()
    post = await make_post(user, is_published=True)
    comments = await make_comments(post, user, 10, is_published=True)

    resp = await async_client.get(_url(post))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/vnd.api+json")
    assert _ids(resp) == _expected(comments)
    assert all(item["type"] == "comments" for item in resp.json()["data"])


@pytest.mark.asyncio
async def test_see_comments_of_public_post_paginated(async_client: AsyncClient, make_user, make_post, make_comments):
    """page[size]=2&page[number]=2 over four comments returns the last two."""
    user = await make_user()
    post = await make_post(user, is_published=True)
    comments = await make_comments(post, user, 4, is_published=True)

    resp = await async_client.get(_url(post), params={"page[number]": 2, "page[size]": 2})

    assert resp.status_code == 200
    assert _ids(resp) == _expected(comments[2:])

    body = resp.json()
    assert body["meta"]["page"] == {
        "currentPage": 2,
        "from": 3,
        "lastPage": 2,
        "perPage": 2,
        "to": 4,
        "total": 4,
    }
    assert _page_param(body["links"]["prev"], "number") == "1"
    assert _page_param(body["links"]["first"], "number") == "1"
    assert _page_param(body["links"]["last"], "number") == "2"
    assert "next" not in body["links"]


@pytest.mark.asyncio
async def test_cannot_see_unpublished_comments_of_public_post(
    async_client: AsyncClient, make_user, make_post, make_comments
):
    """Only comments with index > 4 are published; exactly those are returned."""
    user = await make_user()
    post = await make_post(user, is_published=True)
    comments = await make_comments(post, user, 10, is_published=lambda index: index > 4)

    resp = await async_client.get(_url(post), params={"page[number]": 1, "page[size]": 10})

    assert resp.status_code == 200
    assert _ids(resp) == _expected(comments[5:])
    assert resp.json()["meta"]["page"]["total"] == 5


@pytest.mark.asyncio
async def test_cannot_see_comments_of_other_public_post(
    async_client: AsyncClient, make_user, make_post, make_comments
):
    """Comments of another post never appear in the listing."""
    user = await make_user()
    post = await make_post(user, is_published=True)
    comments = await make_comments(post, user, 2, is_published=True)
    other_post = await make_post(user, is_published=True)
    await make_comments(other_post, user, 2, is_published=True)

    resp = await async_client.get(_url(post), params={"page[number]": 1, "page[size]": 10})

    assert resp.status_code == 200
    assert _ids(resp) == _expected(comments)


# ---------------------------------------------------------------------------
# Unpublished posts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cannot_see_comments_of_protected_post(async_client: AsyncClient, make_user, make_post, make_comments):
    """An anonymous request for an unpublished post's comments is refused with 401."""
    user = await make_user()
    post = await make_post(user, is_published=False)
    await make_comments(post, user, 10, is_published=True)

    resp = await async_client.get(_url(post), params={"page[number]": 1, "page[size]": 10})

    assert resp.status_code == 401
    body = resp.json()
    assert "data" not in body
    assert body["errors"][0]["status"] == "401"


@pytest.mark.asyncio
async def test_other_user_cannot_see_comments_of_protected_post(
    async_client: AsyncClient, make_user, make_post, make_comments, auth_headers
):
    """Being authenticated is not enough: only the author may see an unpublished post."""
    author = await make_user()
    stranger = await make_user()
    post = await make_post(author, is_published=False)
    await make_comments(post, author, 3, is_published=True)

    resp = await async_client.get(_url(post), headers=auth_headers(stranger))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_author_sees_all_comments_of_own_unpublished_post(
    async_client: AsyncClient, make_user, make_post, make_comments, auth_headers
):
    """The author sees their draft's comments, unpublished ones included."""
    author = await make_user()
    post = await make_post(author, is_published=False)
    comments = await make_comments(post, author, 4, is_published=lambda index: index % 2 == 0)

    resp = await async_client.get(_url(post), headers=auth_headers(author))

    assert resp.status_code == 200
    assert _ids(resp) == _expected(comments)


@pytest.mark.asyncio
async def test_author_sees_unpublished_comments_of_own_public_post(
    async_client: AsyncClient, make_user, make_post, make_comments, auth_headers
):
    author = await make_user()
    reader = await make_user()
    post = await make_post(author, is_published=True)
    comments = await make_comments(post, reader, 3, is_published=lambda index: index == 0)

    author_resp = await async_client.get(_url(post), headers=auth_headers(author))
    reader_resp = await async_client.get(_url(post), headers=auth_headers(reader))

    assert _ids(author_resp) == _expected(comments)
    assert _ids(reader_resp) == _expected(comments[:1])


# ---------------------------------------------------------------------------
# Errors and edge cases
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_post_returns_404(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/posts/99999/relationships/comments")
    assert resp.status_code == 404
    assert resp.json()["errors"][0]["status"] == "404"


@pytest.mark.asyncio
async def test_non_numeric_post_id_returns_404(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/posts/not-a-post/relationships/comments")
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    "/api/v1/posts/99999999999999999999/relationships/comments",
    "/api/v1/posts/99999999999999999999/comments",
    "/api/v1/posts/99999999999999999999",
    "/api/v1/comments/99999999999999999999",
    "/api/v1/users/99999999999999999999",
    "/api/v1/tags/99999999999999999999",
])
async def test_id_beyond_key_range_returns_404(async_client: AsyncClient, path: str):
    resp = await async_client.get(path)
    assert resp.status_code == 404
    assert resp.json()["errors"][0]["status"] == "404"


@pytest.mark.asyncio
async def test_invalid_page_number_returns_400(async_client: AsyncClient, make_user, make_post):
    user = await make_user()
    post = await make_post(user)

    resp = await async_client.get(_url(post), params={"page[number]": 0})

    assert resp.status_code == 400
    error = resp.json()["errors"][0]
    assert error["source"] == {"parameter": "page[number]"}


@pytest.mark.asyncio
async def test_page_number_beyond_range_returns_400(async_client: AsyncClient, make_user, make_post, make_comments):
    user = await make_user()
    post = await make_post(user)
    await make_comments(post, user, 2)

    resp = await async_client.get(_url(post), params={"page[number]": 10**19, "page[size]": 10})

    assert resp.status_code == 400
    assert resp.json()["errors"][0]["source"] == {"parameter": "page[number]"}


@pytest.mark.asyncio
async def test_largest_page_number_is_an_empty_page(async_client: AsyncClient, make_user, make_post, make_comments):
    user = await make_user()
    post = await make_post(user)
    await make_comments(post, user, 2)

    resp = await async_client.get(_url(post), params={"page[number]": 2**31 - 1, "page[size]": 100})

    assert resp.status_code == 200
    assert resp.json()["data"] == []
    assert resp.json()["meta"]["page"]["total"] == 2


@pytest.mark.asyncio
async def test_invalid_token_returns_401(async_client: AsyncClient, make_user, make_post):
    user = await make_user()
    post = await make_post(user)

    resp = await async_client.get(_url(post), headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty(async_client: AsyncClient, make_user, make_post, make_comments):
    user = await make_user()
    post = await make_post(user)
    await make_comments(post, user, 3)

    resp = await async_client.get(_url(post), params={"page[number]": 5, "page[size]": 2})

    assert resp.status_code == 200
    body = resp.json()
    assert body["data"] == []
    assert body["meta"]["page"]["total"] == 3
    assert body["meta"]["page"]["from"] is None
    assert body["meta"]["page"]["to"] is None
    assert _page_param(body["links"]["prev"], "number") == "2"


@pytest.mark.asyncio
async def test_default_page_size_applies_without_parameters(
    async_client: AsyncClient, make_user, make_post, make_comments
):
    user = await make_user()
    post = await make_post(user)
    comments = await make_comments(post, user, 25)

    resp = await async_client.get(_url(post))

    body = resp.json()
    assert _ids(resp) == _expected(comments[:20])
    assert body["meta"]["page"]["perPage"] == 20
    assert _page_param(body["links"]["next"], "number") == "2"


@pytest.mark.asyncio
async def test_page_size_is_capped(async_client: AsyncClient, make_user, make_post):
    user = await make_user()
    post = await make_post(user)

    resp = await async_client.get(_url(post), params={"page[size]": 1000})

    assert resp.status_code == 200
    assert resp.json()["meta"]["page"]["perPage"] == 100


@pytest.mark.asyncio
async def test_repeated_requests_are_identical(async_client: AsyncClient, make_user, make_post, make_comments):
    user = await make_user()
    post = await make_post(user)
    await make_comments(post, user, 6, is_published=lambda index: index != 3)
    params = {"page[number]": 2, "page[size]": 2}

    first = await async_client.get(_url(post), params=params)
    second = await async_client.get(_url(post), params=params)

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()


# ---------------------------------------------------------------------------
# Document shape
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_relationship_document_links(async_client: AsyncClient, make_user, make_post, make_comments):
    user = await make_user()
    post = await make_post(user)
    await make_comments(post, user, 1)

    resp = await async_client.get(_url(post))

    body = resp.json()
    assert body["jsonapi"] == {"version": "1.0"}
    assert body["links"]["related"] == f"http://test/api/v1/posts/{post.id}/comments"
    assert body["links"]["self"].startswith(f"http://test/api/v1/posts/{post.id}/relationships/comments")
    assert set(body["data"][0]) == {"type", "id"}


@pytest.mark.asyncio
async def test_related_endpoint_returns_full_resources(
    async_client: AsyncClient, make_user, make_post, make_comments
):
    """``/posts/{id}/comments`` applies the same rules but returns resource objects."""
    user = await make_user()
    post = await make_post(user)
    comments = await make_comments(post, user, 3, is_published=lambda index: index > 0)

    resp = await async_client.get(f"/api/v1/posts/{post.id}/comments")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [item["id"] for item in data] == _expected(comments[1:])
    first = data[0]
    assert first["attributes"]["content"] == comments[1].content
    assert first["attributes"]["is_published"] is True
    assert first["relationships"]["post"]["data"] == {"type": "posts", "id": str(post.id)}
    assert first["relationships"]["author"]["data"] == {"type": "users", "id": str(user.id)}


@pytest.mark.asyncio
async def test_related_endpoint_protected_post_returns_401(
    async_client: AsyncClient, make_user, make_post, make_comments
):
    user = await make_user()
    post = await make_post(user, is_published=False)
    await make_comments(post, user, 2)

    resp = await async_client.get(f"/api/v1/posts/{post.id}/comments")
    assert resp.status_code == 401
