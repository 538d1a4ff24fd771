import json
import logging

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)

# session.info key holding post ids whose comment pages are dropped on commit.
_PENDING_POSTS = "cache.pending_post_comments"


def comment_page_key(post_id: int, number: int, size: int) -> str:
    """Key for the public (published-only) view of one page of a post's comments."""
    return f"posts:{post_id}:comments:public:{number}:{size}"


class CacheManager:
    """
    Cache-aside store backed by Redis.

    Only views that are identical for every non-author requester are
    cached, so keys never need to encode the actor.  Every method is a
    no-op (reads miss) when Redis is not connected or a call fails; a
    cache problem never fails a request.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    async def connect(self) -> None:
        """Open the connection pool at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, comment page cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | None:
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching *pattern* (SCAN, not KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    async def invalidate_post_comments(self, post_id: int) -> None:
        """Drop every cached comment page of *post_id* after a write that can change it."""
        await self.delete_pattern(f"posts:{post_id}:comments:*")

    def invalidate_post_comments_after_commit(self, session, post_id: int) -> None:
        """
        Queue *post_id*'s comment pages for invalidation once *session*
        commits.  Until then readers still see the old rows, and a page
        cached from them must not outlive the commit.
        """
        session.info.setdefault(_PENDING_POSTS, set()).add(post_id)

    async def run_pending_invalidations(self, session) -> None:
        """Called by the session owner right after a successful commit."""
        for post_id in sorted(session.info.pop(_PENDING_POSTS, ())):
            await self.invalidate_post_comments(post_id)

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "connected": self.connected,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
