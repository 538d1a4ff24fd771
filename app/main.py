import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.cache import cache
from app.config import settings
from app.errors import register_exception_handlers
from app.middleware import RequestMetricsMiddleware
from app.routers import comments, posts, tags, users

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    try:
        await cache.connect()
    except Exception as exc:
        # The API serves every request straight from the database without Redis.
        logger.warning("Cache unavailable at startup: %s", exc)
    yield
    await cache.disconnect()


app = FastAPI(
    title="Blog JSON:API",
    description="JSON:API backend for posts, comments, users and tags",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestMetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(users.router)
app.include_router(tags.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0", "cache": cache.stats}
