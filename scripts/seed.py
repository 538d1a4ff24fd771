"""Populate a development database with users, tags, posts and comments.

Drops and recreates every table, then prints a bearer token per user so
the JSON:API endpoints can be exercised with curl / httpie.
"""
import argparse
import asyncio
import random
import time

from app.database import Base, async_session, engine
from app.models import Comment, Post, Tag, User
from app.security import create_access_token

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
        "performance", "security", "json-api", "sqlalchemy"]


async def seed(small: bool = False, seed_value: int | None = None) -> None:
    rng = random.Random(seed_value)
    num_users = 3 if small else 20
    num_posts = 10 if small else 500
    max_comments_per_post = 5 if small else 25

    print(f"Seeding: {num_users} users, {num_posts} posts, up to {max_comments_per_post} comments per post")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        tags = [Tag(name=name) for name in TAGS]
        session.add_all(tags)

        users = [
            User(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                display_name=f"User {i}",
            )
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()

        total_comments = 0
        for i in range(num_posts):
            published = rng.random() > 0.2  # 80% published
            post = Post(
                title=f"Post {i}: notes on {rng.choice(TAGS)}",
                slug=f"post-{i}",
                content=f"Body of post {i}. " * 10,
                is_published=published,
                author_id=rng.choice(users).id,
            )
            post.tags = rng.sample(tags, k=rng.randint(0, 3))
            session.add(post)
            await session.flush()

            for _ in range(rng.randint(0, max_comments_per_post)):
                session.add(Comment(
                    content=f"Comment on post {i}",
                    is_published=rng.random() > 0.3,
                    post_id=post.id,
                    author_id=rng.choice(users).id,
                ))
                total_comments += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Tags: {len(TAGS)}")
    print("\nBearer tokens:")
    for user in users:
        print(f"  {user.username}: {create_access_token(user.id)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (10 posts)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, seed_value=args.seed))


if __name__ == "__main__":
    main()
