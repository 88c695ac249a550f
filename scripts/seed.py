"""Database seeder for local development: demo users, articles, tags and threads."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from blog_backend.auth import create_access_token
from blog_backend.database import engine, async_session, Base
from blog_backend.models import Article, ArticleTag, Category, Comment, Tag, User, UserProfile
from blog_backend.roles import Role

TAGS = ["python", "fastapi", "postgresql", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]

CATEGORIES = ["engineering", "tutorials", "news", "opinion"]

# username -> roles carried in the printed token
ACCOUNTS = {
    "admin": (Role.ADMIN,),
    "author_alice": (Role.AUTHOR,),
    "author_bob": (Role.AUTHOR,),
    "reader": (Role.USER,),
}


async def seed(small: bool = False):
    num_articles = 40 if small else 2000
    max_comments = 3 if small else 8

    print(f"Seeding: {len(ACCOUNTS)} users, {num_articles} articles, up to {max_comments} comments each")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        tags = [Tag(name=name.replace("-", " ").title(), slug=name) for name in TAGS]
        categories = [Category(name=name.title(), slug=name) for name in CATEGORIES]
        session.add_all(tags + categories)
        await session.flush()
        print(f"  Created {len(tags)} tags, {len(categories)} categories")

        users = {}
        for username in ACCOUNTS:
            user = User(username=username, email=f"{username}@example.com")
            session.add(user)
            await session.flush()
            session.add(UserProfile(
                user_id=user.id,
                display_name=username.replace("_", " ").title(),
                bio=f"Seeded account {username}.",
            ))
            users[username] = user
        await session.flush()

        authors = [users["author_alice"], users["author_bob"]]
        commenters = list(users.values())
        total_comments = 0
        for i in range(num_articles):
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            topic = random.choice(TAGS)
            is_published = random.random() > 0.15  # 85% published
            article = Article(
                title=f"Article {i}: Getting more out of {topic}",
                slug=f"article-{i}-{topic}",
                content=f"This is the full content of article {i} about {topic}. " * 20,
                is_published=is_published,
                is_deleted=random.random() < 0.03,
                published_at=created if is_published else None,
                created_at=created,
                author_id=random.choice(authors).id,
                category_id=random.choice(categories).id,
            )
            session.add(article)
            await session.flush()

            for tag in random.sample(tags, k=random.randint(1, 4)):
                session.add(ArticleTag(article_id=article.id, tag_id=tag.id))

            thread = []
            for _ in range(random.randint(0, max_comments)):
                # Roughly half the comments reply to an earlier one in the thread.
                parent = random.choice(thread) if thread and random.random() < 0.5 else None
                comment = Comment(
                    content=f"Comment on article {i}.",
                    article_id=article.id,
                    user_id=random.choice(commenters).id,
                    parent_comment_id=parent.id if parent else None,
                    created_at=created + timedelta(hours=len(thread) + 1),
                )
                session.add(comment)
                await session.flush()
                thread.append(comment)
            total_comments += len(thread)

            if (i + 1) % 500 == 0:
                print(f"  {i + 1} articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")
    print("\nBearer tokens:")
    for username, roles in ACCOUNTS.items():
        token = create_access_token(users[username].id, roles)
        print(f"  {username:<13} {'/'.join(r.value for r in roles):<7} {token}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (40 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
