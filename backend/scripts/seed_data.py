"""Seed script to populate the local dev database with editorial test data.

Usage:
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate --force
    PYTHONPATH=backend/src python backend/scripts/seed_data.py clear

Content is pushed through the real version and workflow services, so the
seeded posts end up at different points of the default workflow.
"""

import argparse
import asyncio
from datetime import timedelta
from urllib.parse import urlparse

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings
from core.request_context import Actor, RequestSource
from models.base import utcnow
from models import (
    Category,
    ContentVersion,
    Page,
    Post,
    Setting,
    Tag,
    User,
    WorkflowTransition,
    post_categories,
    post_tags,
)
from services.version_service import version_service
from services.workflow_service import workflow_service

SEED_EMAIL_DOMAIN = '@seed.local'
LOCAL_HOSTS = {'localhost', '127.0.0.1', 'db', 'postgres'}

USERS = [
    {'email': 'writer@seed.local', 'name': 'Wendy Writer', 'roles': ['Writer']},
    {'email': 'editor@seed.local', 'name': 'Eddie Editor', 'roles': ['Editor']},
    {'email': 'admin@seed.local', 'name': 'Ada Admin', 'roles': ['Admin']},
]

CATEGORIES = ['Soups', 'Baking', 'Weeknight Dinners', 'Desserts', 'Techniques']
TAGS = ['vegetarian', 'vegan', 'gluten-free', 'quick', 'make-ahead', 'seasonal', 'one-pot']

# Status path each post is walked along after its first version is created.
# Every path starts from draft; an empty path leaves the post as a draft.
REVIEW_PATH = ['review']
APPROVE_PATH = ['review', 'copydesk', 'approved']
PUBLISH_PATH = ['review', 'copydesk', 'approved', 'published']
REJECT_PATH = ['review', 'rejected']

POSTS = [
    {
        'title': 'Roasted Tomato Soup',
        'post_type': 'recipe',
        'excerpt': 'Slow-roasted tomatoes blended with garlic and basil.',
        'content': (
            'Halve the tomatoes and roast them cut side up with whole garlic cloves '
            'until the edges char. Blend with stock and a handful of basil, then '
            'season to taste.'
        ),
        'categories': ['Soups'],
        'tags': ['vegetarian', 'seasonal'],
        'path': PUBLISH_PATH,
    },
    {
        'title': 'No-Knead Country Loaf',
        'post_type': 'recipe',
        'excerpt': 'A crusty loaf with almost no hands-on time.',
        'content': (
            'Mix flour, water, salt and a pinch of yeast. Leave overnight, shape, '
            'and bake in a preheated Dutch oven.'
        ),
        'categories': ['Baking'],
        'tags': ['vegan', 'make-ahead'],
        'path': PUBLISH_PATH,
    },
    {
        'title': 'Why You Should Salt Your Pasta Water',
        'post_type': 'article',
        'subtitle': 'And how much is enough',
        'excerpt': 'Seasoning from the inside out.',
        'content': (
            'Pasta absorbs water as it cooks, and salt along with it. Salting the '
            'water is the only chance to season the noodle itself.'
        ),
        'categories': ['Techniques'],
        'tags': ['quick'],
        'path': APPROVE_PATH,
    },
    {
        'title': 'One-Pot Chickpea Stew',
        'post_type': 'recipe',
        'excerpt': 'Pantry staples, one pot, thirty minutes.',
        'content': 'Sweat onions, add spices, chickpeas, tomatoes and greens. Simmer.',
        'categories': ['Weeknight Dinners'],
        'tags': ['vegan', 'one-pot', 'quick'],
        'path': REVIEW_PATH,
    },
    {
        'title': 'Brown Butter Blondies',
        'post_type': 'recipe',
        'excerpt': 'Nutty, chewy and very hard to stop eating.',
        'content': 'Brown the butter, cool slightly, then whisk with sugar and eggs.',
        'categories': ['Desserts'],
        'tags': ['make-ahead'],
        'path': REJECT_PATH,
    },
    {
        'title': 'Knife Skills 101',
        'post_type': 'article',
        'excerpt': 'The three cuts that cover most recipes.',
        'content': 'Start with a sharp knife and a stable board.',
        # No taxonomy: stays a draft since it could never be published
        'categories': [],
        'tags': [],
        'path': [],
        # Picked up by the scheduled copydesk task a day after seeding
        'submit_in_hours': 24,
    },
]

PAGES = [
    {
        'slug': 'about',
        'title': 'About Us',
        'content': 'We are a small team of cooks writing about food we love.',
        'path': PUBLISH_PATH,
    },
    {
        'slug': 'contact',
        'title': 'Contact',
        'content': 'Write to us at hello@example.com.',
        'path': REVIEW_PATH,
    },
]


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, roles=user.role_names, source=RequestSource.CLI)


async def create_users(session: AsyncSession) -> dict[str, User]:
    """Create the writer, editor and admin accounts."""
    users = {}
    for data in USERS:
        user = User(**data)
        session.add(user)
        users[data['roles'][0]] = user
    await session.flush()
    print(f'  Created {len(users)} users')
    return users


async def create_taxonomy(
    session: AsyncSession,
) -> tuple[dict[str, Category], dict[str, Tag]]:
    """Create categories and tags, keyed by name."""
    categories = {name: Category(name=name, slug=slugify(name)) for name in CATEGORIES}
    tags = {name: Tag(name=name, slug=slugify(name)) for name in TAGS}
    session.add_all([*categories.values(), *tags.values()])
    await session.flush()
    print(f'  Created {len(categories)} categories, {len(tags)} tags')
    return categories, tags


def slugify(name: str) -> str:
    return '-'.join(name.lower().split())


async def walk(
    session: AsyncSession,
    owner: Post | Page,
    path: list[str],
    users: dict[str, User],
) -> None:
    """Create the first version of an owner and move it along a status path."""
    version = await version_service.create_version(
        session, owner, note='Initial draft', created_by=users['Writer'].id,
    )
    for to_status in path:
        # Writers submit their own work; every later step is an editor's call
        user = users['Writer'] if to_status == 'review' else users['Editor']
        version = await workflow_service.transition(
            session, version, to_status, actor_for(user), comment='Seeded',
        )


async def create_posts(
    session: AsyncSession,
    users: dict[str, User],
    categories: dict[str, Category],
    tags: dict[str, Tag],
) -> None:
    """Create posts and walk each one along its workflow path."""
    for data in POSTS:
        post = Post(
            title=data['title'],
            subtitle=data.get('subtitle'),
            excerpt=data['excerpt'],
            content=data['content'],
            post_type=data['post_type'],
            author_id=users['Writer'].id,
            categories=[categories[name] for name in data['categories']],
            tags=[tags[name] for name in data['tags']],
        )
        session.add(post)
        await session.flush()
        await walk(session, post, data['path'], users)
        if 'submit_in_hours' in data:
            post.scheduled_copydesk_at = utcnow() + timedelta(hours=data['submit_in_hours'])
    print(f'  Created {len(POSTS)} posts')


async def create_pages(session: AsyncSession, users: dict[str, User]) -> None:
    """Create pages and walk each one along its workflow path."""
    for data in PAGES:
        page = Page(slug=data['slug'], title=data['title'], content=data['content'])
        session.add(page)
        await session.flush()
        await walk(session, page, data['path'], users)
    print(f'  Created {len(PAGES)} pages')


async def clear_data(session: AsyncSession) -> None:
    """Delete all editorial content and the seed users."""
    transition_count = (await session.execute(delete(WorkflowTransition))).rowcount
    version_count = (await session.execute(delete(ContentVersion))).rowcount
    await session.execute(delete(post_tags))
    await session.execute(delete(post_categories))
    post_count = (await session.execute(delete(Post))).rowcount
    page_count = (await session.execute(delete(Page))).rowcount
    await session.execute(delete(Tag))
    await session.execute(delete(Category))
    await session.execute(delete(Setting).where(Setting.key.like('workflow.%')))
    user_count = (await session.execute(
        delete(User).where(User.email.like(f'%{SEED_EMAIL_DOMAIN}'))
    )).rowcount
    print(
        f'  Deleted {post_count} posts, {page_count} pages, {version_count} versions, '
        f'{transition_count} transitions, {user_count} users'
    )
    print('Clear complete.')


async def populate(force: bool = False) -> None:
    """Populate the database with seed data."""
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            user_count = (await session.execute(
                select(func.count()).select_from(User).where(
                    User.email.like(f'%{SEED_EMAIL_DOMAIN}'),
                )
            )).scalar()

            if user_count and user_count > 0:
                if force:
                    print('Existing data found, clearing first (--force)...')
                    await clear_data(session)
                    await session.flush()
                else:
                    print(
                        f'Seed data already exists ({user_count} seed users). '
                        f'Use --force to clear and re-seed.'
                    )
                    return

            print('Populating seed data...')
            users = await create_users(session)
            categories, tags = await create_taxonomy(session)
            await create_posts(session, users, categories, tags)
            await create_pages(session, users)
            await session.commit()
            print('Seed data created successfully.')
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


async def clear() -> None:
    """Clear all editorial content."""
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            await clear_data(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


def is_local_database(database_url: str) -> bool:
    """Only SQLite files and databases on a local host may be seeded."""
    if database_url.startswith('sqlite'):
        return True
    return urlparse(database_url).hostname in LOCAL_HOSTS


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    if not is_local_database(settings.database_url):
        print(
            "ERROR: Seed script only runs against a local database.\n"
            "This script modifies data directly and deletes content on clear."
        )
        raise SystemExit(1)

    parser = argparse.ArgumentParser(description='Seed the dev database with editorial data.')
    subparsers = parser.add_subparsers(dest='command', required=True)

    populate_parser = subparsers.add_parser('populate', help='Populate database with test data')
    populate_parser.add_argument(
        '--force', action='store_true',
        help='Clear existing data before populating',
    )

    subparsers.add_parser('clear', help='Remove all posts, pages, versions and seed users')

    args = parser.parse_args()

    if args.command == 'populate':
        asyncio.run(populate(force=args.force))
    elif args.command == 'clear':
        asyncio.run(clear())


if __name__ == '__main__':
    main()
