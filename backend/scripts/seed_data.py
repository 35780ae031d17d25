"""Seed script to populate the local dev database with a small course catalog.

Usage:
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate --force
    PYTHONPATH=backend/src python backend/scripts/seed_data.py clear

Creates an admin and an instructor (password: ``password123``), a handful of
categories, and courses with lessons. Cached catalog entries are not touched;
flush Redis (or wait out the TTLs) after re-seeding a running instance.
"""

import argparse
import asyncio
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import get_settings
from core.password_hasher import PasswordHasher
from db.session import build_engine
from models import Category, Course, Lesson, Role, User
from services.utils import generate_slug

SEED_PASSWORD = 'password123'

SEED_USERS = [
    {'email': 'admin@learnhub.local', 'full_name': 'Ada Admin', 'role': Role.ADMIN},
    {'email': 'instructor@learnhub.local', 'full_name': 'Ivan Instructor', 'role': Role.INSTRUCTOR},
    {'email': 'student@learnhub.local', 'full_name': 'Sam Student', 'role': Role.USER},
]

CATEGORIES = [
    {'name': 'Web Development', 'description': 'Frontend, backend and everything between.'},
    {'name': 'Data Science', 'description': 'Statistics, analysis and machine learning.'},
    {'name': 'DevOps', 'description': 'Shipping and running software reliably.'},
    {'name': 'Design', 'description': 'Interfaces people enjoy using.'},
]

# ---------------------------------------------------------------------------
# Course data
# ---------------------------------------------------------------------------

COURSES = [
    {
        'title': 'Python for Web APIs',
        'description': 'Build and deploy a production-ready REST API with FastAPI and PostgreSQL.',
        'category': 'Web Development',
        'level': 'intermediate',
        'price': Decimal('49.00'),
        'is_featured': True,
        'lessons': [
            ('Project setup', 420),
            ('Routing and request validation', 780),
            ('Async database access', 960),
            ('Authentication with JWTs', 1140),
            ('Deploying with containers', 900),
        ],
    },
    {
        'title': 'HTML & CSS From Scratch',
        'description': 'Semantic markup, modern layout with flexbox and grid, responsive design.',
        'category': 'Web Development',
        'level': 'beginner',
        'price': Decimal('0.00'),
        'is_featured': True,
        'lessons': [
            ('How the web works', 300),
            ('Semantic HTML', 660),
            ('The box model', 540),
            ('Flexbox', 720),
            ('Grid', 780),
        ],
    },
    {
        'title': 'Practical Statistics',
        'description': 'Distributions, hypothesis testing and regression with real datasets.',
        'category': 'Data Science',
        'level': 'intermediate',
        'price': Decimal('39.00'),
        'is_featured': False,
        'lessons': [
            ('Describing data', 600),
            ('Probability refresher', 720),
            ('Hypothesis tests', 900),
            ('Linear regression', 1020),
        ],
    },
    {
        'title': 'Intro to Machine Learning',
        'description': 'Supervised learning end to end: features, models, evaluation.',
        'category': 'Data Science',
        'level': 'advanced',
        'price': Decimal('79.00'),
        'is_featured': True,
        'lessons': [
            ('Framing the problem', 480),
            ('Feature engineering', 960),
            ('Trees and ensembles', 1200),
            ('Evaluating models', 840),
        ],
    },
    {
        'title': 'Docker and CI Pipelines',
        'description': 'Containerize an app and ship it through an automated pipeline.',
        'category': 'DevOps',
        'level': 'beginner',
        'price': Decimal('29.00'),
        'is_featured': False,
        'lessons': [
            ('Images and containers', 540),
            ('Writing a Dockerfile', 720),
            ('Compose for local dev', 600),
            ('Your first pipeline', 840),
        ],
    },
    {
        'title': 'UI Design Fundamentals',
        'description': 'Hierarchy, spacing, color and type for developers.',
        'category': 'Design',
        'level': 'beginner',
        'price': Decimal('19.00'),
        'is_featured': False,
        'lessons': [
            ('Visual hierarchy', 480),
            ('Spacing systems', 420),
            ('Working with color', 600),
        ],
    },
]


def is_local_database(database_url: str) -> bool:
    """Only SQLite files and databases on this machine may be seeded."""
    url = make_url(database_url)
    return url.get_backend_name() == 'sqlite' or url.host in {'localhost', '127.0.0.1', 'db'}


async def create_users(session: AsyncSession, hasher: PasswordHasher) -> dict[Role, User]:
    """Create the seed accounts, one per role."""
    password_hash = hasher.hash(SEED_PASSWORD)
    users = {}
    for data in SEED_USERS:
        user = User(
            email=data['email'],
            full_name=data['full_name'],
            role=data['role'].value,
            password_hash=password_hash,
        )
        session.add(user)
        users[data['role']] = user
    await session.flush()
    print(f'  Created {len(SEED_USERS)} users (password: {SEED_PASSWORD})')
    return users


async def create_categories(session: AsyncSession) -> dict[str, Category]:
    """Create seed categories."""
    categories = {}
    for data in CATEGORIES:
        category = Category(
            name=data['name'],
            description=data['description'],
            slug=generate_slug(data['name']),
        )
        session.add(category)
        categories[data['name']] = category
    await session.flush()
    print(f'  Created {len(CATEGORIES)} categories')
    return categories


async def create_courses(
    session: AsyncSession, instructor: User, categories: dict[str, Category],
) -> None:
    """Create seed courses with their lessons."""
    lesson_count = 0
    for data in COURSES:
        category = categories[data['category']]
        lessons = data['lessons']
        course = Course(
            title=data['title'],
            description=data['description'],
            instructor_id=instructor.id,
            price=data['price'],
            level=data['level'],
            duration=sum(seconds for _, seconds in lessons) // 60,
            category=category.slug,
            is_featured=data['is_featured'],
        )
        session.add(course)
        await session.flush()
        for order, (title, seconds) in enumerate(lessons, start=1):
            session.add(Lesson(
                course_id=course.id,
                title=title,
                duration=seconds,
                order_number=order,
            ))
            lesson_count += 1
    await session.flush()
    print(f'  Created {len(COURSES)} courses with {lesson_count} lessons')


async def clear_data(session: AsyncSession) -> None:
    """Remove the seed catalog and seed accounts."""
    seed_emails = [data['email'] for data in SEED_USERS]
    course_count = (await session.execute(
        select(func.count()).select_from(Course)
    )).scalar()

    # Lessons, enrollments and progress go with their course (ON DELETE CASCADE)
    await session.execute(delete(Course))
    await session.execute(delete(Category))
    await session.execute(delete(User).where(User.email.in_(seed_emails)))
    await session.flush()

    print(f'  Deleted {course_count} courses, all categories and the seed users')
    print('Clear complete.')


async def populate(force: bool = False) -> None:
    """Populate the database with seed data."""
    settings = get_settings()
    engine = build_engine(settings)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    async with session_factory() as session:
        try:
            # Categories are created first, so they detect both complete and
            # partial previous runs.
            category_count = (await session.execute(
                select(func.count()).select_from(Category)
            )).scalar()

            if category_count and category_count > 0:
                if force:
                    print('Existing data found, clearing first (--force)...')
                    await clear_data(session)
                else:
                    print(
                        f'Data already exists ({category_count} categories). '
                        f'Use --force to clear and re-seed.'
                    )
                    return

            print('Populating seed data...')
            categories = await create_categories(session)
            users = await create_users(session, hasher)
            await create_courses(session, users[Role.INSTRUCTOR], categories)
            await session.commit()
            print('Seed data created successfully.')
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


async def clear() -> None:
    """Clear the seed data."""
    settings = get_settings()
    engine = build_engine(settings)
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


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    if not is_local_database(settings.database_url):
        print(
            "ERROR: Seed script only runs against a local database.\n"
            "This script modifies data directly; point DATABASE_URL at localhost or SQLite."
        )
        raise SystemExit(1)

    parser = argparse.ArgumentParser(description='Seed the dev database with a course catalog.')
    subparsers = parser.add_subparsers(dest='command', required=True)

    populate_parser = subparsers.add_parser('populate', help='Populate database with test data')
    populate_parser.add_argument(
        '--force', action='store_true',
        help='Clear existing data before populating',
    )

    subparsers.add_parser('clear', help='Remove the seed catalog and users')

    args = parser.parse_args()

    if args.command == 'populate':
        asyncio.run(populate(force=args.force))
    elif args.command == 'clear':
        asyncio.run(clear())


if __name__ == '__main__':
    main()
