# ABOUTME: Pytest hooks and shared fixtures. Sets SECRET_KEY for tests before app/config load.
# ABOUTME: Each test gets a fresh in-memory async SQLite Database plus users, a chat and a goal.

import os

# Required by core.config before any test imports api.main or core.auth.
os.environ.setdefault("SECRET_KEY", "test-secret-for-pytest")

import pytest_asyncio

from core.database import Chat, Database, User
from goal_tracker.goals import create_goal

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


async def make_user(db: Database, username: str) -> User:
    user = User(username=username, password_hash="not-a-real-hash")
    async with db.transaction() as session:
        session.add(user)
    return user


async def make_chat(db: Database, user: User) -> Chat:
    chat = Chat(user_id=user.id, title="Planning")
    async with db.transaction() as session:
        session.add(chat)
    return chat


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test; foreign keys enforced."""
    database = Database(IN_MEMORY_URL)
    await database.init()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def user(db):
    return await make_user(db, "alice")


@pytest_asyncio.fixture
async def other_user(db):
    return await make_user(db, "bob")


@pytest_asyncio.fixture
async def chat(db, user):
    return await make_chat(db, user)


@pytest_asyncio.fixture
async def goal(db, user, chat):
    result = await create_goal(db, chat_id=chat.id, user_id=user.id, title="Learn guitar")
    return result.unwrap()
