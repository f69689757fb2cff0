# ABOUTME: SQLModel tables (User, Chat, Goal, Step) and the async Database handle.
# ABOUTME: Database owns the engine; session() for reads, transaction() for commit-or-rollback writes.

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import Index, event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class User(SQLModel, table=True):
    """User account for authentication. Passwords stored as hashes only."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    username: str = Field(unique=True, index=True)
    password_hash: str = Field()
    created_at: datetime = Field(default_factory=utcnow)


class Chat(SQLModel, table=True):
    """Conversation a goal was extracted from; owned by one user."""

    __tablename__ = "chats"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    title: str = "New chat"
    created_at: datetime = Field(default_factory=utcnow)


class Goal(SQLModel, table=True):
    """Top-level objective owning an ordered list of steps."""

    __tablename__ = "goals"
    __table_args__ = (Index("ix_goals_user_id_status", "user_id", "status"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    chat_id: UUID = Field(foreign_key="chats.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    created_from_message_id: Optional[UUID] = Field(default=None, index=True)
    title: str
    description: Optional[str] = None
    status: str = GoalStatus.NOT_STARTED.value
    priority: str = GoalPriority.MEDIUM.value
    deadline: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class Step(SQLModel, table=True):
    """One completable unit of work; deleted with its goal by the FK cascade."""

    __tablename__ = "steps"
    # Not unique: reorder may leave duplicates until the next delete renumbers.
    __table_args__ = (Index("ix_steps_goal_id_order", "goal_id", "order"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    goal_id: UUID = Field(foreign_key="goals.id", ondelete="CASCADE", index=True)
    title: str
    is_completed: bool = False
    order: int = Field(ge=0)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Async storage handle. Create once per process, init() before use, dispose() at shutdown."""

    def __init__(self, url: str, echo: bool = False):
        engine_kwargs: dict = {"echo": echo}
        if url.startswith("sqlite") and ":memory:" in url:
            # One shared connection so every session sees the same in-memory DB.
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        self.url = url
        self.engine = create_async_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self) -> None:
        """Create all tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session for reads; nothing is committed."""
        async with self._sessionmaker() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside one transaction: commit on normal exit, rollback on any exception."""
        async with self._sessionmaker() as session:
            async with session.begin():
                yield session
