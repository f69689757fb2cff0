# ABOUTME: Pytest tests for ingest_plan: goal plus ordered steps in one transaction.
# ABOUTME: Injects a storage failure mid-transaction to verify nothing is committed.

from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.database import Goal, Step
from core.errors import ErrorKind
from core.schemas import Plan, PlanStep
from goal_tracker import ingest
from goal_tracker.extractor import extract_plan
from goal_tracker.ingest import ingest_plan

pytestmark = pytest.mark.asyncio


async def _counts(db):
    async with db.session() as session:
        goals = (await session.exec(select(Goal))).all()
        steps = (await session.exec(select(Step))).all()
    return len(goals), len(steps)


async def test_ingest_persists_goal_and_ordered_steps(db, user, chat):
    """Plan becomes one goal plus steps ordered 0..n-1."""
    plan = extract_plan("Goal: Learn guitar\nSteps:\n1. Buy a guitar\n2. Practice daily\n3. Join a band")
    result = await ingest_plan(db, chat.id, user.id, None, plan)
    assert result.ok
    aggregate = result.value

    assert aggregate.goal.title == "Learn guitar"
    assert aggregate.goal.status == "not_started"
    assert aggregate.goal.priority == "medium"
    assert aggregate.goal.user_id == user.id
    assert [(s.title, s.order) for s in aggregate.steps] == [
        ("Buy a guitar", 0),
        ("Practice daily", 1),
        ("Join a band", 2),
    ]
    assert all(s.goal_id == aggregate.goal.id for s in aggregate.steps)
    assert await _counts(db) == (1, 3)


async def test_ingest_honours_explicit_orders_and_options(db, user, chat):
    """Explicit step orders, status, priority and message id are kept."""
    message_id = uuid4()
    plan = Plan(
        goal_title="  Run a 5k ",
        description=" Build endurance ",
        steps=[PlanStep(title="Stretch", order=4), PlanStep(title="Buy shoes")],
    )
    aggregate = (
        await ingest_plan(db, chat.id, user.id, message_id, plan, status="in_progress", priority="high")
    ).unwrap()
    assert aggregate.goal.title == "Run a 5k"
    assert aggregate.goal.description == "Build endurance"
    assert aggregate.goal.created_from_message_id == message_id
    assert aggregate.goal.status == "in_progress"
    assert aggregate.goal.priority == "high"
    assert [(s.title, s.order) for s in aggregate.steps] == [("Buy shoes", 1), ("Stretch", 4)]


async def test_ingest_validates_before_writing(db, user, chat):
    """Invalid plans are rejected with nothing written."""
    blank_goal = Plan(goal_title=" ", steps=[PlanStep(title="x")])
    blank_step = Plan(goal_title="Goal", steps=[PlanStep(title="ok"), PlanStep(title="")])
    assert (await ingest_plan(db, chat.id, user.id, None, blank_goal)).kind == ErrorKind.VALIDATION
    assert (await ingest_plan(db, chat.id, user.id, None, blank_step)).kind == ErrorKind.VALIDATION
    bad_priority = await ingest_plan(
        db, chat.id, user.id, None, Plan(goal_title="G", steps=[PlanStep(title="s")]), priority="max"
    )
    assert bad_priority.kind == ErrorKind.VALIDATION
    assert await _counts(db) == (0, 0)


async def test_ingest_failure_mid_transaction_commits_nothing(db, user, chat, monkeypatch):
    """A storage error after partial inserts rolls everything back."""
    async def failing_insert(session, goal, plan):
        session.add(Step(goal_id=goal.id, title="partial", order=0))
        await session.flush()
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(ingest, "_insert_steps", failing_insert)
    plan = extract_plan("Goal: Learn guitar\nSteps:\n1. Buy a guitar")
    result = await ingest_plan(db, chat.id, user.id, None, plan)

    assert result.kind == ErrorKind.STORAGE
    assert result.message.startswith("Failed to create goal with steps")
    assert "disk full" in result.message
    assert await _counts(db) == (0, 0)


async def test_ingest_unknown_chat_is_storage_error(db, user):
    """A chat id with no row fails the foreign key as a storage error."""
    plan = extract_plan("Goal: Learn guitar\nSteps:\n1. Buy a guitar")
    result = await ingest_plan(db, uuid4(), user.id, None, plan)
    assert result.kind == ErrorKind.STORAGE
    assert await _counts(db) == (0, 0)
