# ABOUTME: Caller-facing goal/step operations: identity and ownership checks, then the store call.
# ABOUTME: Every action returns Ok/Err; no identity is unauthenticated, another user's goal is forbidden.

import time
from typing import Any, Iterable, Optional
from uuid import UUID

from core.database import Chat, Database, Goal, Step
from core.errors import forbidden, not_found, operation, unauthenticated, validation_error
from core.schemas import (
    GoalAggregate,
    GoalWithSteps,
    Plan,
    PlanStep,
    Progress,
    StepChange,
    StepOrder,
)
from core.telemetry import log_extraction
from goal_tracker import goals, reorder, steps
from goal_tracker.chats import get_chat
from goal_tracker.extractor import (
    DEFAULT_GOAL_TITLE,
    DEFAULT_STEP_TITLE,
    extract_plan,
    has_plan_content,
)
from goal_tracker.ingest import ingest_plan

SUCCESS = {"success": True}


def extract_with_telemetry(text: str) -> tuple[Plan, bool]:
    """Run the extractor and log one telemetry line. Returns (plan, has_plan_content)."""
    start = time.perf_counter()
    plan = extract_plan(text)
    looks_like_plan = has_plan_content(text)
    log_extraction(
        latency_ms=(time.perf_counter() - start) * 1000,
        text_length=len(text) if isinstance(text, str) else 0,
        step_count=len(plan.steps),
        default_title=plan.goal_title == DEFAULT_GOAL_TITLE,
        default_step=[s.title for s in plan.steps] == [DEFAULT_STEP_TITLE],
        has_plan_content=looks_like_plan,
    )
    return plan, looks_like_plan


def _require_identity(user_id: Optional[UUID]) -> UUID:
    if user_id is None:
        raise unauthenticated()
    return user_id


async def _owned_chat(db: Database, user_id: Optional[UUID], chat_id: UUID) -> Chat:
    user_id = _require_identity(user_id)
    chat = (await get_chat(db, chat_id)).unwrap()
    if chat is None:
        raise not_found("Chat not found")
    if chat.user_id != user_id:
        raise forbidden("This chat belongs to another user")
    return chat


async def _owned_goal(db: Database, user_id: Optional[UUID], goal_id: UUID) -> Goal:
    user_id = _require_identity(user_id)
    goal = (await goals.get_goal(db, goal_id)).unwrap()
    if goal is None:
        raise not_found("Goal not found")
    if goal.user_id != user_id:
        raise forbidden("This goal belongs to another user")
    return goal


async def _owned_step(db: Database, user_id: Optional[UUID], step_id: UUID) -> Step:
    _require_identity(user_id)
    step = (await steps.get_step(db, step_id)).unwrap()
    if step is None:
        raise not_found("Step not found")
    await _owned_goal(db, user_id, step.goal_id)
    return step


@operation("Failed to create goal")
async def create_from_plan(
    db: Database,
    user_id: Optional[UUID],
    chat_id: UUID,
    message_id: Optional[UUID],
    goal_title: str,
    goal_description: Optional[str],
    plan_steps: Iterable[PlanStep],
) -> GoalAggregate:
    """Persist a reviewed plan as a goal with steps in the requester's chat."""
    await _owned_chat(db, user_id, chat_id)
    if not goal_title or not goal_title.strip():
        raise validation_error("Goal title cannot be empty")
    plan_steps = list(plan_steps)
    if not plan_steps:
        raise validation_error("At least one step is required")
    plan = Plan(
        goal_title=goal_title.strip(),
        description=(goal_description or "").strip() or None,
        steps=[PlanStep(title=s.title.strip(), order=s.order) for s in plan_steps],
    )
    return (await ingest_plan(db, chat_id, user_id, message_id, plan)).unwrap()


@operation("Failed to create goal")
async def create_from_text(
    db: Database,
    user_id: Optional[UUID],
    chat_id: UUID,
    message_id: Optional[UUID],
    text: str,
) -> GoalAggregate:
    """Extract a plan from an assistant message and persist it."""
    _require_identity(user_id)
    plan, _ = extract_with_telemetry(text)
    result = await create_from_plan(
        db, user_id, chat_id, message_id, plan.goal_title, plan.description, plan.steps
    )
    return result.unwrap()


@operation("Failed to get goal")
async def get_goal_for_user(
    db: Database, user_id: Optional[UUID], goal_id: UUID, with_steps: bool = False
) -> Goal | GoalWithSteps:
    goal = await _owned_goal(db, user_id, goal_id)
    if not with_steps:
        return goal
    aggregate = (await goals.get_goal_with_steps(db, goal_id)).unwrap()
    if aggregate is None:
        raise not_found("Goal not found")
    return aggregate


@operation("Failed to get goals by chat id")
async def list_goals_by_chat(
    db: Database, user_id: Optional[UUID], chat_id: UUID, status: Any = None
) -> list[Goal]:
    """Goals created in a chat, newest first, optionally by status. An unknown chat has no goals."""
    user_id = _require_identity(user_id)
    chat = (await get_chat(db, chat_id)).unwrap()
    if chat is None:
        return []
    if chat.user_id != user_id:
        raise forbidden("This chat belongs to another user")
    return (await goals.get_goals_by_chat(db, chat_id, status)).unwrap()


@operation("Failed to get goals")
async def list_goals_for_user(
    db: Database, user_id: Optional[UUID], status: Any = None
) -> list[Goal]:
    user_id = _require_identity(user_id)
    return (await goals.get_goals_by_user(db, user_id, status)).unwrap()


@operation("Failed to update goal")
async def update_goal_for_user(
    db: Database, user_id: Optional[UUID], goal_id: UUID, **changes
) -> Goal:
    await _owned_goal(db, user_id, goal_id)
    return (await goals.update_goal(db, goal_id, **changes)).unwrap()


@operation("Failed to delete goal")
async def delete_goal_for_user(db: Database, user_id: Optional[UUID], goal_id: UUID) -> dict:
    await _owned_goal(db, user_id, goal_id)
    (await goals.delete_goal(db, goal_id)).unwrap()
    return SUCCESS


@operation("Failed to get goal progress")
async def goal_progress_for_user(db: Database, user_id: Optional[UUID], goal_id: UUID) -> Progress:
    await _owned_goal(db, user_id, goal_id)
    return (await reorder.goal_progress(db, goal_id)).unwrap()


@operation("Failed to create step")
async def add_step_for_user(
    db: Database, user_id: Optional[UUID], goal_id: UUID, title: str, order: Optional[int] = None
) -> Step:
    await _owned_goal(db, user_id, goal_id)
    if not title or not title.strip():
        raise validation_error("Step title cannot be empty")
    return (await steps.create_step(db, goal_id, title.strip(), order)).unwrap()


@operation("Failed to update step")
async def update_step_for_user(
    db: Database,
    user_id: Optional[UUID],
    step_id: UUID,
    title: Optional[str] = None,
    is_completed: Optional[bool] = None,
) -> dict:
    await _owned_step(db, user_id, step_id)
    if title is not None:
        if not title.strip():
            raise validation_error("Step title cannot be empty")
        title = title.strip()
    (await steps.update_step(db, step_id, title=title, is_completed=is_completed)).unwrap()
    return SUCCESS


@operation("Failed to update step")
async def update_step_title(
    db: Database, user_id: Optional[UUID], step_id: UUID, title: str
) -> dict:
    return (await update_step_for_user(db, user_id, step_id, title=title)).unwrap()


@operation("Failed to update step status")
async def toggle_step_for_user(db: Database, user_id: Optional[UUID], step_id: UUID) -> dict:
    await _owned_step(db, user_id, step_id)
    (await steps.toggle_step(db, step_id)).unwrap()
    return SUCCESS


@operation("Failed to delete step")
async def delete_step_for_user(db: Database, user_id: Optional[UUID], step_id: UUID) -> dict:
    await _owned_step(db, user_id, step_id)
    (await steps.delete_step(db, step_id)).unwrap()
    return SUCCESS


@operation("Failed to reorder steps")
async def reorder_steps_for_user(
    db: Database, user_id: Optional[UUID], goal_id: UUID, orders: Iterable[StepOrder]
) -> list[Step]:
    await _owned_goal(db, user_id, goal_id)
    return (await reorder.reorder_steps(db, goal_id, orders)).unwrap()


@operation("Failed to bulk update steps")
async def bulk_update_steps_for_user(
    db: Database, user_id: Optional[UUID], goal_id: UUID, changes: Iterable[StepChange]
) -> list[Step]:
    await _owned_goal(db, user_id, goal_id)
    return (await reorder.bulk_update_steps(db, goal_id, changes)).unwrap()
