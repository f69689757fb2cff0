# ABOUTME: Step persistence: create (single/bulk), list by goal, update, toggle completion, delete.
# ABOUTME: Owns per-goal ordering (append at max+1, dense renumber after delete) and completed_at bookkeeping.

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from core.database import Database, Goal, Step, utcnow
from core.errors import not_found, operation, validation_error
from goal_tracker.goals import validate_title

STEP_TITLE = "Step title"


async def next_order(session: AsyncSession, goal_id: UUID) -> int:
    """Order value for a step appended to the goal: max existing order + 1, or 0."""
    result = await session.exec(select(func.max(Step.order)).where(Step.goal_id == goal_id))
    current_max = result.one()
    return 0 if current_max is None else current_max + 1


async def require_goal(session: AsyncSession, goal_id: UUID) -> Goal:
    goal = await session.get(Goal, goal_id)
    if goal is None:
        raise not_found("Goal not found")
    return goal


async def require_step(session: AsyncSession, step_id: UUID) -> Step:
    step = await session.get(Step, step_id)
    if step is None:
        raise not_found("Step not found")
    return step


def validate_order(order: Any) -> None:
    if order is not None and (not isinstance(order, int) or isinstance(order, bool) or order < 0):
        raise validation_error("Step order must be a non-negative integer")


def apply_step_changes(
    step: Step, *, title: Optional[str] = None, is_completed: Optional[bool] = None
) -> Step:
    """Set title and completion on a loaded step; completed_at follows is_completed."""
    if title is not None:
        validate_title(title, STEP_TITLE)
        step.title = title
    if is_completed is not None:
        step.is_completed = bool(is_completed)
        step.completed_at = utcnow() if step.is_completed else None
    return step


def _entry_fields(entry: Any) -> tuple[Any, Any]:
    """(title, order) from a PlanStep-like object or a dict."""
    if isinstance(entry, dict):
        return entry.get("title"), entry.get("order")
    return getattr(entry, "title", None), getattr(entry, "order", None)


@operation("Failed to create step")
async def create_step(db: Database, goal_id: UUID, title: str, order: Optional[int] = None) -> Step:
    validate_title(title, STEP_TITLE)
    validate_order(order)
    async with db.transaction() as session:
        await require_goal(session, goal_id)
        if order is None:
            order = await next_order(session, goal_id)
        step = Step(goal_id=goal_id, title=title, order=order)
        session.add(step)
    return step


@operation("Failed to create steps")
async def create_steps(db: Database, goal_id: UUID, steps: Iterable[Any]) -> list[Step]:
    """Insert steps in list order; entries without an order continue from the goal's max order."""
    entries = [_entry_fields(s) for s in steps]
    for title, order in entries:
        validate_title(title, STEP_TITLE)
        validate_order(order)
    async with db.transaction() as session:
        await require_goal(session, goal_id)
        current = await next_order(session, goal_id)
        created: list[Step] = []
        for title, order in entries:
            if order is None:
                order = current
                current += 1
            created.append(Step(goal_id=goal_id, title=title, order=order))
        session.add_all(created)
    return created


async def steps_for_goal(session: AsyncSession, goal_id: UUID) -> list[Step]:
    result = await session.exec(
        select(Step).where(Step.goal_id == goal_id).order_by(Step.order, Step.created_at)
    )
    return list(result.all())


@operation("Failed to get steps by goal id")
async def list_steps(db: Database, goal_id: UUID) -> list[Step]:
    async with db.session() as session:
        return await steps_for_goal(session, goal_id)


@operation("Failed to update step")
async def update_step(
    db: Database,
    step_id: UUID,
    *,
    title: Optional[str] = None,
    is_completed: Optional[bool] = None,
) -> Step:
    async with db.transaction() as session:
        step = await require_step(session, step_id)
        apply_step_changes(step, title=title, is_completed=is_completed)
        session.add(step)
    return step


@operation("Failed to toggle step completion")
async def toggle_step(db: Database, step_id: UUID) -> Step:
    """Flip is_completed. Concurrent toggles are not coordinated; last write wins."""
    async with db.transaction() as session:
        step = await require_step(session, step_id)
        apply_step_changes(step, is_completed=not step.is_completed)
        session.add(step)
    return step


async def renumber_steps(session: AsyncSession, goal_id: UUID) -> list[Step]:
    """Rewrite the goal's step orders to 0..n-1, keeping their relative order."""
    remaining = await steps_for_goal(session, goal_id)
    for index, step in enumerate(remaining):
        if step.order != index:
            step.order = index
            session.add(step)
    return remaining


@operation("Failed to delete step")
async def delete_step(db: Database, step_id: UUID) -> Step | None:
    """Delete a step and close the gap in its siblings' order in the same transaction."""
    async with db.transaction() as session:
        step = await session.get(Step, step_id)
        if step is None:
            return None
        await session.delete(step)
        await session.flush()
        await renumber_steps(session, step.goal_id)
    logging.info("Deleted step %s from goal %s", step_id, step.goal_id)
    return step


@operation("Failed to get step")
async def get_step(db: Database, step_id: UUID) -> Step | None:
    async with db.session() as session:
        return await session.get(Step, step_id)
