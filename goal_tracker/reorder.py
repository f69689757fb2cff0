# ABOUTME: Bulk step changes for one goal (reorder, bulk update) in a single transaction, plus progress.
# ABOUTME: Every entry must belong to the goal; one bad entry rolls back the whole batch.

from typing import Iterable
from uuid import UUID

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from core.database import Database, Step
from core.errors import not_found, operation
from core.schemas import Progress, StepChange, StepOrder
from goal_tracker.steps import apply_step_changes, steps_for_goal, validate_order


async def _owned_step(session: AsyncSession, goal_id: UUID, step_id: UUID) -> Step:
    result = await session.exec(
        select(Step).where(Step.id == step_id, Step.goal_id == goal_id)
    )
    step = result.first()
    if step is None:
        raise not_found(f"Step {step_id} not found or does not belong to goal {goal_id}")
    return step


@operation("Failed to reorder steps")
async def reorder_steps(db: Database, goal_id: UUID, orders: Iterable[StepOrder]) -> list[Step]:
    """Write new order values. Uniqueness is the caller's job; the next delete_step renumbers densely."""
    orders = list(orders)
    for entry in orders:
        validate_order(entry.order)
    async with db.transaction() as session:
        updated = []
        for entry in orders:
            step = await _owned_step(session, goal_id, entry.id)
            step.order = entry.order
            session.add(step)
            updated.append(step)
    return updated


@operation("Failed to bulk update steps")
async def bulk_update_steps(
    db: Database, goal_id: UUID, changes: Iterable[StepChange]
) -> list[Step]:
    """Apply title/completion/order changes to several steps; all succeed or none do."""
    changes = list(changes)
    for change in changes:
        validate_order(change.order)
    async with db.transaction() as session:
        updated = []
        for change in changes:
            step = await _owned_step(session, goal_id, change.id)
            apply_step_changes(step, title=change.title, is_completed=change.is_completed)
            if change.order is not None:
                step.order = change.order
            session.add(step)
            updated.append(step)
    return updated


@operation("Failed to get goal progress")
async def goal_progress(db: Database, goal_id: UUID) -> Progress:
    async with db.session() as session:
        steps = await steps_for_goal(session, goal_id)
    total = len(steps)
    completed = sum(1 for s in steps if s.is_completed)
    # Rounds half up.
    percentage = int(100 * completed / total + 0.5) if total else 0
    return Progress(completed=completed, total=total, percentage=percentage)
