# ABOUTME: Ingestion: persist an extracted plan as a goal plus ordered steps in one transaction.
# ABOUTME: Either the goal and every step commit, or nothing does; failures come back as one storage error.

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlmodel.ext.asyncio.session import AsyncSession

from core.database import Database, Goal, Step
from core.errors import operation
from core.schemas import GoalAggregate, GoalRead, Plan, StepRead
from goal_tracker.goals import new_goal, validate_title
from goal_tracker.steps import STEP_TITLE, validate_order


async def _insert_steps(session: AsyncSession, goal: Goal, plan: Plan) -> list[Step]:
    """Insert the plan's steps; list position is the order unless a step carries its own."""
    steps = [
        Step(
            goal_id=goal.id,
            title=plan_step.title.strip(),
            order=plan_step.order if plan_step.order is not None else index,
        )
        for index, plan_step in enumerate(plan.steps)
    ]
    session.add_all(steps)
    await session.flush()
    return steps


@operation("Failed to create goal with steps")
async def ingest_plan(
    db: Database,
    chat_id: UUID,
    user_id: UUID,
    created_from_message_id: Optional[UUID],
    plan: Plan,
    *,
    status: Any = None,
    priority: Any = None,
    deadline: Optional[datetime] = None,
) -> GoalAggregate:
    """Create the goal and all plan steps atomically and return the full aggregate."""
    validate_title(plan.goal_title)
    for plan_step in plan.steps:
        validate_title(plan_step.title, STEP_TITLE)
        validate_order(plan_step.order)
    goal = new_goal(
        chat_id=chat_id,
        user_id=user_id,
        title=plan.goal_title.strip(),
        description=plan.description.strip() if plan.description else None,
        status=status,
        priority=priority,
        deadline=deadline,
        created_from_message_id=created_from_message_id,
    )

    async with db.transaction() as session:
        session.add(goal)
        await session.flush()
        steps = await _insert_steps(session, goal, plan)

    logging.info("Ingested goal %s with %d steps", goal.id, len(steps))
    return GoalAggregate(
        goal=GoalRead.model_validate(goal),
        steps=[StepRead.model_validate(s) for s in sorted(steps, key=lambda s: s.order)],
    )
