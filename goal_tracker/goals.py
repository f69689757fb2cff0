# ABOUTME: Goal persistence: create, read (by id, chat, user), partial update and delete.
# ABOUTME: Deleting a goal relies on the steps.goal_id ON DELETE CASCADE foreign key.

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlmodel import select

from core.database import Database, Goal, GoalPriority, GoalStatus, Step
from core.errors import not_found, operation, validation_error
from core.schemas import GoalWithSteps, StepRead

UPDATABLE_GOAL_FIELDS = ("title", "description", "status", "priority", "deadline")


def _enum_value(enum_cls: type[Enum], value: Any, field: str) -> str:
    """Return the string value of an enum member or raise a validation error."""
    if isinstance(value, enum_cls):
        return value.value
    allowed = {m.value for m in enum_cls}
    if value not in allowed:
        raise validation_error(f"Invalid {field} value")
    return value


def validate_title(title: Any, what: str = "Title") -> None:
    if not isinstance(title, str) or not title.strip():
        raise validation_error(f"{what} cannot be empty")


def validate_goal_fields(
    *, title: Any = None, status: Any = None, priority: Any = None, require_title: bool = False
) -> tuple[Optional[str], Optional[str]]:
    """Check title/status/priority; return normalized (status, priority) strings or None when absent."""
    if require_title or title is not None:
        validate_title(title)
    status_value = _enum_value(GoalStatus, status, "status") if status is not None else None
    priority_value = (
        _enum_value(GoalPriority, priority, "priority") if priority is not None else None
    )
    return status_value, priority_value


def new_goal(
    *,
    chat_id: UUID,
    user_id: UUID,
    title: str,
    description: Optional[str] = None,
    status: Any = None,
    priority: Any = None,
    deadline: Optional[datetime] = None,
    created_from_message_id: Optional[UUID] = None,
) -> Goal:
    """Validate fields and build an unsaved Goal with defaults applied."""
    status_value, priority_value = validate_goal_fields(
        title=title, status=status, priority=priority, require_title=True
    )
    return Goal(
        chat_id=chat_id,
        user_id=user_id,
        title=title,
        description=description,
        status=status_value or GoalStatus.NOT_STARTED.value,
        priority=priority_value or GoalPriority.MEDIUM.value,
        deadline=deadline,
        created_from_message_id=created_from_message_id,
    )


@operation("Failed to create goal")
async def create_goal(db: Database, **fields) -> Goal:
    goal = new_goal(**fields)
    async with db.transaction() as session:
        session.add(goal)
    logging.info("Created goal %s for user %s", goal.id, goal.user_id)
    return goal


@operation("Failed to get goal by id")
async def get_goal(db: Database, goal_id: UUID) -> Goal | None:
    async with db.session() as session:
        return await session.get(Goal, goal_id)


@operation("Failed to get goal with steps")
async def get_goal_with_steps(db: Database, goal_id: UUID) -> GoalWithSteps | None:
    """Return the goal and its steps ordered by position, or None."""
    async with db.session() as session:
        goal = await session.get(Goal, goal_id)
        if goal is None:
            return None
        steps = await session.exec(
            select(Step).where(Step.goal_id == goal_id).order_by(Step.order)
        )
        return GoalWithSteps.model_validate(
            {
                **goal.model_dump(),
                "steps": [StepRead.model_validate(s) for s in steps.all()],
            }
        )


@operation("Failed to get goals by chat id")
async def get_goals_by_chat(db: Database, chat_id: UUID, status: Any = None) -> list[Goal]:
    stmt = select(Goal).where(Goal.chat_id == chat_id)
    if status is not None:
        stmt = stmt.where(Goal.status == _enum_value(GoalStatus, status, "status"))
    async with db.session() as session:
        result = await session.exec(stmt.order_by(Goal.created_at.desc()))
        return list(result.all())


@operation("Failed to get goals by user id")
async def get_goals_by_user(
    db: Database, user_id: UUID, status: Any = None
) -> list[Goal]:
    """List a user's goals newest first, optionally filtered by status."""
    stmt = select(Goal).where(Goal.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Goal.status == _enum_value(GoalStatus, status, "status"))
    async with db.session() as session:
        result = await session.exec(stmt.order_by(Goal.created_at.desc()))
        return list(result.all())


@operation("Failed to update goal")
async def update_goal(db: Database, goal_id: UUID, **changes) -> Goal:
    """Write only the supplied fields; omitted fields keep their current values."""
    unknown = set(changes) - set(UPDATABLE_GOAL_FIELDS)
    if unknown:
        raise validation_error(f"Cannot update goal field(s): {', '.join(sorted(unknown))}")

    async with db.transaction() as session:
        goal = await session.get(Goal, goal_id)
        if goal is None:
            raise not_found("Goal not found")
        if "title" in changes:
            validate_title(changes["title"])
        if "status" in changes:
            changes["status"] = _enum_value(GoalStatus, changes["status"], "status")
        if "priority" in changes:
            changes["priority"] = _enum_value(GoalPriority, changes["priority"], "priority")
        for field, value in changes.items():
            setattr(goal, field, value)
        session.add(goal)
    return goal


@operation("Failed to delete goal")
async def delete_goal(db: Database, goal_id: UUID) -> Goal | None:
    """Delete the goal; its steps go with it through the FK cascade. Returns the deleted goal or None."""
    async with db.transaction() as session:
        goal = await session.get(Goal, goal_id)
        if goal is None:
            return None
        await session.delete(goal)
    logging.info("Deleted goal %s", goal_id)
    return goal
