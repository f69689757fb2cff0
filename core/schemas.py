# ABOUTME: Pydantic models for plans, step updates and the goal/step read shapes.
# ABOUTME: Used by the extractor, the goal tracker operations and FastAPI request/response bodies.

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PlanStep(BaseModel):
    """One step of an extracted plan; order overrides list position when set."""

    title: str
    order: Optional[int] = Field(default=None, ge=0)


class Plan(BaseModel):
    """Goal title, optional description and ordered steps recovered from free-form text."""

    goal_title: str
    description: Optional[str] = None
    steps: list[PlanStep]


class StepOrder(BaseModel):
    id: UUID
    order: int = Field(ge=0)


class StepChange(BaseModel):
    """Bulk update entry: only the fields that are set are written."""

    id: UUID
    title: Optional[str] = None
    is_completed: Optional[bool] = None
    order: Optional[int] = Field(default=None, ge=0)


class GoalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chat_id: UUID
    user_id: UUID
    created_from_message_id: Optional[UUID]
    title: str
    description: Optional[str]
    status: str
    priority: str
    deadline: Optional[datetime]
    created_at: datetime


class StepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    goal_id: UUID
    title: str
    is_completed: bool
    order: int
    completed_at: Optional[datetime]
    created_at: datetime


class GoalWithSteps(GoalRead):
    steps: list[StepRead] = []


class GoalAggregate(BaseModel):
    """A goal together with its ordered steps, as returned by ingestion."""

    goal: GoalRead
    steps: list[StepRead]


class Progress(BaseModel):
    completed: int
    total: int
    percentage: int
