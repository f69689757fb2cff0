# ABOUTME: Pytest tests for the caller-facing actions: identity, chat/goal ownership and result values.
# ABOUTME: Runs against the in-memory Database without HTTP.

from uuid import uuid4

import pytest

from core.errors import ErrorKind
from core.schemas import PlanStep, StepChange, StepOrder
from goal_tracker import actions, steps

pytestmark = pytest.mark.asyncio

GUITAR_PLAN = "Goal: Learn guitar\nSteps:\n1. Buy a guitar\n2. Practice daily"


async def _from_plan(db, user_id, chat_id, title="Learn guitar", plan_steps=None):
    if plan_steps is None:
        plan_steps = [PlanStep(title=" Buy a guitar "), PlanStep(title="Practice daily")]
    return await actions.create_from_plan(
        db, user_id, chat_id, None, title, " Play songs ", plan_steps
    )


async def test_create_from_plan_trims_and_persists(db, user, chat):
    """A reviewed plan is trimmed and saved with list-position orders."""
    aggregate = (await _from_plan(db, user.id, chat.id)).unwrap()
    assert aggregate.goal.title == "Learn guitar"
    assert aggregate.goal.description == "Play songs"
    assert [(s.title, s.order) for s in aggregate.steps] == [
        ("Buy a guitar", 0),
        ("Practice daily", 1),
    ]


async def test_create_from_plan_checks_identity_and_chat(db, user, other_user, chat):
    """No identity is unauthenticated, another user's chat is forbidden, an unknown chat is not found."""
    assert (await _from_plan(db, None, chat.id)).kind == ErrorKind.UNAUTHENTICATED
    assert (await _from_plan(db, other_user.id, chat.id)).kind == ErrorKind.FORBIDDEN
    missing = await _from_plan(db, user.id, uuid4())
    assert missing.kind == ErrorKind.NOT_FOUND
    assert missing.message == "Chat not found"


async def test_create_from_plan_validates_title_and_steps(db, user, chat):
    """Blank title or empty step list is rejected and nothing is saved."""
    blank = await _from_plan(db, user.id, chat.id, title="  ")
    no_steps = await _from_plan(db, user.id, chat.id, plan_steps=[])
    assert blank.kind == ErrorKind.VALIDATION
    assert blank.message == "Goal title cannot be empty"
    assert no_steps.kind == ErrorKind.VALIDATION
    assert no_steps.message == "At least one step is required"
    assert (await actions.list_goals_for_user(db, user.id)).unwrap() == []


async def test_create_from_text_extracts_then_persists(db, user, chat):
    """Message text is extracted and saved with its message id."""
    message_id = uuid4()
    aggregate = (
        await actions.create_from_text(db, user.id, chat.id, message_id, GUITAR_PLAN)
    ).unwrap()
    assert aggregate.goal.title == "Learn guitar"
    assert aggregate.goal.created_from_message_id == message_id
    assert [s.title for s in aggregate.steps] == ["Buy a guitar", "Practice daily"]


async def test_get_goal_for_user(db, user, other_user, chat):
    """Owner gets the goal with or without steps; others are refused."""
    aggregate = (await _from_plan(db, user.id, chat.id)).unwrap()
    goal_id = aggregate.goal.id

    plain = (await actions.get_goal_for_user(db, user.id, goal_id)).unwrap()
    assert plain.title == "Learn guitar"
    with_steps = (await actions.get_goal_for_user(db, user.id, goal_id, with_steps=True)).unwrap()
    assert [s.title for s in with_steps.steps] == ["Buy a guitar", "Practice daily"]

    assert (await actions.get_goal_for_user(db, other_user.id, goal_id)).kind == ErrorKind.FORBIDDEN
    assert (await actions.get_goal_for_user(db, None, goal_id)).kind == ErrorKind.UNAUTHENTICATED
    assert (await actions.get_goal_for_user(db, user.id, uuid4())).kind == ErrorKind.NOT_FOUND


async def test_list_goals_by_chat(db, user, other_user, chat):
    """Chat listing returns the owner's goals; unknown chat is empty, foreign chat forbidden."""
    await _from_plan(db, user.id, chat.id)
    listed = (await actions.list_goals_by_chat(db, user.id, chat.id)).unwrap()
    assert [g.title for g in listed] == ["Learn guitar"]
    assert (await actions.list_goals_by_chat(db, user.id, uuid4())).unwrap() == []
    assert (await actions.list_goals_by_chat(db, other_user.id, chat.id)).kind == ErrorKind.FORBIDDEN


async def test_step_actions_return_success(db, user, chat):
    """Rename, toggle and delete report success and leave dense orders."""
    aggregate = (await _from_plan(db, user.id, chat.id)).unwrap()
    first, second = aggregate.steps

    assert (await actions.update_step_title(db, user.id, first.id, " Buy an acoustic guitar ")).unwrap() == {
        "success": True
    }
    assert (await actions.toggle_step_for_user(db, user.id, second.id)).unwrap() == {"success": True}
    assert (await actions.delete_step_for_user(db, user.id, first.id)).unwrap() == {"success": True}

    remaining = (await steps.list_steps(db, aggregate.goal.id)).unwrap()
    assert len(remaining) == 1
    assert remaining[0].title == "Practice daily"
    assert remaining[0].order == 0
    assert remaining[0].is_completed is True


async def test_step_actions_check_ownership(db, user, other_user, chat):
    """Step actions refuse other users and leave the step unchanged."""
    aggregate = (await _from_plan(db, user.id, chat.id)).unwrap()
    step_id = aggregate.steps[0].id

    assert (await actions.toggle_step_for_user(db, other_user.id, step_id)).kind == ErrorKind.FORBIDDEN
    assert (await actions.delete_step_for_user(db, other_user.id, step_id)).kind == ErrorKind.FORBIDDEN
    assert (await actions.update_step_title(db, None, step_id, "x")).kind == ErrorKind.UNAUTHENTICATED
    assert (await actions.toggle_step_for_user(db, user.id, uuid4())).kind == ErrorKind.NOT_FOUND
    blank = await actions.update_step_title(db, user.id, step_id, "   ")
    assert blank.kind == ErrorKind.VALIDATION
    assert blank.message == "Step title cannot be empty"

    step = (await steps.get_step(db, step_id)).unwrap()
    assert step.title == "Buy a guitar"
    assert step.is_completed is False


async def test_goal_level_actions(db, user, other_user, chat):
    """Add, reorder, bulk update, progress, update and delete through the owner checks."""
    aggregate = (await _from_plan(db, user.id, chat.id)).unwrap()
    goal_id = aggregate.goal.id
    first, second = aggregate.steps

    added = (await actions.add_step_for_user(db, user.id, goal_id, " Join a band ")).unwrap()
    assert (added.title, added.order) == ("Join a band", 2)

    reordered = await actions.reorder_steps_for_user(
        db, user.id, goal_id, [StepOrder(id=added.id, order=0), StepOrder(id=first.id, order=2)]
    )
    assert reordered.ok
    bulk = await actions.bulk_update_steps_for_user(
        db, user.id, goal_id, [StepChange(id=second.id, is_completed=True)]
    )
    assert bulk.ok
    progress = (await actions.goal_progress_for_user(db, user.id, goal_id)).unwrap()
    assert (progress.completed, progress.total, progress.percentage) == (1, 3, 33)

    updated = (await actions.update_goal_for_user(db, user.id, goal_id, status="in_progress")).unwrap()
    assert updated.status == "in_progress"
    assert (
        await actions.update_goal_for_user(db, other_user.id, goal_id, title="Mine now")
    ).kind == ErrorKind.FORBIDDEN

    assert (await actions.delete_goal_for_user(db, other_user.id, goal_id)).kind == ErrorKind.FORBIDDEN
    assert (await actions.delete_goal_for_user(db, user.id, goal_id)).unwrap() == {"success": True}
    assert (await steps.list_steps(db, goal_id)).unwrap() == []
