# ABOUTME: FastAPI app: auth, plan extraction, goal creation from plans, goal and step management.
# ABOUTME: Errors are JSON {kind, message}: 400 validation, 401, 403, 404, 500 storage. Auth via JWT.

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from core.auth import (
    DUMMY_PASSWORD_HASH,
    create_access_token,
    get_current_user,
    get_database,
    hash_password,
    validate_password_length,
    validate_username,
    verify_password,
)
from core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    CORS_ORIGINS,
    DATABASE_ECHO,
    DATABASE_URL,
    DEFAULT_GOALS_PAGE_SIZE,
    MAX_GOALS_PAGE_SIZE,
)
from core.database import Database, User
from core.errors import Err, ErrorKind, Result
from core.schemas import GoalRead, PlanStep, StepChange, StepOrder, StepRead
from goal_tracker import actions
from goal_tracker.chats import create_chat

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Database for the life of the process and dispose it on shutdown."""
    db = Database(DATABASE_URL, echo=DATABASE_ECHO)
    await db.init()
    app.state.db = db
    try:
        yield
    finally:
        await db.dispose()


def _error_response(result: Err) -> JSONResponse:
    return JSONResponse(
        status_code=_STATUS_BY_KIND[result.kind], content=result.error.to_dict()
    )


def _respond(result: Result, serialize=lambda value: value):
    """Turn an Ok into a JSON body (via serialize) and an Err into the matching error response."""
    if isinstance(result, Err):
        return _error_response(result)
    return serialize(result.value)


def _goal_json(goal) -> dict:
    return GoalRead.model_validate(goal).model_dump(mode="json")


def _step_json(step) -> dict:
    return StepRead.model_validate(step).model_dump(mode="json")


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json")


auth_router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    username: str
    password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class SignupResponse(BaseModel):
    id: str
    username: str
    access_token: str
    token_type: str
    expires_in: int


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int


@auth_router.post("/signup", status_code=201, response_model=SignupResponse)
async def post_signup(req: SignupRequest, db: Database = Depends(get_database)):
    """Create a new user and return an access token so the client can skip calling login."""
    try:
        validate_username(req.username)
        validate_password_length(req.password)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"kind": "validation", "message": str(e)})
    user = User(username=req.username.strip(), password_hash=hash_password(req.password))
    try:
        async with db.transaction() as session:
            session.add(user)
    except IntegrityError:
        return JSONResponse(
            status_code=409,
            content={"kind": "validation", "message": "Username already taken."},
        )
    except SQLAlchemyError:
        logging.exception("post_signup failed (database error)")
        return JSONResponse(
            status_code=500,
            content={"kind": "storage", "message": "Could not create account."},
        )
    return SignupResponse(
        id=str(user.id),
        username=user.username,
        access_token=create_access_token(user.id),
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@auth_router.post("/login", response_model=LoginResponse)
async def post_login(req: LoginRequest, db: Database = Depends(get_database)):
    """Authenticate and return a JWT. Uses constant-time password check to avoid username enumeration."""
    async with db.session() as session:
        result = await session.exec(select(User).where(User.username == req.username.strip()))
        user = result.first()
    password_hash = user.password_hash if user else DUMMY_PASSWORD_HASH
    if not verify_password(req.password, password_hash) or user is None:
        return JSONResponse(
            status_code=401,
            content={"kind": "unauthenticated", "message": "Invalid username or password."},
        )
    return LoginResponse(
        access_token=create_access_token(user.id),
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


app = FastAPI(title="Plan Tracker API", lifespan=lifespan)
app.include_router(auth_router)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ChatCreateRequest(BaseModel):
    title: str = "New chat"


class ExtractRequest(BaseModel):
    text: str


class GoalFromPlanRequest(BaseModel):
    chat_id: UUID
    message_id: Optional[UUID] = None
    goal_title: str
    goal_description: Optional[str] = None
    steps: list[PlanStep]


class GoalFromMessageRequest(BaseModel):
    chat_id: UUID
    message_id: Optional[UUID] = None
    text: str


class GoalUpdateRequest(BaseModel):
    """Partial update: only fields present in the body are written."""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    deadline: Optional[datetime] = None


class StepCreateRequest(BaseModel):
    title: str
    order: Optional[int] = Field(default=None, ge=0)


class StepUpdateRequest(BaseModel):
    title: Optional[str] = None
    is_completed: Optional[bool] = None


class ReorderRequest(BaseModel):
    steps: list[StepOrder]


class BulkUpdateRequest(BaseModel):
    steps: list[StepChange]


@app.post("/chats", status_code=201)
async def post_chats(
    req: ChatCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Create a conversation owned by the authenticated user."""
    result = await create_chat(db, current_user.id, req.title)
    return _respond(
        result,
        lambda chat: {"id": str(chat.id), "title": chat.title},
    )


@app.post("/plans/extract")
async def post_extract(req: ExtractRequest, _user: User = Depends(get_current_user)):
    """Extract a plan from assistant text without saving anything."""
    plan, looks_like_plan = actions.extract_with_telemetry(req.text)
    return {"plan": _dump(plan), "has_plan_content": looks_like_plan}


@app.post("/goals/from-plan", status_code=201)
async def post_goal_from_plan(
    req: GoalFromPlanRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Persist a reviewed plan as a goal with ordered steps."""
    result = await actions.create_from_plan(
        db,
        current_user.id,
        req.chat_id,
        req.message_id,
        req.goal_title,
        req.goal_description,
        req.steps,
    )
    return _respond(result, _dump)


@app.post("/goals/from-message", status_code=201)
async def post_goal_from_message(
    req: GoalFromMessageRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Extract a plan from an assistant message and persist it in one call."""
    result = await actions.create_from_text(
        db, current_user.id, req.chat_id, req.message_id, req.text
    )
    return _respond(result, _dump)


@app.get("/goals")
async def get_goals(
    chat_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_GOALS_PAGE_SIZE, ge=0, le=MAX_GOALS_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """List goals newest first: those of one chat when chat_id is given, else the user's; status filters either. Returns { goals, total }."""
    if chat_id is not None:
        result = await actions.list_goals_by_chat(db, current_user.id, chat_id, status)
    else:
        result = await actions.list_goals_for_user(db, current_user.id, status)
    return _respond(
        result,
        lambda goals: {
            "goals": [_goal_json(g) for g in goals[offset : offset + limit]],
            "total": len(goals),
        },
    )


@app.get("/goals/{goal_id}")
async def get_goal(
    goal_id: UUID,
    with_steps: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    result = await actions.get_goal_for_user(db, current_user.id, goal_id, with_steps)
    return _respond(result, lambda g: _dump(g) if with_steps else _goal_json(g))


@app.patch("/goals/{goal_id}")
async def patch_goal(
    goal_id: UUID,
    req: GoalUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    changes = req.model_dump(exclude_unset=True)
    result = await actions.update_goal_for_user(db, current_user.id, goal_id, **changes)
    return _respond(result, _goal_json)


@app.delete("/goals/{goal_id}")
async def delete_goal(
    goal_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Delete a goal and, through the cascade, all of its steps."""
    return _respond(await actions.delete_goal_for_user(db, current_user.id, goal_id))


@app.get("/goals/{goal_id}/progress")
async def get_goal_progress(
    goal_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    result = await actions.goal_progress_for_user(db, current_user.id, goal_id)
    return _respond(result, _dump)


@app.post("/goals/{goal_id}/steps", status_code=201)
async def post_goal_step(
    goal_id: UUID,
    req: StepCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    result = await actions.add_step_for_user(db, current_user.id, goal_id, req.title, req.order)
    return _respond(result, _step_json)


@app.put("/goals/{goal_id}/steps/order")
async def put_step_order(
    goal_id: UUID,
    req: ReorderRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Apply new order values to steps of this goal in one transaction."""
    result = await actions.reorder_steps_for_user(db, current_user.id, goal_id, req.steps)
    return _respond(result, lambda steps: {"steps": [_step_json(s) for s in steps]})


@app.patch("/goals/{goal_id}/steps")
async def patch_goal_steps(
    goal_id: UUID,
    req: BulkUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Update several steps of this goal at once; all entries succeed or none do."""
    result = await actions.bulk_update_steps_for_user(db, current_user.id, goal_id, req.steps)
    return _respond(result, lambda steps: {"steps": [_step_json(s) for s in steps]})


@app.put("/steps/{step_id}")
async def put_step(
    step_id: UUID,
    req: StepUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return _respond(
        await actions.update_step_for_user(
            db, current_user.id, step_id, title=req.title, is_completed=req.is_completed
        )
    )


@app.post("/steps/{step_id}/toggle")
async def post_step_toggle(
    step_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return _respond(await actions.toggle_step_for_user(db, current_user.id, step_id))


@app.delete("/steps/{step_id}")
async def delete_step(
    step_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Delete a step; the remaining steps are renumbered 0..n-1."""
    return _respond(await actions.delete_step_for_user(db, current_user.id, step_id))
