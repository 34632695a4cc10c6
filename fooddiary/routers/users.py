"""
User management endpoints:
  POST   /users                          — create a user profile
  GET    /users/check?username=<name>    — is the username taken?
  GET    /users/{id}                     — fetch a user profile
  POST   /users/{id}/sync                — advance day/week, close past weeks
  GET    /users/{id}/weekly-progress     — all weekly status records
  DELETE /users/{id}                     — withdraw and remove all user data
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.clients.exposure_ledger import ExposureLedger
from fooddiary.database import get_db
from fooddiary.dependencies import get_ledger, get_synchronizer
from fooddiary.schemas import (
    ErrorResponse,
    SyncDayResponse,
    UserCreate,
    UserResponse,
    UsernameCheckResponse,
    WeeklyProgressResponse,
)
from fooddiary.services.progress import WeeklyProgressStore
from fooddiary.services.sync import DayWeekSynchronizer
from fooddiary.services.users import UserService

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post(
    "/",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Register a new user on day 1 / week 1.

    The first weekly progress record is opened by the first sync call, not
    here: the client syncs on every launch, including the first one.
    """
    with tracer.start_as_current_span("create_user"):
        return await UserService(db).create(body.username, body.display_name)


@router.get("/check", response_model=UsernameCheckResponse)
async def check_username(
    username: str = Query(...), db: AsyncSession = Depends(get_db)
):
    exists = await UserService(db).username_exists(username)
    return UsernameCheckResponse(username=username, exists=exists)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    return await UserService(db).get(user_id)


@router.post(
    "/{user_id}/sync",
    response_model=SyncDayResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def sync_user_day(
    user_id: str, synchronizer: DayWeekSynchronizer = Depends(get_synchronizer)
):
    """
    Recompute the user's day/week and close any weeks that ended since the
    last sync. Safe to call any number of times.
    """
    result = await synchronizer.sync(user_id)
    return SyncDayResponse(
        user=UserResponse.model_validate(result.user),
        is_new_week=result.is_new_week,
        last_progress=(
            WeeklyProgressResponse.model_validate(result.last_progress)
            if result.last_progress
            else None
        ),
    )


@router.get("/{user_id}/weekly-progress", response_model=list[WeeklyProgressResponse])
async def list_weekly_progress(user_id: str, db: AsyncSession = Depends(get_db)):
    await UserService(db).get(user_id)
    return await WeeklyProgressStore(db).list_for_user(user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    ledger: ExposureLedger = Depends(get_ledger),
):
    with tracer.start_as_current_span("withdraw_user"):
        await UserService(db).withdraw(user_id)
        await db.commit()
        # Only after the commit: a failed purge leaves history that expires
        # with its TTL, while a failed commit leaves it intact.
        await ledger.purge_user(user_id)
