"""
Review endpoints:
  POST   /reviews                          — log a meal
  GET    /reviews?user_id=&day=            — a user's reviews for one day
  GET    /reviews/recent?user_id=&count=   — latest reviews with a catalog food
  PATCH  /reviews/{id}                     — edit (current week only)
  DELETE /reviews/{id}?user_id=            — delete
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.database import get_db
from fooddiary.schemas import (
    ErrorResponse,
    RecentReviewResponse,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
    StandardFoodResponse,
)
from fooddiary.services.reviews import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post(
    "/",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_review(body: ReviewCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_review") as span:
        span.set_attribute("user.id", body.user_id)
        return await ReviewService(db).create(
            user_id=body.user_id,
            name=body.name,
            foods=[f.model_dump() for f in body.foods],
            meal_time=body.meal_time,
            rating=body.rating,
            comment=body.comment,
            image_url=body.image_url,
        )


@router.get("/", response_model=list[ReviewResponse])
async def list_reviews_by_day(
    user_id: str = Query(...),
    day: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await ReviewService(db).list_by_day(user_id, day)


@router.get("/recent", response_model=list[RecentReviewResponse])
async def list_recent_reviews(
    user_id: str = Query(...),
    count: int = Query(3),
    db: AsyncSession = Depends(get_db),
):
    pairs = await ReviewService(db).recent_with_standard_food(user_id, count)
    return [
        RecentReviewResponse(
            comment=review.comment,
            rating=review.rating,
            created_at=review.created_at,
            food=StandardFoodResponse.model_validate(food) if food else None,
        )
        for review, food in pairs
    ]


@router.patch(
    "/{review_id}",
    response_model=ReviewResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_review(review_id: str, body: ReviewUpdate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("update_review"):
        return await ReviewService(db).update(
            review_id,
            body.user_id,
            meal_time=body.meal_time,
            rating=body.rating,
            comment=body.comment,
            image_url=body.image_url,
        )


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(review_id: str, user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("delete_review"):
        await ReviewService(db).delete(review_id, user_id)
