"""
Food catalog endpoints:
  POST   /foods/standard          — bulk-create catalog foods
  GET    /foods/liked?user_id=    — foods the user likes
  POST   /foods/resolve           — map free-text names to review food items
  GET    /foods/{id}              — fetch a catalog food
  POST   /foods/{id}/like         — like a food
  DELETE /foods/{id}/like         — unlike a food
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fooddiary.database import get_db
from fooddiary.errors import ConflictError, NotFoundError, ValidationError
from fooddiary.models import FOOD_TYPE_CUSTOM, FOOD_TYPE_STANDARD, Like, StandardFood, User
from fooddiary.schemas import (
    ErrorResponse,
    LikeRequest,
    ResolveFoodsRequest,
    ReviewFoodItem,
    StandardFoodCreate,
    StandardFoodResponse,
)
from fooddiary.services.catalog import CandidateStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post(
    "/standard",
    response_model=list[StandardFoodResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_standard_foods(
    body: list[StandardFoodCreate], db: AsyncSession = Depends(get_db)
):
    foods = [
        StandardFood(
            name=f.name,
            image_url=f.image_url,
            speed=f.speed,
            parents=f.parents,
            categories=f.categories,
            like_count=0,
            review_count=0,
            total_rating=0,
        )
        for f in body
    ]
    try:
        created = await CandidateStore(db).create_many(foods)
    except IntegrityError as exc:
        raise ConflictError("a food with the same name already exists") from exc
    logger.info("Created %d standard foods", len(created))
    return created


@router.get("/liked", response_model=list[StandardFoodResponse])
async def list_liked_foods(user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(StandardFood)
        .join(Like, Like.food_id == StandardFood.food_id)
        .where(Like.user_id == user_id)
        .order_by(Like.created_at.desc())
    )
    return list(rows.scalars().all())


@router.post("/resolve", response_model=list[ReviewFoodItem])
async def resolve_food_items(body: ResolveFoodsRequest, db: AsyncSession = Depends(get_db)):
    """
    Turn the names a user typed into review food items: an exact catalog match
    becomes a standard item, anything else becomes (or reuses) a custom food.
    """
    names = [n.strip() for n in body.names if n.strip()]
    if not names:
        raise ValidationError("names list cannot be empty")

    catalog = CandidateStore(db)
    items: list[ReviewFoodItem] = []
    with tracer.start_as_current_span("resolve_food_items"):
        for name in names:
            standard = await catalog.find_by_name(name)
            if standard is not None:
                items.append(
                    ReviewFoodItem(food_id=standard.food_id, food_name=standard.name, type=FOOD_TYPE_STANDARD)
                )
                continue
            custom = await catalog.find_custom_by_name(name) or await catalog.create_custom(name)
            items.append(
                ReviewFoodItem(food_id=custom.food_id, food_name=custom.name, type=FOOD_TYPE_CUSTOM)
            )
    return items


@router.get("/{food_id}", response_model=StandardFoodResponse, responses={404: {"model": ErrorResponse}})
async def get_food(food_id: str, db: AsyncSession = Depends(get_db)):
    food = await CandidateStore(db).get(food_id)
    if food is None:
        raise NotFoundError("food not found")
    return food


@router.post("/{food_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like_food(food_id: str, body: LikeRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("like_food"):
        if not await db.get(User, body.user_id):
            raise NotFoundError("user not found")
        catalog = CandidateStore(db)
        if not await catalog.get(food_id):
            raise NotFoundError("food not found")

        existing = await db.get(Like, (body.user_id, food_id))
        if existing is not None:
            raise ConflictError("food already liked")

        db.add(Like(user_id=body.user_id, food_id=food_id))
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError("food already liked") from exc
        await catalog.adjust_like_count(food_id, 1)


@router.delete("/{food_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_food(food_id: str, user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("unlike_food"):
        result = await db.execute(
            delete(Like).where(Like.user_id == user_id, Like.food_id == food_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("like not found")
        await CandidateStore(db).adjust_like_count(food_id, -1)
