"""
Feed retrieval endpoints:
  GET /feed?user_id=<id>&speed=<fast|slow>&count=<n>
      ranked daily feed (see services/feed.py for the pipeline)
  GET /feed/categories?user_id=<id>&speed=<..>&categories=a&categories=b&count=<n>
      random foods from the given categories, unranked
"""
import logging
import time

from fastapi import APIRouter, Depends, Query

from fooddiary.schemas import ErrorResponse, FoodLikeResponse, StandardFoodResponse
from fooddiary.dependencies import get_feed_service
from fooddiary.services.feed import FeedItem, FeedService
from fooddiary.telemetry import FEED_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(items: list[FeedItem]) -> list[FoodLikeResponse]:
    return [
        FoodLikeResponse(
            food=StandardFoodResponse.model_validate(item.food),
            is_liked=item.is_liked,
        )
        for item in items
    ]


@router.get(
    "/",
    response_model=list[FoodLikeResponse],
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_feed(
    user_id: str = Query(..., description="ID of the requesting user"),
    speed: str = Query(..., description="'fast' or 'slow'"),
    count: int = Query(..., description="Number of foods to return"),
    feed: FeedService = Depends(get_feed_service),
):
    start_time = time.time()
    items = await feed.main_feed(user_id, speed, count)
    FEED_LATENCY.observe(time.time() - start_time)
    return _to_response(items)


@router.get(
    "/categories",
    response_model=list[FoodLikeResponse],
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_feed_by_categories(
    user_id: str = Query(...),
    speed: str = Query(...),
    categories: list[str] = Query(...),
    count: int = Query(...),
    feed: FeedService = Depends(get_feed_service),
):
    items = await feed.by_categories(user_id, speed, categories, count)
    return _to_response(items)
