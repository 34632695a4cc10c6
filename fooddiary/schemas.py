"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=15)
    display_name: Optional[str] = None


class UserResponse(BaseModel):
    user_id: str
    username: str
    display_name: Optional[str]
    day: int
    week: int
    created_at: datetime

    class Config:
        from_attributes = True


class UsernameCheckResponse(BaseModel):
    username: str
    exists: bool


# ──────────────────────────── Weekly progress ─────────────────────────────

class WeeklyProgressResponse(BaseModel):
    progress_id: str
    week: int
    review_count: int
    total_rating: int
    status: int
    is_finalized: bool

    class Config:
        from_attributes = True


class SyncDayResponse(BaseModel):
    user: UserResponse
    is_new_week: bool
    # The week that just closed, when is_new_week is true
    last_progress: Optional[WeeklyProgressResponse] = None


# ──────────────────────────── Foods ───────────────────────────────────────

class StandardFoodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    image_url: str
    speed: Literal["fast", "slow"]
    parents: list[str]
    categories: list[str]


class StandardFoodResponse(BaseModel):
    food_id: str
    name: str
    image_url: str
    speed: str
    parents: list[str]
    categories: list[str]
    like_count: int
    review_count: int
    total_rating: int

    class Config:
        from_attributes = True


class FoodLikeResponse(BaseModel):
    """A food as shown in a feed, with whether the viewer already likes it."""
    food: StandardFoodResponse
    is_liked: bool


class ResolveFoodsRequest(BaseModel):
    names: list[str]


class ReviewFoodItem(BaseModel):
    food_id: str
    food_name: str
    type: Literal["standard", "custom"]


class LikeRequest(BaseModel):
    user_id: str


# ──────────────────────────── Reviews ─────────────────────────────────────

class ReviewCreate(BaseModel):
    user_id: str
    name: str = Field(..., min_length=1, max_length=100)
    foods: list[ReviewFoodItem]
    meal_time: str
    image_url: str = ""
    comment: str = ""
    rating: int


class ReviewUpdate(BaseModel):
    user_id: str
    meal_time: str
    image_url: str = ""
    comment: str = ""
    rating: int


class ReviewResponse(BaseModel):
    review_id: str
    user_id: str
    name: str
    foods: list[ReviewFoodItem]
    meal_time: str
    image_url: str
    comment: str
    rating: int
    day: int
    week: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RecentReviewResponse(BaseModel):
    comment: str
    rating: int
    created_at: datetime
    food: Optional[StandardFoodResponse]


# ──────────────────────────── Errors ──────────────────────────────────────

class ErrorResponse(BaseModel):
    code: str
    message: str
