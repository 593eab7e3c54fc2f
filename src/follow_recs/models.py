from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class UserProfile(BaseModel):
    """A user record as stored in the ``users`` index."""

    id: str = Field(..., description="Stable opaque user identifier")
    username: str = ""
    display_name: str = ""
    bio: str = ""
    tags: list[str] = Field(default_factory=list, description="Interest tags")
    joined_communities: list[str] = Field(default_factory=list)
    relationship_status: str | None = None
    followers_count: int = Field(0, ge=0)
    following_count: int = Field(0, ge=0)
    last_active: datetime | None = None
    joined_at: datetime | None = None
    is_banned: bool = False
    profile_embedding: list[float] | None = Field(
        None, description="Cached profile text embedding, if one was stored"
    )

    @field_validator("followers_count", "following_count", mode="before")
    @classmethod
    def _floor_counter(cls, value):
        # Denormalized counters can drift below zero in stored data.
        if value is None:
            return 0
        return max(int(value), 0)


class FollowEdge(BaseModel):
    follower_id: str
    followee_id: str
    followed_at: datetime


class FollowState(str, Enum):
    NOT_FOLLOWING = "not_following"
    FOLLOWING = "following"


class FollowToggleResult(BaseModel):
    state: FollowState
    followers_count: int = Field(..., description="Followee's follower count after the toggle")
    following_count: int = Field(..., description="Follower's following count after the toggle")


class FollowersPage(BaseModel):
    items: list[FollowEdge] = Field(default_factory=list)
    next_cursor: str | None = None


class ScoredRecommendation(BaseModel):
    """One ranked account suggestion."""

    user_id: str
    username: str | None = None
    score: float
    reason: str


class RecommendationList(BaseModel):
    """The stored value for one requesting user; always replaced wholesale."""

    updated_at: datetime
    items: list[ScoredRecommendation] = Field(default_factory=list)
