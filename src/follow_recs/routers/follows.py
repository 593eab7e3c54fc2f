"""Follow graph endpoints:
  POST /follows/toggle           - follow or unfollow another user
  GET  /users/{id}/followers     - cursor-paginated followers
  GET  /users/{id}/following     - cursor-paginated follows
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..errors import InvalidArgument, NotFound, TransactionConflict
from ..lib.follows import toggle_follow
from ..lib.rate_limit import SlidingWindowRateLimiter
from ..lib.stores.graph import get_followers, get_following_page
from ..models import FollowersPage, FollowToggleResult
from ..security import verify_api_key

router = APIRouter(tags=["follows"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


class FollowRequest(BaseModel):
    follower_id: str
    followee_id: str


def get_follow_rate_limiter(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SlidingWindowRateLimiter:
    """The application's follow limiter, created on first use."""
    limiter = getattr(request.app.state, "follow_rate_limiter", None)
    if limiter is None:
        limiter = SlidingWindowRateLimiter(settings.follow_rate_limit, settings.follow_rate_window)
        request.app.state.follow_rate_limiter = limiter
    return limiter


@router.post("/follows/toggle", response_model=FollowToggleResult)
async def follows_toggle(
    request: Request,
    body: FollowRequest,
    settings: Settings = Depends(get_settings),
    limiter: SlidingWindowRateLimiter = Depends(get_follow_rate_limiter),
) -> FollowToggleResult:
    if not limiter.allow(body.follower_id):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many follow requests, slow down",
        )

    try:
        return await toggle_follow(
            request.app.state.es,
            body.follower_id,
            body.followee_id,
            max_retries=settings.toggle_max_retries,
            backoff=settings.toggle_retry_backoff,
            lock_ttl=settings.lock_ttl_seconds,
        )
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except TransactionConflict as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Follow update is busy, try again",
        ) from exc


@router.get("/users/{user_id}/followers", response_model=FollowersPage)
async def list_followers(
    request: Request,
    user_id: str,
    limit: int | None = Query(None, ge=1, le=100),
    cursor: str | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> FollowersPage:
    try:
        return await get_followers(
            request.app.state.es,
            user_id,
            limit=limit or settings.followers_page_size,
            cursor=cursor,
        )
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/users/{user_id}/following", response_model=FollowersPage)
async def list_following(
    request: Request,
    user_id: str,
    limit: int | None = Query(None, ge=1, le=100),
    cursor: str | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> FollowersPage:
    try:
        return await get_following_page(
            request.app.state.es,
            user_id,
            limit=limit or settings.followers_page_size,
            cursor=cursor,
        )
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
