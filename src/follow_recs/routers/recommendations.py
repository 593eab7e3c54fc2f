"""Recommendations router – serves stored or on-demand account suggestions.

GET /recommendations/{user_id}
    Return the stored list; compute (and store) one on demand when none
    exists or ``refresh=true``.  Failures never leak to the caller: the
    response is an empty list with a short message.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..config import Settings, get_settings
from ..errors import NotFound, RetrievalError
from ..lib.engine import RecommendationEngine
from ..lib.stores.recommendations import get_recommendations
from ..models import ScoredRecommendation
from ..security import verify_api_key

router = APIRouter(tags=["recommendations"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "No recommendations available right now"


class RecommendationsResponse(BaseModel):
    user_id: str
    updated_at: datetime | None = None
    items: list[ScoredRecommendation] = Field(default_factory=list)
    message: str | None = None


def get_engine(request: Request, settings: Settings = Depends(get_settings)) -> RecommendationEngine:
    return RecommendationEngine(
        request.app.state.es,
        settings,
        provider=getattr(request.app.state, "embedding_provider", None),
    )


@router.get("/recommendations/{user_id}", response_model=RecommendationsResponse)
async def recommendations_for_user(
    request: Request,
    user_id: str,
    refresh: bool = Query(False, description="Recompute even if a stored list exists"),
    engine: RecommendationEngine = Depends(get_engine),
) -> RecommendationsResponse:
    es = request.app.state.es
    try:
        if not refresh:
            stored = await get_recommendations(es, user_id)
            if stored is not None:
                return RecommendationsResponse(
                    user_id=user_id, updated_at=stored.updated_at, items=stored.items
                )

        data = await engine.refresh(user_id)
    except NotFound:
        logger.info("Recommendations requested for unknown user %s", user_id)
        return RecommendationsResponse(user_id=user_id, message=UNAVAILABLE_MESSAGE)
    except RetrievalError as exc:
        logger.warning("Recommendation retrieval failed for user %s: %s", user_id, exc)
        return RecommendationsResponse(user_id=user_id, message=UNAVAILABLE_MESSAGE)
    except Exception:
        logger.exception("Failed to generate recommendations for user %s", user_id)
        return RecommendationsResponse(user_id=user_id, message=UNAVAILABLE_MESSAGE)

    return RecommendationsResponse(user_id=user_id, updated_at=data.updated_at, items=data.items)
