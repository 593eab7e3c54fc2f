from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(tags=["health"])

SERVICE_NAME = "follow-recs"


class HealthResponse(BaseModel):
    status: str
    service: str


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck() -> HealthResponse:
    """Liveness check; does not touch Elasticsearch and needs no API key."""
    return HealthResponse(status="ok", service=SERVICE_NAME)
