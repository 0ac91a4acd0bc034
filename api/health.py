"""GET /health: liveness check."""

from datetime import datetime, timezone

from fastapi import APIRouter

from api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return HealthResponse(status="ok", timestamp=timestamp.replace("+00:00", "Z"))
