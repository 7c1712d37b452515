"""Liveness endpoint."""

from fastapi import APIRouter

from expense_tracker.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="Server running")
