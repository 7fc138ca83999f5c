from __future__ import annotations

from fastapi import APIRouter

from ..submissions.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")
