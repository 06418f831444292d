from fastapi import APIRouter

from adaptiq.core.resilience import get_breakers_status
from adaptiq.core.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "adaptiq-api",
        "llm_provider": settings.llm_provider,
        "circuit_breakers": get_breakers_status(),
    }
