from fastapi import APIRouter

from release_orchestrator import __version__
from release_orchestrator.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": __version__,
    }
