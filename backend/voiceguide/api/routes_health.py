from fastapi import APIRouter, Depends

from voiceguide.api import get_guide_service
from voiceguide.core.config import settings
from voiceguide.services.guide_service import GuideService

router = APIRouter()


@router.get("/health")
def healthcheck(service: GuideService = Depends(get_guide_service)) -> dict:
    return {
        "status": "ok",
        "session_backend": settings.session_backend,
        "guide_active": service.coordinator.is_active,
    }
