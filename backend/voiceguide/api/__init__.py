from fastapi import HTTPException
from starlette.requests import Request

from voiceguide.services.guide_service import GuideService
from voiceguide.tools.location_tool import PushLocationSource


def get_guide_service(request: Request) -> GuideService:
    service = getattr(request.app.state, "guide_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Guide service not initialized")
    return service


def get_location_feed(request: Request) -> PushLocationSource:
    feed = getattr(request.app.state, "location_feed", None)
    if feed is None:
        raise HTTPException(status_code=500, detail="Location feed not initialized")
    return feed
