from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from voiceguide.api import get_guide_service, get_location_feed
from voiceguide.core.errors import AlreadyActive, BackendUnavailable
from voiceguide.models.domain import GeoFix
from voiceguide.models.schemas import GuideStatusSchema, LocationAccepted, LocationUpdate
from voiceguide.services.guide_service import GuideService
from voiceguide.tools.location_tool import PushLocationSource

router = APIRouter()


@router.post("/{trip_id}/start", response_model=GuideStatusSchema)
async def start_guide(
    trip_id: str,
    demo: bool = False,
    position: Optional[LocationUpdate] = None,
    service: GuideService = Depends(get_guide_service),
) -> GuideStatusSchema:
    initial_fix = GeoFix(lat=position.lat, lon=position.lon) if position else None
    try:
        return await service.start(trip_id=trip_id, demo=demo, initial_fix=initial_fix)
    except AlreadyActive as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except BackendUnavailable as exc:
        raise HTTPException(
            status_code=503,
            detail="Could not start the guide, please try again",
            headers={"Retry-After": "5"},
        ) from exc


@router.post("/{trip_id}/restore", response_model=GuideStatusSchema)
async def restore_guide(
    trip_id: str, service: GuideService = Depends(get_guide_service)
) -> GuideStatusSchema:
    try:
        return await service.restore(trip_id=trip_id)
    except AlreadyActive as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/location", response_model=LocationAccepted, status_code=202)
async def push_location(
    update: LocationUpdate, feed: PushLocationSource = Depends(get_location_feed)
) -> LocationAccepted:
    return LocationAccepted(accepted=feed.push(GeoFix(lat=update.lat, lon=update.lon)))


@router.post("/audio/toggle", response_model=GuideStatusSchema)
async def toggle_audio(service: GuideService = Depends(get_guide_service)) -> GuideStatusSchema:
    return service.toggle_audio()


@router.post("/end", response_model=GuideStatusSchema)
async def end_guide(service: GuideService = Depends(get_guide_service)) -> GuideStatusSchema:
    return await service.stop()


@router.get("/status", response_model=GuideStatusSchema)
async def guide_status(service: GuideService = Depends(get_guide_service)) -> GuideStatusSchema:
    return service.status()
