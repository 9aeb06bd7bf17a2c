from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voiceguide.api import routes_guide, routes_health
from voiceguide.core.config import settings
from voiceguide.core.logging import configure_logging
from voiceguide.guide.coordinator import GuideSessionCoordinator
from voiceguide.services.guide_service import (
    GuideService,
    build_location_source,
    build_narration_player,
    build_session_backend,
)
from voiceguide.storage.repository import InMemoryRepository
from voiceguide.tools.location_tool import PushLocationSource


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.guide_service.shutdown()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    repository = InMemoryRepository()
    location_feed = PushLocationSource()
    coordinator = GuideSessionCoordinator(
        backend=build_session_backend(), player=build_narration_player()
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(routes_guide.router, prefix="/guide", tags=["guide"])

    # Inject collaborators into state for dependencies
    app.state.location_feed = location_feed
    app.state.guide_service = GuideService(
        coordinator=coordinator,
        repository=repository,
        location_source=build_location_source(location_feed),
    )
    app.state.settings = settings
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
