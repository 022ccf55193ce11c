"""
HTTP wrapper around the venue engine.

Run with: python -m venue_engine.main  (or uvicorn venue_engine.main:app)
"""
import logging
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from venue_engine.core.config import settings
from venue_engine.core.logging_setup import configure_logging
from venue_engine.engine import VenueResolutionEngine
from venue_engine.models import ClassifyRequest, ClassifyResponse, GeoPoint

logger = logging.getLogger(__name__)

router = APIRouter()


def get_engine(request: Request) -> VenueResolutionEngine:
    return request.app.state.engine


@router.post("/classify", response_model=ClassifyResponse)
async def classify(
    req: ClassifyRequest,
    response: Response,
    engine: VenueResolutionEngine = Depends(get_engine),
):
    point = GeoPoint(lat=req.lat, lng=req.lng)
    if req.grid_key is not None:
        server_key = engine.indexer.key_for(point)
        if server_key != req.grid_key:
            logger.debug(f"Client grid key {req.grid_key} != server key {server_key}")

    venue = await engine.classify(point)

    response.headers["Cache-Control"] = (
        f"public, max-age={settings.CLIENT_CACHE_MAX_AGE_S}"
    )
    return ClassifyResponse(venue=venue)


@router.get("/health")
async def health(engine: VenueResolutionEngine = Depends(get_engine)):
    return {
        "status": "ok",
        "providers": [a.name.value for a in engine.adapters],
        "cached_cells": len(engine.cache),
    }


def create_app(engine: Optional[VenueResolutionEngine] = None) -> FastAPI:
    app = FastAPI(title="Venue Resolution Service", version="0.1.0")
    app.state.engine = engine or VenueResolutionEngine(settings.engine_config())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(app, host=settings.SERVICE_HOST, port=settings.APP_PORT)
