from fastapi import APIRouter

from xfunnel.api.v1.journey import router as journey_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(journey_router)
