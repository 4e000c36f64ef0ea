from fastapi import APIRouter

from momentracker.api.v1.endpoints.dashboard import router as dashboard_router
from momentracker.api.v1.endpoints.health import router as health_router
from momentracker.api.v1.endpoints.live_stream import router as live_stream_router
from momentracker.api.v1.endpoints.quotes import router as quotes_router
from momentracker.api.v1.endpoints.trending import router as trending_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(trending_router, prefix="/trending", tags=["trending"])
api_router.include_router(quotes_router, prefix="/quotes", tags=["quotes"])
api_router.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(live_stream_router, prefix="/live", tags=["live"])
