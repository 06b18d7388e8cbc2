from fastapi import APIRouter

from campus_connect.api.routes import batch, events, health, opportunities, work

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(work.router, tags=["work"])
api_router.include_router(events.router, tags=["events"])
api_router.include_router(batch.router, prefix="/opportunities", tags=["batch"])
api_router.include_router(opportunities.router, prefix="/opportunities", tags=["opportunities"])
