from datetime import datetime, timezone

from fastapi import APIRouter

from campus_connect.core.config import get_settings
from campus_connect.core.errors import AVAILABLE_ROUTES

router = APIRouter()


@router.get("/")
async def root() -> dict[str, object]:
    return {
        "message": f"Welcome to {get_settings().app_name}",
        "endpoints": AVAILABLE_ROUTES,
    }


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
