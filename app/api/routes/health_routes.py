"""
Health Routes

GET /health - Database connectivity (open)
GET /health/integrations - AI text API and image host credentials (admin only)
"""

from fastapi import APIRouter, Depends

from app.core.auth import require_admin
from app.db.mongodb import test_mongo_connection
from app.services.ai_client import get_ai_client
from app.services.image_host import ImageHostClient

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "mongodb": "connected" if test_mongo_connection() else "disconnected",
    }


@router.get("/integrations")
async def integrations_check(admin: dict = Depends(require_admin)):
    """Ping the third-party APIs with the configured credentials."""
    ai = get_ai_client()
    image_ok, image_status, _ = ImageHostClient().ping()
    return {
        "ai": {"model": ai.model, "connected": ai.test_connection()},
        "image_host": {"connected": image_ok, "status": image_status},
    }
