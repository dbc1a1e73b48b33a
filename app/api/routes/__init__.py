"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.quota_routes import router as quota_router
from app.api.routes.escrow_routes import router as escrow_router
from app.api.routes.skill_routes import router as skill_router
from app.api.routes.admin_routes import router as admin_router
from app.api.routes.health_routes import router as health_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(quota_router)
api_router.include_router(escrow_router)
api_router.include_router(skill_router)
api_router.include_router(admin_router)
api_router.include_router(health_router)
