"""
Marketplace Ledger Service - Main Application

FastAPI backend with:
- MongoDB for every document (users, quotas, orders, escrows, wallets, skills)
- Premium quota metering with periodic reset
- Escrow-backed order funding with commission split
- JWT authentication and admin moderation

Run: uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.mongodb import init_mongo_indexes
from app.services.exceptions import LedgerError
from app.services.quota_service import get_quota_service

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create indexes and plan templates on startup."""
    try:
        init_mongo_indexes()
        get_quota_service().seed_default_quotas()
    except PyMongoError as e:
        logger.error("MongoDB initialization failed: %s", e)
    yield


# Create FastAPI app
app = FastAPI(
    title="Marketplace Ledger Service",
    description="""
    Metering and ledger backend for a job marketplace.

    ## Features
    - **Authentication**: JWT bearer tokens
    - **Premium quotas**: per-user, per-period entitlements with idempotent consumption
    - **Escrow**: funds held per order, released to the seller or refunded to the buyer
    - **Wallets**: seller earnings and buyer refunds
    - **Skills**: deduplicated catalog with usage counters
    - **Admin**: moderation actions with audit trail, platform stats
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Marketplace Ledger Service"}
