"""API v1 router configuration."""

from fastapi import APIRouter

from storage_advisor.api.v1 import analyses, catalog

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(analyses.router, prefix="/analyses", tags=["analyses"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
