"""API v1 router aggregator."""

from fastapi import APIRouter

from app.api.v1.blueprint.routes import router as blueprint_router

api_router = APIRouter()

api_router.include_router(blueprint_router, prefix="/strategic-blueprint", tags=["Strategic Blueprint"])
