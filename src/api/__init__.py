"""API router aggregation."""
from fastapi import APIRouter

from src.api.v1 import vision

api_router = APIRouter()

v1_router = APIRouter(prefix="/v1")

# Sub-routers carry no prefix of their own; the resource prefix is added here
v1_router.include_router(vision.router, prefix="/vision", tags=["vision"])

api_router.include_router(v1_router)

__all__ = ["api_router"]
