"""API route registration."""

from fastapi import APIRouter

from gallerysync.api.routes import auth, cache, connectivity, disk, files, health, public

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(disk.router, prefix="/disk", tags=["disk"])
api_router.include_router(cache.router, prefix="/cache", tags=["cache"])
api_router.include_router(connectivity.router, prefix="/connectivity", tags=["connectivity"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
