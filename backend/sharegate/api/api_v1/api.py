from fastapi import APIRouter

from sharegate.api.api_v1.endpoints import files, shares

api_router = APIRouter()
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(shares.router, prefix="/shares", tags=["shares"])
