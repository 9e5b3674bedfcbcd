from fastapi import APIRouter
from tvsync.api.endpoints import tvdb

api_router = APIRouter()
api_router.include_router(tvdb.router, prefix="/tvdb", tags=["tvdb"])
