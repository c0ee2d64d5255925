from fastapi import APIRouter

from discovery.api.routes import admin, board, health, session

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(admin.public_router, prefix="/admin", tags=["admin"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(board.router, prefix="/admin", tags=["board"])
api_router.include_router(session.router, prefix="/session", tags=["session"])
