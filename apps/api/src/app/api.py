from fastapi import APIRouter

from app.modules.clubs import router as clubs_router
from app.modules.posts import router as posts_router
from app.modules.users import router as users_router

api_router = APIRouter()

api_router.include_router(users_router, prefix="/users", tags=["Users"])

api_router.include_router(clubs_router, prefix="/clubs", tags=["Clubs"])

api_router.include_router(posts_router, tags=["Posts"])
