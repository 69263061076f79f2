from fastapi import APIRouter

from app.api.v1 import copywriting, images, stories


api_router = APIRouter(prefix="/v1")

api_router.include_router(stories.router)
api_router.include_router(copywriting.router)
api_router.include_router(images.router)
