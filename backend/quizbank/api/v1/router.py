"""API v1 router."""

from fastapi import APIRouter

from quizbank.api.v1.endpoints import favorites, health, questions, tests

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(tests.router, prefix="/tests", tags=["Tests"])
api_router.include_router(questions.router, prefix="/questions", tags=["Questions"])
api_router.include_router(favorites.router, prefix="/favorites", tags=["Favorites"])
