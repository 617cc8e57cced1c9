"""Favorites list endpoint."""

from fastapi import APIRouter

from quizbank.api.deps import CurrentUserId, DbSession
from quizbank.schemas.question import FavoriteOut
from quizbank.services import favorites as favorites_service

router = APIRouter()


@router.get("", response_model=list[FavoriteOut])
def list_favorites(db: DbSession, user_id: CurrentUserId):
    """All favorites of the current user, most recent first."""
    return [FavoriteOut.from_entity(f) for f in favorites_service.list_favorites(db, user_id)]
