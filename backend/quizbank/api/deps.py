"""FastAPI dependencies shared by the endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from quizbank.common.request_id import USER_ID_HEADER
from quizbank.db.session import get_db


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> UUID:
    """Dependency returning the already-authenticated user's id."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{USER_ID_HEADER} header missing",
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {USER_ID_HEADER} header",
        ) from None


DbSession = Annotated[Session, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
