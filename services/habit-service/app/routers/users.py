"""
User data endpoint

- GET /user-data
"""
from fastapi import APIRouter, Depends, Response, status

from app.dependencies import get_user_progress_service
from app.logic.leveling import xp_progress_in_level
from app.middleware.auth import get_current_user_id
from app.schemas import ErrorResponse, UserDataResponse, XpProgress
from app.services.user_progress_service import UserProgressService

router = APIRouter(tags=["Users"])


@router.get(
    "/user-data",
    response_model=UserDataResponse,
    response_model_exclude_none=True,
    responses={
        201: {"model": UserDataResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def get_user_data(
    response: Response,
    user_id: str = Depends(get_current_user_id),
    service: UserProgressService = Depends(get_user_progress_service),
):
    """
    Level and XP of the authenticated user.

    First access creates the record (level 1, 0 XP) and answers 201.
    """
    record, created = service.get_or_create(user_id)

    if created:
        response.status_code = status.HTTP_201_CREATED

    return UserDataResponse(
        userId=record['userId'],
        level=record['level'],
        totalXP=record['totalXP'],
        stats=record['stats'],
        createdAt=record.get('createdAt'),
        updatedAt=record.get('updatedAt'),
        xpProgress=XpProgress(**xp_progress_in_level(record['totalXP'])),
        message="New user created" if created else None,
    )
