"""
Habit API endpoints

- POST   /habits
- GET    /habits
- POST   /habits/complete
- DELETE /habits/{habitId}
"""
from fastapi import APIRouter, Depends, status

from app.dependencies import get_completion_service, get_habit_service
from app.middleware.auth import get_current_user_id
from app.schemas import (
    CompleteHabitRequest,
    CompletionResult,
    ErrorResponse,
    HabitCreate,
    HabitCreatedResponse,
    HabitDeletedResponse,
    HabitListResponse,
    HabitResponse,
)
from app.services.completion_service import CompletionService
from app.services.habit_service import HabitService

router = APIRouter(prefix="/habits", tags=["Habits"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=HabitCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def create_habit(
    payload: HabitCreate,
    user_id: str = Depends(get_current_user_id),
    service: HabitService = Depends(get_habit_service),
):
    """Create a new habit for the authenticated user."""
    habit = service.create_habit(user_id, payload)
    return HabitCreatedResponse(habit=HabitResponse(**habit))


@router.get("", response_model=HabitListResponse, responses=ERROR_RESPONSES)
def list_habits(
    user_id: str = Depends(get_current_user_id),
    service: HabitService = Depends(get_habit_service),
):
    """All habits of the authenticated user; the client filters inactive ones."""
    habits = [HabitResponse(**habit) for habit in service.list_habits(user_id)]
    return HabitListResponse(habits=habits, count=len(habits))


@router.post(
    "/complete",
    response_model=CompletionResult,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
def complete_habit(
    payload: CompleteHabitRequest,
    user_id: str = Depends(get_current_user_id),
    service: CompletionService = Depends(get_completion_service),
):
    """
    Complete a habit for today (UTC), award its XP and report level changes.

    A habit can be completed once per calendar day; a second attempt returns
    400 Duplicate with the earlier completedAt.
    """
    return service.complete_habit(user_id, payload.habitId)


@router.delete(
    "/{habit_id}",
    response_model=HabitDeletedResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
def delete_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    service: HabitService = Depends(get_habit_service),
):
    """Delete one of the authenticated user's habits."""
    deleted_id = service.delete_habit(user_id, habit_id)
    return HabitDeletedResponse(habitId=deleted_id)
