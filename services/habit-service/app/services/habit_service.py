"""Habit CRUD on top of the storage gateway"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging
import uuid

from app.dynamo import HABITS, StorageGateway, isoformat_utc, utc_now
from app.exceptions import NotFoundError, ValidationError
from app.schemas import HabitCreate

logger = logging.getLogger(__name__)


class HabitService:
    """Create, list, fetch and delete the habits owned by one user."""

    def __init__(
        self,
        gateway: StorageGateway,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self._now = now or utc_now

    def create_habit(self, user_id: str, payload: HabitCreate) -> Dict[str, Any]:
        """
        Create a new habit with a server-generated habitId

        Args:
            user_id: Owner of the habit
            payload: Validated habit fields

        Returns:
            The stored habit
        """
        now = isoformat_utc(self._now())
        habit = {
            'userId': user_id,
            'habitId': str(uuid.uuid4()),
            'name': payload.name,
            'description': payload.description,
            'xpReward': payload.xpReward,
            'isActive': payload.isActive,
            'createdAt': now,
            'updatedAt': now,
        }

        self.gateway.put_item(HABITS, habit, if_not_exists=True)

        logger.info(f"Created habit {habit['habitId']} for user {user_id}")
        return habit

    def list_habits(self, user_id: str) -> List[Dict[str, Any]]:
        """All habits of a user, active and inactive"""
        return self.gateway.query_partition(HABITS, user_id)

    def get_habit(self, user_id: str, habit_id: str) -> Dict[str, Any]:
        habit = self.gateway.get_item(HABITS, {'userId': user_id, 'habitId': habit_id})
        if habit is None:
            raise NotFoundError("The habit does not exist or you do not have permission to access it")
        return habit

    def delete_habit(self, user_id: str, habit_id: str) -> str:
        """
        Delete one of the user's habits.

        Existing completions of the habit are kept.

        Raises:
            ValidationError: habit_id blank
            NotFoundError: habit does not exist for this user
        """
        if not habit_id or not habit_id.strip():
            raise ValidationError("habitId is required in the URL path")
        habit_id = habit_id.strip()

        self.get_habit(user_id, habit_id)
        self.gateway.delete_item(HABITS, {'userId': user_id, 'habitId': habit_id})

        logger.info(f"Deleted habit {habit_id} for user {user_id}")
        return habit_id
