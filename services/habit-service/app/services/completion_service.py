"""Completion workflow: mark a habit done for today and award XP"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import logging

from app.dynamo import (
    COMPLETION_SORT_KEY,
    COMPLETIONS,
    HABITS,
    USERS,
    StorageGateway,
    completion_sort_key,
    isoformat_utc,
    utc_now,
)
from app.exceptions import (
    AuthError,
    ConditionFailedError,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.logic.leveling import level_for_xp, normalize_xp_reward, xp_to_next_level
from app.schemas import CompletionResult, CompletionSummary, UserSummary

logger = logging.getLogger(__name__)


class CompletionService:
    """
    Records a habit completion and applies the resulting XP and level change.

    Reads (habit, today's completion, user progress) happen before any write,
    so every rejected call leaves storage untouched. The completion record is
    created conditionally, which makes it the single point deciding between
    two concurrent completions of the same habit on the same day.
    """

    def __init__(
        self,
        gateway: StorageGateway,
        default_xp_reward: int = 10,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.default_xp_reward = default_xp_reward
        self._now = now or utc_now

    def complete_habit(self, user_id: Optional[str], habit_id: Any) -> CompletionResult:
        """
        Complete a habit for the current UTC day.

        Raises:
            AuthError: user_id missing
            ValidationError: habit_id missing or blank
            NotFoundError: habit does not exist for this user
            InvalidStateError: habit is inactive
            DuplicateError: habit already completed today
            StorageError: store unavailable
        """
        if not user_id:
            raise AuthError("User ID is required")
        if not isinstance(habit_id, str) or not habit_id.strip():
            raise ValidationError("habitId is required and must be a non-empty string")
        habit_id = habit_id.strip()

        habit = self.gateway.get_item(HABITS, {'userId': user_id, 'habitId': habit_id})
        if habit is None:
            logger.warning(f"User {user_id} tried to complete unknown habit {habit_id}")
            raise NotFoundError("The specified habit does not exist or does not belong to you")
        if habit.get('isActive') is False:
            logger.warning(f"User {user_id} tried to complete inactive habit {habit_id}")
            raise InvalidStateError("Cannot complete an inactive habit")

        moment = self._now().astimezone(timezone.utc)
        today = moment.date().isoformat()
        completed_at = isoformat_utc(moment)
        completion_key = {'userId': user_id, COMPLETION_SORT_KEY: completion_sort_key(today, habit_id)}

        existing = self.gateway.get_item(COMPLETIONS, completion_key)
        if existing is not None:
            raise DuplicateError(
                "You have already completed this habit today",
                completed_at=existing.get('completedAt'),
            )

        user = self.gateway.get_item(USERS, {'userId': user_id}) or {}
        previous_level = int(user.get('level') or 1)
        current_xp = int(user.get('totalXP') or 0)

        try:
            xp_reward = normalize_xp_reward(habit.get('xpReward'), self.default_xp_reward)
        except ValueError:
            logger.warning(f"Habit {habit_id} of user {user_id} has invalid xpReward {habit.get('xpReward')!r}")
            raise InvalidStateError("Habit has an invalid xpReward")
        expected_xp = current_xp + xp_reward

        completion = {
            **completion_key,
            'habitId': habit_id,
            'habitName': habit.get('name'),
            'completedAt': completed_at,
            'xpEarned': xp_reward,
            'date': today,
        }
        try:
            self.gateway.put_item(COMPLETIONS, completion, if_not_exists=True)
        except ConditionFailedError:
            winner = self.gateway.get_item(COMPLETIONS, completion_key)
            logger.warning(f"Concurrent completion of habit {habit_id} for user {user_id} on {today}")
            raise DuplicateError(
                "You have already completed this habit today",
                completed_at=winner.get('completedAt') if winner else completed_at,
            )

        # Single upsert: increments an existing record, creates a fresh one otherwise
        try:
            progress = self.gateway.update_item(
                USERS,
                {'userId': user_id},
                add={'totalXP': xp_reward},
                set_fields={'level': level_for_xp(expected_xp), 'updatedAt': completed_at},
                set_if_absent={'createdAt': completed_at, 'stats': {}},
            )
        except StorageError:
            self._withdraw_completion(completion_key, completed_at)
            raise

        total_xp = int(progress.get('totalXP', expected_xp))
        level = self._reconcile_level(user_id, progress, total_xp)
        leveled_up = level > previous_level

        logger.info(
            f"User {user_id} completed habit {habit_id}: +{xp_reward} XP, "
            f"total={total_xp}, level={level}"
        )
        if leveled_up:
            logger.info(f"User {user_id} leveled up: {previous_level} -> {level}")

        return CompletionResult(
            message=(
                f"Habit completed! You leveled up to level {level}!"
                if leveled_up else "Habit completed successfully!"
            ),
            completion=CompletionSummary(
                habitId=habit_id,
                habitName=habit.get('name'),
                xpEarned=xp_reward,
                completedAt=completed_at,
            ),
            user=UserSummary(
                level=level,
                totalXP=total_xp,
                leveledUp=leveled_up,
                previousLevel=previous_level,
                xpToNextLevel=xp_to_next_level(total_xp),
            ),
        )

    def _withdraw_completion(self, completion_key: Dict[str, Any], completed_at: str) -> None:
        """
        Best-effort removal of this attempt's completion after the XP update
        failed, so a retry of the whole request is not rejected as Duplicate.

        Guarded on completedAt: only the record written by this attempt goes.
        Failures here are logged; the original storage error is what the
        caller sees.
        """
        try:
            self.gateway.delete_item(
                COMPLETIONS,
                completion_key,
                condition='completedAt = :mine',
                condition_values={':mine': completed_at},
            )
            logger.warning(
                f"XP update failed; withdrew completion {completion_key[COMPLETION_SORT_KEY]} "
                f"for user {completion_key['userId']}"
            )
        except StorageError as e:
            logger.error(
                f"Could not withdraw completion {completion_key[COMPLETION_SORT_KEY]} "
                f"for user {completion_key['userId']}: {e.message}"
            )

    def _reconcile_level(self, user_id: str, record: Dict[str, Any], total_xp: int) -> int:
        """
        Make the stored level agree with the post-increment total.

        The level written alongside the increment was computed from the
        pre-increment snapshot. When another completion raced in between, the
        two disagree; the fix is guarded on totalXP so a writer that observed
        an older total never overwrites a newer one.
        """
        level = level_for_xp(total_xp)
        if record.get('level') == level:
            return level

        try:
            self.gateway.update_item(
                USERS,
                {'userId': user_id},
                set_fields={'level': level},
                condition='totalXP = :observed',
                condition_values={':observed': total_xp},
            )
            logger.info(f"Reconciled level for user {user_id}: {record.get('level')} -> {level}")
        except ConditionFailedError:
            logger.info(f"Level reconcile for user {user_id} superseded by a newer completion")

        return level
