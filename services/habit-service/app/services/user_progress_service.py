"""User progress (level / total XP) lookups with lazy creation"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
import logging

from app.dynamo import USERS, StorageGateway, isoformat_utc, utc_now
from app.exceptions import ConditionFailedError

logger = logging.getLogger(__name__)


class UserProgressService:

    def __init__(
        self,
        gateway: StorageGateway,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self._now = now or utc_now

    def get_or_create(self, user_id: str) -> Tuple[Dict[str, Any], bool]:
        """
        Get the user's progress record, creating a default one when absent

        Returns:
            Tuple of (record, created)
        """
        existing = self.gateway.get_item(USERS, {'userId': user_id})
        if existing is not None:
            return self._with_defaults(existing), False

        now = isoformat_utc(self._now())
        record = {
            'userId': user_id,
            'level': 1,
            'totalXP': 0,
            'stats': {},
            'createdAt': now,
            'updatedAt': now,
        }

        try:
            self.gateway.put_item(USERS, record, if_not_exists=True)
        except ConditionFailedError:
            # Created concurrently (first completion or another profile read)
            winner = self.gateway.get_item(USERS, {'userId': user_id})
            if winner is not None:
                return self._with_defaults(winner), False
            raise

        logger.info(f"Created progress record for user {user_id}")
        return record, True

    @staticmethod
    def _with_defaults(record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **record,
            'level': record.get('level') or 1,
            'totalXP': record.get('totalXP') or 0,
            'stats': record.get('stats') or {},
        }
