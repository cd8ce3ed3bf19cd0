"""In-process progress store

Serializes writers with one asyncio lock per user. Mutations run against a
deep copy that only replaces the stored avatar after the mutation returns,
so a failed mutation leaves nothing behind.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from progression.db.store import AvatarMutation, ProgressStore
from progression.models.avatar import Avatar, XPTransaction, utcnow

logger = logging.getLogger(__name__)


class InMemoryProgressStore(ProgressStore):
    """Avatar storage held in process memory"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._avatars: Dict[str, Avatar] = {}
        self._transactions: Dict[str, List[XPTransaction]] = defaultdict(list)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _get_avatar(self, user_id: str) -> Optional[Avatar]:
        avatar = self._avatars.get(user_id)
        return avatar.model_copy(deep=True) if avatar else None

    async def _update_avatar(self, user_id: str, mutate: AvatarMutation) -> Avatar:
        async with self._locks[user_id]:
            current = self._avatars.get(user_id)
            if current is None:
                current = Avatar(user_id=user_id)
                logger.info(f"Created new avatar for user {user_id}")

            working = current.model_copy(deep=True)
            transactions = mutate(working) or []

            working.version = current.version + 1
            working.updated_at = utcnow()

            self._avatars[user_id] = working
            self._transactions[user_id].extend(transactions)

            return working.model_copy(deep=True)

    async def _list_avatars(self) -> List[Avatar]:
        return [avatar.model_copy(deep=True) for avatar in self._avatars.values()]

    async def _get_xp_transactions(self, user_id: str, limit: int) -> List[XPTransaction]:
        transactions = self._transactions.get(user_id, [])
        return list(reversed(transactions[-limit:])) if limit > 0 else []
