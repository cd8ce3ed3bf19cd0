"""PostgreSQL progress store

Avatars live in a JSONB column next to a ``version`` counter. Writes use
optimistic compare-and-swap: read the row, apply the mutation, then
``UPDATE ... WHERE version = <read version>``. A zero row count means another
writer got there first; the attempt is rolled back and retried with backoff.
Ledger rows are inserted in the same transaction as the avatar update.
"""
import logging
from typing import List, Optional

from psycopg.types.json import Jsonb

from progression.config import CAS_MAX_RETRIES
from progression.db.connection import Database, db as default_db
from progression.db.store import AvatarMutation, ProgressStore
from progression.exceptions import ConflictRetryExhausted, WriteConflict
from progression.models.avatar import Avatar, XPTransaction, utcnow
from progression.resilience.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class PostgresProgressStore(ProgressStore):
    """Avatar storage backed by PostgreSQL"""

    def __init__(self, database: Optional[Database] = None, max_retries: int = CAS_MAX_RETRIES, **kwargs):
        super().__init__(**kwargs)
        self.db = database or default_db
        self.max_retries = max_retries

    async def _get_avatar(self, user_id: str) -> Optional[Avatar]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT data, version FROM avatars WHERE user_id = %s",
                    (user_id,)
                )
                row = await cur.fetchone()
                return _row_to_avatar(row) if row else None

    async def _update_avatar(self, user_id: str, mutate: AvatarMutation) -> Avatar:
        try:
            return await retry_with_backoff(
                self._attempt_update, user_id, mutate, max_retries=self.max_retries
            )
        except WriteConflict:
            raise ConflictRetryExhausted(
                attempts=self.max_retries + 1,
                user_id=user_id,
                operation="update_avatar",
            ) from None

    async def _attempt_update(self, user_id: str, mutate: AvatarMutation) -> Avatar:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT data, version FROM avatars WHERE user_id = %s",
                    (user_id,)
                )
                row = await cur.fetchone()

                current = _row_to_avatar(row) if row else Avatar(user_id=user_id)
                working = current.model_copy(deep=True)
                transactions = mutate(working) or []

                working.version = current.version + 1
                working.updated_at = utcnow()
                payload = Jsonb(working.model_dump(mode="json"))

                if row is None:
                    await cur.execute(
                        """
                        INSERT INTO avatars (user_id, data, version, total_xp)
                        VALUES (%s, %s, %s, %s)
                        ON CONFLICT (user_id) DO NOTHING
                        """,
                        (user_id, payload, working.version, working.total_xp)
                    )
                else:
                    await cur.execute(
                        """
                        UPDATE avatars
                        SET data = %s,
                            version = %s,
                            total_xp = %s,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE user_id = %s AND version = %s
                        """,
                        (payload, working.version, working.total_xp, user_id, current.version)
                    )

                if cur.rowcount != 1:
                    await conn.rollback()
                    raise WriteConflict(user_id, current.version)

                for tx in transactions:
                    await cur.execute(
                        """
                        INSERT INTO xp_transactions (user_id, amount, skill, source, reason, awarded_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        """,
                        (
                            tx.user_id,
                            tx.amount,
                            tx.skill.value if tx.skill else None,
                            tx.source,
                            tx.reason,
                            tx.awarded_at,
                        )
                    )

                await conn.commit()

                if row is None:
                    logger.info(f"Created new avatar for user {user_id}")

                return working

    async def _list_avatars(self) -> List[Avatar]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT data, version FROM avatars")
                rows = await cur.fetchall()
                return [_row_to_avatar(row) for row in rows]

    async def _get_xp_transactions(self, user_id: str, limit: int) -> List[XPTransaction]:
        async with self.db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT user_id, amount, skill, source, reason, awarded_at
                    FROM xp_transactions
                    WHERE user_id = %s
                    ORDER BY awarded_at DESC, id DESC
                    LIMIT %s
                    """,
                    (user_id, limit)
                )
                rows = await cur.fetchall()
                return [XPTransaction.model_validate(dict(row)) for row in rows]

    async def close(self) -> None:
        await self.db.close_pool()


def _row_to_avatar(row) -> Avatar:
    avatar = Avatar.model_validate(row["data"])
    avatar.version = row["version"]
    return avatar
