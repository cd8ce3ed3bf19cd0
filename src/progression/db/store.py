"""Progress storage abstraction

One Avatar record per user plus its append-only XP ledger. Backends only
need to provide an atomic per-user read-modify-write; everything else in the
engine is built on top of ``update_avatar``.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, TypeVar

from progression.config import STORAGE_TIMEOUT_SECONDS
from progression.exceptions import StorageError, wrap_storage_exception
from progression.models.avatar import Avatar, XPTransaction
from progression.observability import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Mutates the working copy in place and returns ledger rows to append in the
# same atomic unit. Raising aborts the transaction with nothing written.
AvatarMutation = Callable[[Avatar], Optional[List[XPTransaction]]]


class ProgressStore(ABC):
    """Durable per-user avatar storage with bounded-time operations"""

    def __init__(self, timeout: float = STORAGE_TIMEOUT_SECONDS):
        self.timeout = timeout

    async def _bounded(self, operation: str, user_id: Optional[str], coro: Awaitable[T]) -> T:
        """Run a storage call under the configured timeout, mapping failures to StorageError"""
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except StorageError:
            metrics.storage_errors_total.labels(operation=operation).inc()
            raise
        except Exception as e:
            if not _is_driver_failure(e):
                raise
            metrics.storage_errors_total.labels(operation=operation).inc()
            raise wrap_storage_exception(e, operation=operation, user_id=user_id) from e
        finally:
            metrics.storage_operation_duration_seconds.labels(operation=operation).observe(
                time.perf_counter() - started
            )

    async def get_avatar(self, user_id: str) -> Optional[Avatar]:
        """Return the avatar or None; never creates"""
        return await self._bounded("get_avatar", user_id, self._get_avatar(user_id))

    async def get_or_create_avatar(self, user_id: str) -> Avatar:
        """Return the avatar, creating an empty one on first access"""
        avatar = await self.get_avatar(user_id)
        if avatar is not None:
            return avatar
        return await self.update_avatar(user_id, lambda working: None)

    async def update_avatar(self, user_id: str, mutate: AvatarMutation) -> Avatar:
        """
        Atomically load (or create), mutate and persist one avatar

        Concurrent calls for the same user serialize; the returned avatar is
        the committed state.
        """
        return await self._bounded("update_avatar", user_id, self._update_avatar(user_id, mutate))

    async def list_avatars(self) -> List[Avatar]:
        return await self._bounded("list_avatars", None, self._list_avatars())

    async def get_xp_transactions(self, user_id: str, limit: int = 50) -> List[XPTransaction]:
        """Most recent ledger rows first"""
        return await self._bounded(
            "get_xp_transactions", user_id, self._get_xp_transactions(user_id, limit)
        )

    async def close(self) -> None:
        return None

    @abstractmethod
    async def _get_avatar(self, user_id: str) -> Optional[Avatar]:
        ...

    @abstractmethod
    async def _update_avatar(self, user_id: str, mutate: AvatarMutation) -> Avatar:
        ...

    @abstractmethod
    async def _list_avatars(self) -> List[Avatar]:
        ...

    @abstractmethod
    async def _get_xp_transactions(self, user_id: str, limit: int) -> List[XPTransaction]:
        ...


def _is_driver_failure(exc: Exception) -> bool:
    """Timeouts and database/cache driver errors; caller validation errors pass through"""
    if isinstance(exc, TimeoutError):
        return True
    module = type(exc).__module__ or ""
    return module.startswith(("psycopg", "psycopg_pool", "redis"))
