"""Progress storage backends"""
from progression.config import STORE_BACKEND
from progression.db.store import AvatarMutation, ProgressStore
from progression.db.memory_store import InMemoryProgressStore


def create_store(backend: str = STORE_BACKEND) -> ProgressStore:
    """Build the configured store (the postgres pool is opened by the caller)"""
    if backend == "postgres":
        from progression.db.postgres_store import PostgresProgressStore
        return PostgresProgressStore()
    return InMemoryProgressStore()


__all__ = ["AvatarMutation", "ProgressStore", "InMemoryProgressStore", "create_store"]
