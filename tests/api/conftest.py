"""Fixtures for in-process API tests"""
import httpx
import pytest

from progression.api.middleware import limiter
from progression.api.server import create_api_application
from progression.db.memory_store import InMemoryProgressStore
from progression.services.container import init_container, reset_container


@pytest.fixture
def container():
    """Fresh in-memory services per test (the lifespan is not run in-process)"""
    container = init_container(InMemoryProgressStore())
    yield container
    reset_container()


@pytest.fixture
async def client(container):
    limiter.enabled = False
    app = create_api_application(use_lifespan=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    limiter.enabled = True
