import fakeredis
import pytest

from backend import MemoryBackend, RedisBackend


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def memory_store():
    return MemoryBackend()


@pytest.fixture(params=["memory", "redis"])
def store(request):
    """Every store-level test runs against both backends."""
    if request.param == "memory":
        return MemoryBackend()
    return RedisBackend(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))
