import pytest

from linkstation.config import Settings
from linkstation.services import build_services
from linkstation.services.kv_store import MemoryBackend


class FakeClock:
    """Manually advanced wall clock (seconds since the epoch)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        LOG_TO_FILE=False,
        CLEANUP_ENABLED=False,
        ADMIN_PASSWORD="letmein",
    )


@pytest.fixture
def store(clock):
    return MemoryBackend(clock)


@pytest.fixture
def services(config, store, clock):
    return build_services(config, store, clock=clock)


@pytest.fixture
def game(services):
    return services.game


@pytest.fixture
def admin(services):
    return services.admin
