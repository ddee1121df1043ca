import pytest
import pytest_asyncio

from warden.governance.engine import GovernanceEngine
from warden.testing.fakes import FakeClock, FakePlatform, make_settings


@pytest.fixture(scope="function")
def clock():
    """A manually advanced clock shared by the platform and the engine."""
    return FakeClock()


@pytest.fixture(scope="function")
def platform(clock):
    return FakePlatform(clock)


@pytest.fixture(scope="function")
def settings():
    return make_settings()


@pytest_asyncio.fixture(scope="function")
async def engine(platform, settings, clock):
    """Engine over the fake platform; deferred tasks are cancelled on teardown."""
    eng = GovernanceEngine(platform, settings, clock=clock)
    eng.purge.pause_seconds = 0
    yield eng
    await eng.close()


@pytest.fixture
def build_engine(platform, clock):
    """Factory for tests that need non-default settings."""
    created = []

    def _build(**overrides):
        eng = GovernanceEngine(platform, make_settings(**overrides), clock=clock)
        eng.purge.pause_seconds = 0
        created.append(eng)
        return eng

    yield _build
    for eng in created:
        eng.tasks.cancel_all()
