import pytest

from nodebus.core.context import Context
from nodebus.utils.config import Config


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> None:
        self.now += dt


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    # Empty config directory: every setting falls back to its default.
    return Config(configs_dir=str(tmp_path), load_env=False)


@pytest.fixture
def context(config):
    ctx = Context(config).init()
    yield ctx
    ctx.shutdown()
