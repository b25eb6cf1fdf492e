from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from assistant.config import DATA_DIR
from assistant.services.kv_store import FallbackStore, LocalBackend
from assistant.services.routing_service import ProductRouter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 2, 23, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        # Fires even if cancelled, like a timer that was already running when cancel() came in.
        self.function(*self.args, **self.kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dt_clock():
    return FakeDateTimeClock()


@pytest.fixture
def local_store(clock):
    return FallbackStore(None, LocalBackend(capacity=500, clock=clock), label="test")


@pytest.fixture
def products_file():
    return DATA_DIR / "products.yaml"


@pytest.fixture
def router(products_file):
    return ProductRouter.from_file(products_file)


@pytest.fixture
def transport():
    mock = Mock()
    mock.deliver.return_value = True
    mock.resolve_channel_name.return_value = "artemishelp"
    return mock


@pytest.fixture
def timers():
    created = []

    def factory(interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args=args, kwargs=kwargs)
        created.append(timer)
        return timer

    factory.created = created
    return factory
