import pytest
from fastapi.testclient import TestClient

from checkops.core.cache import CheckOpsCache
from checkops.core.config import Settings
from checkops.main import create_app
from checkops.sdk import CheckOps


class ManualTimer:
    def __init__(self, clock, delay, callback):
        self.clock = clock
        self.due = clock.now + delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """Deterministic stand-in for threading.Timer: nothing fires until advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def __call__(self, delay, callback):
        timer = ManualTimer(self, delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        self.now += seconds
        due = [t for t in self.timers if not t.cancelled and t.due <= self.now]
        self.timers = [t for t in self.timers if t not in due and not t.cancelled]
        for timer in sorted(due, key=lambda t: t.due):
            timer.callback()

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings():
    return Settings(ENVIRONMENT="testing", DATABASE_URL="sqlite:///:memory:", SENTRY_DSN=None)


@pytest.fixture
def checkops(settings, clock):
    ops = CheckOps(settings=settings, timer_factory=clock)
    yield ops
    ops.close()


@pytest.fixture
def cache(clock):
    return CheckOpsCache(timer_factory=clock)


@pytest.fixture
def client(checkops, settings):
    app = create_app(checkops=checkops, settings=settings)
    return TestClient(app)


@pytest.fixture
def color_question(checkops):
    return checkops.create_question("Favourite colour?", "select", options=["Red", "Blue"])


@pytest.fixture
def color_form(checkops, color_question):
    return checkops.create_form(
        "Colours", questions=[{"questionId": color_question.id, "required": True}]
    )
