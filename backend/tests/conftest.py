import os

# Must be set before circle.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SEND_MESSAGE_LIMIT", "1000/minute")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from circle.infra.postgres import SessionLocal, engine
from circle.main import app
from circle.models.base import Base


@pytest.fixture()
def db():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    """A test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture()
def register(client):
    def _register(pseudonym, wallet=None, **extra):
        wallet = wallet or f"0x{pseudonym.encode().hex():0<40}"[:42]
        resp = client.post(
            "/users/register",
            json={"walletAddress": wallet, "pseudonym": pseudonym, **extra},
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeTimer:
    def __init__(self, scheduler, delay, callback):
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.due = None

    def start(self):
        self.started = True
        self.due = self.scheduler.clock.now + timedelta(seconds=self.delay)

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Timer factory driven by a FakeClock: run_due() fires what is due."""

    def __init__(self, clock):
        self.clock = clock
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(self, delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        self.clock.advance(seconds)
        self.run_due()

    def run_due(self):
        for timer in list(self.timers):
            if timer.started and not timer.cancelled and timer.due <= self.clock.now:
                self.timers.remove(timer)
                timer.callback()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return FakeScheduler(clock)
