"""Shared fixtures: simulated clock, scripted generation, temp-backed workspace."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.config import Settings
from app.models import GenerationResult
from app.services.generation import GenerationService
from app.services.persistence import SnapshotStore
from app.services.workspace import Workspace


class FakeTimer:
    def __init__(self, due: datetime, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class SimulatedClock:
    """Wall clock plus ``call_later`` that only move when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.timers: list[FakeTimer] = []

    def __call__(self) -> datetime:
        return self.now

    def call_later(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(self.now + timedelta(seconds=delay), callback)
        self.timers.append(timer)
        return timer

    @property
    def active_timers(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + timedelta(seconds=seconds)
        while True:
            due = [t for t in self.active_timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


class FakeGeneration(GenerationService):
    """Scripted generation collaborator that records the prompts it saw."""

    provider = "fake"

    def __init__(self, replies=None, error: str | None = None, raises: Exception | None = None):
        super().__init__()
        self.replies = list(replies or ["Hi there"])
        self.error = error
        self.raises = raises
        self.prompts: list[str] = []
        self.gate: asyncio.Event | None = None

    @property
    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str) -> GenerationResult:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return GenerationResult(success=False, provider=self.provider, error=self.error)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return GenerationResult(success=True, provider=self.provider, response=reply)


@pytest.fixture
def clock() -> SimulatedClock:
    return SimulatedClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_PATH=str(tmp_path / "inkwell.db"),
        GEMINI_API_KEY="",
        BACKBOARD_API_KEY="",
        AUTOSAVE_DELAY_SECONDS=0.5,
        CONTEXT_WINDOW_MESSAGES=4,
    )


@pytest.fixture
def generation() -> FakeGeneration:
    return FakeGeneration()


@pytest.fixture
def make_workspace(test_settings, clock, generation):
    def _make(**overrides) -> Workspace:
        kwargs = {
            "snapshots": SnapshotStore(test_settings.DATABASE_PATH, test_settings.STORAGE_KEY),
            "generation": generation,
            "config": test_settings,
            "call_later": clock.call_later,
            "clock": clock,
        }
        kwargs.update(overrides)
        return Workspace(**kwargs)

    return _make
