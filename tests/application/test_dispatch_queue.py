"""Testes para application/dispatch_queue.py (fila de primeira tentativa)."""

from __future__ import annotations

import asyncio

import pytest

from tests.conftest import FakeClock
from wa_dispatch.application.dispatch_queue import DelayedDispatchQueue
from wa_dispatch.domain.enums import JobState, MessageKind
from wa_dispatch.domain.models import DispatchJob, MessagePayload
from wa_dispatch.infra.rate_limiter import FixedWindowRateLimiter


def _job(name: str) -> DispatchJob:
    return DispatchJob(
        recipient="5511999990000",
        kind=MessageKind.TEXT,
        payload=MessagePayload.text(name),
        fingerprint=f"fp-{name}",
        max_attempts=3,
        next_attempt_at=0.0,
    )


class Recorder:
    """Handler que só registra a ordem de liberação."""

    def __init__(self) -> None:
        self.handled: list[str] = []

    async def __call__(self, job: DispatchJob) -> None:
        self.handled.append(job.fingerprint)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


def _queue(recorder: Recorder, clock: FakeClock, budget: int = 100) -> DelayedDispatchQueue:
    return DelayedDispatchQueue(
        FixedWindowRateLimiter(budget, 60, clock=clock),
        recorder,
        poll_interval_seconds=0.01,
        clock=clock,
    )


class TestDelayedDispatchQueue:
    @pytest.mark.asyncio
    async def test_releases_only_due_jobs_in_time_order(
        self, recorder: Recorder, clock: FakeClock
    ) -> None:
        queue = _queue(recorder, clock)
        queue.schedule(_job("late"), clock() + 5)
        queue.schedule(_job("early"), clock() + 2)
        queue.schedule(_job("now"), clock())

        assert await queue.tick() == 1
        clock.advance(5)
        assert await queue.tick() == 2
        await queue.drain()

        assert recorder.handled == ["fp-now", "fp-early", "fp-late"]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_same_time_is_fifo(self, recorder: Recorder, clock: FakeClock) -> None:
        queue = _queue(recorder, clock)
        for name in ("a", "b", "c"):
            queue.schedule(_job(name), clock())
        await queue.tick()
        await queue.drain()
        assert recorder.handled == ["fp-a", "fp-b", "fp-c"]

    @pytest.mark.asyncio
    async def test_budget_exhausted_stops_without_skipping(
        self, recorder: Recorder, clock: FakeClock
    ) -> None:
        queue = _queue(recorder, clock, budget=2)
        for name in ("a", "b", "c", "d", "e"):
            queue.schedule(_job(name), clock())

        assert await queue.tick() == 2
        assert await queue.tick() == 0
        await queue.drain()
        assert recorder.handled == ["fp-a", "fp-b"]
        assert [item["fingerprint"] for item in queue.snapshot()] == ["fp-c", "fp-d", "fp-e"]

        clock.advance(60)
        assert await queue.tick() == 2
        await queue.drain()
        assert recorder.handled == ["fp-a", "fp-b", "fp-c", "fp-d"]

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self, clock: FakeClock) -> None:
        handled: list[str] = []

        async def handler(job: DispatchJob) -> None:
            if job.fingerprint == "fp-bad":
                raise RuntimeError("boom")
            handled.append(job.fingerprint)

        queue = DelayedDispatchQueue(
            FixedWindowRateLimiter(10, 60, clock=clock), handler, clock=clock
        )
        queue.schedule(_job("bad"), clock())
        queue.schedule(_job("good"), clock())
        await queue.tick()
        await queue.drain()
        assert handled == ["fp-good"]

    @pytest.mark.asyncio
    async def test_slow_send_does_not_block_tick(self, clock: FakeClock) -> None:
        release = asyncio.Event()
        started: list[str] = []

        async def handler(job: DispatchJob) -> None:
            started.append(job.fingerprint)
            await release.wait()

        queue = DelayedDispatchQueue(
            FixedWindowRateLimiter(10, 60, clock=clock), handler, clock=clock
        )
        queue.schedule(_job("a"), clock())
        queue.schedule(_job("b"), clock())

        assert await queue.tick() == 2
        await asyncio.sleep(0)
        assert started == ["fp-a", "fp-b"]
        release.set()
        await queue.drain()

    @pytest.mark.asyncio
    async def test_schedule_sets_state(self, recorder: Recorder, clock: FakeClock) -> None:
        queue = _queue(recorder, clock)
        job = _job("x")
        queue.schedule(job, clock() + 3)
        assert job.state == JobState.PENDING
        assert job.next_attempt_at == clock() + 3

    @pytest.mark.asyncio
    async def test_wake_releases_urgent_job(self, recorder: Recorder, clock: FakeClock) -> None:
        queue = DelayedDispatchQueue(
            FixedWindowRateLimiter(10, 60, clock=clock),
            recorder,
            poll_interval_seconds=30.0,
            clock=clock,
        )
        await queue.start()
        await asyncio.sleep(0.01)  # primeiro tick (fila vazia), depois espera 30s
        queue.schedule(_job("urgent"), clock())
        queue.wake()
        for _ in range(50):
            if recorder.handled:
                break
            await asyncio.sleep(0.01)
        await queue.stop()
        assert recorder.handled == ["fp-urgent"]
