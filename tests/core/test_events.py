"""
Tests for the in-process side-effect bus.
"""
import asyncio

import pytest

from trave_social.core.events import SideEffectBus


@pytest.fixture
def bus():
    return SideEffectBus(workers=2, max_attempts=3, retry_delay=0, queue_size=10)


class TestInlineDelivery:
    """Without workers, publish runs the jobs before returning."""

    async def test_every_handler_receives_payload(self, bus):
        received = []

        @bus.on("message.created")
        async def first(payload):
            received.append(("first", payload["id"]))

        async def second(payload):
            received.append(("second", payload["id"]))

        bus.subscribe("message.created", second)
        event = await bus.publish("message.created", {"id": "m1"})

        assert received == [("first", "m1"), ("second", "m1")]
        assert event.name == "message.created"
        assert event.payload == {"id": "m1"}

    async def test_subscribe_is_idempotent(self, bus):
        async def handler(payload):
            pass

        bus.subscribe("x", handler)
        bus.subscribe("x", handler)

        assert bus.handlers_for("x") == [handler]

    async def test_no_handlers_is_fine(self, bus):
        event = await bus.publish("nobody.listens", {})

        assert event.id

    async def test_transient_failure_is_retried(self, bus):
        calls = []

        async def flaky(payload):
            calls.append(payload)
            if len(calls) < 3:
                raise RuntimeError("transient")

        bus.subscribe("e", flaky)
        await bus.publish("e", {"n": 1})

        assert len(calls) == 3
        assert not bus.dead_letters

    async def test_exhausted_job_is_dead_lettered(self, bus):
        async def broken(payload):
            raise RuntimeError("permanent")

        bus.subscribe("e", broken)
        await bus.publish("e", {"n": 1})

        assert len(bus.dead_letters) == 1
        job = bus.dead_letters[0]
        assert job.attempts == 3
        assert job.event.payload == {"n": 1}

    async def test_failing_handler_does_not_affect_others(self, bus):
        delivered = []

        async def broken(payload):
            raise ValueError("boom")

        async def healthy(payload):
            delivered.append(payload)

        bus.subscribe("e", broken)
        bus.subscribe("e", healthy)

        # publish never raises
        await bus.publish("e", {"n": 1})

        assert delivered == [{"n": 1}]
        assert len(bus.dead_letters) == 1

    async def test_retries_back_off_linearly(self, mocker):
        sleep = mocker.patch("trave_social.core.events.asyncio.sleep", new=mocker.AsyncMock())
        bus = SideEffectBus(workers=1, max_attempts=3, retry_delay=0.5)

        async def broken(payload):
            raise RuntimeError("down")

        bus.subscribe("e", broken)
        await bus.publish("e", {})

        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0]


class TestWorkerDelivery:
    """With workers running, publish only enqueues."""

    async def test_workers_drain_queue_on_stop(self, bus):
        received = []

        async def slow(payload):
            await asyncio.sleep(0)
            received.append(payload["n"])

        bus.subscribe("e", slow)
        await bus.start()
        assert bus.is_running

        for n in range(5):
            await bus.publish("e", {"n": n})
        await bus.stop()

        assert sorted(received) == [0, 1, 2, 3, 4]
        assert not bus.is_running

    async def test_full_queue_dead_letters(self):
        bus = SideEffectBus(workers=1, max_attempts=1, retry_delay=0, queue_size=1)
        gate = asyncio.Event()

        async def blocked(payload):
            await gate.wait()

        bus.subscribe("e", blocked)
        await bus.start()

        await bus.publish("e", {"n": 1})
        # Let the worker pick up the first job so the queue has room for one more
        await asyncio.sleep(0)
        await bus.publish("e", {"n": 2})
        await bus.publish("e", {"n": 3})

        assert [job.event.payload["n"] for job in bus.dead_letters] == [3]

        gate.set()
        await bus.stop()

    async def test_worker_failures_are_dead_lettered(self, bus):
        async def broken(payload):
            raise RuntimeError("nope")

        bus.subscribe("e", broken)
        await bus.start()
        await bus.publish("e", {"n": 1})
        await bus.stop()

        assert len(bus.dead_letters) == 1
        assert bus.dead_letters[0].attempts == 3
