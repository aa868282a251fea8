import asyncio

import pytest

from backend.core.handoff.dedup import HandoffDeduplicator
from backend.core.handoff.dispatcher import HandoffDispatcher
from backend.core.handoff.errors import DispatchFailure, DuplicateSubmission
from backend.core.handoff.models import HandoffDelivery, NormalizedHandoff


def make_delivery(conversation_id: str = "thread_1") -> HandoffDelivery:
    return HandoffDelivery(conversation_id=conversation_id, record=NormalizedHandoff(), brand_key="buro")


class RecordingChannel:
    timeout = 1.0

    def __init__(self, name: str = "recording"):
        self.name = name
        self.deliveries = []

    async def deliver(self, delivery):
        self.deliveries.append(delivery)
        return {"ok": True}


class FailingChannel:
    name = "failing"
    timeout = 1.0

    async def deliver(self, delivery):
        raise DispatchFailure(self.name, "webhook non-2xx", status=500)


class ExplodingChannel:
    name = "exploding"
    timeout = 1.0

    async def deliver(self, delivery):
        raise RuntimeError("boom")


class SlowChannel:
    name = "slow"
    timeout = 0.05

    async def deliver(self, delivery):
        await asyncio.sleep(1)
        return {"ok": True}


class SkippedChannel:
    name = "skipped"
    timeout = None

    async def deliver(self, delivery):
        return {"ok": True, "skipped": True}


def test_failures_are_isolated_per_channel():
    recording = RecordingChannel()
    dispatcher = HandoffDispatcher([FailingChannel(), SlowChannel(), ExplodingChannel(), recording, SkippedChannel()])

    report = asyncio.run(dispatcher.dispatch(make_delivery()))

    assert len(recording.deliveries) == 1
    assert report.delivered == ["recording"]
    assert report.failed == ["failing", "slow", "exploding"]
    by_name = {r.channel: r for r in report.results}
    assert by_name["failing"].error == "webhook non-2xx"
    assert by_name["slow"].error.startswith("timeout")
    assert by_name["exploding"].error == "boom"
    assert by_name["skipped"].ok and by_name["skipped"].skipped


def test_channels_run_concurrently():
    class Sleepy(RecordingChannel):
        async def deliver(self, delivery):
            await asyncio.sleep(0.2)
            return await super().deliver(delivery)

    dispatcher = HandoffDispatcher([Sleepy("a"), Sleepy("b"), Sleepy("c")])

    async def timed():
        loop = asyncio.get_running_loop()
        start = loop.time()
        await dispatcher.dispatch(make_delivery())
        return loop.time() - start

    assert asyncio.run(timed()) < 0.5


def test_submit_rejects_duplicates():
    recording = RecordingChannel()
    dispatcher = HandoffDispatcher([recording], deduplicator=HandoffDeduplicator())
    payload = {"contact": {"name": "Ali Veli"}}

    asyncio.run(dispatcher.submit(make_delivery(), payload))
    with pytest.raises(DuplicateSubmission):
        asyncio.run(dispatcher.submit(make_delivery(), payload))
    asyncio.run(dispatcher.submit(make_delivery("thread_2"), payload))

    assert len(recording.deliveries) == 2
