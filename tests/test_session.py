"""
Narration Session Tests
=======================
"""

import asyncio

import pytest

from ad_narrator.completion.client import MockCompletionClient
from ad_narrator.narration.controller import DispatchController
from ad_narrator.narration.gate import SamplingGate
from ad_narrator.narration.session import NarrationSession
from ad_narrator.stream.source import FrameSourceError, SyntheticFrameSource


class _FailingSource:

    def __init__(self):
        self.stopped = False

    async def frames(self):
        if False:
            yield None
        raise FrameSourceError("device unplugged")

    async def stop(self):
        self.stopped = True


def _controller(client):
    return DispatchController(
        client=client,
        gate=SamplingGate(process_interval=0.0, accumulate_interval=0.0),
    )


@pytest.mark.asyncio
async def test_session_feeds_controller():
    client = MockCompletionClient(narrations=["傘"], chunk_size=1)
    controller = _controller(client)
    session = NarrationSession(
        SyntheticFrameSource(fps=200.0, width=32, height=32, max_frames=5),
        controller,
    )

    await session.run()
    await controller.join()

    assert session.frames_received == 5
    assert not session.running
    assert session.error is None
    assert controller.metrics.frames_seen == 5
    assert controller.metrics.cycles_started >= 1
    assert controller.context == "傘"


@pytest.mark.asyncio
async def test_source_error_is_recorded():
    source = _FailingSource()
    session = NarrationSession(source, _controller(MockCompletionClient()))

    await session.run()

    assert isinstance(session.error, FrameSourceError)
    assert not session.running


@pytest.mark.asyncio
async def test_stop_closes_controller():
    source = SyntheticFrameSource(fps=50.0, width=16, height=16)
    controller = _controller(MockCompletionClient(delay=0.01))
    session = NarrationSession(source, controller)

    task = asyncio.create_task(session.run())
    await asyncio.sleep(0.05)
    await session.stop()
    await asyncio.wait_for(task, timeout=1.0)
    await controller.join()

    assert controller.closed
    assert not session.running
    assert session.frames_received >= 1
