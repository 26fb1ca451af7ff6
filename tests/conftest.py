"""
Test Configuration
==================

Pytest fixtures and test doubles for the ad narrator.
"""

import asyncio
from typing import AsyncIterator, List, Sequence

import numpy as np
import pytest

from ad_narrator.completion.client import CompletionRequest
from ad_narrator.models.chunk import CompletionChunk
from ad_narrator.stream.frame import RawFrame


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class ScriptedCompletionClient:
    """
    Completion client replaying scripted chunk lists.

    Each call takes the next script (wrapping around). A script item is
    either a CompletionChunk to yield or an exception to raise. With
    ``hold=True`` every stream waits for release() before its first chunk.
    """

    def __init__(self, scripts: Sequence[Sequence[object]], hold: bool = False) -> None:
        self.scripts = [list(script) for script in scripts]
        self.hold = hold
        self.requests: List[CompletionRequest] = []
        self.started = asyncio.Event()
        self.closed_streams: int = 0
        self._released = asyncio.Event()

    def release(self) -> None:
        self._released.set()

    def rearm(self) -> None:
        """Hold the next stream again."""
        self._released = asyncio.Event()
        self.started = asyncio.Event()

    async def stream(
        self,
        prompt: str,
        images: Sequence[bytes],
        detail: str = "low",
        max_tokens: int = 80,
    ) -> AsyncIterator[CompletionChunk]:
        index = len(self.requests)
        self.requests.append(
            CompletionRequest(
                prompt=prompt,
                images=tuple(images),
                detail=detail,
                max_tokens=max_tokens,
            )
        )
        self.started.set()
        try:
            if self.hold:
                await self._released.wait()
            for item in self.scripts[index % len(self.scripts)]:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed_streams += 1


def text_chunks(*deltas: str, finish: str = "stop") -> List[CompletionChunk]:
    """One chunk per delta, then a terminal chunk."""
    chunks = [CompletionChunk(text_delta=delta) for delta in deltas]
    chunks.append(CompletionChunk(finish_reason=finish))
    return chunks


def make_raw(frame_id: int = 0, width: int = 640, height: int = 480) -> RawFrame:
    """Raw frame whose pixels depend on frame_id."""
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[:, :, 0] = (frame_id * 37) % 256
    pixels[:, : width // 2, 1] = 200
    pixels[height // 3 :, :, 2] = (frame_id * 11) % 256
    return RawFrame(frame_id=frame_id, timestamp=1700000000.0 + frame_id, pixels=pixels)


@pytest.fixture
def clock():
    """Fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def raw_frame():
    """A 640x480 raw frame."""
    return make_raw(0)


@pytest.fixture
def sample_frame_message():
    """Upstream WebSocket frame message (image is a tiny JPEG)."""
    import base64

    import cv2

    ok, buf = cv2.imencode(".jpg", np.full((32, 48, 3), 128, dtype=np.uint8))
    assert ok
    return {
        "frame_id": 100,
        "timestamp": 1707321234.567,
        "image": base64.b64encode(buf.tobytes()).decode("ascii"),
    }
