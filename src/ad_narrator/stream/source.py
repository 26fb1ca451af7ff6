"""
Frame Sources
=============

Frame source protocol and the synthetic development source.

A frame source delivers raw frames at device cadence through an async
iterator. Sources tag frames by arrival order only; the sampling gate reads
the wall clock itself.

Implementations:
    - SyntheticFrameSource: Deterministic moving test pattern (this module)
    - CameraFrameSource: OpenCV capture device (camera.py)
    - WebSocketFrameSource: Upstream JSON frame stream (consumer.py)
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Protocol

import numpy as np

from ad_narrator.stream.frame import RawFrame


logger = logging.getLogger(__name__)


class FrameSourceError(Exception):
    """Raised when a frame source cannot deliver frames."""
    pass


class FrameSource(Protocol):
    """
    Protocol for frame sources.

    ``frames()`` yields RawFrame objects until the source is exhausted or
    ``stop()`` is called. A source is single-use.
    """

    def frames(self) -> AsyncIterator[RawFrame]:
        """Iterate raw frames in arrival order."""
        ...

    async def stop(self) -> None:
        """Stop delivering frames and release the device."""
        ...


class SyntheticFrameSource:
    """
    Deterministic frame source for development and testing.

    Produces a horizontal color gradient whose phase shifts every frame,
    so consecutive frames differ but stay reproducible.

    Attributes:
        fps: Frames per second
        width: Frame width in pixels
        height: Frame height in pixels
        max_frames: Stop after this many frames (0 = unlimited)
    """

    def __init__(
        self,
        fps: float = 10.0,
        width: int = 640,
        height: int = 480,
        max_frames: int = 0,
    ) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")

        self.fps = fps
        self.width = width
        self.height = height
        self.max_frames = max_frames

        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._frame_id: int = 0

        logger.info(
            f"SyntheticFrameSource initialized: {width}x{height} @ {fps} fps"
        )

    def render(self, frame_id: int) -> np.ndarray:
        """Render the test pattern for a frame index."""
        ramp = np.linspace(0, 255, self.width, dtype=np.float32)
        shifted = np.roll(ramp, (frame_id * 8) % self.width).astype(np.uint8)
        row = np.stack(
            [shifted, np.flip(shifted), np.full_like(shifted, (frame_id * 5) % 256)],
            axis=-1,
        )
        return np.repeat(row[np.newaxis, :, :], self.height, axis=0)

    async def frames(self) -> AsyncIterator[RawFrame]:
        self._running = True
        self._stop_event.clear()
        period = 1.0 / self.fps

        while self._running:
            if self.max_frames and self._frame_id >= self.max_frames:
                break

            yield RawFrame(
                frame_id=self._frame_id,
                timestamp=time.time(),
                pixels=self.render(self._frame_id),
            )
            self._frame_id += 1

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=period)
                break
            except asyncio.TimeoutError:
                pass

        self._running = False

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()
