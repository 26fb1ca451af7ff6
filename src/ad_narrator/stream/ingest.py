"""
Ingest Buffer
=============

Hand-off between a frame source producer and the narration session.

Cameras and upstream streams deliver frames faster than the sampling gate
admits them, and the gate only cares about the newest ones. The buffer is a
small mailbox: a full buffer forgets its oldest frame, so a slow consumer
always resumes at the live edge of the feed instead of replaying a backlog.

Design Rules:
    - offer() is synchronous and never blocks; capture threads reach it
      through loop.call_soon_threadsafe
    - get() waits for the next frame, optionally with a timeout
    - Frames pass through untouched
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from ad_narrator.stream.frame import RawFrame


logger = logging.getLogger(__name__)


class IngestBuffer:
    """
    Newest-frames mailbox for raw frames.

    Attributes:
        capacity: Frames held before the oldest is forgotten
        stale_dropped: Frames forgotten because newer ones arrived first

    Example:
        buffer = IngestBuffer(capacity=4)

        # Capture thread
        loop.call_soon_threadsafe(buffer.offer, raw)

        # Session
        raw = await buffer.get(timeout=0.5)
    """

    def __init__(self, capacity: int = 4) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self.capacity = capacity
        self._frames: Deque[RawFrame] = deque(maxlen=capacity)
        self._available = asyncio.Event()

        self._offered: int = 0
        self._delivered: int = 0
        self._stale_dropped: int = 0
        self._newest_frame_id: Optional[int] = None

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def size(self) -> int:
        return len(self._frames)

    @property
    def stale_dropped(self) -> int:
        return self._stale_dropped

    def offer(self, raw: RawFrame) -> bool:
        """
        Hand a frame over. Must run on the loop that owns the buffer.

        Returns:
            False if an older frame had to be forgotten to make room
        """
        self._offered += 1
        fresh = len(self._frames) < self.capacity
        if not fresh:
            self._stale_dropped += 1
            logger.debug(
                f"Consumer behind, forgot frame {self._frames[0].frame_id} "
                f"for frame {raw.frame_id}"
            )

        self._frames.append(raw)
        self._newest_frame_id = raw.frame_id
        self._available.set()
        return fresh

    async def get(self, timeout: Optional[float] = None) -> Optional[RawFrame]:
        """
        Take the oldest buffered frame, waiting for one if needed.

        Args:
            timeout: Seconds to wait (None = wait forever)

        Returns:
            The frame, or None if nothing arrived in time
        """
        while not self._frames:
            self._available.clear()
            try:
                await asyncio.wait_for(self._available.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                return None

        self._delivered += 1
        return self._frames.popleft()

    def clear(self) -> int:
        """Forget every buffered frame. Returns how many were forgotten."""
        cleared = len(self._frames)
        self._frames.clear()
        return cleared

    def metrics(self) -> dict:
        return {
            "size": len(self._frames),
            "capacity": self.capacity,
            "offered": self._offered,
            "delivered": self._delivered,
            "stale_dropped": self._stale_dropped,
            "newest_frame_id": self._newest_frame_id,
        }
