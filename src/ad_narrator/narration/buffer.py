"""
Accumulation Buffer
===================

Frames waiting for the next completion request.

Design Rules:
    - push() only appends; nothing is evicted at insertion time
    - drain_last_n() returns the newest n frames in arrival order and clears
      the buffer in one step
    - The dispatch controller is the only reader, so drains never overlap
    - The buffer may grow between drains; size is exposed so growth is
      visible in metrics and logs
"""

import logging
from typing import List

from ad_narrator.stream.frame import Frame


logger = logging.getLogger(__name__)


class AccumulationBuffer:
    """
    Append-only frame buffer with keep-newest drain.

    Attributes:
        warn_size: Size above which each push logs a warning
        evicted_count: Frames discarded by drains (older than the newest n)

    Example:
        buffer = AccumulationBuffer()
        buffer.push(frame)
        batch = buffer.drain_last_n(2)
    """

    def __init__(self, warn_size: int = 16) -> None:
        """
        Initialize accumulation buffer.

        Args:
            warn_size: Size above which pushes log a growth warning
        """
        self.warn_size = warn_size
        self._frames: List[Frame] = []
        self._total_pushed: int = 0
        self._evicted_count: int = 0
        self._drain_count: int = 0

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def size(self) -> int:
        """Current number of frames in buffer."""
        return len(self._frames)

    @property
    def evicted_count(self) -> int:
        """Frames discarded by drains."""
        return self._evicted_count

    @property
    def total_pushed(self) -> int:
        """Total frames ever pushed."""
        return self._total_pushed

    def frames(self) -> List[Frame]:
        """Copy of the buffered frames in arrival order."""
        return list(self._frames)

    def push(self, frame: Frame) -> None:
        """Append a frame."""
        self._frames.append(frame)
        self._total_pushed += 1

        if len(self._frames) > self.warn_size:
            logger.warning(
                f"Accumulation buffer holds {len(self._frames)} frames "
                f"(warn_size={self.warn_size}); drains are not keeping up"
            )

    def drain_last_n(self, n: int) -> List[Frame]:
        """
        Take the newest ``n`` frames and clear the buffer.

        Args:
            n: Maximum frames to return (>= 0)

        Returns:
            Up to n frames, oldest first
        """
        if n < 0:
            raise ValueError("n must be >= 0")

        frames, self._frames = self._frames, []
        batch = frames[-n:] if n else []

        self._evicted_count += len(frames) - len(batch)
        self._drain_count += 1
        return batch

    def clear(self) -> int:
        """
        Clear all frames from buffer.

        Returns:
            Number of frames cleared.
        """
        cleared = len(self._frames)
        self._frames = []
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, total_pushed, evicted_count, drain_count
        """
        return {
            "size": self.size,
            "total_pushed": self._total_pushed,
            "evicted_count": self._evicted_count,
            "drain_count": self._drain_count,
        }
