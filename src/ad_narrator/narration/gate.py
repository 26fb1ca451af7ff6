"""
Sampling Gate
=============

Time-based admission control for incoming frames.

Two independent cadences decide what happens to a frame candidate:

    process_interval:    minimum spacing between any two sampled frames.
                         Candidates inside it are dropped outright.
    accumulate_interval: while a request is in flight, minimum spacing
                         between frames added to the accumulation buffer.

Decision table (after the process interval has elapsed):

    in flight?  accumulate interval elapsed?  decision
    ----------  ----------------------------  ----------
    no          -                             DISPATCH
    yes         yes                           ACCUMULATE
    yes         no                            DROP

The gate only reads and updates timestamps; the controller does the
encoding and the buffer push and reports a successful accumulation back via
mark_accumulated().
"""

import logging
from typing import Optional

from ad_narrator.models.state import GateDecision


logger = logging.getLogger(__name__)


class SamplingGate:
    """
    Frame admission gate.

    Attributes:
        process_interval: Seconds between sampled frames
        accumulate_interval: Seconds between accumulated frames while sending
        last_processed: Time the last candidate passed the process interval
        last_accumulated: Time the last frame was accumulated

    Example:
        gate = SamplingGate(process_interval=3.0, accumulate_interval=6.0)

        decision = gate.evaluate(now, in_flight=False)
        if decision is GateDecision.DISPATCH:
            ...
    """

    def __init__(
        self,
        process_interval: float = 3.0,
        accumulate_interval: float = 6.0,
    ) -> None:
        """
        Initialize sampling gate.

        Args:
            process_interval: Seconds between sampled frames (>= 0)
            accumulate_interval: Seconds between accumulated frames (>= 0)
        """
        if process_interval < 0:
            raise ValueError("process_interval must be >= 0")
        if accumulate_interval < 0:
            raise ValueError("accumulate_interval must be >= 0")

        self.process_interval = process_interval
        self.accumulate_interval = accumulate_interval

        # None means "never": the first candidate always passes
        self.last_processed: Optional[float] = None
        self.last_accumulated: Optional[float] = None

    def evaluate(self, now: float, in_flight: bool) -> GateDecision:
        """
        Decide what to do with a frame candidate.

        Advances last_processed whenever the process interval has elapsed,
        including in accumulation mode.

        Args:
            now: Current clock reading in seconds
            in_flight: Whether a completion request is active

        Returns:
            GateDecision for the candidate
        """
        if not self._elapsed(self.last_processed, now, self.process_interval):
            return GateDecision.DROP
        self.last_processed = now

        if not in_flight:
            return GateDecision.DISPATCH

        if not self._elapsed(self.last_accumulated, now, self.accumulate_interval):
            return GateDecision.DROP
        return GateDecision.ACCUMULATE

    def mark_accumulated(self, now: float) -> None:
        """Record that a frame was actually added to the buffer."""
        self.last_accumulated = now

    def reset(self) -> None:
        """Forget both timestamps."""
        self.last_processed = None
        self.last_accumulated = None

    @staticmethod
    def _elapsed(last: Optional[float], now: float, interval: float) -> bool:
        return last is None or now - last >= interval
