"""
Stream Assembler
================

Turns a stream of completion chunks into the visible narration text.

Rules per chunk:
    1. Text delta present: overwrite the text if a reset is pending (and
       clear the reset), otherwise append.
    2. Finish reason present: the stream succeeded. Applied after the delta
       of the same chunk. Consumption stops here.
    3. Neither: no-op.

If iteration raises, the text is replaced with a readable description of
the error and the stream is abandoned. A stream that ends without a finish
reason counts as a success so the cycle never stays in flight.

The assembler is owned by the dispatch controller; the controller re-arms
the reset at the end of every cycle.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

from ad_narrator.models.chunk import CompletionChunk
from ad_narrator.narration.text import NarrationText


logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """Human-readable one-line description of an exception."""
    message = str(error).strip()
    if not message:
        return type(error).__name__
    return message


@dataclass
class StreamOutcome:
    """
    Result of consuming one completion stream.

    Attributes:
        succeeded: True if the stream ended normally
        finish_reason: Finish reason of the terminal chunk (None if the
            stream ended without one, failed, or was abandoned)
        error: Exception raised by the stream, if any
        abandoned: True if consumption stopped because the session closed
        chunks: Chunks consumed
        deltas: Chunks that carried text
    """

    succeeded: bool
    finish_reason: Optional[str] = None
    error: Optional[BaseException] = None
    abandoned: bool = False
    chunks: int = 0
    deltas: int = 0


class StreamAssembler:
    """
    Applies completion chunks to a NarrationText.

    Attributes:
        text: Visible narration text (this assembler is its only writer)
        reset_pending: Whether the next delta overwrites instead of appends
    """

    def __init__(self, text: NarrationText) -> None:
        self.text = text
        # The first delta ever received replaces the empty initial text
        self.reset_pending: bool = True

    def arm_reset(self) -> None:
        """Make the next delta overwrite the text."""
        self.reset_pending = True

    def apply(self, chunk: CompletionChunk) -> bool:
        """
        Apply one chunk.

        Args:
            chunk: Chunk to apply

        Returns:
            True if the chunk terminates the stream
        """
        if chunk.text_delta is not None:
            if self.reset_pending:
                self.text.set(chunk.text_delta)
                self.reset_pending = False
            else:
                self.text.append(chunk.text_delta)

        return chunk.is_terminal

    def fail(self, error: BaseException) -> None:
        """Show a stream failure as the narration text."""
        self.text.set(describe_error(error))

    async def consume(
        self,
        chunks: AsyncIterator[CompletionChunk],
        is_closed: Callable[[], bool] = lambda: False,
    ) -> StreamOutcome:
        """
        Consume a chunk stream to its end.

        Args:
            chunks: Chunks in delivery order
            is_closed: Returns True once the session is torn down; remaining
                chunks are then ignored

        Returns:
            StreamOutcome describing how the stream ended
        """
        outcome = StreamOutcome(succeeded=False)
        iterator = chunks.__aiter__()

        try:
            async for chunk in iterator:
                if is_closed():
                    outcome.abandoned = True
                    return outcome

                outcome.chunks += 1
                if chunk.is_empty:
                    continue
                if chunk.text_delta is not None:
                    outcome.deltas += 1

                if self.apply(chunk):
                    outcome.succeeded = True
                    outcome.finish_reason = chunk.finish_reason
                    return outcome
        except Exception as e:
            if is_closed():
                outcome.abandoned = True
                return outcome
            logger.error(f"Completion stream failed: {e}")
            self.fail(e)
            outcome.error = e
            return outcome
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        if is_closed():
            outcome.abandoned = True
            return outcome

        logger.warning("Completion stream ended without a finish reason")
        outcome.succeeded = True
        return outcome
