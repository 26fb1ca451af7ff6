"""
Completion Chunk
================

Provider-neutral representation of one streamed completion chunk.

Completion clients translate their wire format into CompletionChunk so the
stream assembler never sees provider-specific objects.

Design Rules:
    - A chunk may carry a text delta, a terminal reason, both, or neither
    - When both are present the delta belongs to the response and is
      applied before the stream is treated as finished
    - A chunk with neither is a no-op continuation
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class CompletionChunk:
    """
    One incremental piece of a streamed chat completion.

    Attributes:
        text_delta: Text fragment to add to the narration (None if absent)
        finish_reason: Terminal marker such as "stop" or "length" (None if
            more chunks follow)
    """

    text_delta: Optional[str] = None
    finish_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """Whether this chunk ends the stream."""
        return self.finish_reason is not None

    @property
    def is_empty(self) -> bool:
        """Whether this chunk carries neither text nor a terminal marker."""
        return self.text_delta is None and self.finish_reason is None
