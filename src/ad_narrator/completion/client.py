"""
Completion Client
=================

Streaming chat-completion abstraction.

This module provides the CompletionClient protocol and the
MockCompletionClient implementation used for development and tests.

Design Rules:
    - stream() returns a lazy, finite, non-restartable async iterator
    - Each item is a CompletionChunk (optional delta, optional finish reason)
    - Transport failures surface as CompletionError raised from iteration
    - No timeout by default; with_chunk_timeout() adds one per chunk
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence

from ad_narrator.models.chunk import CompletionChunk


logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Raised when a completion stream fails."""
    pass


class CompletionClient(Protocol):
    """
    Protocol for streaming chat-completion backends.

    Implemented by:
        - MockCompletionClient (development, tests)
        - OpenAICompletionClient (production)
    """

    def stream(
        self,
        prompt: str,
        images: Sequence[bytes],
        detail: str = "low",
        max_tokens: int = 80,
    ) -> AsyncIterator[CompletionChunk]:
        """
        Start a streamed completion.

        Args:
            prompt: User prompt text
            images: Ordered JPEG payloads (may be empty)
            detail: Image fidelity hint
            max_tokens: Completion token cap

        Returns:
            Async iterator of CompletionChunk
        """
        ...


async def with_chunk_timeout(
    chunks: AsyncIterator[CompletionChunk],
    timeout: Optional[float],
) -> AsyncIterator[CompletionChunk]:
    """
    Bound the wait for every chunk of a stream.

    Args:
        chunks: Chunk iterator from a completion client
        timeout: Seconds to wait per chunk (None = unbounded)

    Raises:
        CompletionError: If a chunk does not arrive in time
    """
    iterator = chunks.__aiter__()
    while True:
        try:
            if timeout is None:
                chunk = await iterator.__anext__()
            else:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=timeout)
        except StopAsyncIteration:
            return
        except asyncio.TimeoutError:
            raise CompletionError(f"No completion chunk received within {timeout:.1f}s")
        yield chunk


@dataclass(frozen=True)
class CompletionRequest:
    """Request recorded by MockCompletionClient."""

    prompt: str
    images: tuple
    detail: str
    max_tokens: int


DEFAULT_MOCK_NARRATIONS = (
    "折りたたみ傘 - 空が曇ってきたので、持ち運びやすい傘を提案します。",
    "モバイルバッテリー - スマートフォンを多用しているため、充電切れ対策に最適です。",
    "保冷ボトル - 屋外で飲み物を手にしているので、温度を保てるボトルを勧めます。",
)


class MockCompletionClient:
    """
    Deterministic completion backend.

    Cycles through scripted narrations, emitting each one as fixed-size
    text deltas followed by a terminal chunk. Every request is recorded
    so tests can inspect the prompt and images that were sent.

    Attributes:
        narrations: Scripted responses, used round-robin
        chunk_size: Characters per delta
        delay: Seconds to sleep before each delta
        fail_on_calls: Zero-based call indices that fail mid-stream
        requests: Requests received so far
    """

    def __init__(
        self,
        narrations: Sequence[str] = DEFAULT_MOCK_NARRATIONS,
        chunk_size: int = 4,
        delay: float = 0.0,
        fail_on_calls: Sequence[int] = (),
    ) -> None:
        if not narrations:
            raise ValueError("narrations must not be empty")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.narrations = list(narrations)
        self.chunk_size = chunk_size
        self.delay = delay
        self.fail_on_calls = set(fail_on_calls)
        self.requests: List[CompletionRequest] = []

        logger.info(
            f"MockCompletionClient initialized: {len(self.narrations)} narrations, "
            f"chunk_size={chunk_size}, delay={delay}s"
        )

    async def stream(
        self,
        prompt: str,
        images: Sequence[bytes],
        detail: str = "low",
        max_tokens: int = 80,
    ) -> AsyncIterator[CompletionChunk]:
        call_index = len(self.requests)
        self.requests.append(
            CompletionRequest(
                prompt=prompt,
                images=tuple(images),
                detail=detail,
                max_tokens=max_tokens,
            )
        )

        text = self.narrations[call_index % len(self.narrations)]
        pieces = [
            text[i:i + self.chunk_size]
            for i in range(0, len(text), self.chunk_size)
        ]

        for index, piece in enumerate(pieces):
            if self.delay:
                await asyncio.sleep(self.delay)
            if call_index in self.fail_on_calls and index == 1:
                raise CompletionError("Mock stream interrupted")
            yield CompletionChunk(text_delta=piece)

        yield CompletionChunk(finish_reason="stop")
