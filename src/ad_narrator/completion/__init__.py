"""
Completion Module
=================

Streaming chat-completion backends.

Components:
    - CompletionClient: Protocol for streaming backends
    - MockCompletionClient: Deterministic scripted backend
    - OpenAICompletionClient: OpenAI (or compatible) chat completions
    - with_chunk_timeout: Optional per-chunk deadline

Design Philosophy:
    The completion service is a pluggable black box. The controller only
    ever sees CompletionChunk objects and CompletionError.
"""

from ad_narrator.completion.client import (
    CompletionClient,
    CompletionError,
    CompletionRequest,
    MockCompletionClient,
    with_chunk_timeout,
)
from ad_narrator.completion.openai_client import OpenAICompletionClient

__all__ = [
    "CompletionClient",
    "CompletionError",
    "CompletionRequest",
    "MockCompletionClient",
    "OpenAICompletionClient",
    "with_chunk_timeout",
]
