"""
Data Models
===========

Models shared across the narration service.

Models:
    Chunk:
        - CompletionChunk: Provider-neutral streamed completion chunk

    State:
        - DispatchState: Controller state (IDLE, SENDING)
        - GateDecision: Sampling gate verdict (DISPATCH, ACCUMULATE, DROP)
        - PromptMode: Prompt template selector (localized, english)

    Output:
        - NarrationSnapshot: Controller view served over HTTP
        - NarrationUpdate: Visible-text change pushed over WebSocket
        - PromptModeUpdate: Prompt mode switch request
"""

from ad_narrator.models.chunk import CompletionChunk
from ad_narrator.models.state import DispatchState, GateDecision, PromptMode
from ad_narrator.models.output import NarrationSnapshot, NarrationUpdate, PromptModeUpdate

__all__ = [
    # Chunk
    "CompletionChunk",
    # State
    "DispatchState",
    "GateDecision",
    "PromptMode",
    # Output
    "NarrationSnapshot",
    "NarrationUpdate",
    "PromptModeUpdate",
]
