"""
Output Schema
=============

Pydantic models for the HTTP and WebSocket surface.

Output Contract (GET /narration):
    {
        "text": "傘 - 雨が降り始めたため",
        "state": "IDLE",
        "in_flight": false,
        "context": "傘 - 雨が降り始めたため",
        "prompt_mode": "localized",
        "cycles_completed": 12,
        "cycles_failed": 1,
        "buffered_frames": 0,
        "timestamp": 1707321234.567
    }

WebSocket updates (WS /ws/narration) carry a NarrationUpdate for every
change of the visible narration text.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ad_narrator.models.state import DispatchState, PromptMode


class NarrationSnapshot(BaseModel):
    """
    Point-in-time view of the narration controller.

    Attributes:
        text: Current visible narration text
        state: Dispatch controller state
        in_flight: Whether a completion request is streaming
        context: Last successfully completed narration (None before the first)
        prompt_mode: Prompt template in use
        cycles_completed: Number of successful cycles
        cycles_failed: Number of failed cycles
        buffered_frames: Frames waiting in the accumulation buffer
        timestamp: UNIX timestamp of the snapshot
    """

    text: str = Field(..., description="Current visible narration text")
    state: DispatchState = Field(..., description="Dispatch controller state")
    in_flight: bool = Field(..., description="Whether a request is streaming")
    context: Optional[str] = Field(
        default=None,
        description="Last successfully completed narration",
    )
    prompt_mode: PromptMode = Field(..., description="Prompt template in use")
    cycles_completed: int = Field(default=0, ge=0)
    cycles_failed: int = Field(default=0, ge=0)
    buffered_frames: int = Field(default=0, ge=0)
    timestamp: float = Field(..., gt=0, description="UNIX timestamp")


class NarrationUpdate(BaseModel):
    """Single visible-text change pushed to WebSocket subscribers."""

    text: str = Field(..., description="Visible narration text after the change")
    timestamp: float = Field(..., gt=0, description="UNIX timestamp")


class PromptModeUpdate(BaseModel):
    """Request body for switching the prompt template."""

    mode: PromptMode = Field(..., description="Prompt template to use from the next cycle")
