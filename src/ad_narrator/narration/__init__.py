"""
Narration Module
================

The frame-sampling, backpressure and stream-assembly core.

Components:
    - SamplingGate: Time-based admission of frame candidates
    - AccumulationBuffer: Frames waiting for the next request
    - PromptBuilder: Renders prompts from the previous narration
    - NarrationText: Observable visible narration
    - StreamAssembler: Applies streamed deltas to the narration
    - DispatchController: Single in-flight request state machine
    - NarrationSession: Feeds a frame source into the controller

Control Flow:
    source → gate (+ encoder) → buffer → controller → completion client
           → assembler → narration text
"""

from ad_narrator.narration.gate import SamplingGate
from ad_narrator.narration.buffer import AccumulationBuffer
from ad_narrator.narration.prompts import PromptBuilder, build_prompt
from ad_narrator.narration.text import NarrationText
from ad_narrator.narration.assembler import StreamAssembler, StreamOutcome, describe_error
from ad_narrator.narration.controller import ControllerMetrics, DispatchController
from ad_narrator.narration.session import NarrationSession

__all__ = [
    "SamplingGate",
    "AccumulationBuffer",
    "PromptBuilder",
    "build_prompt",
    "NarrationText",
    "StreamAssembler",
    "StreamOutcome",
    "describe_error",
    "ControllerMetrics",
    "DispatchController",
    "NarrationSession",
]
