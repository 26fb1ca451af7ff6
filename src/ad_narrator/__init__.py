"""
Ad Narrator
===========

Live advertising narration over a camera feed.

Frames are sampled from a video source on a fixed cadence, batched while a
request is in flight, and streamed to a multimodal chat-completion model.
The streamed answer is assembled into a single observable narration text
that is updated delta by delta.

Components:
    - stream: Frame sources, ingest queue, and the JPEG frame encoder
    - narration: Sampling gate, accumulation buffer, dispatch controller,
      stream assembler and the observable narration text
    - completion: Streaming chat-completion clients (OpenAI, mock)
    - models: Chunk, state, and API output models

Example:
    from ad_narrator.config import settings
    from ad_narrator.narration import DispatchController

    # The service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "Ad Narrator Project"

__all__ = [
    "__version__",
]
