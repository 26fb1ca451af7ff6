"""
Stream Module
=============

Frame ingestion and encoding components.

This module provides the ingestion layer for the narration service:
    - RawFrame / Frame: Typed frame data models (raw and encoded)
    - IngestBuffer: Newest-frames mailbox between producers and the session
    - FrameEncoder: Resize, crop and JPEG-compress raw frames
    - FrameSource: Protocol implemented by every source
    - SyntheticFrameSource, CameraFrameSource, WebSocketFrameSource

Example:
    from ad_narrator.stream import CameraFrameSource, FrameEncoder

    source = CameraFrameSource(device=0)
    encoder = FrameEncoder(max_image_size=512)

    async for raw in source.frames():
        frame = encoder.encode(raw)
"""

from ad_narrator.stream.frame import Frame, RawFrame, jpeg_data_url
from ad_narrator.stream.ingest import IngestBuffer
from ad_narrator.stream.encoder import FrameEncoder, FrameEncodeError
from ad_narrator.stream.source import FrameSource, FrameSourceError, SyntheticFrameSource
from ad_narrator.stream.camera import CameraFrameSource
from ad_narrator.stream.consumer import WebSocketFrameSource, WebSocketSourceMetrics


__all__ = [
    "Frame",
    "RawFrame",
    "jpeg_data_url",
    "IngestBuffer",
    "FrameEncoder",
    "FrameEncodeError",
    "FrameSource",
    "FrameSourceError",
    "SyntheticFrameSource",
    "CameraFrameSource",
    "WebSocketFrameSource",
    "WebSocketSourceMetrics",
]
