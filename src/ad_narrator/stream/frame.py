"""
Frame Data Models
=================

Internal frame representations for the narration pipeline.

This module defines the two frame types that cross component boundaries:
    - RawFrame: What a frame source delivers (pixels or a base64 JPEG)
    - Frame: What the encoder produces and the accumulation buffer holds

Design Rules:
    - Both types are immutable
    - RawFrame is never transmitted, only encoded
    - Frame carries only the bounded JPEG payload plus identifiers for logging
"""

import base64
from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True, slots=True)
class RawFrame:
    """
    Frame as delivered by a frame source.

    Exactly one of ``pixels`` or ``image_b64`` is normally set. Camera
    sources deliver decoded pixels; network sources pass the upstream
    base64 JPEG through untouched and leave decoding to the encoder.

    Attributes:
        frame_id: Arrival counter assigned by the source
        timestamp: UNIX timestamp when the frame was captured or received
        pixels: BGR (or grayscale) uint8 image
        image_b64: Base64-encoded JPEG
    """

    frame_id: int
    timestamp: float
    pixels: Optional[np.ndarray] = None
    image_b64: Optional[str] = None

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image."""
        shape = None if self.pixels is None else self.pixels.shape
        return (
            f"RawFrame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"shape={shape}, b64={self.image_b64 is not None})"
        )


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Encoded frame ready for transmission.

    Attributes:
        frame_id: frame_id of the RawFrame it was encoded from
        timestamp: timestamp of the RawFrame it was encoded from
        jpeg: Bounded-size JPEG payload
    """

    frame_id: int
    timestamp: float
    jpeg: bytes

    @property
    def size_bytes(self) -> int:
        """Payload size in bytes."""
        return len(self.jpeg)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the payload."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"bytes={len(self.jpeg)})"
        )


def jpeg_data_url(jpeg: bytes) -> str:
    """Wrap JPEG bytes in a base64 data URL."""
    b64 = base64.b64encode(jpeg).decode("utf-8")
    return f"data:image/jpeg;base64,{b64}"
