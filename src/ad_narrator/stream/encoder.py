"""
Frame Encoder
=============

Dedicated module for turning raw frames into transmittable JPEG payloads.

Design Rules:
    - This is the ONLY place in the codebase that decodes or encodes images
    - Resizes so the shortest side equals max_image_size, then center-crops
      to a max_image_size square
    - Compresses to JPEG at a low quality; the model gets a low-detail hint
    - Never raises to callers: malformed input yields None and the sampling
      gate skips the frame
"""

import base64
import binascii
import logging
from typing import Optional

import cv2
import numpy as np

from ad_narrator.stream.frame import Frame, RawFrame


logger = logging.getLogger(__name__)


class FrameEncodeError(Exception):
    """Raised internally when a frame cannot be encoded."""
    pass


def decode_base64_jpeg(image_b64: str) -> np.ndarray:
    """
    Decode a base64 JPEG to a BGR numpy array.

    Args:
        image_b64: Base64-encoded JPEG data

    Returns:
        BGR image as np.ndarray (H, W, 3), dtype=uint8

    Raises:
        FrameEncodeError: If the payload is not valid base64 or not an image
    """
    try:
        image_bytes = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FrameEncodeError(f"Base64 decode failed: {e}")

    nparr = np.frombuffer(image_bytes, np.uint8)
    if nparr.size == 0:
        raise FrameEncodeError("Empty image payload")

    bgr = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if bgr is None:
        raise FrameEncodeError("cv2.imdecode returned None")
    return bgr


def resize_and_crop(image: np.ndarray, size: int) -> np.ndarray:
    """
    Scale so the shortest side equals ``size`` and center-crop to a square.

    Args:
        image: BGR image (H, W, 3), dtype=uint8
        size: Target edge length in pixels

    Returns:
        BGR image (size, size, 3)
    """
    height, width = image.shape[:2]
    scale = size / min(height, width)
    new_width = max(size, int(round(width * scale)))
    new_height = max(size, int(round(height * scale)))

    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    resized = cv2.resize(image, (new_width, new_height), interpolation=interpolation)

    top = (new_height - size) // 2
    left = (new_width - size) // 2
    return resized[top:top + size, left:left + size]


class FrameEncoder:
    """
    Stateless raw-frame to JPEG encoder.

    Attributes:
        max_image_size: Shortest-side bound and crop size in pixels
        jpeg_quality: JPEG quality (1-100)

    Example:
        encoder = FrameEncoder(max_image_size=512, jpeg_quality=30)
        frame = encoder.encode(raw)
        if frame is None:
            ...  # malformed input, skip
    """

    def __init__(self, max_image_size: int = 512, jpeg_quality: int = 30) -> None:
        """
        Initialize frame encoder.

        Args:
            max_image_size: Shortest-side bound and crop size in pixels
            jpeg_quality: JPEG quality (1-100)
        """
        if max_image_size < 1:
            raise ValueError("max_image_size must be >= 1")
        if not 1 <= jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be in [1, 100]")

        self.max_image_size = max_image_size
        self.jpeg_quality = jpeg_quality

    def encode(self, raw: RawFrame) -> Optional[Frame]:
        """
        Encode a raw frame.

        Args:
            raw: Frame from a frame source

        Returns:
            Encoded Frame, or None if the input is malformed
        """
        try:
            bgr = self._to_bgr(raw)
            square = resize_and_crop(bgr, self.max_image_size)
            ok, buf = cv2.imencode(
                ".jpg",
                square,
                [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality],
            )
            if not ok:
                raise FrameEncodeError("cv2.imencode failed")
        except FrameEncodeError as e:
            logger.debug(f"Skipping frame {raw.frame_id}: {e}")
            return None
        except cv2.error as e:
            logger.debug(f"Skipping frame {raw.frame_id}: OpenCV error: {e}")
            return None

        return Frame(
            frame_id=raw.frame_id,
            timestamp=raw.timestamp,
            jpeg=buf.tobytes(),
        )

    def _to_bgr(self, raw: RawFrame) -> np.ndarray:
        """Resolve the raw frame to a validated BGR uint8 array."""
        if raw.pixels is not None:
            image = raw.pixels
        elif raw.image_b64 is not None:
            image = decode_base64_jpeg(raw.image_b64)
        else:
            raise FrameEncodeError("Frame carries no image data")

        if not isinstance(image, np.ndarray):
            raise FrameEncodeError(f"Unsupported pixel container: {type(image).__name__}")
        if image.dtype != np.uint8:
            raise FrameEncodeError(f"Invalid dtype: {image.dtype}")
        if image.size == 0:
            raise FrameEncodeError("Empty image")

        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.ndim == 3 and image.shape[2] == 3:
            return image
        if image.ndim == 3 and image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        raise FrameEncodeError(f"Invalid image shape: {image.shape}")
