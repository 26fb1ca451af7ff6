"""
Frame Encoder Tests
===================
"""

import base64

import cv2
import numpy as np
import pytest

from ad_narrator.stream.encoder import (
    FrameEncodeError,
    FrameEncoder,
    decode_base64_jpeg,
    resize_and_crop,
)
from ad_narrator.stream.frame import RawFrame

from conftest import make_raw


def _decoded_shape(jpeg: bytes):
    image = cv2.imdecode(np.frombuffer(jpeg, np.uint8), cv2.IMREAD_COLOR)
    assert image is not None
    return image.shape


class TestResizeAndCrop:

    def test_landscape_downscale(self):
        out = resize_and_crop(np.zeros((480, 640, 3), dtype=np.uint8), 256)
        assert out.shape == (256, 256, 3)

    def test_portrait_upscale(self):
        out = resize_and_crop(np.zeros((200, 100, 3), dtype=np.uint8), 512)
        assert out.shape == (512, 512, 3)

    def test_crop_is_centered(self):
        image = np.zeros((100, 300, 3), dtype=np.uint8)
        image[:, 100:200] = 255
        out = resize_and_crop(image, 100)
        assert out.shape == (100, 100, 3)
        assert out.min() == 255


class TestFrameEncoder:

    def test_encodes_square_jpeg(self, raw_frame):
        frame = FrameEncoder(max_image_size=512, jpeg_quality=30).encode(raw_frame)

        assert frame is not None
        assert frame.frame_id == raw_frame.frame_id
        assert frame.timestamp == raw_frame.timestamp
        assert frame.jpeg[:2] == b"\xff\xd8"
        assert _decoded_shape(frame.jpeg) == (512, 512, 3)

    def test_deterministic(self):
        encoder = FrameEncoder()
        assert encoder.encode(make_raw(3)).jpeg == encoder.encode(make_raw(3)).jpeg

    def test_grayscale_and_bgra_accepted(self):
        encoder = FrameEncoder(max_image_size=64)
        gray = RawFrame(frame_id=1, timestamp=0.0, pixels=np.zeros((80, 120), dtype=np.uint8))
        bgra = RawFrame(frame_id=2, timestamp=0.0, pixels=np.zeros((80, 120, 4), dtype=np.uint8))

        assert _decoded_shape(encoder.encode(gray).jpeg) == (64, 64, 3)
        assert _decoded_shape(encoder.encode(bgra).jpeg) == (64, 64, 3)

    def test_base64_input(self, sample_frame_message):
        raw = RawFrame(
            frame_id=sample_frame_message["frame_id"],
            timestamp=sample_frame_message["timestamp"],
            image_b64=sample_frame_message["image"],
        )
        frame = FrameEncoder(max_image_size=128).encode(raw)
        assert frame is not None
        assert _decoded_shape(frame.jpeg) == (128, 128, 3)

    @pytest.mark.parametrize(
        "raw",
        [
            RawFrame(frame_id=0, timestamp=0.0),
            RawFrame(frame_id=0, timestamp=0.0, image_b64="not base64!!"),
            RawFrame(frame_id=0, timestamp=0.0, image_b64=base64.b64encode(b"plain text").decode()),
            RawFrame(frame_id=0, timestamp=0.0, pixels=np.zeros((0, 0, 3), dtype=np.uint8)),
            RawFrame(frame_id=0, timestamp=0.0, pixels=np.zeros((10, 10, 3), dtype=np.float32)),
            RawFrame(frame_id=0, timestamp=0.0, pixels=np.zeros((10, 10, 2), dtype=np.uint8)),
        ],
        ids=["no-data", "bad-base64", "not-an-image", "empty", "float", "two-channel"],
    )
    def test_malformed_input_yields_none(self, raw):
        assert FrameEncoder().encode(raw) is None

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            FrameEncoder(max_image_size=0)
        with pytest.raises(ValueError):
            FrameEncoder(jpeg_quality=101)


def test_decode_base64_jpeg_rejects_garbage():
    with pytest.raises(FrameEncodeError):
        decode_base64_jpeg("@@@")
