"""
Camera Frame Source
===================

OpenCV capture device as a frame source.

Capture runs on a dedicated thread because ``VideoCapture.read`` blocks at
device cadence. Frames are handed to the event loop with
``loop.call_soon_threadsafe`` into an IngestBuffer, so nothing on the
capture thread touches controller state.

Design Rules:
    - The capture thread only reads and hands off
    - The ingest buffer keeps the newest frames (drop-oldest)
    - Device open failure surfaces as FrameSourceError from frames()
"""

import asyncio
import logging
import threading
import time
from typing import AsyncIterator, Callable, Optional

import cv2

from ad_narrator.stream.frame import RawFrame
from ad_narrator.stream.ingest import IngestBuffer
from ad_narrator.stream.source import FrameSourceError


logger = logging.getLogger(__name__)


class CameraFrameSource:
    """
    Frame source backed by ``cv2.VideoCapture``.

    Attributes:
        device: Capture device index (or a video file path)
        buffer: Ingest buffer between the capture thread and the loop

    Example:
        source = CameraFrameSource(device=0)
        async for raw in source.frames():
            controller.submit(raw)
    """

    def __init__(
        self,
        device=0,
        max_queue_size: int = 4,
        capture_factory: Callable = cv2.VideoCapture,
    ) -> None:
        """
        Initialize camera source.

        Args:
            device: Device index or video path passed to the capture factory
            max_queue_size: Raw frames held between capture and consumer
            capture_factory: Callable returning a VideoCapture-like object
        """
        self.device = device
        self.max_queue_size = max_queue_size
        self._capture_factory = capture_factory

        self.buffer: Optional[IngestBuffer] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_flag = threading.Event()
        self._finished: bool = False
        self._error: Optional[Exception] = None

    async def frames(self) -> AsyncIterator[RawFrame]:
        loop = asyncio.get_running_loop()
        self.buffer = IngestBuffer(capacity=self.max_queue_size)
        self._stop_flag.clear()
        self._finished = False
        self._error = None

        self._thread = threading.Thread(
            target=self._capture_loop,
            args=(loop,),
            name="camera-capture",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"CameraFrameSource started on device {self.device}")

        try:
            while True:
                raw = await self.buffer.get(timeout=0.5)
                if raw is not None:
                    yield raw
                    continue
                if self._finished:
                    break
        finally:
            self._stop_flag.set()

        if self._error is not None:
            raise self._error

    async def stop(self) -> None:
        self._stop_flag.set()
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join, 2.0)
        logger.info("CameraFrameSource stopped")

    def _capture_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Blocking capture loop, runs on the capture thread."""
        capture = self._capture_factory(self.device)
        frame_id = 0
        try:
            if not capture.isOpened():
                self._error = FrameSourceError(
                    f"Failed to open capture device {self.device}"
                )
                return

            while not self._stop_flag.is_set():
                ok, pixels = capture.read()
                if not ok:
                    logger.warning("Capture device returned no frame, stopping")
                    break

                raw = RawFrame(frame_id=frame_id, timestamp=time.time(), pixels=pixels)
                frame_id += 1
                try:
                    loop.call_soon_threadsafe(self.buffer.offer, raw)
                except RuntimeError:
                    # Event loop closed underneath us
                    break
        finally:
            capture.release()
            self._finished = True
