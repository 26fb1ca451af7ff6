"""
WebSocket Frame Source
======================

WebSocket client for consuming frames from an upstream video stream.

This module provides the WebSocketFrameSource class which:
    - Connects to an upstream frame stream endpoint
    - Receives and validates JSON frame messages
    - Handles reconnection with backoff
    - Pushes raw frames into an IngestBuffer and yields them

Message Contract:
    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "image": "<base64 JPEG>"
    }

Design Rules:
    - Does NOT decode image data (the encoder does)
    - Logs validation warnings but continues processing
    - Reconnects automatically on disconnect
    - Exposes metrics for health monitoring
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    ConnectionClosedError,
)

from ad_narrator.stream.frame import RawFrame
from ad_narrator.stream.ingest import IngestBuffer


logger = logging.getLogger(__name__)


class WebSocketSourceMetrics:
    """Metrics for WebSocketFrameSource observability."""

    __slots__ = (
        "frames_received",
        "reconnect_count",
        "last_frame_id",
        "last_timestamp",
        "validation_warnings",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.reconnect_count: int = 0
        self.last_frame_id: int = -1
        self.last_timestamp: float = 0.0
        self.validation_warnings: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "reconnect_count": self.reconnect_count,
            "last_frame_id": self.last_frame_id,
            "last_timestamp": self.last_timestamp,
            "validation_warnings": self.validation_warnings,
            "parse_errors": self.parse_errors,
        }


class WebSocketFrameSource:
    """
    WebSocket frame source.

    Attributes:
        url: WebSocket URL to connect to
        buffer: IngestBuffer between the receive task and the consumer
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        source = WebSocketFrameSource(url="ws://localhost:8000/ws/stream")

        async for raw in source.frames():
            controller.submit(raw)

        # Later, from another task
        await source.stop()
    """

    def __init__(
        self,
        url: str,
        max_queue_size: int = 4,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize WebSocket frame source.

        Args:
            url: WebSocket URL of the upstream stream
            max_queue_size: Raw frames held between receive and consumer
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.url = url
        self.buffer = IngestBuffer(capacity=max_queue_size)
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._receive_task: Optional[asyncio.Task] = None

        self.metrics = WebSocketSourceMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the upstream stream."""
        return self._connected

    async def frames(self) -> AsyncIterator[RawFrame]:
        self._receive_task = asyncio.create_task(self.run(), name="websocket_source")
        try:
            while True:
                raw = await self.buffer.get(timeout=0.5)
                if raw is not None:
                    yield raw
                elif self._receive_task.done():
                    break
        finally:
            if not self._receive_task.done():
                await self.stop()

    async def run(self) -> None:
        """
        Receive frames into the ingest buffer.

        Runs until stop() is called or reconnect attempts are exhausted.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"WebSocketFrameSource starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break

                logger.error(f"Connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                    )
                    break

                self.metrics.reconnect_count += 1
                backoff_sec = self.reconnect_backoff_ms / 1000.0
                logger.info(
                    f"Reconnecting in {backoff_sec:.1f}s "
                    f"(attempt {self.metrics.reconnect_count})"
                )

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                    break
                except asyncio.TimeoutError:
                    pass
            else:
                # Upstream closed cleanly; wait before reconnecting
                if not self._running:
                    break
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.reconnect_backoff_ms / 1000.0,
                    )
                    break
                except asyncio.TimeoutError:
                    pass

        self._running = False
        logger.info("WebSocketFrameSource stopped")

    async def stop(self) -> None:
        """
        Stop receiving gracefully.

        Signals the run loop to exit and closes the connection.
        """
        logger.info("WebSocketFrameSource stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except ConnectionClosed:
                pass

        self._connected = False

        if self._receive_task is not None and not self._receive_task.done():
            try:
                await asyncio.wait_for(self._receive_task, timeout=5.0)
            except asyncio.TimeoutError:
                self._receive_task.cancel()

    async def _connect_and_consume(self) -> None:
        """Connect to WebSocket and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Connected to frame stream: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break

                    raw = self.parse_message(message)
                    if raw is not None:
                        self.buffer.offer(raw)
                        self.metrics.frames_received += 1
                        self.metrics.last_frame_id = raw.frame_id
                        self.metrics.last_timestamp = raw.timestamp

            except ConnectionClosedOK:
                logger.info("Connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    def parse_message(self, message) -> Optional[RawFrame]:
        """
        Parse and validate a raw WebSocket message.

        Ordering violations are logged and counted but the frame is kept.

        Args:
            message: Raw JSON text (or bytes) from the WebSocket

        Returns:
            RawFrame, or None on parse error
        """
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Failed to parse frame JSON: {e}")
            return None

        try:
            frame_id = int(data["frame_id"])
            timestamp = float(data["timestamp"])
            image_b64 = str(data["image"])
        except (KeyError, ValueError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Invalid frame structure: {e}")
            return None

        if self.metrics.last_frame_id >= 0 and frame_id <= self.metrics.last_frame_id:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Frame ID went backwards: got {frame_id}, "
                f"previous was {self.metrics.last_frame_id}"
            )

        if self.metrics.last_timestamp > 0 and timestamp < self.metrics.last_timestamp:
            self.metrics.validation_warnings += 1
            logger.warning(
                f"Timestamp went backwards: got {timestamp:.3f}, "
                f"previous was {self.metrics.last_timestamp:.3f}"
            )

        return RawFrame(frame_id=frame_id, timestamp=timestamp, image_b64=image_b64)
