"""
Narration Session
=================

Wires a frame source to the dispatch controller.

The session owns the loop that pulls raw frames from the source and offers
them to the controller. Stopping the session stops the source, releases
every narration observer, and abandons any in-flight stream.
"""

import asyncio
import logging
from typing import Optional

from ad_narrator.narration.controller import DispatchController
from ad_narrator.stream.source import FrameSource


logger = logging.getLogger(__name__)


class NarrationSession:
    """
    Single-consumer narration session.

    Attributes:
        source: Frame source
        controller: Dispatch controller fed by the source

    Example:
        session = NarrationSession(source, controller)
        task = asyncio.create_task(session.run())
        ...
        await session.stop()
        await task
    """

    def __init__(self, source: FrameSource, controller: DispatchController) -> None:
        self.source = source
        self.controller = controller
        self._running: bool = False
        self._frames_received: int = 0
        self._error: Optional[BaseException] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def frames_received(self) -> int:
        return self._frames_received

    @property
    def error(self) -> Optional[BaseException]:
        """Error that ended the source, if any."""
        return self._error

    async def run(self) -> None:
        """
        Feed frames to the controller until the source ends or stop() is called.

        Source errors end the session and are logged; they are kept on
        ``error`` for the readiness probe.
        """
        self._running = True
        logger.info("Narration session started")

        try:
            async for raw in self.source.frames():
                if not self._running:
                    break
                self._frames_received += 1
                self.controller.submit(raw)
        except asyncio.CancelledError:
            logger.info("Narration session cancelled")
            raise
        except Exception as e:
            self._error = e
            logger.error(f"Frame source failed: {e}")
        finally:
            self._running = False
            logger.info(
                f"Narration session ended after {self._frames_received} frame(s)"
            )

    async def stop(self) -> None:
        """Stop the source and tear the controller down."""
        logger.info("Narration session stopping...")
        self._running = False
        await self.source.stop()
        self.controller.close()
