"""
Ad Narrator Main Application
============================

FastAPI entry point for the live advertising narrator.

Pipeline:
    frame source → sampling gate → accumulation buffer → dispatch controller
    → completion client → stream assembler → narration text

Endpoints:
    GET  /                - Service information
    GET  /health          - Liveness probe (is process alive?)
    GET  /ready           - Readiness probe (session running?)
    GET  /metrics         - Gate, buffer and controller counters
    GET  /narration       - Current narration snapshot
    PUT  /narration/mode  - Switch the prompt template
    WS   /ws/narration    - Push every narration text change
"""

import asyncio
import logging
import os
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ad_narrator.config import settings
from ad_narrator.completion import (
    CompletionClient,
    MockCompletionClient,
    OpenAICompletionClient,
)
from ad_narrator.models.output import NarrationUpdate, PromptModeUpdate
from ad_narrator.narration import (
    AccumulationBuffer,
    DispatchController,
    NarrationSession,
    PromptBuilder,
    SamplingGate,
)
from ad_narrator.stream import (
    CameraFrameSource,
    FrameEncoder,
    FrameSource,
    SyntheticFrameSource,
    WebSocketFrameSource,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_shutdown_flag: bool = False

_frame_source: Optional[FrameSource] = None
_controller: Optional[DispatchController] = None
_session: Optional[NarrationSession] = None
_session_task: Optional[asyncio.Task] = None

_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_controller() -> Optional[DispatchController]:
    return _controller

def get_session() -> Optional[NarrationSession]:
    return _session

def get_frame_source() -> Optional[FrameSource]:
    return _frame_source

def is_ready() -> bool:
    return (
        _session_task is not None
        and not _session_task.done()
        and _session is not None
        and _session.error is None
    )


# =============================================================================
# Signal Handlers
# =============================================================================

def _handle_sigterm(signum, frame):
    """Handle SIGTERM for graceful shutdown."""
    global _shutdown_flag
    logger.info("Received SIGTERM, initiating graceful shutdown...")
    _shutdown_flag = True


# =============================================================================
# Component Factories
# =============================================================================

def create_frame_source() -> FrameSource:
    """Create the frame source selected in config."""
    backend = settings.source.backend

    if backend == "camera":
        logger.info(f"Using CameraFrameSource (device {settings.source.camera_device})")
        return CameraFrameSource(
            device=settings.source.camera_device,
            max_queue_size=settings.source.max_queue_size,
        )

    elif backend == "websocket":
        logger.info(f"Using WebSocketFrameSource ({settings.source.url})")
        return WebSocketFrameSource(
            url=settings.source.url,
            max_queue_size=settings.source.max_queue_size,
            reconnect_backoff_ms=settings.source.reconnect_backoff_ms,
            max_reconnect_attempts=settings.source.max_reconnect_attempts,
        )

    elif backend == "synthetic":
        logger.info("Using SyntheticFrameSource")
        return SyntheticFrameSource(fps=settings.source.synthetic_fps)

    else:
        raise ValueError(f"Unknown frame source backend: {backend}")


def create_completion_client() -> CompletionClient:
    """
    Create the completion client selected in config.

    Fails fast if the OpenAI backend is requested without an API key.
    """
    backend = settings.completion.backend

    if backend == "mock":
        logger.info("Using MockCompletionClient")
        return MockCompletionClient(delay=settings.completion.mock_delay_seconds)

    elif backend == "openai":
        return OpenAICompletionClient(
            model=settings.completion.model,
            base_url=settings.completion.base_url,
            api_key_env=settings.completion.api_key_env,
        )

    else:
        raise ValueError(f"Unknown completion backend: {backend}")


def create_controller(client: CompletionClient) -> DispatchController:
    """Build the dispatch controller from config."""
    return DispatchController(
        client=client,
        encoder=FrameEncoder(
            max_image_size=settings.encoder.max_image_size,
            jpeg_quality=settings.encoder.jpeg_quality,
        ),
        gate=SamplingGate(
            process_interval=settings.sampling.process_interval_seconds,
            accumulate_interval=settings.sampling.accumulate_interval_seconds,
        ),
        buffer=AccumulationBuffer(warn_size=settings.sampling.buffer_warn_size),
        prompt_builder=PromptBuilder(
            localized_template=settings.prompt.localized_template,
            english_template=settings.prompt.english_template,
        ),
        prompt_mode=settings.prompt.mode,
        max_frames=settings.sampling.max_frames,
        max_tokens=settings.completion.max_tokens,
        detail=settings.completion.detail,
        chunk_timeout=settings.completion.chunk_timeout_seconds,
    )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _frame_source, _controller, _session, _session_task
    global _startup_time, _shutdown_flag

    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except ValueError:
        # Not on the main thread (e.g. under a test client)
        pass

    _startup_time = time.time()
    _shutdown_flag = False
    logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

    _frame_source = create_frame_source()
    _controller = create_controller(create_completion_client())
    _session = NarrationSession(_frame_source, _controller)
    _session_task = asyncio.create_task(_session.run(), name="narration_session")

    logger.info("All components started")

    yield

    logger.info("Shutting down gracefully...")
    _shutdown_flag = True

    if _session:
        await _session.stop()

    if _session_task:
        try:
            await asyncio.wait_for(_session_task, timeout=5.0)
        except asyncio.TimeoutError:
            _session_task.cancel()
            try:
                await _session_task
            except asyncio.CancelledError:
                pass

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Ad Narrator",
    description="Live advertising narration over a camera feed",
    version=settings.agent.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "Ad Narrator",
        "version": settings.agent.version,
        "name": settings.agent.name,
        "status": "running",
        "source_backend": settings.source.backend,
        "completion_backend": settings.completion.backend,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the session consuming frames?

    Returns 200 while the narration session is running, 503 otherwise.
    """
    session = get_session()
    source_error = None
    if session is not None and session.error is not None:
        source_error = str(session.error)

    if is_ready():
        return JSONResponse({
            "status": "ready",
            "frames_received": session.frames_received,
        })

    return JSONResponse(
        {
            "status": "not_ready",
            "source_error": source_error,
        },
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    controller = get_controller()
    session = get_session()

    controller_metrics = {}
    if controller:
        controller_metrics = {
            "state": controller.state.value,
            **controller.metrics.to_dict(),
            "buffer": controller.buffer.metrics(),
        }

    source_metrics = {}
    source = get_frame_source()
    if isinstance(source, WebSocketFrameSource):
        source_metrics = {
            "stream_connected": source.connected,
            **source.metrics.to_dict(),
        }

    ingest = getattr(source, "buffer", None)
    if ingest is not None:
        source_metrics["ingest"] = ingest.metrics()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "frames_received": session.frames_received if session else 0,
        **controller_metrics,
        **source_metrics,
    })


@app.get("/narration")
async def narration() -> JSONResponse:
    """Current narration snapshot."""
    controller = get_controller()

    if controller is None:
        return JSONResponse(
            {"error": "Narration controller not initialized"},
            status_code=503,
        )

    return JSONResponse(controller.snapshot().model_dump(mode="json"))


@app.put("/narration/mode")
async def set_prompt_mode(update: PromptModeUpdate) -> JSONResponse:
    """Switch the prompt template used from the next cycle on."""
    controller = get_controller()

    if controller is None:
        return JSONResponse(
            {"error": "Narration controller not initialized"},
            status_code=503,
        )

    controller.prompt_mode = update.mode
    logger.info(f"Prompt mode set to {update.mode.value}")
    return JSONResponse({"prompt_mode": update.mode.value})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/narration")
async def narration_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint pushing every narration text change."""
    await websocket.accept()
    logger.info("Client connected to /ws/narration")

    controller = get_controller()
    if controller is None:
        await websocket.close(code=1013)
        return

    updates: asyncio.Queue[str] = asyncio.Queue()
    unsubscribe = controller.text.subscribe(updates.put_nowait)

    async def _pump() -> None:
        text: Optional[str] = controller.text.value
        while not _shutdown_flag and not controller.closed:
            if text is not None:
                update = NarrationUpdate(text=text, timestamp=time.time())
                await websocket.send_json(update.model_dump(mode="json"))
            try:
                text = await asyncio.wait_for(updates.get(), timeout=1.0)
            except asyncio.TimeoutError:
                text = None
        logger.info("Narration closed, closing /ws/narration")
        await websocket.close(code=1001)

    pump_task = asyncio.create_task(_pump())

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        pump_task.cancel()
        try:
            await pump_task
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        logger.info("Client disconnected from /ws/narration")


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "ad_narrator.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
