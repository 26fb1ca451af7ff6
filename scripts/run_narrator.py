#!/usr/bin/env python3
"""
Narrator Smoke Run
==================

Standalone script to run a narration session without the HTTP service.

This script:
    1. Opens a frame source (camera, websocket, or synthetic)
    2. Feeds it into a DispatchController
    3. Prints every narration text change
    4. Reports a final summary

Prerequisites:
    - pip install -e .
    - OPENAI_API_KEY set when using --backend openai

Usage:
    python scripts/run_narrator.py --source synthetic --backend mock --duration 30
    python scripts/run_narrator.py --source camera --backend openai --mode english
    python scripts/run_narrator.py --source websocket --url ws://localhost:8000/ws/stream
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from ad_narrator.completion import MockCompletionClient, OpenAICompletionClient
from ad_narrator.models.state import PromptMode
from ad_narrator.narration import DispatchController, NarrationSession, SamplingGate
from ad_narrator.stream import CameraFrameSource, SyntheticFrameSource, WebSocketFrameSource


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_source(args):
    if args.source == "camera":
        return CameraFrameSource(device=args.device)
    if args.source == "websocket":
        return WebSocketFrameSource(url=args.url)
    return SyntheticFrameSource(fps=10.0)


def build_client(args):
    if args.backend == "openai":
        return OpenAICompletionClient(model=args.model)
    return MockCompletionClient(delay=0.05)


async def run(args) -> dict:
    """
    Run a session for the requested duration.

    Returns:
        Final controller metrics dict
    """
    controller = DispatchController(
        client=build_client(args),
        gate=SamplingGate(
            process_interval=args.process_interval,
            accumulate_interval=args.accumulate_interval,
        ),
        prompt_mode=PromptMode(args.mode),
    )
    controller.text.subscribe(lambda text: print(f"\r{text}", flush=True))

    session = NarrationSession(build_source(args), controller)
    session_task = asyncio.create_task(session.run())

    start_time = time.time()
    try:
        await asyncio.wait_for(asyncio.shield(session_task), timeout=args.duration)
    except asyncio.TimeoutError:
        logger.info(f"Run duration ({args.duration}s) reached")
    finally:
        await controller.join()
        await session.stop()
        await session_task

    metrics = controller.metrics.to_dict()
    total_time = time.time() - start_time

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames received: {session.frames_received}")
    logger.info(f"Cycles completed: {metrics['cycles_completed']}")
    logger.info(f"Cycles failed: {metrics['cycles_failed']}")
    logger.info(f"Frames accumulated: {metrics['frames_accumulated']}")
    logger.info(f"Last narration: {controller.context!r}")
    logger.info("=" * 60)

    return metrics


def main():
    parser = argparse.ArgumentParser(description="Run a narration session from the command line")
    parser.add_argument("--source", choices=["camera", "websocket", "synthetic"], default="synthetic")
    parser.add_argument("--backend", choices=["openai", "mock"], default="mock")
    parser.add_argument("--device", type=int, default=0, help="Camera device index")
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("ADNARRATOR_STREAM_URL", "ws://localhost:8000/ws/stream"),
        help="WebSocket URL of the frame stream",
    )
    parser.add_argument("--model", type=str, default="gpt-4o-mini")
    parser.add_argument("--mode", choices=[m.value for m in PromptMode], default="localized")
    parser.add_argument("--process-interval", type=float, default=3.0)
    parser.add_argument("--accumulate-interval", type=float, default=6.0)
    parser.add_argument("--duration", type=int, default=60, help="Run duration in seconds")

    args = parser.parse_args()
    metrics = asyncio.run(run(args))

    sys.exit(0 if metrics["cycles_completed"] > 0 else 1)


if __name__ == "__main__":
    main()
