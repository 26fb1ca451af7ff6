"""
Dispatch Controller
===================

State machine that owns the single in-flight completion request.

States:
    IDLE → SENDING:  the sampling gate admits a frame while nothing is in
                     flight. The buffer is drained (newest max_frames), the
                     prompt is rendered from the last completed narration,
                     and a cycle task starts streaming.
    SENDING → IDLE:  the stream finishes (context := visible text), fails
                     (visible text := error, context untouched), or is
                     abandoned because the controller was closed.

Frames arriving while SENDING only feed the accumulation buffer; they never
start a second request.

Each cycle runs as a LangGraph workflow. LangGraph is used for CONTROL FLOW
only; the model call happens inside the stream node.

Graph Structure:
    START → stream ─┬─→ complete → END
                    ├─→ fail     → END
                    └─→ abandon  → END

Concurrency:
    submit() and every graph node run on the event loop, which makes the
    stream assembler the only writer of the narration text. Frame sources
    on other threads must hand frames over with loop.call_soon_threadsafe.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END

from ad_narrator.completion.client import CompletionClient, with_chunk_timeout
from ad_narrator.models.output import NarrationSnapshot
from ad_narrator.models.state import DispatchState, GateDecision, PromptMode
from ad_narrator.narration.assembler import StreamAssembler, StreamOutcome, describe_error
from ad_narrator.narration.buffer import AccumulationBuffer
from ad_narrator.narration.gate import SamplingGate
from ad_narrator.narration.prompts import PromptBuilder
from ad_narrator.narration.text import NarrationText
from ad_narrator.stream.encoder import FrameEncoder
from ad_narrator.stream.frame import RawFrame


logger = logging.getLogger(__name__)


class CycleState(TypedDict):
    """
    State passed through the cycle graph.

    Attributes:
        cycle_id: Sequence number of the cycle
        prompt: Rendered prompt
        images: JPEG payloads drained from the buffer
        frame_ids: frame_id of each payload, for logging
        started_at: Clock reading when the cycle began
        outcome: How the stream ended (set by the stream node)
        finished_at: Clock reading when the cycle returned to IDLE
    """
    cycle_id: int
    prompt: str
    images: List[bytes]
    frame_ids: List[int]
    started_at: float
    outcome: Optional[StreamOutcome]
    finished_at: Optional[float]


class ControllerMetrics:
    """Metrics for DispatchController observability."""

    __slots__ = (
        "frames_seen",
        "frames_dropped",
        "frames_accumulated",
        "encoder_failures",
        "cycles_started",
        "cycles_completed",
        "cycles_failed",
        "cycles_abandoned",
        "last_cycle_seconds",
    )

    def __init__(self) -> None:
        self.frames_seen: int = 0
        self.frames_dropped: int = 0
        self.frames_accumulated: int = 0
        self.encoder_failures: int = 0
        self.cycles_started: int = 0
        self.cycles_completed: int = 0
        self.cycles_failed: int = 0
        self.cycles_abandoned: int = 0
        self.last_cycle_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class DispatchController:
    """
    At-most-one-in-flight narration controller.

    Owns the accumulation buffer, the in-flight flag, the narration context
    and the reset flag. Nothing outside this class mutates them.

    Attributes:
        client: Streaming completion backend
        encoder: Raw frame encoder
        gate: Sampling gate
        buffer: Accumulation buffer
        text: Visible narration text
        metrics: Operational metrics

    Example:
        controller = DispatchController(client=MockCompletionClient())
        controller.text.subscribe(print)

        async for raw in source.frames():
            controller.submit(raw)
    """

    def __init__(
        self,
        client: CompletionClient,
        encoder: Optional[FrameEncoder] = None,
        gate: Optional[SamplingGate] = None,
        buffer: Optional[AccumulationBuffer] = None,
        text: Optional[NarrationText] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        prompt_mode: PromptMode = PromptMode.LOCALIZED,
        max_frames: int = 2,
        max_tokens: int = 80,
        detail: str = "low",
        chunk_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the dispatch controller.

        Args:
            client: Streaming completion backend
            encoder: Frame encoder (default: 512px, quality 30)
            gate: Sampling gate (default: 3s / 6s)
            buffer: Accumulation buffer
            text: Narration text cell
            prompt_builder: Prompt renderer (default templates)
            prompt_mode: Initial prompt template
            max_frames: Newest frames sent per request
            max_tokens: Completion token cap
            detail: Image fidelity hint
            chunk_timeout: Per-chunk deadline in seconds (None = unbounded)
            clock: Monotonic clock used by the gate
        """
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")

        self.client = client
        self.encoder = encoder or FrameEncoder()
        self.gate = gate or SamplingGate()
        self.buffer = buffer or AccumulationBuffer()
        self.text = text or NarrationText()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.prompt_mode = prompt_mode
        self.max_frames = max_frames
        self.max_tokens = max_tokens
        self.detail = detail
        self.chunk_timeout = chunk_timeout
        self._clock = clock

        self.assembler = StreamAssembler(self.text)
        self.metrics = ControllerMetrics()

        self._state: DispatchState = DispatchState.IDLE
        self._context: Optional[str] = None
        self._closed: bool = False
        self._active_cycle: Optional[int] = None
        self._cycle_count: int = 0
        self._cycle_task: Optional[asyncio.Task] = None

        self._graph = self._build_graph()

        logger.info(
            f"DispatchController initialized: max_frames={max_frames}, "
            f"max_tokens={max_tokens}, mode={prompt_mode.value}, "
            f"process={self.gate.process_interval}s, "
            f"accumulate={self.gate.accumulate_interval}s"
        )

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """Whether a completion request is active."""
        return self._state is DispatchState.SENDING

    @property
    def context(self) -> Optional[str]:
        """Last successfully completed narration."""
        return self._context

    @property
    def reset_pending(self) -> bool:
        """Whether the next delta overwrites the visible text."""
        return self.assembler.reset_pending

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> NarrationSnapshot:
        """Point-in-time view for the HTTP surface."""
        return NarrationSnapshot(
            text=self.text.value,
            state=self._state,
            in_flight=self.in_flight,
            context=self._context,
            prompt_mode=self.prompt_mode,
            cycles_completed=self.metrics.cycles_completed,
            cycles_failed=self.metrics.cycles_failed,
            buffered_frames=self.buffer.size,
            timestamp=time.time(),
        )

    # -------------------------------------------------------------------------
    # Frame intake
    # -------------------------------------------------------------------------

    def submit(self, raw: RawFrame, now: Optional[float] = None) -> GateDecision:
        """
        Offer a raw frame to the controller.

        Must be called on the event loop. Never blocks: a DISPATCH decision
        schedules the cycle as a task.

        Args:
            raw: Frame from a frame source
            now: Clock reading (defaults to the controller clock)

        Returns:
            The effective decision for this frame. A frame the encoder
            rejects is reported as DROP.
        """
        if self._closed:
            return GateDecision.DROP

        now = self._clock() if now is None else now
        self.metrics.frames_seen += 1

        decision = self.gate.evaluate(now, self.in_flight)
        if decision is GateDecision.DROP:
            self.metrics.frames_dropped += 1
            return decision

        frame = self.encoder.encode(raw)
        if frame is None:
            self.metrics.encoder_failures += 1
            return GateDecision.DROP

        self.buffer.push(frame)

        if decision is GateDecision.ACCUMULATE:
            self.gate.mark_accumulated(now)
            self.metrics.frames_accumulated += 1
            logger.debug(
                f"Accumulated frame {frame.frame_id} "
                f"(buffer size {self.buffer.size})"
            )
            return decision

        self._begin_cycle()
        return decision

    # -------------------------------------------------------------------------
    # Cycle lifecycle
    # -------------------------------------------------------------------------

    def _begin_cycle(self) -> None:
        """IDLE → SENDING: drain, render the prompt, start the cycle task."""
        self._cycle_count += 1
        cycle_id = self._cycle_count

        self._state = DispatchState.SENDING
        self._active_cycle = cycle_id
        self.metrics.cycles_started += 1

        batch = self.buffer.drain_last_n(self.max_frames)
        if not batch:
            logger.warning(f"Cycle {cycle_id} starting with no frames")

        state: CycleState = {
            "cycle_id": cycle_id,
            "prompt": self.prompt_builder.build(self._context, self.prompt_mode),
            "images": [frame.jpeg for frame in batch],
            "frame_ids": [frame.frame_id for frame in batch],
            "started_at": self._clock(),
            "outcome": None,
            "finished_at": None,
        }

        logger.info(
            f"Cycle {cycle_id} started with {len(batch)} frame(s) "
            f"{state['frame_ids']}"
        )

        self._cycle_task = asyncio.get_running_loop().create_task(
            self._run_cycle(state),
            name=f"narration_cycle_{cycle_id}",
        )

    async def _run_cycle(self, state: CycleState) -> None:
        """Run the cycle graph; any escape routes through the failure path."""
        try:
            await self._graph.ainvoke(state)
        except Exception as e:
            logger.error(f"Cycle {state['cycle_id']} crashed: {e}")
            if self._active_cycle == state["cycle_id"]:
                if not self._closed:
                    self.assembler.fail(e)
                self._finish(state, DispatchState.IDLE)
                self.metrics.cycles_failed += 1

    async def join(self) -> None:
        """Wait for the current cycle (if any) to return to IDLE."""
        task = self._cycle_task
        if task is not None and not task.done():
            await task

    def close(self) -> None:
        """
        Tear the controller down.

        Releases every narration observer, drops buffered frames, and
        abandons the in-flight stream: its remaining chunks are ignored.
        """
        if self._closed:
            return
        self._closed = True
        released = self.text.clear_observers()
        dropped = self.buffer.clear()
        logger.info(
            f"DispatchController closed: released {released} observer(s), "
            f"dropped {dropped} buffered frame(s), in_flight={self.in_flight}"
        )

    def _finish(self, state: CycleState, new_state: DispatchState) -> float:
        """Common SENDING → IDLE bookkeeping. Returns cycle duration."""
        elapsed = self._clock() - state["started_at"]
        self.assembler.arm_reset()
        self._state = new_state
        self._active_cycle = None
        self.metrics.last_cycle_seconds = elapsed
        return elapsed

    # -------------------------------------------------------------------------
    # Graph
    # -------------------------------------------------------------------------

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph cycle workflow."""
        workflow = StateGraph(CycleState)

        workflow.add_node("stream", self._stream_node)
        workflow.add_node("complete", self._complete_node)
        workflow.add_node("fail", self._fail_node)
        workflow.add_node("abandon", self._abandon_node)

        workflow.set_entry_point("stream")
        workflow.add_conditional_edges(
            "stream",
            self._route_outcome,
            {
                "complete": "complete",
                "fail": "fail",
                "abandon": "abandon",
            },
        )
        workflow.add_edge("complete", END)
        workflow.add_edge("fail", END)
        workflow.add_edge("abandon", END)

        return workflow.compile()

    async def _stream_node(self, state: CycleState) -> Dict[str, Any]:
        """Call the completion backend and assemble the streamed text."""
        try:
            chunks = self.client.stream(
                state["prompt"],
                state["images"],
                detail=self.detail,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"Cycle {state['cycle_id']}: completion request failed: {e}")
            if not self._closed:
                self.assembler.fail(e)
            return {"outcome": StreamOutcome(succeeded=False, error=e, abandoned=self._closed)}

        if self.chunk_timeout is not None:
            chunks = with_chunk_timeout(chunks, self.chunk_timeout)

        outcome = await self.assembler.consume(chunks, is_closed=lambda: self._closed)
        return {"outcome": outcome}

    def _route_outcome(self, state: CycleState) -> str:
        """Route to the terminal node matching the stream outcome."""
        outcome = state["outcome"]
        if outcome is None or outcome.abandoned:
            return "abandon"
        return "complete" if outcome.succeeded else "fail"

    async def _complete_node(self, state: CycleState) -> Dict[str, Any]:
        """Successful stream: the visible text becomes the next context."""
        # Text-less cycle: the visible text is still an earlier cycle's
        if not self.assembler.reset_pending:
            self._context = self.text.value
        elapsed = self._finish(state, DispatchState.IDLE)
        self.metrics.cycles_completed += 1

        logger.info(
            f"Cycle {state['cycle_id']} finished "
            f"({state['outcome'].finish_reason or 'eof'}) in {elapsed:.2f}s: "
            f"{self._context!r}"
        )
        return {"finished_at": self._clock()}

    async def _fail_node(self, state: CycleState) -> Dict[str, Any]:
        """Failed stream: keep the previous context, show the error."""
        elapsed = self._finish(state, DispatchState.IDLE)
        self.metrics.cycles_failed += 1

        error = state["outcome"].error
        logger.warning(
            f"Cycle {state['cycle_id']} failed after {elapsed:.2f}s: "
            f"{describe_error(error) if error else 'unknown error'}"
        )
        return {"finished_at": self._clock()}

    async def _abandon_node(self, state: CycleState) -> Dict[str, Any]:
        """Controller closed mid-stream: clear in-flight, touch nothing else."""
        self._finish(state, DispatchState.IDLE)
        self.metrics.cycles_abandoned += 1
        logger.info(f"Cycle {state['cycle_id']} abandoned")
        return {"finished_at": self._clock()}
